from __future__ import annotations

import json

from ..detection import DocumentType
from ..exceptions import MalformedDocumentError, Utf8Failure
from ..markdown import fenced_block
from ..models import ConversionOptions, ConversionResult
from .base import AdapterResponse, BaseAdapter


def pretty_json(text: str) -> str:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedDocumentError(f"invalid JSON: {exc}") from exc
    return json.dumps(value, indent=2, ensure_ascii=False)


class JSONAdapter(BaseAdapter):
    document_type = DocumentType.JSON
    extensions = frozenset({"json"})

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        try:
            text = data.decode("utf-8").removeprefix("\ufeff")
        except UnicodeDecodeError as exc:
            raise Utf8Failure(f"JSON input is not valid UTF-8: {exc}") from exc
        return AdapterResponse(result=ConversionResult(markdown=fenced_block(pretty_json(text), "json")))
