from __future__ import annotations

import csv
import io

from ..detection import DocumentType
from ..exceptions import MalformedDocumentError, Utf8Failure
from ..markdown import build_table
from ..models import ConversionOptions, ConversionResult
from .base import AdapterResponse, BaseAdapter


class CSVAdapter(BaseAdapter):
    document_type = DocumentType.CSV
    extensions = frozenset({"csv"})

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        try:
            text = data.decode("utf-8").removeprefix("\ufeff")
        except UnicodeDecodeError as exc:
            raise Utf8Failure(f"CSV input is not valid UTF-8: {exc}") from exc
        try:
            rows = [row for row in csv.reader(io.StringIO(text, newline="")) if row]
        except csv.Error as exc:
            raise MalformedDocumentError(f"invalid CSV: {exc}") from exc
        if not rows:
            return AdapterResponse(result=ConversionResult())
        return AdapterResponse(result=ConversionResult(markdown=build_table(rows[0], rows[1:])))
