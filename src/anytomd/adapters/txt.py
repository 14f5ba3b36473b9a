from __future__ import annotations

from ..detection import TEXT_EXTENSIONS, DocumentType
from ..models import ConversionOptions, ConversionResult
from ..utils import decode_text
from .base import AdapterResponse, BaseAdapter


class TXTAdapter(BaseAdapter):
    """Passes text through unchanged once decoded."""

    document_type = DocumentType.TXT
    extensions = TEXT_EXTENSIONS

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        text, warning = decode_text(data)
        result = ConversionResult(markdown=text)
        if warning is not None:
            result.warnings.append(warning)
        return AdapterResponse(result=result)
