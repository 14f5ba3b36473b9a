from __future__ import annotations

from ..detection import IMAGE_EXTENSIONS, DocumentType
from ..images import MIME_EXTENSIONS, ImageCollector, sniff_image_mime
from ..models import ConversionOptions, ConversionResult, WarningCode
from .base import AdapterResponse, BaseAdapter

GENERIC_BASENAME = "image"


def image_filename(data: bytes) -> str:
    extension = MIME_EXTENSIONS.get(sniff_image_mime(data) or "")
    return f"{GENERIC_BASENAME}.{extension}" if extension else GENERIC_BASENAME


class ImageAdapter(BaseAdapter):
    """A standalone image becomes a single Markdown image reference."""

    document_type = DocumentType.IMAGE
    extensions = IMAGE_EXTENSIONS

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        result = ConversionResult()
        filename = image_filename(data)
        limit = options.max_total_image_bytes
        if len(data) > limit:
            result.warn(
                WarningCode.RESOURCE_LIMIT_REACHED,
                f"image of {len(data)} bytes exceeds limit of {limit} bytes",
                filename,
            )
            return AdapterResponse(result=result)
        collector = ImageCollector(options, result)
        result.markdown = collector.emit(filename, "", data) + "\n"
        return AdapterResponse(result=result, pending=collector.pending)
