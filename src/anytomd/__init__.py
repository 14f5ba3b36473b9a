"""Convert OOXML and other document formats to Markdown."""

from __future__ import annotations

__version__ = "0.1.0"

from .core import (
    ConversionOutcome,
    ConversionService,
    convert_bytes,
    convert_bytes_async,
    convert_file,
    convert_file_async,
)
from .detection import DocumentType, detect_format
from .exceptions import (
    ConversionError,
    ImageDescriptionError,
    InputTooLargeError,
    IoFailure,
    MalformedDocumentError,
    StrictModeError,
    UnsupportedFormatError,
    Utf8Failure,
    XmlFailure,
    ZipFailure,
)
from .models import (
    AsyncImageDescriber,
    ConversionOptions,
    ConversionResult,
    ConversionWarning,
    ImageDescriber,
    WarningCode,
)

__all__ = [
    "AsyncImageDescriber",
    "ConversionError",
    "ConversionOptions",
    "ConversionOutcome",
    "ConversionResult",
    "ConversionService",
    "ConversionWarning",
    "DocumentType",
    "ImageDescriber",
    "ImageDescriptionError",
    "InputTooLargeError",
    "IoFailure",
    "MalformedDocumentError",
    "StrictModeError",
    "UnsupportedFormatError",
    "Utf8Failure",
    "WarningCode",
    "XmlFailure",
    "ZipFailure",
    "__version__",
    "convert_bytes",
    "convert_bytes_async",
    "convert_file",
    "convert_file_async",
    "detect_format",
]
