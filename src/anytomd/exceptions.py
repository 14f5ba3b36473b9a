"""Error taxonomy shared by every converter."""

from __future__ import annotations


class ConversionError(RuntimeError):
    """Base class for fatal conversion failures.

    ``code`` is a stable identifier used by the CLI, the run log and the
    local API.
    """

    code = "CONVERSION_FAILED"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class UnsupportedFormatError(ConversionError):
    code = "UNSUPPORTED_FORMAT"

    def __init__(self, extension: str) -> None:
        super().__init__(f"unsupported format: {extension or '<none>'}")
        self.extension = extension


class InputTooLargeError(ConversionError):
    code = "INPUT_TOO_LARGE"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"input too large: {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class MalformedDocumentError(ConversionError):
    code = "MALFORMED_DOCUMENT"

    def __init__(self, reason: str) -> None:
        super().__init__(f"malformed document: {reason}")
        self.reason = reason


class StrictModeError(MalformedDocumentError):
    """A recoverable warning promoted to a failure because ``strict`` is set."""

    code = "STRICT_MODE"

    def __init__(self, warning: object) -> None:
        super().__init__(f"strict mode: {warning}")
        self.warning = warning


class IoFailure(ConversionError):
    code = "IO_FAILURE"


class ZipFailure(ConversionError):
    code = "ZIP_FAILURE"


class XmlFailure(ConversionError):
    code = "XML_FAILURE"


class Utf8Failure(ConversionError):
    code = "UTF8_FAILURE"


class ImageDescriptionError(ConversionError):
    code = "IMAGE_DESCRIPTION"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


__all__ = [
    "ConversionError",
    "UnsupportedFormatError",
    "InputTooLargeError",
    "MalformedDocumentError",
    "StrictModeError",
    "IoFailure",
    "ZipFailure",
    "XmlFailure",
    "Utf8Failure",
    "ImageDescriptionError",
]
