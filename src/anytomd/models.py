"""Domain models for markdown conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

MIB = 1024 * 1024

DEFAULT_MAX_TOTAL_IMAGE_BYTES = 50 * MIB
DEFAULT_MAX_INPUT_BYTES = 100 * MIB
DEFAULT_MAX_UNCOMPRESSED_ZIP_BYTES = 500 * MIB


class WarningCode(str, Enum):
    SKIPPED_ELEMENT = "SkippedElement"
    UNSUPPORTED_FEATURE = "UnsupportedFeature"
    RESOURCE_LIMIT_REACHED = "ResourceLimitReached"
    MALFORMED_SEGMENT = "MalformedSegment"


@dataclass(slots=True, frozen=True)
class ConversionWarning:
    """A recoverable anomaly attached to a successful result."""

    code: WarningCode
    message: str
    location: str | None = None

    def __str__(self) -> str:
        text = f"[{self.code.value}] {self.message}"
        if self.location:
            text += f" ({self.location})"
        return text

    def to_dict(self) -> dict[str, str | None]:
        return {"code": self.code.value, "message": self.message, "location": self.location}


@runtime_checkable
class ImageDescriber(Protocol):
    def describe(self, data: bytes, mime_type: str, prompt: str) -> str:  # pragma: no cover - interface
        ...


@runtime_checkable
class AsyncImageDescriber(Protocol):
    async def describe(self, data: bytes, mime_type: str, prompt: str) -> str:  # pragma: no cover - interface
        ...


@dataclass(slots=True)
class ConversionOptions:
    """Configuration for a single conversion call.

    Options are never shared between concurrent conversions; describers
    may be, provided they are safe for concurrent use.
    """

    extract_images: bool = False
    max_total_image_bytes: int = DEFAULT_MAX_TOTAL_IMAGE_BYTES
    max_input_bytes: int = DEFAULT_MAX_INPUT_BYTES
    max_uncompressed_zip_bytes: int = DEFAULT_MAX_UNCOMPRESSED_ZIP_BYTES
    strict: bool = False
    image_describer: ImageDescriber | None = None
    async_image_describer: AsyncImageDescriber | None = None

    @property
    def wants_image_bytes(self) -> bool:
        return (
            self.extract_images
            or self.image_describer is not None
            or self.async_image_describer is not None
        )


@dataclass(slots=True)
class ConversionResult:
    """Markdown output plus the metadata collected while converting."""

    markdown: str = ""
    title: str | None = None
    images: list[tuple[str, bytes]] = field(default_factory=list)
    warnings: list[ConversionWarning] = field(default_factory=list)

    def warn(self, code: WarningCode, message: str, location: str | None = None) -> None:
        self.warnings.append(ConversionWarning(code, message, location))


__all__ = [
    "AsyncImageDescriber",
    "ConversionOptions",
    "ConversionResult",
    "ConversionWarning",
    "ImageDescriber",
    "WarningCode",
]
