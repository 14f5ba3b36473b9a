"""Image placeholders, extraction budget and alt-text resolution.

Converters never call a describer directly. While parsing they plant
``![__img_N_<tag>__](filename)`` in the Markdown and record the image in a
:class:`PendingImages` table; :func:`resolve_images` (or its async twin)
later swaps each placeholder for the final alt text.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import secrets
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from .exceptions import ImageDescriptionError
from .models import ConversionOptions, ConversionResult, WarningCode

logger = logging.getLogger(__name__)

DESCRIBE_PROMPT = "Describe this image concisely for use as alt text."
OCTET_STREAM = "application/octet-stream"

MIME_EXTENSIONS: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
    "image/svg+xml": "svg",
}

_EXTENSION_MIMES: dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "svg": "image/svg+xml",
    "emf": "image/emf",
    "wmf": "image/wmf",
}


def sniff_image_mime(data: bytes) -> str | None:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"GIF8"):
        return "image/gif"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data.startswith(b"BM"):
        return "image/bmp"
    if data.startswith((b"II*\x00", b"MM\x00*")):
        return "image/tiff"
    head = data[:256].lstrip()
    if head.startswith((b"<?xml", b"<svg")):
        return "image/svg+xml"
    return None


def guess_image_mime(data: bytes, filename: str | None = None) -> str:
    """Magic bytes first, then the file extension, then octet-stream."""

    sniffed = sniff_image_mime(data)
    if sniffed:
        return sniffed
    if filename:
        extension = PurePosixPath(filename).suffix.lower().lstrip(".")
        if extension in _EXTENSION_MIMES:
            return _EXTENSION_MIMES[extension]
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            return guessed
    return OCTET_STREAM


def clean_alt_text(text: str) -> str:
    collapsed = " ".join(text.split())
    return collapsed.replace("[", "\\[").replace("]", "\\]")


@dataclass(slots=True, frozen=True)
class ImageInfo:
    placeholder: str
    original_alt: str
    filename: str

    @property
    def markdown(self) -> str:
        return f"![{self.placeholder}]({self.filename})"


def _placeholder_tag() -> str:
    return secrets.token_hex(4)


@dataclass(slots=True)
class PendingImages:
    """Side table produced while parsing, consumed once by the resolver.

    Placeholders carry a random per-table tag so that document text which
    happens to look like a placeholder is never substituted.
    """

    infos: list[ImageInfo] = field(default_factory=list)
    data: dict[str, bytes] = field(default_factory=dict)
    tag: str = field(default_factory=_placeholder_tag)
    # filenames already reported as over the byte budget during extraction
    over_budget: set[str] = field(default_factory=set)

    def __len__(self) -> int:
        return len(self.infos)

    def add(self, filename: str, original_alt: str = "", data: bytes | None = None) -> ImageInfo:
        info = ImageInfo(
            placeholder=f"__img_{len(self.infos)}_{self.tag}__",
            original_alt=original_alt,
            filename=filename,
        )
        self.infos.append(info)
        if data is not None:
            self.data.setdefault(filename, data)
        return info


class ImageCollector:
    """Plants placeholders and copies image bytes into the result.

    Extraction stops at the first image that would push the running total
    past ``max_total_image_bytes``; that image and every later one are
    reported as ``ResourceLimitReached``.
    """

    def __init__(self, options: ConversionOptions, result: ConversionResult) -> None:
        self.pending = PendingImages()
        self._options = options
        self._result = result
        self._total = 0
        self._exhausted = False
        self._extracted: set[str] = set()

    @property
    def wants_bytes(self) -> bool:
        return self._options.wants_image_bytes

    def emit(
        self,
        filename: str,
        original_alt: str = "",
        data: bytes | None = None,
        location: str | None = None,
    ) -> str:
        if data is not None and self._options.extract_images:
            self._extract(filename, data, location)
        return self.pending.add(filename, original_alt, data).markdown

    def _extract(self, filename: str, data: bytes, location: str | None) -> None:
        if filename in self._extracted:
            return
        limit = self._options.max_total_image_bytes
        if self._exhausted or self._total + len(data) > limit:
            self._exhausted = True
            self.pending.over_budget.add(filename)
            self._result.warn(
                WarningCode.RESOURCE_LIMIT_REACHED,
                f"image '{filename}' not extracted: total image bytes would exceed {limit}",
                location or filename,
            )
            return
        self._total += len(data)
        self._extracted.add(filename)
        self._result.images.append((filename, data))


def _substitute(markdown: str, info: ImageInfo, alt: str) -> str:
    return markdown.replace(info.markdown, f"![{clean_alt_text(alt)}]({info.filename})", 1)


def _describable(
    pending: PendingImages, options: ConversionOptions, result: ConversionResult
) -> list[tuple[ImageInfo, bytes | None]]:
    entries: list[tuple[ImageInfo, bytes | None]] = []
    limit = options.max_total_image_bytes
    for info in pending.infos:
        data = pending.data.get(info.filename)
        if data is not None and len(data) > limit:
            if info.filename not in pending.over_budget:
                pending.over_budget.add(info.filename)
                result.warn(
                    WarningCode.RESOURCE_LIMIT_REACHED,
                    f"image '{info.filename}' ({len(data)} bytes) exceeds {limit} bytes; not described",
                    info.filename,
                )
            data = None
        entries.append((info, data))
    return entries


def _description_failed(result: ConversionResult, info: ImageInfo, exc: BaseException) -> None:
    logger.debug("describer failed for %s: %s", info.filename, exc)
    result.warn(
        WarningCode.SKIPPED_ELEMENT,
        f"image description failed for '{info.filename}': {exc}",
        info.filename,
    )


def resolve_images(
    markdown: str, pending: PendingImages, options: ConversionOptions, result: ConversionResult
) -> str:
    """Replace every placeholder, calling the describer one image at a time."""

    describer = options.image_describer
    if describer is None:
        for info in pending.infos:
            markdown = _substitute(markdown, info, info.original_alt)
        return markdown

    for info, data in _describable(pending, options, result):
        alt = info.original_alt
        if data is not None:
            mime_type = guess_image_mime(data, info.filename)
            try:
                alt = describer.describe(data, mime_type, DESCRIBE_PROMPT)
            except Exception as exc:  # describers are third-party code
                _description_failed(result, info, exc)
                alt = info.original_alt
        markdown = _substitute(markdown, info, alt)
    return markdown


async def _describe_async(options: ConversionOptions, data: bytes, mime_type: str) -> str:
    if options.async_image_describer is not None:
        return await options.async_image_describer.describe(data, mime_type, DESCRIBE_PROMPT)
    if options.image_describer is None:
        raise ImageDescriptionError("no image describer configured")
    return await asyncio.to_thread(options.image_describer.describe, data, mime_type, DESCRIBE_PROMPT)


async def resolve_images_async(
    markdown: str, pending: PendingImages, options: ConversionOptions, result: ConversionResult
) -> str:
    """Describe all images concurrently and substitute by emission order.

    Substitution only starts once every description has settled, so a
    cancelled resolution leaves the caller without partially rewritten
    Markdown.
    """

    if options.async_image_describer is None and options.image_describer is None:
        return resolve_images(markdown, pending, options, result)

    entries = _describable(pending, options, result)
    jobs = [
        _describe_async(options, data, guess_image_mime(data, info.filename))
        for info, data in entries
        if data is not None
    ]
    outcomes = iter(await asyncio.gather(*jobs, return_exceptions=True))

    for info, data in entries:
        alt = info.original_alt
        if data is not None:
            outcome = next(outcomes)
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                _description_failed(result, info, outcome)
            else:
                alt = outcome
        markdown = _substitute(markdown, info, alt)
    return markdown


__all__ = [
    "DESCRIBE_PROMPT",
    "ImageCollector",
    "ImageInfo",
    "MIME_EXTENSIONS",
    "PendingImages",
    "clean_alt_text",
    "guess_image_mime",
    "resolve_images",
    "resolve_images_async",
    "sniff_image_mime",
]
