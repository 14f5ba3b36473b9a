from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Protocol

from ..detection import DocumentType
from ..exceptions import MalformedDocumentError
from ..images import ImageCollector, PendingImages
from ..models import ConversionOptions, ConversionResult
from ..ooxml import OoxmlPackage, load_relationships, resolve_against_dir
from ..utils import normalize_newlines


@dataclass(slots=True)
class AdapterResponse:
    """Parsed output whose image placeholders are still unresolved."""

    result: ConversionResult
    pending: PendingImages = field(default_factory=PendingImages)


class Adapter(Protocol):
    document_type: DocumentType
    extensions: frozenset[str]

    def accepts(self, key: str) -> bool:  # pragma: no cover - interface
        ...

    def for_key(self, key: str) -> "Adapter":  # pragma: no cover - interface
        ...

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:  # pragma: no cover - interface
        ...


def finish_markdown(markdown: str) -> str:
    markdown = markdown.rstrip()
    return markdown + "\n" if markdown else ""


def normalize_markdown(markdown: str) -> str:
    return normalize_newlines(markdown)


class BaseAdapter:
    document_type: DocumentType
    extensions: frozenset[str] = frozenset()

    @classmethod
    def accepts(cls, key: str) -> bool:
        return key == cls.document_type.value or key in cls.extensions

    def for_key(self, key: str) -> "BaseAdapter":
        """Adapter instance to use for an accepted extension or tag."""

        return self

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        raise NotImplementedError


class OoxmlAdapter(BaseAdapter):
    """Shared package handling for the three OOXML families."""

    def open_package(self, data: bytes, options: ConversionOptions) -> OoxmlPackage:
        package = OoxmlPackage(data)
        try:
            package.check_budget(options.max_uncompressed_zip_bytes)
        except Exception:
            package.close()
            raise
        return package

    def main_part(self, package: OoxmlPackage, default: str) -> str:
        """Locate the main part through the package-level relationships."""

        for relationship in load_relationships(package, "").values():
            if relationship.is_type("officeDocument") and not relationship.external:
                target = resolve_against_dir("", relationship.target)
                if package.has_part(target):
                    return target
        return default

    def require_part(self, package: OoxmlPackage, path: str) -> bytes:
        data = package.read_bytes(path)
        if data is None:
            raise MalformedDocumentError(f"missing required part {path}")
        return data

    def new_collector(self, options: ConversionOptions, result: ConversionResult) -> ImageCollector:
        return ImageCollector(options, result)


class BaseMarkitdownAdapter(BaseAdapter):
    """Delegates text extraction to markitdown."""

    def __init__(self) -> None:
        try:
            from markitdown import MarkItDown
        except ModuleNotFoundError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                f"markitdown dependency is required for the {self.document_type.value} adapter"
            ) from exc

        self._converter = MarkItDown()

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        try:
            converted = self._converter.convert_stream(
                io.BytesIO(data), file_extension=self.document_type.extension
            )
        except Exception as exc:  # markitdown wraps parser errors in several types
            raise MalformedDocumentError(str(exc) or exc.__class__.__name__) from exc

        if isinstance(converted, str):
            markdown = converted
        elif hasattr(converted, "text_content"):
            markdown = str(converted.text_content or "")
        else:
            raise MalformedDocumentError("unsupported markitdown return type")

        title = getattr(converted, "title", None)
        result = ConversionResult(markdown=normalize_markdown(markdown).lstrip("\n"))
        if isinstance(title, str) and title.strip():
            result.title = title.strip()
        return AdapterResponse(result=result)
