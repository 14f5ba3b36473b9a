from __future__ import annotations

import io
import logging
import zipfile
from enum import Enum
from pathlib import PurePath

logger = logging.getLogger(__name__)

HEADER_BYTES = 16
ZIP_MAGIC = b"PK\x03\x04"
PDF_MAGIC = b"%PDF"
OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
UTF8_BOM = b"\xef\xbb\xbf"


class DocumentType(str, Enum):
    DOCX = "docx"
    PPTX = "pptx"
    XLSX = "xlsx"
    XLS = "xls"
    PDF = "pdf"
    CSV = "csv"
    JSON = "json"
    XML = "xml"
    HTML = "html"
    IPYNB = "ipynb"
    TXT = "txt"
    IMAGE = "image"
    CODE = "code"

    @property
    def extension(self) -> str:
        return f".{self.value}"


TEXT_EXTENSIONS = frozenset(
    {"txt", "text", "log", "md", "markdown", "rst", "ini", "cfg", "conf", "toml", "yaml", "yml"}
)
IMAGE_EXTENSIONS = frozenset(
    {"png", "jpg", "jpeg", "gif", "webp", "bmp", "tiff", "tif", "svg", "heic", "heif", "avif"}
)

EXTENSION_MAP: dict[str, DocumentType] = {
    "docx": DocumentType.DOCX,
    "pptx": DocumentType.PPTX,
    "xlsx": DocumentType.XLSX,
    "xlsm": DocumentType.XLSX,
    "xls": DocumentType.XLS,
    "pdf": DocumentType.PDF,
    "csv": DocumentType.CSV,
    "json": DocumentType.JSON,
    "xml": DocumentType.XML,
    "html": DocumentType.HTML,
    "htm": DocumentType.HTML,
    "xhtml": DocumentType.HTML,
    "ipynb": DocumentType.IPYNB,
    **{ext: DocumentType.TXT for ext in TEXT_EXTENSIONS},
    **{ext: DocumentType.IMAGE for ext in IMAGE_EXTENSIONS},
}

# container formats whose payload would otherwise trip the JSON heuristic
_JSON_FAMILY = frozenset({"ipynb"})


def normalize_extension(value: str) -> str:
    return value.strip().lower().lstrip(".")


def extension_of(path: str | PurePath | None) -> str:
    if path is None:
        return ""
    return normalize_extension(PurePath(path).suffix)


def detect_by_extension(extension: str) -> DocumentType | None:
    return EXTENSION_MAP.get(normalize_extension(extension))


def detect_zip_format(data: bytes) -> DocumentType | None:
    """Introspect a ZIP container and name its OOXML family."""

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = archive.namelist()
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as exc:
        logger.debug("zip introspection failed: %s", exc)
        return None
    for prefix, document_type in (
        ("word/", DocumentType.DOCX),
        ("ppt/", DocumentType.PPTX),
        ("xl/", DocumentType.XLSX),
    ):
        if any(name.startswith(prefix) for name in names):
            return document_type
    return None


# directory entry names of the BIFF8 and BIFF5 workbook streams
_OLE_WORKBOOK_STREAMS = ("Workbook".encode("utf-16-le"), "Book".encode("utf-16-le"))


def detect_ole_format(data: bytes) -> DocumentType | None:
    """Name the legacy Office format stored in a Compound File container."""

    if any(stream in data for stream in _OLE_WORKBOOK_STREAMS):
        return DocumentType.XLS
    return None


def _looks_like_json(header: bytes) -> bool:
    stripped = header.removeprefix(UTF8_BOM).lstrip()
    return stripped[:1] in (b"{", b"[")


def detect_format(path: str | PurePath | None, data: bytes) -> DocumentType | None:
    """Map content plus path to a format tag.

    Magic bytes win over the extension; ZIP containers are resolved by
    looking at their entry names and Compound File containers by their
    stream names.
    """

    header = data[:HEADER_BYTES]
    extension = extension_of(path)
    if header.startswith(ZIP_MAGIC):
        detected = detect_zip_format(data)
        if detected is not None:
            return detected
    elif header.startswith(OLE_MAGIC):
        detected = detect_ole_format(data)
        if detected is not None:
            return detected
    elif header.startswith(PDF_MAGIC):
        return DocumentType.PDF
    elif extension not in _JSON_FAMILY and _looks_like_json(header):
        return DocumentType.JSON
    return detect_by_extension(extension)


__all__ = [
    "DocumentType",
    "EXTENSION_MAP",
    "IMAGE_EXTENSIONS",
    "OLE_MAGIC",
    "TEXT_EXTENSIONS",
    "detect_by_extension",
    "detect_format",
    "detect_ole_format",
    "detect_zip_format",
    "extension_of",
    "normalize_extension",
]
