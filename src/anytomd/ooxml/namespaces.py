"""Namespace URIs and relationship types used when reading OOXML parts."""

from __future__ import annotations

NS = {
    "w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "p": "http://schemas.openxmlformats.org/presentationml/2006/main",
    "wp": "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing",
    "s": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "pr": "http://schemas.openxmlformats.org/package/2006/relationships",
}

R_ID = f"{{{NS['r']}}}id"
R_EMBED = f"{{{NS['r']}}}embed"

REL_NOTES_SLIDE = "notesSlide"
REL_DRAWING = "drawing"
REL_IMAGE = "image"


def local_name(tag: object) -> str:
    """Strip the ``{namespace}`` prefix; comments and PIs have no name."""

    if not isinstance(tag, str):
        return ""
    return tag.rpartition("}")[2]


def attribute(element, name: str) -> str | None:  # type: ignore[no-untyped-def]
    """Look up an attribute by local name, whatever namespace it carries."""

    value = element.get(name)
    if value is not None:
        return value
    for key, candidate in element.attrib.items():
        if local_name(key) == name:
            return candidate
    return None


__all__ = [
    "NS",
    "R_EMBED",
    "R_ID",
    "REL_DRAWING",
    "REL_IMAGE",
    "REL_NOTES_SLIDE",
    "attribute",
    "local_name",
]
