from __future__ import annotations

import codecs
import os
import re
import tempfile
from pathlib import Path

from .models import ConversionWarning, WarningCode

SAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")

_BOM_ENCODINGS = (
    (codecs.BOM_UTF16_LE, "utf-16-le", "UTF-16LE"),
    (codecs.BOM_UTF16_BE, "utf-16-be", "UTF-16BE"),
)


def slugify(value: str, max_length: int = 120) -> str:
    normalized = SAFE_FILENAME_RE.sub("-", value.strip())
    normalized = re.sub("-+", "-", normalized)
    normalized = normalized.replace("-.", ".")
    normalized = normalized.strip("-_")
    if not normalized.strip("."):
        normalized = "file"
    if len(normalized) > max_length:
        normalized = normalized[:max_length]
    return normalized


def atomic_write(path: Path, data: str | bytes, encoding: str = "utf-8") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        data = data.encode(encoding)
    with tempfile.NamedTemporaryFile("wb", delete=False, dir=path.parent) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)


def normalize_newlines(text: str) -> str:
    lines = [line.rstrip() for line in text.splitlines()]
    return "\n".join(lines) + ("\n" if lines else "")


def _c1_controls(error: UnicodeError) -> tuple[str, int]:
    """Map bytes windows-1252 leaves undefined to the C1 controls of the same value."""

    if not isinstance(error, UnicodeDecodeError):
        raise error
    undefined = error.object[error.start : error.end]
    return "".join(chr(byte) for byte in undefined), error.end


codecs.register_error("anytomd-c1-controls", _c1_controls)


def _decode_with_fallback(data: bytes, codec: str, label: str) -> tuple[str, ConversionWarning]:
    try:
        text = data.decode(codec)
    except UnicodeDecodeError:
        text = data.decode(codec, errors="replace")
        return text, ConversionWarning(
            WarningCode.MALFORMED_SEGMENT,
            f"replacement characters inserted during {label} decoding",
        )
    return text, ConversionWarning(WarningCode.UNSUPPORTED_FEATURE, f"decoded from {label} encoding")


def decode_text(data: bytes) -> tuple[str, ConversionWarning | None]:
    """Decode text content, falling back from UTF-8 to UTF-16 (by BOM) and windows-1252."""

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    else:
        return text.removeprefix("\ufeff"), None

    for bom, codec, label in _BOM_ENCODINGS:
        if data.startswith(bom):
            return _decode_with_fallback(data[len(bom) :], codec, label)

    text = data.decode("cp1252", errors="anytomd-c1-controls")
    return text, ConversionWarning(WarningCode.UNSUPPORTED_FEATURE, "decoded from windows-1252 encoding (fallback)")
