from __future__ import annotations

from ..detection import DocumentType
from ..markdown import fenced_block
from ..models import ConversionOptions, ConversionResult
from ..utils import decode_text
from .base import AdapterResponse, BaseAdapter

LANGUAGES: dict[str, str] = {
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
    "hxx": "cpp",
    "hh": "cpp",
    "py": "python",
    "pyw": "python",
    "js": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "jsx": "jsx",
    "ts": "typescript",
    "mts": "typescript",
    "cts": "typescript",
    "tsx": "tsx",
    "rs": "rust",
    "go": "go",
    "java": "java",
    "kt": "kotlin",
    "kts": "kotlin",
    "rb": "ruby",
    "swift": "swift",
    "cs": "csharp",
    "php": "php",
    "sh": "bash",
    "bash": "bash",
    "zsh": "bash",
    "fish": "bash",
    "pl": "perl",
    "pm": "perl",
    "lua": "lua",
    "r": "r",
    "scala": "scala",
    "dart": "dart",
    "ex": "elixir",
    "exs": "elixir",
    "erl": "erlang",
    "hs": "haskell",
    "ml": "ocaml",
    "mli": "ocaml",
    "sql": "sql",
    "m": "objectivec",
    "mm": "objectivec",
    "zig": "zig",
    "nim": "nim",
    "v": "v",
    "groovy": "groovy",
    "ps1": "powershell",
    "bat": "batch",
    "cmd": "batch",
}


class CodeAdapter(BaseAdapter):
    """Fences source files, tagging the block with the file's language."""

    document_type = DocumentType.CODE
    extensions = frozenset(LANGUAGES)

    def __init__(self, language: str = "") -> None:
        self._language = language

    def for_key(self, key: str) -> "CodeAdapter":
        return CodeAdapter(LANGUAGES.get(key, ""))

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        text, warning = decode_text(data)
        result = ConversionResult(markdown=fenced_block(text.rstrip(), self._language))
        if warning is not None:
            result.warnings.append(warning)
        return AdapterResponse(result=result)
