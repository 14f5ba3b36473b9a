from __future__ import annotations

import json
from typing import Any

from ..detection import DocumentType
from ..exceptions import MalformedDocumentError, Utf8Failure
from ..markdown import fenced_block
from ..models import ConversionOptions, ConversionResult, WarningCode
from .base import AdapterResponse, BaseAdapter

DEFAULT_LANGUAGE = "python"


def cell_source(source: Any) -> str:
    if isinstance(source, list):
        return "".join(str(line) for line in source)
    if isinstance(source, str):
        return source
    return ""


def notebook_language(metadata: dict[str, Any]) -> str:
    for section, key in (("kernelspec", "language"), ("language_info", "name")):
        value = metadata.get(section)
        if isinstance(value, dict) and isinstance(value.get(key), str) and value[key]:
            return value[key]
    return DEFAULT_LANGUAGE


def first_heading(markdown: str) -> str | None:
    for line in markdown.splitlines():
        stripped = line.strip()
        if stripped.startswith("# "):
            return stripped[2:].strip() or None
    return None


class NotebookAdapter(BaseAdapter):
    """Renders Jupyter notebooks; cell outputs are ignored."""

    document_type = DocumentType.IPYNB
    extensions = frozenset({"ipynb"})

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        try:
            notebook = json.loads(data.decode("utf-8").removeprefix("\ufeff"))
        except UnicodeDecodeError as exc:
            raise Utf8Failure(f"notebook is not valid UTF-8: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise MalformedDocumentError(f"invalid notebook JSON: {exc}") from exc
        if not isinstance(notebook, dict) or not isinstance(notebook.get("cells"), list):
            raise MalformedDocumentError("notebook has no cells array")

        metadata = notebook.get("metadata")
        metadata = metadata if isinstance(metadata, dict) else {}
        language = notebook_language(metadata)
        result = ConversionResult()
        sections: list[str] = []
        heading: str | None = None

        for index, cell in enumerate(notebook["cells"]):
            cell_type = cell.get("cell_type") if isinstance(cell, dict) else None
            if cell_type not in {"markdown", "code", "raw"}:
                result.warn(
                    WarningCode.SKIPPED_ELEMENT,
                    f"unsupported cell type '{cell_type}'",
                    f"cell {index}",
                )
                continue
            source = cell_source(cell.get("source")).rstrip()
            if not source.strip():
                continue
            if cell_type == "markdown":
                heading = heading or first_heading(source)
                sections.append(source)
            elif cell_type == "code":
                sections.append(fenced_block(source, language).rstrip("\n"))
            else:
                sections.append(fenced_block(source).rstrip("\n"))

        title = metadata.get("title")
        result.title = title.strip() if isinstance(title, str) and title.strip() else heading
        result.markdown = "\n\n".join(sections) + "\n" if sections else ""
        return AdapterResponse(result=result)
