"""Pure Markdown formatters shared by every converter."""

from __future__ import annotations

import re
from typing import Sequence

_BACKTICK_RUN_RE = re.compile(r"`+")


def escape_cell(value: str) -> str:
    # backslashes first so the escapes added below are not doubled
    escaped = value.replace("\\", "\\\\").replace("|", "\\|")
    escaped = escaped.replace("\r\n", "<br>").replace("\n", "<br>")
    return escaped.replace("\r", "")


def build_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Render a pipe table; rows are padded or truncated to the header width."""

    if not headers:
        return ""
    width = len(headers)
    lines = [
        "| " + " | ".join(escape_cell(header) for header in headers) + " |",
        "|" + "---|" * width,
    ]
    for row in rows:
        cells = [escape_cell(cell) for cell in list(row)[:width]]
        cells.extend([""] * (width - len(cells)))
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines) + "\n"


def format_heading(level: int, text: str) -> str:
    level = max(1, min(level, 6))
    return f"{'#' * level} {text}\n"


def wrap_emphasis(text: str, bold: bool, italic: bool) -> str:
    core = text.strip()
    if not core:
        return ""
    leading = text[: len(text) - len(text.lstrip())]
    trailing = text[len(text.rstrip()) :]
    if bold and italic:
        marker = "***"
    elif bold:
        marker = "**"
    elif italic:
        marker = "*"
    else:
        marker = ""
    return f"{leading}{marker}{core}{marker}{trailing}"


def format_list_item(level: int, ordered: bool, number: int, text: str) -> str:
    bullet = f"{number}. " if ordered else "- "
    return "  " * level + bullet + text


def fenced_block(body: str, language: str = "") -> str:
    """Wrap ``body`` in a code fence longer than any backtick run it contains."""

    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(body)), default=0)
    fence = "`" * max(3, longest + 1)
    return f"{fence}{language}\n{body}\n{fence}\n"


def inline_code(text: str) -> str:
    """Code span delimited by one backtick more than the longest run in ``text``."""

    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(text)), default=0)
    tick = "`" * (longest + 1)
    if text.startswith("`") or text.endswith("`"):
        text = f" {text} "
    return f"{tick}{text}{tick}"


__all__ = [
    "build_table",
    "escape_cell",
    "fenced_block",
    "format_heading",
    "format_list_item",
    "inline_code",
    "wrap_emphasis",
]
