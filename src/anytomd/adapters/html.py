from __future__ import annotations

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from ..detection import DocumentType
from ..markdown import build_table, fenced_block, format_heading, inline_code
from ..models import ConversionOptions, ConversionResult
from ..utils import decode_text
from .base import AdapterResponse, BaseAdapter, finish_markdown

SKIPPED_TAGS = frozenset({"script", "style", "head", "template", "noscript"})
HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
BLOCK_TAGS = frozenset(
    {
        "div", "section", "article", "header", "footer", "main", "nav", "aside",
        "figure", "figcaption", "address", "details", "summary", "dl", "dt", "dd",
    }
)
_WHITESPACE_RE = re.compile(r"[ \t\n\r\f\v]+")
_IGNORED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text)


@dataclass(slots=True)
class _Table:
    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    row: list[str] = field(default_factory=list)
    cell: list[str] | None = None
    in_header: bool = False

    def render(self) -> str:
        rows = [row for row in self.rows if row]
        headers = self.headers
        if not headers:
            if not rows:
                return ""
            headers, rows = rows[0], rows[1:]
        return build_table(headers, rows)


class _HtmlWalker:
    """Depth-first walk emitting Markdown into a chunk list."""

    def __init__(self) -> None:
        self._out: list[str] = []
        self._lists: list[list[int | bool]] = []
        self._table: _Table | None = None
        self._in_pre = 0
        self._quote_depth = 0

    # output helpers

    def _target(self) -> list[str]:
        if self._table is not None and self._table.cell is not None:
            return self._table.cell
        return self._out

    def _push(self, text: str) -> None:
        if text:
            self._target().append(text)

    def _tail(self) -> str:
        tail = ""
        for chunk in reversed(self._out):
            tail = chunk + tail
            if len(tail) >= 2 and tail.strip("\n"):
                break
        return tail

    def _trailing_newlines(self) -> int:
        tail = self._tail()
        return len(tail) - len(tail.rstrip("\n"))

    def _last_char(self) -> str:
        target = self._target()
        for chunk in reversed(target):
            if chunk:
                return chunk[-1]
        return ""

    def _ensure_newline(self) -> None:
        if self._out and self._trailing_newlines() < 1:
            self._out.append("\n")

    def _ensure_blank_line(self) -> None:
        if not self._out:
            return
        if self._quote_depth:
            self._ensure_newline()
            if self._trailing_newlines() < 2:
                self._out.append("> " * self._quote_depth + "\n")
            return
        while self._trailing_newlines() < 2:
            self._out.append("\n")

    def _in_cell(self) -> bool:
        return self._table is not None and self._table.cell is not None

    # traversal

    def walk(self, node: Tag) -> str:
        for child in node.children:
            self._visit(child)
        return "".join(self._out).strip()

    def _visit(self, node: object) -> None:
        if isinstance(node, _IGNORED_STRINGS):
            return
        if isinstance(node, NavigableString):
            self._text(str(node))
        elif isinstance(node, Tag):
            self._element(node)

    def _children(self, node: Tag) -> None:
        for child in node.children:
            self._visit(child)

    def _capture(self, node: Tag) -> str:
        """Render ``node``'s children and return them instead of emitting."""

        target = self._target()
        start = len(target)
        self._children(node)
        captured = "".join(target[start:])
        del target[start:]
        return captured

    def _element(self, node: Tag) -> None:
        tag = node.name.lower()
        if tag in SKIPPED_TAGS:
            return
        handler = getattr(self, f"_tag_{tag}", None)
        if handler is None and tag in HEADING_TAGS:
            handler = self._heading
        elif handler is None and tag in BLOCK_TAGS:
            handler = self._block
        if handler is None:
            self._children(node)
        else:
            handler(node)

    def _text(self, raw: str) -> None:
        if self._table is not None and not self._in_cell():
            # whitespace between table tags
            return
        if self._in_pre:
            self._push(raw)
            return
        collapsed = collapse_whitespace(raw)
        if not collapsed:
            return
        last = self._last_char()
        if collapsed == " ":
            if last and last not in " \t\n":
                self._push(" ")
            return
        if collapsed.startswith(" ") and (not last or last in " \t\n"):
            collapsed = collapsed[1:]
        if not collapsed:
            return
        if self._quote_depth and not self._in_cell():
            prefix = "> " * self._quote_depth
            if not self._out or self._trailing_newlines() > 0:
                self._push(prefix)
        self._push(collapsed)

    # block elements

    def _heading(self, node: Tag) -> None:
        self._ensure_blank_line()
        text = collapse_whitespace(self._capture(node)).strip()
        if text:
            self._push(format_heading(int(node.name[1]), text))

    def _block(self, node: Tag) -> None:
        if self._in_cell() or self._lists:
            self._children(node)
            return
        self._ensure_blank_line()
        self._children(node)
        self._ensure_blank_line()

    def _tag_p(self, node: Tag) -> None:
        if self._in_cell():
            self._children(node)
            self._push(" ")
            return
        self._ensure_blank_line()
        self._children(node)
        self._ensure_blank_line()

    def _tag_pre(self, node: Tag) -> None:
        self._ensure_blank_line()
        self._in_pre += 1
        body = self._capture(node)
        self._in_pre -= 1
        self._push(fenced_block(body.removeprefix("\n").rstrip("\n")))

    def _list(self, node: Tag, ordered: bool) -> None:
        if self._lists:
            self._ensure_newline()
        else:
            self._ensure_blank_line()
        self._lists.append([ordered, 0])
        self._children(node)
        self._lists.pop()
        if not self._lists:
            self._ensure_blank_line()

    def _tag_ul(self, node: Tag) -> None:
        self._list(node, ordered=False)

    def _tag_ol(self, node: Tag) -> None:
        self._list(node, ordered=True)

    def _tag_li(self, node: Tag) -> None:
        indent = "  " * max(len(self._lists) - 1, 0)
        marker = "- "
        if self._lists:
            context = self._lists[-1]
            context[1] = int(context[1]) + 1
            if context[0]:
                marker = f"{context[1]}. "
        self._ensure_newline()
        self._push(indent + marker)
        self._children(node)
        self._ensure_newline()

    def _tag_blockquote(self, node: Tag) -> None:
        self._quote_depth += 1
        self._ensure_newline()
        self._children(node)
        self._quote_depth -= 1
        self._ensure_newline()

    def _tag_hr(self, node: Tag) -> None:
        self._ensure_blank_line()
        self._push("---\n")

    def _tag_br(self, node: Tag) -> None:
        if self._in_pre:
            self._push("\n")
        elif self._in_cell():
            self._push(" ")
        else:
            self._push("\n")
            if self._quote_depth:
                self._push("> " * self._quote_depth)

    # tables

    def _tag_table(self, node: Tag) -> None:
        if not self._in_cell():
            self._ensure_blank_line()
        outer, self._table = self._table, _Table()
        self._children(node)
        table, self._table = self._table, outer
        rendered = table.render()
        if outer is not None and outer.cell is not None:
            outer.cell.append(" ".join(cell for row in [table.headers, *table.rows] for cell in row if cell))
        elif rendered:
            self._push(rendered)
            self._ensure_blank_line()

    def _tag_thead(self, node: Tag) -> None:
        if self._table is None:
            self._children(node)
            return
        self._table.in_header = True
        self._children(node)
        self._table.in_header = False

    def _tag_tr(self, node: Tag) -> None:
        table = self._table
        if table is None:
            self._children(node)
            return
        table.row = []
        self._children(node)
        if table.in_header and not table.headers:
            table.headers = table.row
        else:
            table.rows.append(table.row)
        table.row = []

    def _cell(self, node: Tag) -> None:
        table = self._table
        if table is None:
            self._children(node)
            return
        table.cell = []
        self._children(node)
        text = collapse_whitespace("".join(table.cell)).strip()
        table.cell = None
        table.row.append(text)

    _tag_td = _cell
    _tag_th = _cell

    # inline elements

    def _tag_a(self, node: Tag) -> None:
        href = str(node.get("href") or "")
        text = collapse_whitespace(self._capture(node)).strip()
        self._push(f"[{text}]({href})" if href else text)

    def _tag_img(self, node: Tag) -> None:
        self._push(f"![{node.get('alt') or ''}]({node.get('src') or ''})")

    def _emphasis(self, node: Tag, marker: str) -> None:
        text = self._capture(node)
        core = text.strip()
        if not core:
            self._push(text)
            return
        leading = text[: len(text) - len(text.lstrip())]
        trailing = text[len(text.rstrip()) :]
        self._push(f"{leading}{marker}{core}{marker}{trailing}")

    def _tag_strong(self, node: Tag) -> None:
        self._emphasis(node, "**")

    _tag_b = _tag_strong

    def _tag_em(self, node: Tag) -> None:
        self._emphasis(node, "*")

    _tag_i = _tag_em

    def _tag_code(self, node: Tag) -> None:
        if self._in_pre:
            self._children(node)
            return
        text = self._capture(node)
        self._push(inline_code(text))

    def _tag_input(self, node: Tag) -> None:
        if str(node.get("type") or "").lower() == "checkbox":
            self._push("[x] " if node.has_attr("checked") else "[ ] ")


def extract_title(soup: BeautifulSoup) -> str | None:
    for tag in ("title", "h1"):
        element = soup.find(tag)
        if element is not None:
            text = collapse_whitespace(element.get_text()).strip()
            if text:
                return text
    return None


def html_to_markdown(html: str) -> tuple[str, str | None]:
    soup = BeautifulSoup(html, "html.parser")
    markdown = _HtmlWalker().walk(soup)
    return finish_markdown(markdown), extract_title(soup)


class HTMLAdapter(BaseAdapter):
    document_type = DocumentType.HTML
    extensions = frozenset({"html", "htm", "xhtml"})

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        text, warning = decode_text(data)
        markdown, title = html_to_markdown(text)
        result = ConversionResult(markdown=markdown, title=title)
        if warning is not None:
            result.warnings.append(warning)
        return AdapterResponse(result=result)
