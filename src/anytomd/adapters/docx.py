from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from ..detection import DocumentType
from ..images import ImageCollector
from ..markdown import build_table, format_heading, format_list_item
from ..models import ConversionOptions, ConversionResult, WarningCode
from ..ooxml import (
    OoxmlPackage,
    ParagraphBuffer,
    Relationship,
    is_on,
    load_relationships,
    resolve_against_file,
)
from ..ooxml.namespaces import R_EMBED, R_ID, attribute
from ..ooxml.streaming import XMLSyntaxError, iter_events
from .base import AdapterResponse, OoxmlAdapter, finish_markdown

logger = logging.getLogger(__name__)

DOCUMENT_PART = "word/document.xml"
STYLES_PART = "word/styles.xml"
NUMBERING_PART = "word/numbering.xml"

HEADING_ID_RE = re.compile(r"^heading\s*([1-9])$", re.IGNORECASE)
HEADING_NAME_RE = re.compile(r"^heading ([1-9])$", re.IGNORECASE)

ORDERED_FORMATS = frozenset(
    {"decimal", "upperRoman", "lowerRoman", "upperLetter", "lowerLetter", "decimalZero"}
)

MAX_LIST_LEVEL = 8


def parse_styles(data: bytes, result: ConversionResult) -> dict[str, int]:
    """Map style ids to heading levels (by id pattern or display name)."""

    levels: dict[str, int] = {}
    current: str | None = None
    try:
        for event, name, element in iter_events(data):
            if event == "start":
                if name == "style":
                    current = attribute(element, "styleId")
                    match = HEADING_ID_RE.match(current or "")
                    if current and match:
                        levels[current] = int(match.group(1))
                elif name == "name" and current:
                    match = HEADING_NAME_RE.match(attribute(element, "val") or "")
                    if match:
                        levels[current] = int(match.group(1))
            elif name == "style":
                current = None
    except XMLSyntaxError as exc:
        result.warn(WarningCode.MALFORMED_SEGMENT, f"malformed styles: {exc}", STYLES_PART)
    return levels


def parse_numbering(data: bytes, result: ConversionResult) -> dict[tuple[str, int], bool]:
    """Join ``num -> abstractNum -> lvl`` into ``(numId, ilvl) -> ordered``."""

    abstract_levels: dict[str, dict[int, bool]] = {}
    num_to_abstract: dict[str, str] = {}
    overrides: dict[tuple[str, int], bool] = {}
    abstract_id: str | None = None
    num_id: str | None = None
    level: int | None = None
    try:
        for event, name, element in iter_events(data):
            if event == "start":
                if name == "abstractNum":
                    abstract_id = attribute(element, "abstractNumId")
                    if abstract_id is not None:
                        abstract_levels.setdefault(abstract_id, {})
                elif name == "num":
                    num_id = attribute(element, "numId")
                elif name == "abstractNumId" and num_id is not None:
                    value = attribute(element, "val")
                    if value is not None:
                        num_to_abstract[num_id] = value
                elif name == "lvl":
                    level = _int_or_none(attribute(element, "ilvl"))
                elif name == "numFmt" and level is not None:
                    ordered = attribute(element, "val") in ORDERED_FORMATS
                    if num_id is not None:
                        overrides[(num_id, level)] = ordered
                    elif abstract_id is not None:
                        abstract_levels[abstract_id][level] = ordered
            elif name == "abstractNum":
                abstract_id = None
            elif name == "num":
                num_id = None
            elif name == "lvl":
                level = None
    except XMLSyntaxError as exc:
        result.warn(WarningCode.MALFORMED_SEGMENT, f"malformed numbering: {exc}", NUMBERING_PART)

    numbering: dict[tuple[str, int], bool] = {}
    for num, abstract in num_to_abstract.items():
        for ilvl, ordered in abstract_levels.get(abstract, {}).items():
            numbering[(num, ilvl)] = ordered
    numbering.update(overrides)
    return numbering


def _int_or_none(value: str | None) -> int | None:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


@dataclass(slots=True)
class _Paragraph:
    buffer: ParagraphBuffer = field(default_factory=ParagraphBuffer)
    style: str | None = None
    num_id: str | None = None
    ilvl: int = 0


@dataclass(slots=True)
class _Table:
    rows: list[list[str]] = field(default_factory=list)
    row: list[str] | None = None
    cell: list[str] | None = None


@dataclass(slots=True)
class _Drawing:
    alt: str = ""
    embed: str | None = None


class _MarkdownWriter:
    def __init__(
        self,
        styles: dict[str, int],
        numbering: dict[tuple[str, int], bool],
        result: ConversionResult,
    ) -> None:
        self._styles = styles
        self._numbering = numbering
        self._result = result
        self._parts: list[str] = []
        self._after_list = False
        self._counters: dict[tuple[str, int], int] = {}

    def heading_level(self, style: str | None) -> int | None:
        if not style:
            return None
        match = HEADING_ID_RE.match(style)
        level = int(match.group(1)) if match else self._styles.get(style)
        if level is None:
            return None
        return max(1, min(level, 6))

    def _leave_list(self) -> None:
        if self._after_list:
            self._parts.append("\n")
        self._after_list = False

    def paragraph(self, paragraph: _Paragraph, text: str) -> None:
        level = self.heading_level(paragraph.style)
        if level is not None:
            self._leave_list()
            self._parts.append(format_heading(level, text) + "\n")
            if level == 1 and self._result.title is None:
                title = " ".join(paragraph.buffer.plain_text().split())
                self._result.title = title or None
        elif paragraph.num_id is not None and paragraph.num_id != "0":
            self._list_item(paragraph.num_id, paragraph.ilvl, text)
        else:
            self._leave_list()
            self._parts.append(text + "\n\n")

    def _list_item(self, num_id: str, ilvl: int, text: str) -> None:
        ilvl = max(0, min(ilvl, MAX_LIST_LEVEL))
        ordered = self._numbering.get((num_id, ilvl), False)
        number = 1
        if ordered:
            number = self._counters.get((num_id, ilvl), 0) + 1
            self._counters[(num_id, ilvl)] = number
        # a shallower item restarts the numbering of its sub-levels
        for key in [key for key in self._counters if key[0] == num_id and key[1] > ilvl]:
            del self._counters[key]
        self._parts.append(format_list_item(ilvl, ordered, number, text) + "\n")
        self._after_list = True

    def table(self, rows: list[list[str]]) -> None:
        self._leave_list()
        self._parts.append(build_table(rows[0], rows[1:]) + "\n")

    def raw(self, markdown: str) -> None:
        self._leave_list()
        self._parts.append(markdown + "\n\n")

    def markdown(self) -> str:
        return "".join(self._parts)


class _BodyParser:
    """Streams ``document.xml`` with a stack of open element names."""

    def __init__(
        self,
        package: OoxmlPackage,
        part: str,
        relationships: dict[str, Relationship],
        writer: _MarkdownWriter,
        collector: ImageCollector,
        result: ConversionResult,
    ) -> None:
        self._package = package
        self._part = part
        self._relationships = relationships
        self._writer = writer
        self._collector = collector
        self._result = result
        self._frames: list[str] = []
        self._paragraphs: list[_Paragraph] = []
        self._tables: list[_Table] = []
        self._drawing: _Drawing | None = None

    def run(self, data: bytes) -> None:
        try:
            for event, name, element in iter_events(data):
                if event == "start":
                    self._frames.append(name)
                    if "Fallback" not in self._frames:
                        self._start(name, element)
                else:
                    if "Fallback" not in self._frames:
                        self._end(name, element)
                    self._frames.pop()
        except XMLSyntaxError as exc:
            logger.debug("aborting %s at malformed XML: %s", self._part, exc)
            self._result.warn(WarningCode.MALFORMED_SEGMENT, f"malformed XML: {exc}", self._part)

    def _parent(self, depth: int = 2) -> str:
        return self._frames[-depth] if len(self._frames) >= depth else ""

    @property
    def _paragraph(self) -> _Paragraph | None:
        return self._paragraphs[-1] if self._paragraphs else None

    def _start(self, name: str, element) -> None:  # type: ignore[no-untyped-def]
        paragraph = self._paragraph
        if name == "p":
            self._paragraphs.append(_Paragraph())
        elif name == "tbl":
            self._tables.append(_Table())
        elif name == "tr" and self._tables:
            self._tables[-1].row = []
        elif name == "tc" and self._tables:
            self._tables[-1].cell = []
        elif name in {"drawing", "pict"}:
            self._drawing = _Drawing()
        elif self._drawing is not None and name == "docPr":
            self._drawing.alt = element.get("descr") or ""
        elif self._drawing is not None and name == "blip":
            self._drawing.embed = element.get(R_EMBED)
        elif self._drawing is not None and name == "imagedata":
            self._drawing.embed = element.get(R_ID)
            self._drawing.alt = self._drawing.alt or element.get("title") or ""
        elif paragraph is None:
            return
        elif name == "pStyle" and self._parent() == "pPr":
            paragraph.style = attribute(element, "val")
        elif name == "numId" and self._parent() == "numPr":
            paragraph.num_id = attribute(element, "val")
        elif name == "ilvl" and self._parent() == "numPr":
            paragraph.ilvl = _int_or_none(attribute(element, "val")) or 0
        elif name == "r":
            paragraph.buffer.begin_run()
        elif name in {"b", "i"} and self._parent() == "rPr" and self._parent(3) == "r":
            setattr(paragraph.buffer, "bold" if name == "b" else "italic", is_on(attribute(element, "val")))
        elif name in {"br", "cr"} and self._parent() == "r":
            if attribute(element, "type") != "page":
                paragraph.buffer.append_break()
        elif name == "tab" and self._parent() == "r":
            paragraph.buffer.append_markdown("\t")
        elif name == "hyperlink":
            self._begin_hyperlink(paragraph, element)

    def _end(self, name: str, element) -> None:  # type: ignore[no-untyped-def]
        paragraph = self._paragraph
        if name == "t" and paragraph is not None and self._parent() == "r":
            paragraph.buffer.append_text(element.text or "")
        elif name == "hyperlink" and paragraph is not None:
            paragraph.buffer.end_hyperlink(self._result, self._part)
        elif name in {"drawing", "pict"}:
            self._end_drawing()
        elif name == "p" and paragraph is not None:
            self._end_paragraph()
        elif name == "tc" and self._tables:
            table = self._tables[-1]
            if table.row is not None and table.cell is not None:
                table.row.append(" ".join(table.cell))
            table.cell = None
        elif name == "tr" and self._tables:
            table = self._tables[-1]
            if table.row is not None:
                table.rows.append(table.row)
            table.row = None
        elif name == "tbl" and self._tables:
            self._end_table()

    def _begin_hyperlink(self, paragraph: _Paragraph, element) -> None:  # type: ignore[no-untyped-def]
        rel_id = element.get(R_ID)
        anchor = attribute(element, "anchor")
        if rel_id:
            relationship = self._relationships.get(rel_id)
            if relationship is None:
                paragraph.buffer.begin_hyperlink(None, missing_id=rel_id)
            else:
                url = relationship.target
                if anchor:
                    url = f"{url}#{anchor}"
                paragraph.buffer.begin_hyperlink(url)
        elif anchor:
            paragraph.buffer.begin_hyperlink(f"#{anchor}")
        else:
            paragraph.buffer.begin_hyperlink(None)

    def _end_paragraph(self) -> None:
        paragraph = self._paragraphs.pop()
        text = paragraph.buffer.text().strip()
        if self._paragraphs:
            # text box content nested inside a run of the enclosing paragraph
            if text:
                self._paragraphs[-1].buffer.append_markdown(f" {text} ")
        elif self._tables and self._tables[-1].cell is not None:
            if text:
                self._tables[-1].cell.append(text)
        elif text:
            self._writer.paragraph(paragraph, text)

    def _end_table(self) -> None:
        table = self._tables.pop()
        if self._tables and self._tables[-1].cell is not None:
            flattened = " ".join(cell for row in table.rows for cell in row if cell)
            if flattened:
                self._tables[-1].cell.append(flattened)
        elif table.rows:
            self._writer.table(table.rows)

    def _end_drawing(self) -> None:
        drawing, self._drawing = self._drawing, None
        if drawing is None or not drawing.embed:
            return
        relationship = self._relationships.get(drawing.embed)
        if relationship is None:
            self._result.warn(
                WarningCode.SKIPPED_ELEMENT,
                f"image relationship '{drawing.embed}' not found",
                drawing.embed,
            )
            return
        markdown = self._image_markdown(relationship, drawing.alt)
        paragraph = self._paragraph
        if paragraph is not None:
            paragraph.buffer.append_markdown(markdown)
        else:
            self._writer.raw(markdown)

    def _image_markdown(self, relationship: Relationship, alt: str) -> str:
        if relationship.external:
            filename = posixpath.basename(urlsplit(relationship.target).path) or relationship.target
            return self._collector.emit(filename, alt)
        target = resolve_against_file(self._part, relationship.target)
        filename = posixpath.basename(target)
        data = None
        if self._collector.wants_bytes:
            data = self._package.read_bytes(target)
            if data is None:
                self._result.warn(WarningCode.SKIPPED_ELEMENT, f"image part not found: {target}", target)
        return self._collector.emit(filename, alt, data, location=target)


class DOCXAdapter(OoxmlAdapter):
    document_type = DocumentType.DOCX
    extensions = frozenset({"docx"})

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        result = ConversionResult()
        with self.open_package(data, options) as package:
            part = self.main_part(package, DOCUMENT_PART)
            document = self.require_part(package, part)
            relationships = load_relationships(package, part, result)
            styles = self._load_styles(package, part, relationships, result)
            numbering = self._load_numbering(package, part, relationships, result)
            writer = _MarkdownWriter(styles, numbering, result)
            collector = self.new_collector(options, result)
            _BodyParser(package, part, relationships, writer, collector, result).run(document)
        result.markdown = finish_markdown(writer.markdown())
        return AdapterResponse(result=result, pending=collector.pending)

    def _related_part(
        self, part: str, relationships: dict[str, Relationship], kind: str, default: str
    ) -> str:
        for relationship in relationships.values():
            if relationship.is_type(kind) and not relationship.external:
                return resolve_against_file(part, relationship.target)
        return default

    def _load_styles(
        self,
        package: OoxmlPackage,
        part: str,
        relationships: dict[str, Relationship],
        result: ConversionResult,
    ) -> dict[str, int]:
        data = package.read_bytes(self._related_part(part, relationships, "styles", STYLES_PART))
        return parse_styles(data, result) if data is not None else {}

    def _load_numbering(
        self,
        package: OoxmlPackage,
        part: str,
        relationships: dict[str, Relationship],
        result: ConversionResult,
    ) -> dict[tuple[str, int], bool]:
        data = package.read_bytes(self._related_part(part, relationships, "numbering", NUMBERING_PART))
        return parse_numbering(data, result) if data is not None else {}
