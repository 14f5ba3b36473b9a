from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field

from ..detection import DocumentType
from ..images import ImageCollector
from ..markdown import build_table
from ..models import ConversionOptions, ConversionResult, WarningCode
from ..ooxml import (
    OoxmlPackage,
    ParagraphBuffer,
    Relationship,
    load_relationships,
    resolve_against_file,
)
from ..ooxml.namespaces import R_EMBED, R_ID, REL_NOTES_SLIDE
from ..ooxml.streaming import XMLSyntaxError, iter_events
from .base import AdapterResponse, OoxmlAdapter

logger = logging.getLogger(__name__)

PRESENTATION_PART = "ppt/presentation.xml"
SLIDE_SEPARATOR = "\n\n---\n\n"
TITLE_PLACEHOLDERS = frozenset({"title", "ctrTitle"})


@dataclass(slots=True)
class SlideContent:
    title: str | None = None
    body: list[str] = field(default_factory=list)
    tables: list[list[list[str]]] = field(default_factory=list)
    images: list[tuple[str, str]] = field(default_factory=list)
    notes: str | None = None
    body_placeholder: str | None = None


@dataclass(slots=True)
class _Shape:
    placeholder: str | None = None
    paragraphs: list[str] = field(default_factory=list)
    plain: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _Picture:
    alt: str = ""
    embed: str | None = None


class _SlideParser:
    """Streams one slide (or notes) part.

    Shapes, graphic frames and pictures are top-level containers; a
    paragraph belongs to a table cell when a cell is open, otherwise to
    the current shape.
    """

    def __init__(
        self,
        part: str,
        relationships: dict[str, Relationship],
        result: ConversionResult,
    ) -> None:
        self._part = part
        self._relationships = relationships
        self._result = result
        self.content = SlideContent()
        self._shape: _Shape | None = None
        self._picture: _Picture | None = None
        self._rows: list[list[str]] | None = None
        self._row: list[str] | None = None
        self._cell: list[str] | None = None
        self._paragraph: ParagraphBuffer | None = None
        self._link_open = False

    def run(self, data: bytes) -> SlideContent:
        try:
            for event, name, element in iter_events(data):
                if event == "start":
                    self._start(name, element)
                else:
                    self._end(name, element)
        except XMLSyntaxError as exc:
            logger.debug("aborting %s at malformed XML: %s", self._part, exc)
            self._result.warn(WarningCode.MALFORMED_SEGMENT, f"malformed XML: {exc}", self._part)
        return self.content

    def _start(self, name: str, element) -> None:  # type: ignore[no-untyped-def]
        if name == "sp" and self._shape is None and self._rows is None:
            self._shape = _Shape()
        elif name == "ph" and self._shape is not None:
            self._shape.placeholder = element.get("type")
        elif name == "pic" and self._picture is None:
            self._picture = _Picture()
        elif name == "cNvPr" and self._picture is not None:
            self._picture.alt = element.get("descr") or ""
        elif name == "blip" and self._picture is not None:
            self._picture.embed = element.get(R_EMBED)
        elif name == "tbl" and self._shape is None:
            self._rows = []
        elif name == "tr" and self._rows is not None:
            self._row = []
        elif name == "tc" and self._row is not None:
            self._cell = []
        elif name == "p" and (self._shape is not None or self._cell is not None):
            self._paragraph = ParagraphBuffer()
        elif self._paragraph is None:
            return
        elif name == "r":
            self._paragraph.begin_run()
        elif name == "rPr":
            bold, italic = element.get("b"), element.get("i")
            self._paragraph.bold = bold in {"1", "true"}
            self._paragraph.italic = italic in {"1", "true"}
        elif name == "hlinkClick":
            self._begin_link(element.get(R_ID))
        elif name == "br":
            if self._cell is not None:
                self._paragraph.append_markdown(" ")
            else:
                self._paragraph.append_break()

    def _begin_link(self, rel_id: str | None) -> None:
        assert self._paragraph is not None
        if not rel_id:
            return
        relationship = self._relationships.get(rel_id)
        if relationship is None:
            self._paragraph.begin_hyperlink(None, missing_id=rel_id)
        else:
            self._paragraph.begin_hyperlink(relationship.target)
        self._link_open = True

    def _end(self, name: str, element) -> None:  # type: ignore[no-untyped-def]
        if name == "t" and self._paragraph is not None:
            self._paragraph.append_text(element.text or "")
        elif name == "r" and self._paragraph is not None and self._link_open:
            self._paragraph.end_hyperlink(self._result, self._part)
            self._link_open = False
        elif name == "p" and self._paragraph is not None:
            self._end_paragraph()
        elif name == "tc" and self._cell is not None:
            if self._row is not None:
                self._row.append(" ".join(self._cell))
            self._cell = None
        elif name == "tr" and self._row is not None:
            if self._rows is not None:
                self._rows.append(self._row)
            self._row = None
        elif name == "tbl" and self._rows is not None:
            if self._rows:
                self.content.tables.append(self._rows)
            self._rows = None
        elif name == "sp" and self._shape is not None and self._rows is None:
            self._end_shape(self._shape)
            self._shape = None
        elif name == "pic" and self._picture is not None:
            self._end_picture(self._picture)
            self._picture = None

    def _end_paragraph(self) -> None:
        paragraph, self._paragraph = self._paragraph, None
        assert paragraph is not None
        text = paragraph.text().strip()
        if not text:
            return
        if self._cell is not None:
            self._cell.append(text)
        elif self._shape is not None:
            self._shape.paragraphs.append(text)
            self._shape.plain.append(paragraph.plain_text().strip())

    def _end_shape(self, shape: _Shape) -> None:
        if not shape.paragraphs:
            return
        if shape.placeholder in TITLE_PLACEHOLDERS:
            if self.content.title is None:
                self.content.title = " ".join(" ".join(shape.plain).split())
            return
        self.content.body.append("\n".join(shape.paragraphs))
        if shape.placeholder == "body" and self.content.body_placeholder is None:
            self.content.body_placeholder = "\n".join(shape.paragraphs)

    def _end_picture(self, picture: _Picture) -> None:
        if not picture.embed:
            return
        relationship = self._relationships.get(picture.embed)
        if relationship is None:
            self._result.warn(
                WarningCode.SKIPPED_ELEMENT,
                f"image relationship '{picture.embed}' not found",
                self._part,
            )
            return
        self.content.images.append((relationship.target, picture.alt))


def render_notes(notes: str) -> str:
    lines = notes.splitlines() or [""]
    rendered = [f"> Note: {lines[0]}"]
    rendered.extend(f"> {line}" for line in lines[1:])
    return "\n".join(rendered)


class PPTXAdapter(OoxmlAdapter):
    document_type = DocumentType.PPTX
    extensions = frozenset({"pptx"})

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        result = ConversionResult()
        with self.open_package(data, options) as package:
            part = self.main_part(package, PRESENTATION_PART)
            presentation = self.require_part(package, part)
            relationships = load_relationships(package, part, result)
            collector = self.new_collector(options, result)
            sections: list[str] = []
            for number, slide_part in enumerate(self._slide_parts(presentation, part, relationships, result), 1):
                content = self._parse_slide(package, slide_part, result)
                if content is None:
                    continue
                if number == 1 and content.title:
                    result.title = content.title
                sections.append(self._render_slide(number, content, package, slide_part, collector, result))
        result.markdown = SLIDE_SEPARATOR.join(sections) + "\n" if sections else ""
        return AdapterResponse(result=result, pending=collector.pending)

    def _slide_parts(
        self,
        presentation: bytes,
        part: str,
        relationships: dict[str, Relationship],
        result: ConversionResult,
    ) -> list[str]:
        """Slide part paths in ``sldIdLst`` order."""

        slide_parts: list[str] = []
        try:
            for event, name, element in iter_events(presentation):
                if event != "start" or name != "sldId":
                    continue
                rel_id = element.get(R_ID)
                relationship = relationships.get(rel_id) if rel_id else None
                if relationship is None:
                    result.warn(
                        WarningCode.SKIPPED_ELEMENT,
                        f"slide relationship '{rel_id}' not found",
                        rel_id,
                    )
                    continue
                slide_parts.append(self._slide_target(part, relationship.target))
        except XMLSyntaxError as exc:
            result.warn(WarningCode.MALFORMED_SEGMENT, f"malformed XML: {exc}", part)
        return slide_parts

    @staticmethod
    def _slide_target(part: str, target: str) -> str:
        if target.startswith("ppt/"):
            return target
        return resolve_against_file(part, target)

    def _parse_slide(
        self, package: OoxmlPackage, slide_part: str, result: ConversionResult
    ) -> SlideContent | None:
        data = package.read_bytes(slide_part)
        if data is None:
            result.warn(WarningCode.SKIPPED_ELEMENT, f"slide part not found: {slide_part}", slide_part)
            return None
        relationships = load_relationships(package, slide_part, result)
        content = _SlideParser(slide_part, relationships, result).run(data)
        content.notes = self._parse_notes(package, slide_part, relationships, result)
        return content

    def _parse_notes(
        self,
        package: OoxmlPackage,
        slide_part: str,
        relationships: dict[str, Relationship],
        result: ConversionResult,
    ) -> str | None:
        for relationship in relationships.values():
            if not relationship.is_type(REL_NOTES_SLIDE):
                continue
            notes_part = resolve_against_file(slide_part, relationship.target)
            data = package.read_bytes(notes_part)
            if data is None:
                logger.debug("notes part missing: %s", notes_part)
                return None
            notes_relationships = load_relationships(package, notes_part, result)
            return _SlideParser(notes_part, notes_relationships, result).run(data).body_placeholder
        return None

    def _render_slide(
        self,
        number: int,
        content: SlideContent,
        package: OoxmlPackage,
        slide_part: str,
        collector: ImageCollector,
        result: ConversionResult,
    ) -> str:
        heading = f"## Slide {number}: {content.title}" if content.title else f"## Slide {number}"
        blocks = [heading]
        blocks.extend(content.body)
        blocks.extend(build_table(rows[0], rows[1:]).rstrip("\n") for rows in content.tables)
        for target, alt in content.images:
            blocks.append(self._image_markdown(package, slide_part, target, alt, collector, result))
        if content.notes:
            blocks.append(render_notes(content.notes))
        return "\n\n".join(blocks)

    def _image_markdown(
        self,
        package: OoxmlPackage,
        slide_part: str,
        target: str,
        alt: str,
        collector: ImageCollector,
        result: ConversionResult,
    ) -> str:
        media_part = resolve_against_file(slide_part, target)
        filename = posixpath.basename(media_part)
        data = None
        if collector.wants_bytes:
            data = package.read_bytes(media_part)
            if data is None:
                result.warn(WarningCode.SKIPPED_ELEMENT, f"image part not found: {media_part}", slide_part)
        return collector.emit(filename, alt, data, location=slide_part)
