from __future__ import annotations

import datetime as dt
import io
import logging
import math
import posixpath
from decimal import Decimal
from typing import Sequence

import openpyxl
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..detection import DocumentType
from ..exceptions import MalformedDocumentError
from ..images import ImageCollector
from ..markdown import build_table
from ..models import ConversionOptions, ConversionResult, WarningCode
from ..ooxml import OoxmlPackage, Relationship, load_relationships, resolve_against_file
from ..ooxml.namespaces import R_EMBED, R_ID, REL_DRAWING
from ..ooxml.streaming import XMLSyntaxError, iter_events
from .base import AdapterResponse, OoxmlAdapter

logger = logging.getLogger(__name__)

WORKBOOK_PART = "xl/workbook.xml"


def format_cell(value: object, data_type: str | None = None) -> str:
    if value is None:
        return ""
    if data_type == "e":
        return str(value)
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return str(value)
        if value.is_integer():
            return str(int(value))
        # shortest round-trip digits, never in exponent notation
        return format(Decimal(repr(value)), "f")
    if isinstance(value, dt.datetime):
        if value.time() == dt.time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, (dt.date, dt.time)):
        return value.isoformat()
    return str(value)


def _filled(value: object) -> bool:
    return value is not None and value != ""


def render_grid(
    title: str,
    rows: Sequence[Sequence[tuple[object, str | None]]],
    result: ConversionResult,
    first_row: int = 1,
    first_col: int = 1,
) -> str:
    """Pipe table for the bounding box of non-empty cells, or ``""`` if none.

    ``rows`` holds ``(value, data_type)`` pairs starting at cell
    ``(first_row, first_col)``. Cells whose data type is ``"e"`` are
    spreadsheet error values and are reported as malformed segments.
    """

    filled = [
        (r, c) for r, row in enumerate(rows) for c, (value, _) in enumerate(row) if _filled(value)
    ]
    if not filled:
        return ""
    top = min(r for r, _ in filled)
    bottom = max(r for r, _ in filled)
    left = min(c for _, c in filled)
    right = max(c for _, c in filled)

    table: list[list[str]] = []
    for r in range(top, bottom + 1):
        row = rows[r]
        values: list[str] = []
        for c in range(left, right + 1):
            value, data_type = row[c] if c < len(row) else (None, None)
            values.append(format_cell(value, data_type))
            if data_type == "e" and value is not None:
                result.warn(
                    WarningCode.MALFORMED_SEGMENT,
                    f"cell error value {value}",
                    f"{title}!{get_column_letter(first_col + c)}{first_row + r}",
                )
        table.append(values)
    return build_table(table[0], table[1:])


class XLSXAdapter(OoxmlAdapter):
    document_type = DocumentType.XLSX
    extensions = frozenset({"xlsx", "xlsm"})

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        result = ConversionResult()
        with self.open_package(data, options) as package:
            workbook_part = self.main_part(package, WORKBOOK_PART)
            self.require_part(package, workbook_part)
            sheet_parts = self._sheet_parts(package, workbook_part, result)
            workbook = self._load_workbook(data)
            collector = self.new_collector(options, result)
            sections: list[str] = []
            try:
                for sheet in workbook.worksheets:
                    table = self._render_sheet(sheet, result)
                    images = self._sheet_images(package, sheet_parts.get(sheet.title), collector, result)
                    if not table and not images:
                        continue
                    section = f"## {sheet.title}\n\n{table}"
                    section += "".join(f"{image}\n" for image in images)
                    sections.append(section)
            finally:
                workbook.close()
        result.markdown = "\n".join(sections)
        return AdapterResponse(result=result, pending=collector.pending)

    def _load_workbook(self, data: bytes):  # type: ignore[no-untyped-def]
        try:
            return openpyxl.load_workbook(io.BytesIO(data), data_only=True)
        except Exception as exc:  # openpyxl surfaces zip, XML and key errors alike
            raise MalformedDocumentError(f"cannot read workbook: {exc}") from exc

    def _render_sheet(self, sheet: Worksheet, result: ConversionResult) -> str:
        # cells that only carry styling still widen the sheet dimensions
        rows = [
            [(cell.value, getattr(cell, "data_type", None)) for cell in row]
            for row in sheet.iter_rows(
                min_row=sheet.min_row,
                max_row=sheet.max_row,
                min_col=sheet.min_column,
                max_col=sheet.max_column,
            )
        ]
        return render_grid(sheet.title, rows, result, sheet.min_row, sheet.min_column)

    def _sheet_parts(
        self, package: OoxmlPackage, workbook_part: str, result: ConversionResult
    ) -> dict[str, str]:
        """Sheet name to worksheet part path, via the workbook relationships."""

        relationships = load_relationships(package, workbook_part, result)
        parts: dict[str, str] = {}
        try:
            for event, name, element in iter_events(package.read_bytes(workbook_part) or b""):
                if event != "start" or name != "sheet":
                    continue
                relationship = relationships.get(element.get(R_ID) or "")
                sheet_name = element.get("name")
                if relationship is not None and sheet_name is not None:
                    parts[sheet_name] = resolve_against_file(workbook_part, relationship.target)
        except XMLSyntaxError as exc:
            logger.debug("cannot map sheets to parts: %s", exc)
        return parts

    def _sheet_images(
        self,
        package: OoxmlPackage,
        sheet_part: str | None,
        collector: ImageCollector,
        result: ConversionResult,
    ) -> list[str]:
        if sheet_part is None:
            return []
        images: list[str] = []
        for relationship in load_relationships(package, sheet_part, result).values():
            if not relationship.is_type(REL_DRAWING) or relationship.external:
                continue
            drawing_part = resolve_against_file(sheet_part, relationship.target)
            images.extend(self._drawing_images(package, drawing_part, collector, result))
        return images

    def _drawing_images(
        self,
        package: OoxmlPackage,
        drawing_part: str,
        collector: ImageCollector,
        result: ConversionResult,
    ) -> list[str]:
        data = package.read_bytes(drawing_part)
        if data is None:
            result.warn(WarningCode.SKIPPED_ELEMENT, f"drawing part not found: {drawing_part}", drawing_part)
            return []
        relationships = load_relationships(package, drawing_part, result)
        pictures: list[tuple[str, str]] = []
        alt = ""
        try:
            for event, name, element in iter_events(data):
                if event != "start":
                    continue
                if name == "pic":
                    alt = ""
                elif name == "cNvPr":
                    alt = element.get("descr") or ""
                elif name == "blip" and element.get(R_EMBED):
                    pictures.append((element.get(R_EMBED), alt))
        except XMLSyntaxError as exc:
            result.warn(WarningCode.MALFORMED_SEGMENT, f"malformed XML: {exc}", drawing_part)

        images: list[str] = []
        for rel_id, picture_alt in pictures:
            relationship = relationships.get(rel_id)
            if relationship is None:
                result.warn(WarningCode.SKIPPED_ELEMENT, f"image relationship '{rel_id}' not found", drawing_part)
                continue
            images.append(self._image_markdown(package, drawing_part, relationship, picture_alt, collector, result))
        return images

    def _image_markdown(
        self,
        package: OoxmlPackage,
        drawing_part: str,
        relationship: Relationship,
        alt: str,
        collector: ImageCollector,
        result: ConversionResult,
    ) -> str:
        media_part = resolve_against_file(drawing_part, relationship.target)
        filename = posixpath.basename(media_part)
        data = None
        if collector.wants_bytes:
            data = package.read_bytes(media_part)
            if data is None:
                result.warn(WarningCode.SKIPPED_ELEMENT, f"image part not found: {media_part}", drawing_part)
        return collector.emit(filename, alt, data, location=drawing_part)
