from __future__ import annotations

import logging

import xlrd

from ..detection import DocumentType
from ..exceptions import MalformedDocumentError
from ..models import ConversionOptions, ConversionResult
from .base import AdapterResponse, BaseAdapter
from .xlsx import render_grid

logger = logging.getLogger(__name__)


def xls_value(cell: xlrd.sheet.Cell, datemode: int) -> tuple[object, str | None]:
    """``(value, data_type)`` for a legacy cell, in the shape ``render_grid`` expects."""

    ctype = cell.ctype
    if ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None, None
    if ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value), "b"
    if ctype == xlrd.XL_CELL_ERROR:
        return xlrd.error_text_from_code.get(cell.value, f"#ERR{cell.value}"), "e"
    if ctype == xlrd.XL_CELL_DATE:
        try:
            value = xlrd.xldate_as_datetime(cell.value, datemode)
        except (ValueError, OverflowError) as exc:
            logger.debug("date serial %r out of range: %s", cell.value, exc)
            return float(cell.value), "n"
        # serials below one day carry only a time of day
        return (value.time() if cell.value < 1 else value), "d"
    if ctype == xlrd.XL_CELL_NUMBER:
        return float(cell.value), "n"
    return str(cell.value), "s"


class XLSAdapter(BaseAdapter):
    """Legacy BIFF workbooks (Excel 97-2003), one table per sheet."""

    document_type = DocumentType.XLS
    extensions = frozenset({"xls"})

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        result = ConversionResult()
        book = self._open_book(data)
        sections: list[str] = []
        try:
            for index in range(book.nsheets):
                sheet = book.sheet_by_index(index)
                rows = [
                    [xls_value(cell, book.datemode) for cell in sheet.row(row_index)]
                    for row_index in range(sheet.nrows)
                ]
                table = render_grid(sheet.name, rows, result)
                if table:
                    sections.append(f"## {sheet.name}\n\n{table}")
        finally:
            book.release_resources()
        result.markdown = "\n".join(sections)
        return AdapterResponse(result=result)

    def _open_book(self, data: bytes) -> xlrd.book.Book:
        try:
            return xlrd.open_workbook(file_contents=data, on_demand=True)
        except Exception as exc:  # xlrd raises XLRDError, CompDocError and struct errors
            raise MalformedDocumentError(f"cannot read workbook: {exc}") from exc
