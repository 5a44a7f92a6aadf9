"""openpyxl adapter producing the normalized :class:`Workbook` grid.

The workbook is loaded twice: once for formula text, rich text and styles,
once with ``data_only=True`` for the results Excel cached on last save. A
formula cell therefore resolves to its cached result, never its expression.
"""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

from openpyxl import load_workbook
from openpyxl.cell.rich_text import CellRichText
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.formula import ArrayFormula

from nsbu_ifrs.config import setup_logging
from nsbu_ifrs.errors import NoReadableSheetsError
from nsbu_ifrs.reader.cells import Cell, ErrorValue, Formula, Hyperlink, Plain, RichText, Sheet, Workbook

if TYPE_CHECKING:
    from openpyxl.cell.cell import Cell as OpenpyxlCell
    from openpyxl.worksheet.worksheet import Worksheet

    from nsbu_ifrs.reader.cells import CellValue

logger = setup_logging(__name__)

__all__ = ["read_workbook"]


def _is_bold(cell: OpenpyxlCell) -> bool:
    font = getattr(cell, "font", None)
    return bool(font is not None and font.b)


def _indent(cell: OpenpyxlCell) -> int:
    alignment = getattr(cell, "alignment", None)
    return int(alignment.indent or 0) if alignment is not None else 0


def _to_variant(cell: OpenpyxlCell, cached: Any, cached_type: str | None) -> CellValue:
    """Map an openpyxl cell (plus its cached result) to a cell variant."""
    value = cell.value
    if cell.data_type == "e":
        return ErrorValue(str(value))
    if cell.data_type == "f" or isinstance(value, ArrayFormula):
        expression = str(getattr(value, "text", value))
        if cached_type == "e":
            return ErrorValue(str(cached))
        return Formula(result=cached, expression=expression)
    if isinstance(value, CellRichText):
        return RichText(str(value))
    link = getattr(cell, "hyperlink", None)
    if link is not None:
        return Hyperlink(text=str(value), target=link.target or link.location or "")
    return Plain(value)


def _read_sheet(sheet: Worksheet, computed_sheet: Worksheet) -> Sheet:
    cells = []
    computed_rows = computed_sheet.iter_rows(max_row=sheet.max_row, max_col=sheet.max_column)
    for row_cells, computed_cells in zip(sheet.iter_rows(), computed_rows, strict=False):
        for cell, computed in zip(row_cells, computed_cells, strict=False):
            if cell.value is None:
                continue
            variant = _to_variant(cell, computed.value, computed.data_type)
            cells.append(Cell.from_raw(variant, cell.row, cell.column, bold=_is_bold(cell), indent=_indent(cell)))
    return Sheet(sheet.title, cells)


def read_workbook(source: str | Path | IO[bytes]) -> Workbook:
    """Read an ``.xlsx`` file into the normalized grid.

    Parameters
    ----------
    source
        Path or binary file object holding the workbook.

    Returns
    -------
    Workbook
        Every worksheet in workbook order (chart sheets are skipped).

    Raises
    ------
    NoReadableSheetsError
        If the file cannot be opened as a workbook or every sheet is empty.
    """
    name = str(source) if isinstance(source, str | Path) else str(getattr(source, "name", "<stream>"))
    try:
        workbook = load_workbook(source, data_only=False, rich_text=True)
        if hasattr(source, "seek"):
            source.seek(0)
        computed_wb = load_workbook(source, data_only=True)
    except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError, ValueError) as e:
        msg = f"Cannot read workbook {name}: {e}"
        raise NoReadableSheetsError(msg) from e

    try:
        sheets = tuple(_read_sheet(ws, computed_wb[ws.title]) for ws in workbook.worksheets)
    finally:
        workbook.close()
        computed_wb.close()

    if all(sheet.is_empty for sheet in sheets):
        msg = f"Workbook {name} has no readable sheets"
        raise NoReadableSheetsError(msg)

    logger.info(f"Read workbook {name}: {len(sheets)} sheets")
    return Workbook(sheets=sheets, source=name)
