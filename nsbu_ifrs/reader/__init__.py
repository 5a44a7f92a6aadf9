"""Spreadsheet reader: normalized cell grid over openpyxl workbooks."""

from nsbu_ifrs.reader.cells import (
    Cell,
    CellValue,
    ErrorValue,
    Formula,
    Hyperlink,
    Plain,
    RichText,
    Sheet,
    Workbook,
    resolve_cell_value,
)
from nsbu_ifrs.reader.workbook_reader import read_workbook

__all__ = [
    "Cell",
    "CellValue",
    "ErrorValue",
    "Formula",
    "Hyperlink",
    "Plain",
    "RichText",
    "Sheet",
    "Workbook",
    "read_workbook",
    "resolve_cell_value",
]
