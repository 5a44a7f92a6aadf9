"""Workbook writer: IFRS layout to an ``.xlsx`` file with live formulas.

Output format::

    | IFRS Statement of Financial Position |                   |                 |
    | Company: ...                          |                   |                 |
    |                                       |                   |                 |
    | Line item                           | Beginning of period | End of period |
    | ASSETS - NON-CURRENT                  |                   |                 |
    | PP&E - Gross Book Value               | 1000              | 1200            |
    | Accumulated Depreciation              | -200              | -300            |
    | PP&E - Net Book Value                 | =B5+B6            | =C5+C6          |
    | Total Non-current Assets              | =SUM(B5:B6)       | =SUM(C5:C6)     |

Item rows hold numbers; total and calculated rows hold formulas built from the
row indices the transformer recorded. Styling (fonts, borders, number formats)
is left to the consumer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pandas as pd
from openpyxl.utils import get_column_letter

from nsbu_ifrs.config import OUTPUT_DIR, setup_logging

if TYPE_CHECKING:
    from pathlib import Path

    from nsbu_ifrs.extractor.types import ReportMetadata
    from nsbu_ifrs.transformer.layout import IFRSLayout, LayoutRow

logger = setup_logging(__name__)

__all__ = [
    "STATEMENT_TITLES",
    "calculated_formula",
    "layout_to_frame",
    "sum_formula",
    "write_layout_workbook",
]

STATEMENT_TITLES = {
    "balance_sheet": "IFRS Statement of Financial Position",
    "profit_loss": "IFRS Statement of Profit or Loss",
    "cash_flow": "IFRS Statement of Cash Flows",
}

LABEL_HEADER = "Line item"


def _contiguous_runs(rows: list[int]) -> list[tuple[int, int]]:
    """Collapse sorted row numbers into ``(first, last)`` runs."""
    runs: list[tuple[int, int]] = []
    for row in sorted(rows):
        if runs and row == runs[-1][1] + 1:
            runs[-1] = (runs[-1][0], row)
        else:
            runs.append((row, row))
    return runs


def sum_formula(column: str, excel_rows: list[int]) -> str:
    """``=SUM(B5:B7,B9)`` over the given rows, or ``=0`` when there are none."""
    if not excel_rows:
        return "=0"
    parts = [f"{column}{a}" if a == b else f"{column}{a}:{column}{b}" for a, b in _contiguous_runs(excel_rows)]
    return f"=SUM({','.join(parts)})"


def calculated_formula(column: str, terms: list[tuple[int, int]]) -> str:
    """``=B5+B9-B12`` from ``(excel row, coefficient)`` terms."""
    pieces = []
    for excel_row, coefficient in terms:
        sign = "-" if coefficient < 0 else "+"
        magnitude = abs(coefficient)
        ref = f"{column}{excel_row}" if magnitude == 1 else f"{magnitude}*{column}{excel_row}"
        pieces.append(f"{sign}{ref}")
    expression = "".join(pieces)
    return f"={expression.removeprefix('+')}" if expression else "=0"


def _cell_value(row: LayoutRow, period: int, column: str, excel_row_of: dict[int, int], formulas: bool) -> object:
    if not row.has_values:
        return None
    if formulas and row.kind == "total":
        return sum_formula(column, [excel_row_of[i] for i in row.sum_rows])
    if formulas and row.kind == "calculated":
        return calculated_formula(column, [(excel_row_of[i], c) for i, c in row.terms])
    return row.values[period] if period < len(row.values) else None


def layout_to_frame(layout: IFRSLayout, first_excel_row: int, *, formulas: bool = True) -> pd.DataFrame:
    """Render layout rows as a DataFrame whose first row lands on ``first_excel_row``.

    Parameters
    ----------
    layout
        Transformer output.
    first_excel_row
        1-based worksheet row of the first layout row; formulas point there.
    formulas
        Emit ``=SUM``/arithmetic formulas for totals and calculated rows;
        when False the computed values are written instead.
    """
    excel_row_of = {i: first_excel_row + i for i in range(len(layout.rows))}
    columns = [get_column_letter(2 + p) for p in range(len(layout.periods))]

    records = []
    for row in layout.rows:
        record: dict[str, object] = {LABEL_HEADER: row.label}
        for p, period in enumerate(layout.periods):
            record[period] = _cell_value(row, p, columns[p], excel_row_of, formulas)
        records.append(record)
    return pd.DataFrame(records, columns=[LABEL_HEADER, *layout.periods])


def _header_lines(layout: IFRSLayout, metadata: ReportMetadata | None) -> list[str]:
    lines = [STATEMENT_TITLES.get(layout.statement, layout.statement)]
    if metadata is not None:
        if metadata.company_name:
            lines.append(f"Company: {metadata.company_name}")
        if metadata.tax_id:
            lines.append(f"Taxpayer ID: {metadata.tax_id}")
        if metadata.report_date:
            lines.append(f"Report date: {metadata.report_date}")
    return lines


def write_layout_workbook(
    layout: IFRSLayout,
    path: Path | None = None,
    metadata: ReportMetadata | None = None,
    *,
    sheet_name: str | None = None,
    formulas: bool = True,
) -> Path:
    """Write one layout to an Excel workbook.

    Parameters
    ----------
    layout
        Transformer output.
    path
        Target ``.xlsx`` file; defaults to ``OUTPUT_DIR/<statement>_ifrs.xlsx``.
    metadata
        Company name, taxpayer id and report date for the header block.
    sheet_name
        Worksheet name (truncated to Excel's 31 characters).
    formulas
        Emit live formulas for total and calculated rows.

    Returns
    -------
    Path
        Location of the written workbook.
    """
    if path is None:
        path = OUTPUT_DIR / f"{layout.statement}_ifrs.xlsx"
    path.parent.mkdir(parents=True, exist_ok=True)

    header_lines = _header_lines(layout, metadata)
    # Header lines, one blank row, then the column header row
    startrow = len(header_lines) + 1
    frame = layout_to_frame(layout, first_excel_row=startrow + 2, formulas=formulas)
    display_name = (sheet_name or layout.statement)[:31]

    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=display_name, index=False, startrow=startrow)
        worksheet = writer.sheets[display_name]
        for i, line in enumerate(header_lines, start=1):
            worksheet.cell(row=i, column=1, value=line)
        logger.debug(f"Wrote {len(frame)} layout rows to sheet {display_name}")

    logger.info(f"Workbook saved: {path}")
    return path
