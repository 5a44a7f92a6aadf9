"""Row-level helpers shared by the statement extractors."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nsbu_ifrs.utils.parsing import is_blank, is_numeric_cell, parse_amount

if TYPE_CHECKING:
    from nsbu_ifrs.errors import CancellationToken, WarningLog
    from nsbu_ifrs.extractor.types import StructureDescriptor
    from nsbu_ifrs.reader.cells import Sheet

# Hidden helper rows carry this value in their first numeric cell
HIDDEN_ROW_SENTINEL = -1.0


def read_period_values(
    sheet: Sheet,
    row: int,
    structure: StructureDescriptor,
    warnings: WarningLog,
) -> tuple[float | None, ...]:
    """Read and unit-normalise every value column of ``row``.

    Blank cells stay None; unparseable text becomes 0.0 with a warning.
    """
    values: list[float | None] = []
    for column in structure.value_columns:
        raw = sheet.cell(row, column.column).value
        if is_blank(raw):
            values.append(None)
            continue
        parsed = parse_amount(raw)
        if parsed is None:
            warnings.add(
                f"Unparseable value {raw!r} in column '{column.label}' treated as 0",
                row=row,
                code="unparsed_number",
            )
            parsed = 0.0
        values.append(parsed * structure.scale)
    return tuple(values)


def is_hidden_helper_row(sheet: Sheet, row: int, structure: StructureDescriptor) -> bool:
    """True when the row's first numeric value cell holds the -1 sentinel."""
    for column in structure.value_columns:
        raw = sheet.cell(row, column.column).value
        if is_numeric_cell(raw):
            return parse_amount(raw) == HIDDEN_ROW_SENTINEL
    return False


def is_label_only(values: tuple[float | None, ...]) -> bool:
    return all(v is None for v in values)


def check_cancelled(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()
