"""Balance sheet line extraction.

Balance sheets are keyed by code: either the 3-digit form row codes (010, 011,
...) or, for trial-balance style sheets, 4-digit chart-of-accounts codes that
the classification table later folds into row codes. Rows without a code are
section titles and are skipped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nsbu_ifrs.config import setup_logging
from nsbu_ifrs.extractor.common import check_cancelled, is_hidden_helper_row, read_period_values
from nsbu_ifrs.extractor.types import LineItem
from nsbu_ifrs.utils.parsing import normalize_code

if TYPE_CHECKING:
    from nsbu_ifrs.errors import CancellationToken, WarningLog
    from nsbu_ifrs.extractor.types import StructureDescriptor
    from nsbu_ifrs.reader.cells import Sheet

logger = setup_logging(__name__)


def extract_balance_sheet(
    sheet: Sheet,
    structure: StructureDescriptor,
    warnings: WarningLog,
    token: CancellationToken | None = None,
) -> list[LineItem]:
    """Walk the data rows and return one item per distinct code.

    Parameters
    ----------
    sheet
        Source sheet (never mutated).
    structure
        Detected layout; must carry a code column.
    warnings
        Collector for duplicate codes and unparsed values.
    token
        Optional cancellation token checked once per row.

    Returns
    -------
    list[LineItem]
        Items in source order. A repeated code keeps its first occurrence.
    """
    if structure.code_column is None:
        return []

    width = 4 if structure.code_kind == "account" else 3
    seen: set[str] = set()
    items: list[LineItem] = []

    for r in range(structure.data_start_row, structure.last_row + 1):
        check_cancelled(token)
        code = normalize_code(sheet.cell(r, structure.code_column).value, width=width)
        label = sheet.cell(r, structure.label_column).text
        if code is None:
            if label:
                logger.debug(f"Row {r} has no code, treated as a title: {label}")
            continue
        if code in seen:
            warnings.add(f"Duplicate code {code}; keeping the first occurrence", row=r, code="duplicate_code")
            continue
        if is_hidden_helper_row(sheet, r, structure):
            logger.debug(f"Row {r} dropped as hidden helper row")
            continue

        seen.add(code)
        items.append(LineItem(label=label, period_values=read_period_values(sheet, r, structure, warnings),
                              code=code, row=r))

    logger.info(f"Extracted {len(items)} balance sheet lines ({structure.code_kind} codes)")
    return items
