"""Cash flow line extraction.

Rows are grouped by activity (operating, investing, financing) and direction
(inflow, outflow) markers. When the sheet has a code column each row keeps its
code; otherwise labels are mapped to table codes by ordered label rules, with a
fallback code per activity and direction, and rows sharing a code are summed.
Values are carried as reported (outflows negative).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nsbu_ifrs.config import setup_logging
from nsbu_ifrs.extractor.common import check_cancelled, is_hidden_helper_row, is_label_only, read_period_values
from nsbu_ifrs.extractor.rules import CashFlowRules, get_cash_flow_rules, matches_any
from nsbu_ifrs.extractor.types import LineItem
from nsbu_ifrs.utils.parsing import normalize_code

if TYPE_CHECKING:
    from nsbu_ifrs.errors import CancellationToken, WarningLog
    from nsbu_ifrs.extractor.types import StructureDescriptor
    from nsbu_ifrs.reader.cells import Sheet

logger = setup_logging(__name__)


def _marker(text: str, markers: dict[str, tuple[str, ...]]) -> str | None:
    """Return the marker tag whose keyword appears in ``text``."""
    for tag, keywords in markers.items():
        if any(k in text for k in keywords):
            return tag
    return None


def extract_cash_flow(
    sheet: Sheet,
    structure: StructureDescriptor,
    warnings: WarningLog,
    token: CancellationToken | None = None,
    rules: CashFlowRules | None = None,
) -> list[LineItem]:
    """Extract cash flow items keyed by line code.

    Parameters
    ----------
    sheet
        Source sheet (never mutated).
    structure
        Detected layout; ``code_column`` may be None.
    warnings
        Collector for unmapped labels, duplicate codes and unparsed values.
    token
        Optional cancellation token checked once per row.
    rules
        Activity markers and label rules; defaults to the configured ones.

    Returns
    -------
    list[LineItem]
        One item per code, in order of first appearance; ``category`` holds
        the activity the row appeared under.
    """
    rules = rules or get_cash_flow_rules()
    activity: str | None = None
    direction: str | None = None
    items: dict[str, LineItem] = {}

    for r in range(structure.data_start_row, structure.last_row + 1):
        check_cancelled(token)
        label_cell = sheet.cell(r, structure.label_column)
        text = label_cell.normalized
        code = None
        if structure.code_column is not None:
            code = normalize_code(sheet.cell(r, structure.code_column).value)
        if not text and code is None:
            continue
        # Coded rows (source totals included) are kept; the table decides what they are
        if code is None and matches_any(rules.skip_patterns, text):
            logger.debug(f"Row {r} skipped as cash flow aggregate: {label_cell.text}")
            continue

        # Activity headers may carry subtotals; those values are never read
        if code is None and (tag := _marker(text, rules.activity_markers)) is not None:
            activity, direction = tag, None
            continue
        values = read_period_values(sheet, r, structure, warnings)
        if is_label_only(values):
            if (tag := _marker(text, rules.direction_markers)) is not None:
                direction = tag
            continue
        if label_cell.bold or is_hidden_helper_row(sheet, r, structure):
            continue

        if code is None:
            code = rules.code_for_label(text, activity, direction)
            if code is None:
                warnings.add(f"Cash flow line '{label_cell.text}' could not be mapped to a code", row=r,
                             code="unmapped_code")
                continue
            existing = items.get(code)
            if existing is not None:
                summed = tuple(existing.value_at(i) + (v or 0.0) for i, v in enumerate(values))
                items[code] = LineItem(existing.label, summed, code, existing.category, row=existing.row)
                continue
        elif code in items:
            warnings.add(f"Duplicate code {code}; keeping the first occurrence", row=r, code="duplicate_code")
            continue

        items[code] = LineItem(label=label_cell.text, period_values=values, code=code, category=activity, row=r)

    logger.info(f"Extracted {len(items)} cash flow lines")
    return list(items.values())
