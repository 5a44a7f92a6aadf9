"""Cross-validation of computed layouts against the source document.

The source form prints its own totals (e.g. balance sheet codes 130, 400,
780). They are never used as values; instead each is compared with the named
reference it corresponds to, and the balance sheet identity is checked.
Differences beyond ``Settings.sum_tolerance`` become warnings, never failures.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from nsbu_ifrs.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import Mapping

    from nsbu_ifrs.classification.table import ClassificationTable
    from nsbu_ifrs.errors import WarningLog
    from nsbu_ifrs.extractor.types import LineItem
    from nsbu_ifrs.transformer.layout import IFRSLayout

logger = setup_logging(__name__)

__all__ = [
    "TotalCheckResult",
    "check_balance",
    "check_source_totals",
]


@dataclass(frozen=True)
class TotalCheckResult:
    """Comparison of one computed total with its expected value for one period."""

    description: str
    period: str
    expected: float
    calculated: float
    match: bool
    difference: float
    tolerance: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _compare_with_tolerance(expected: float, calculated: float, tolerance: float) -> tuple[bool, float]:
    diff = abs(expected - calculated)
    return diff <= tolerance, diff


def check_source_totals(
    layout: IFRSLayout,
    table: ClassificationTable,
    source_totals: Mapping[str, LineItem],
    tolerance: float,
    warnings: WarningLog,
) -> list[TotalCheckResult]:
    """Compare source total rows with the computed named references.

    Blank source cells are not compared. Each mismatch is recorded as a
    ``total_mismatch`` warning.
    """
    results = []
    for code, item in source_totals.items():
        total = table.source_totals[code]
        computed = layout.values_for(total.ref)
        for i, period in enumerate(layout.periods):
            expected = item.period_values[i] if i < len(item.period_values) else None
            if expected is None:
                continue
            match, diff = _compare_with_tolerance(expected, computed[i], tolerance)
            results.append(
                TotalCheckResult(
                    description=f"{code} {total.label}",
                    period=period,
                    expected=expected,
                    calculated=computed[i],
                    match=match,
                    difference=diff,
                    tolerance=tolerance,
                ),
            )
            if not match:
                warnings.add(
                    f"Source total {code} ({total.label}) is {expected:,.2f} for {period} "
                    f"but the computed {total.ref} is {computed[i]:,.2f}",
                    row=item.row,
                    code="total_mismatch",
                )
    logger.debug(f"Checked {len(results)} source totals, {sum(not r.match for r in results)} mismatched")
    return results


def check_balance(
    layout: IFRSLayout,
    table: ClassificationTable,
    tolerance: float,
    warnings: WarningLog,
) -> list[TotalCheckResult]:
    """Check the table's balance identity (e.g. assets = equity + liabilities)."""
    if table.balance_check is None:
        return []
    left_ref, right_ref = table.balance_check
    left = layout.values_for(left_ref)
    right = layout.values_for(right_ref)

    results = []
    for i, period in enumerate(layout.periods):
        match, diff = _compare_with_tolerance(left[i], right[i], tolerance)
        results.append(
            TotalCheckResult(
                description=f"{left_ref} = {right_ref}",
                period=period,
                expected=left[i],
                calculated=right[i],
                match=match,
                difference=diff,
                tolerance=tolerance,
            ),
        )
        if not match:
            warnings.add(
                f"Statement does not balance for {period}: {left_ref} {left[i]:,.2f} "
                f"vs {right_ref} {right[i]:,.2f} (diff {diff:,.2f})",
                code="unbalanced",
            )
    return results
