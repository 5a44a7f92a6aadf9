"""Profit and loss line extraction.

Uses the section boundaries resolved by the detector as slice ranges:

* Revenue and cost of sales keep their individual lines. Bold (or label-only)
  rows become subheaders, rows matching the section's skip patterns are
  aggregates and are dropped, everything else is a leaf item.
* Overhead, admin and "other operating" rows are reduced into a fixed bucket
  taxonomy (payroll, social tax, vehicles, depreciation, other) by ordered
  rules and accumulated per period.
* Other income rows keep their own labels and are tagged as finance income
  or finance costs by the same ordered rules.
* The general-services and income-tax rows are taken as single items.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nsbu_ifrs.config import setup_logging
from nsbu_ifrs.extractor.common import check_cancelled, is_hidden_helper_row, is_label_only, read_period_values
from nsbu_ifrs.extractor.rules import ProfitLossRules, first_matching, get_profit_loss_rules, matches_any
from nsbu_ifrs.extractor.types import LineItem

if TYPE_CHECKING:
    from collections.abc import Iterator

    from nsbu_ifrs.errors import CancellationToken, WarningLog
    from nsbu_ifrs.extractor.types import SectionBoundaries, StructureDescriptor
    from nsbu_ifrs.reader.cells import Sheet

logger = setup_logging(__name__)

# Sections whose rows are reduced into buckets rather than kept line by line
BUCKETED_SECTIONS = ("overhead", "admin", "other_operating")


def _section_rows(boundaries: SectionBoundaries, section: str, last_row: int) -> range:
    rows = boundaries.range_for(section)
    if rows is None:
        return range(0)
    return range(rows.start, min(rows.stop, last_row + 1))


def _collect_itemized(
    sheet: Sheet,
    structure: StructureDescriptor,
    section: str,
    rules: ProfitLossRules,
    warnings: WarningLog,
    token: CancellationToken | None,
) -> list[LineItem]:
    """Keep each leaf line of ``section``; bold/label-only rows become subheaders."""
    boundaries = structure.boundaries
    if boundaries is None:
        return []
    skip = rules.section_skip.get(section, ())
    items: list[LineItem] = []

    for r in _section_rows(boundaries, section, structure.last_row):
        check_cancelled(token)
        if r == boundaries.gen_services:
            continue
        label_cell = sheet.cell(r, structure.label_column)
        label = label_cell.text
        if not label or matches_any(rules.global_skip, label):
            continue
        if is_hidden_helper_row(sheet, r, structure):
            logger.debug(f"Row {r} dropped as hidden helper row")
            continue

        if matches_any(skip, label):
            logger.debug(f"Row {r} skipped as {section} aggregate: {label}")
            continue
        values = read_period_values(sheet, r, structure, warnings)
        if label_cell.bold or is_label_only(values):
            items.append(LineItem(label=label, category=section, is_subheader=True, row=r))
            continue
        items.append(LineItem(label=label, period_values=values, category=section, row=r))

    return items


def _bucket_rows(
    sheet: Sheet,
    structure: StructureDescriptor,
    section: str,
    rules: ProfitLossRules,
    warnings: WarningLog,
    token: CancellationToken | None,
) -> Iterator[tuple[int, str, str, tuple[float | None, ...]]]:
    """Yield ``(row, label, category, values)`` for each leaf row of a rule-driven section."""
    boundaries = structure.boundaries
    if boundaries is None:
        return
    section_rules = rules.bucket_rules.get(section, ())
    skip = rules.section_skip.get("bucketed", ())
    rows = _section_rows(boundaries, section, structure.last_row)
    for r in rows:
        check_cancelled(token)
        # The marker row heads the section and carries its aggregate
        if r == rows.start or r == boundaries.gen_services:
            continue
        label_cell = sheet.cell(r, structure.label_column)
        label = label_cell.text
        if not label or label_cell.bold:
            continue
        if matches_any(rules.global_skip, label) or matches_any(skip, label):
            continue
        if is_hidden_helper_row(sheet, r, structure):
            continue
        values = read_period_values(sheet, r, structure, warnings)
        if is_label_only(values):
            continue

        category = first_matching(section_rules, label)
        if category is None:
            logger.debug(f"Row {r} in {section} matched no bucket rule: {label}")
            continue
        yield r, label, category, values


def _accumulate_buckets(
    sheet: Sheet,
    structure: StructureDescriptor,
    sections: tuple[str, ...],
    rules: ProfitLossRules,
    warnings: WarningLog,
    token: CancellationToken | None,
) -> list[LineItem]:
    """Reduce leaf rows of ``sections`` into per-period bucket totals."""
    period_count = len(structure.value_columns)
    totals: dict[str, list[float]] = {}
    first_rows: dict[str, int] = {}

    for section in sections:
        for r, _, category, values in _bucket_rows(sheet, structure, section, rules, warnings, token):
            bucket = totals.setdefault(category, [0.0] * period_count)
            first_rows.setdefault(category, r)
            for i, value in enumerate(values):
                bucket[i] += value or 0.0

    return [
        LineItem(label=category, period_values=tuple(totals[category]), category=category, row=first_rows[category])
        for category in rules.bucket_categories()
        if category in totals
    ]


def _tag_by_rules(
    sheet: Sheet,
    structure: StructureDescriptor,
    section: str,
    rules: ProfitLossRules,
    warnings: WarningLog,
    token: CancellationToken | None,
) -> list[LineItem]:
    """Keep each leaf row of ``section`` under its own label, tagged by the section's rules."""
    return [
        LineItem(label=label, period_values=values, category=category, row=r)
        for r, label, category, values in _bucket_rows(sheet, structure, section, rules, warnings, token)
    ]


def _single_row_item(
    sheet: Sheet,
    structure: StructureDescriptor,
    row: int | None,
    category: str,
    warnings: WarningLog,
) -> list[LineItem]:
    if row is None or row > structure.last_row:
        return []
    label = sheet.cell(row, structure.label_column).text
    return [LineItem(label=label, period_values=read_period_values(sheet, row, structure, warnings),
                     category=category, row=row)]


def extract_profit_loss(
    sheet: Sheet,
    structure: StructureDescriptor,
    warnings: WarningLog,
    token: CancellationToken | None = None,
    rules: ProfitLossRules | None = None,
) -> list[LineItem]:
    """Extract P&L items using the detector's section boundaries as slices.

    Parameters
    ----------
    sheet
        Source sheet (never mutated).
    structure
        Detected layout with ``boundaries`` populated.
    warnings
        Collector for unparsed values.
    token
        Optional cancellation token checked once per row.
    rules
        Skip patterns and bucket rules; defaults to the configured ones.

    Returns
    -------
    list[LineItem]
        Revenue and cost-of-sales lines, then general services, bucket
        totals, finance lines, and income tax.
    """
    rules = rules or get_profit_loss_rules()
    boundaries = structure.boundaries
    if boundaries is None:
        return []

    items: list[LineItem] = []
    items.extend(_collect_itemized(sheet, structure, "revenue", rules, warnings, token))
    items.extend(_collect_itemized(sheet, structure, "cogs", rules, warnings, token))
    items.extend(_single_row_item(sheet, structure, boundaries.gen_services, "gen_services", warnings))
    items.extend(_accumulate_buckets(sheet, structure, BUCKETED_SECTIONS, rules, warnings, token))
    items.extend(_tag_by_rules(sheet, structure, "other_income", rules, warnings, token))
    items.extend(_single_row_item(sheet, structure, boundaries.income_tax, "income_tax", warnings))

    leaves = sum(1 for item in items if not item.is_subheader)
    logger.info(f"Extracted {leaves} P&L lines ({len(items) - leaves} subheaders)")
    return items
