"""Template-driven IFRS transformer.

Joins extracted line items with a :class:`ClassificationTable` and walks the
table's layout template once, in order:

* ``section`` blocks emit a title row, subsection subheaders, one row per
  classified item, calculated entries, and a total row summing the section's
  leaf item rows;
* ``calculated`` blocks emit one row whose terms point at rows already in the
  layout (named references or coded rows).

Every value is computed from rows that exist earlier in the layout, so a
displayed subtotal and the value a later formula reads can never diverge.
Contra items (``is_negative``) are shown negated; formulas written against the
source form (``012 = 010 - 011``) are re-expressed over the displayed rows.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from nsbu_ifrs.classification.table import aggregate_account_balances, load_classification_table
from nsbu_ifrs.config import Settings, get_settings, setup_logging
from nsbu_ifrs.errors import WarningLog
from nsbu_ifrs.transformer.layout import IFRSLayout, IFRSSection, LayoutRow
from nsbu_ifrs.transformer.validation import check_balance, check_source_totals

if TYPE_CHECKING:
    from collections.abc import Sequence

    from nsbu_ifrs.classification.formula import Term
    from nsbu_ifrs.classification.table import ClassificationEntry, ClassificationTable, LayoutBlock
    from nsbu_ifrs.extractor.types import ExtractionResult, LineItem

logger = setup_logging(__name__)

__all__ = [
    "transform",
    "transform_balance_sheet",
    "transform_cash_flow",
    "transform_profit_loss",
]


def _signed(value: float, sign: int) -> float:
    # avoid -0.0 in output
    return (sign * value) or 0.0


class _LayoutBuilder:
    """Accumulates rows and the reference indexes that point into them."""

    def __init__(self, period_count: int) -> None:
        self.period_count = period_count
        self.rows: list[LayoutRow] = []
        self.named_refs: dict[str, int] = {}
        self.code_refs: dict[str, int] = {}

    def append(self, row: LayoutRow) -> int:
        self.rows.append(row)
        return len(self.rows) - 1

    def sum_of(self, indices: Sequence[int]) -> tuple[float, ...]:
        return tuple(
            sum((self.rows[i].values[p] for i in indices), 0.0) for p in range(self.period_count)
        )

    def combine(self, terms: Sequence[tuple[int, int]]) -> tuple[float, ...]:
        return tuple(
            sum((c * self.rows[i].values[p] for i, c in terms), 0.0) or 0.0 for p in range(self.period_count)
        )


# =============================================================================
# Joining items with the table
# =============================================================================


def _join_items(
    extraction: ExtractionResult,
    table: ClassificationTable,
    warnings: WarningLog,
) -> tuple[dict[str, list[LineItem]], dict[str, LineItem]]:
    """Group items by classification code; split off source totals.

    Returns
    -------
    tuple[dict[str, list[LineItem]], dict[str, LineItem]]
        Items per entry code (source order) and source total rows per code.
    """
    items: Sequence[LineItem] = extraction.items
    if extraction.structure.code_kind == "account":
        items = aggregate_account_balances(table, items, warnings)

    grouped: dict[str, list[LineItem]] = {}
    source_totals: dict[str, LineItem] = {}
    for item in items:
        key = item.key
        if key is None:
            continue
        if key in table.source_totals:
            source_totals.setdefault(key, item)
            continue
        entry = table.classify(key)
        if entry is None:
            warnings.add(f"Code {key} ('{item.label}') has no classification entry; line dropped",
                         row=item.row, code="unmapped_code")
            continue
        if entry.is_calculated:
            logger.debug(f"Source value of calculated line {key} ignored; it is recomputed")
            continue
        grouped.setdefault(entry.code, []).append(item)
    return grouped, source_totals


# =============================================================================
# Row construction
# =============================================================================


def _resolve_terms(
    builder: _LayoutBuilder,
    terms: Sequence[Term],
    table: ClassificationTable,
    label: str,
    warnings: WarningLog,
) -> tuple[tuple[int, int], ...] | None:
    """Map formula terms to ``(row index, coefficient)`` pairs.

    Coded operands pick up their entry's display sign. Returns None when no
    operand is present; absent operands are otherwise treated as zero.
    """
    resolved = []
    missing = []
    for term in terms:
        if term.is_code:
            index = builder.code_refs.get(term.ref)
            entry = table.classify(term.ref)
            coefficient = term.coefficient * (entry.sign if entry is not None else 1)
        else:
            index = builder.named_refs.get(term.ref)
            coefficient = term.coefficient
        if index is None:
            missing.append(term.ref)
            continue
        resolved.append((index, coefficient))

    if not resolved:
        logger.debug(f"'{label}' omitted: none of its operands are present")
        return None
    if missing:
        warnings.add(f"'{label}' computed without {', '.join(missing)} (treated as zero)",
                     severity="info", code="missing_operand")
    return tuple(resolved)


def _item_row(entry: ClassificationEntry, item: LineItem, section: str, period_count: int) -> LayoutRow:
    if item.is_subheader:
        return LayoutRow(kind="subheader", label=item.label, section=section, source_row=item.row)
    label = item.label if entry.use_source_label else entry.ifrs_label
    values = tuple(_signed(item.value_at(i), entry.sign) for i in range(period_count))
    return LayoutRow(kind="item", label=label, values=values, code=entry.code, section=section,
                     source_row=item.row)


def _calculated_entry_row(
    builder: _LayoutBuilder,
    entry: ClassificationEntry,
    table: ClassificationTable,
    section: str,
    warnings: WarningLog,
) -> LayoutRow | None:
    terms = _resolve_terms(builder, entry.terms, table, entry.ifrs_label, warnings)
    if terms is None:
        return None
    return LayoutRow(kind="calculated", label=entry.ifrs_label, values=builder.combine(terms), code=entry.code,
                     section=section, terms=terms)


def _group_by_subsection(entries: Sequence[ClassificationEntry]) -> dict[str, list[ClassificationEntry]]:
    groups: dict[str, list[ClassificationEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.subsection, []).append(entry)
    return groups


def _emit_section(
    builder: _LayoutBuilder,
    block: LayoutBlock,
    table: ClassificationTable,
    grouped: dict[str, list[LineItem]],
    warnings: WarningLog,
) -> IFRSSection:
    key = block.key or ""
    builder.append(LayoutRow(kind="title", label=block.label, section=key))
    body: list[int] = []
    leaves: list[int] = []

    for subsection, entries in _group_by_subsection(table.entries_for_section(key)).items():
        header_pending = bool(subsection)
        for entry in entries:
            if entry.is_calculated:
                row = _calculated_entry_row(builder, entry, table, key, warnings)
                candidates = [row] if row is not None else []
            else:
                candidates = [_item_row(entry, item, key, builder.period_count) for item in grouped.get(entry.code, [])]

            for row in candidates:
                # Subheaders only open subsections that end up with rows
                if header_pending:
                    body.append(builder.append(LayoutRow(kind="subheader", label=subsection, section=key)))
                    header_pending = False
                index = builder.append(row)
                body.append(index)
                if row.kind == "item":
                    leaves.append(index)
                if row.kind != "subheader" and not entry.use_source_label:
                    builder.code_refs[entry.code] = index

    totals = builder.sum_of(leaves)
    total_row = None
    if block.total_label is not None:
        total_row = builder.append(
            LayoutRow(kind="total", label=block.total_label, values=totals, ref=block.ref, section=key,
                      sum_rows=tuple(leaves)),
        )
        if block.ref:
            builder.named_refs[block.ref] = total_row
    if block.blank_after:
        builder.append(LayoutRow(kind="blank", label=""))

    logger.debug(f"Section {key}: {len(leaves)} leaf rows")
    return IFRSSection(
        key=key,
        title=block.label,
        items=tuple(builder.rows[i] for i in body),
        total_per_period=totals,
        total_row=total_row,
    )


def _emit_calculated(
    builder: _LayoutBuilder,
    block: LayoutBlock,
    table: ClassificationTable,
    warnings: WarningLog,
) -> None:
    terms = _resolve_terms(builder, block.terms, table, block.label, warnings)
    if terms is None:
        return
    index = builder.append(
        LayoutRow(kind="calculated", label=block.label, values=builder.combine(terms), ref=block.ref, terms=terms),
    )
    if block.ref:
        builder.named_refs[block.ref] = index
    if block.blank_after:
        builder.append(LayoutRow(kind="blank", label=""))


# =============================================================================
# Entry points
# =============================================================================


def transform(
    extraction: ExtractionResult,
    table: ClassificationTable,
    settings: Settings | None = None,
) -> IFRSLayout:
    """Build the IFRS layout for one extracted statement.

    Parameters
    ----------
    extraction
        Extractor output for one sheet.
    table
        Classification table and layout template for the same statement type.
    settings
        Supplies the tolerance for source-total cross-checks.

    Returns
    -------
    IFRSLayout
        Rows in template order with ``named_refs``; ``warnings`` holds unmapped
        codes, missing operands, and cross-check mismatches.

    Raises
    ------
    ValueError
        If the table belongs to a different statement type.
    """
    if extraction.statement != table.statement:
        msg = f"Cannot transform a {extraction.statement} extraction with the {table.statement} table"
        raise ValueError(msg)

    settings = settings or get_settings()
    warnings = WarningLog(logger)
    grouped, source_totals = _join_items(extraction, table, warnings)

    builder = _LayoutBuilder(len(extraction.periods))
    sections = []
    for block in table.layout:
        if block.kind == "section":
            sections.append(_emit_section(builder, block, table, grouped, warnings))
        else:
            _emit_calculated(builder, block, table, warnings)

    layout = IFRSLayout(
        statement=extraction.statement,
        periods=extraction.periods,
        rows=tuple(builder.rows),
        sections=tuple(sections),
        named_refs=dict(builder.named_refs),
        code_refs=dict(builder.code_refs),
        table_version=table.version,
    )
    checks = (
        *check_source_totals(layout, table, source_totals, settings.sum_tolerance, warnings),
        *check_balance(layout, table, settings.sum_tolerance, warnings),
    )

    logger.info(f"Built {layout.statement} layout: {len(layout.rows)} rows in {len(sections)} sections")
    return replace(layout, warnings=tuple(warnings), checks=checks)


def transform_balance_sheet(
    extraction: ExtractionResult,
    table: ClassificationTable | None = None,
    settings: Settings | None = None,
) -> IFRSLayout:
    return transform(extraction, table if table is not None else load_classification_table("balance_sheet"), settings)


def transform_profit_loss(
    extraction: ExtractionResult,
    table: ClassificationTable | None = None,
    settings: Settings | None = None,
) -> IFRSLayout:
    return transform(extraction, table if table is not None else load_classification_table("profit_loss"), settings)


def transform_cash_flow(
    extraction: ExtractionResult,
    table: ClassificationTable | None = None,
    settings: Settings | None = None,
) -> IFRSLayout:
    return transform(extraction, table if table is not None else load_classification_table("cash_flow"), settings)
