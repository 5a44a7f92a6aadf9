"""IFRS layout data structures.

A layout is an ordered list of rows. Totals and calculated rows never hold
free-standing numbers: each carries the indices of the rows it is built from
(``sum_rows`` or signed ``terms``) together with the values computed from them,
so the writer can emit live formulas and the values shown always match what
downstream formulas read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pandas as pd

if TYPE_CHECKING:
    from nsbu_ifrs.errors import ProcessingWarning
    from nsbu_ifrs.transformer.validation import TotalCheckResult

__all__ = [
    "ROW_KINDS",
    "IFRSLayout",
    "IFRSSection",
    "LayoutRow",
]

ROW_KINDS = ("title", "subheader", "item", "total", "calculated", "blank")
VALUE_KINDS = frozenset({"item", "total", "calculated"})


@dataclass(frozen=True)
class LayoutRow:
    """One output row.

    Attributes
    ----------
        kind: One of :data:`ROW_KINDS`.
        label: Display label.
        values: One value per period (empty for title/subheader/blank rows).
        code: Classification code for item and calculated-entry rows.
        ref: Named reference this row defines, if any.
        section: Section key the row belongs to.
        sum_rows: Row indices summed by a ``total`` row.
        terms: ``(row index, coefficient)`` pairs of a ``calculated`` row.
        source_row: Source sheet row for item rows (audit trail).
    """

    kind: str
    label: str
    values: tuple[float, ...] = ()
    code: str | None = None
    ref: str | None = None
    section: str | None = None
    sum_rows: tuple[int, ...] = ()
    terms: tuple[tuple[int, int], ...] = ()
    source_row: int | None = None

    @property
    def has_values(self) -> bool:
        return self.kind in VALUE_KINDS

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "label": self.label,
            "values": list(self.values),
            "code": self.code,
            "ref": self.ref,
            "section": self.section,
            "sum_rows": list(self.sum_rows),
            "terms": [list(t) for t in self.terms],
            "source_row": self.source_row,
        }


@dataclass(frozen=True)
class IFRSSection:
    """A section with its rows and per-period total.

    ``total_per_period[p]`` is the sum of the section's leaf item rows for
    period ``p``; subheader and calculated rows never contribute.
    """

    key: str
    title: str
    items: tuple[LayoutRow, ...]
    total_per_period: tuple[float, ...]
    total_row: int | None = None

    @property
    def leaf_items(self) -> tuple[LayoutRow, ...]:
        return tuple(row for row in self.items if row.kind == "item")


@dataclass(frozen=True)
class IFRSLayout:
    """Complete IFRS presentation of one statement.

    Attributes
    ----------
        statement: Statement type tag.
        periods: Period labels, one per value column.
        rows: Every output row in display order.
        sections: Sections in display order.
        named_refs: Semantic name -> row index (``grossProfit`` -> 12).
        code_refs: Classification code -> row index for coded rows.
        table_version: Version of the classification table used.
        warnings: Warnings raised while building the layout.
        checks: Source total and balance comparisons, one per period.
    """

    statement: str
    periods: tuple[str, ...]
    rows: tuple[LayoutRow, ...]
    sections: tuple[IFRSSection, ...]
    named_refs: dict[str, int] = field(default_factory=dict)
    code_refs: dict[str, int] = field(default_factory=dict)
    table_version: str = ""
    warnings: tuple[ProcessingWarning, ...] = ()
    checks: tuple[TotalCheckResult, ...] = ()

    def row_for(self, ref: str) -> LayoutRow | None:
        """Row defined by a named reference or a classification code."""
        index = self.named_refs.get(ref, self.code_refs.get(ref))
        return self.rows[index] if index is not None else None

    def values_for(self, ref: str) -> tuple[float, ...]:
        """Values of a named or coded row; zeros when the row is absent."""
        row = self.row_for(ref)
        if row is None:
            return (0.0,) * len(self.periods)
        return row.values

    def section(self, key: str) -> IFRSSection | None:
        return next((s for s in self.sections if s.key == key), None)

    @property
    def item_rows(self) -> tuple[LayoutRow, ...]:
        return tuple(row for row in self.rows if row.kind == "item")

    def to_dataframe(self) -> pd.DataFrame:
        """Flatten the layout to one DataFrame row per layout row."""
        records = []
        for row in self.rows:
            record: dict[str, Any] = {"kind": row.kind, "label": row.label, "code": row.code, "ref": row.ref}
            for i, period in enumerate(self.periods):
                record[period] = row.values[i] if row.has_values and i < len(row.values) else None
            records.append(record)
        return pd.DataFrame(records, columns=["kind", "label", "code", "ref", *self.periods])

    def to_dict(self) -> dict[str, Any]:
        return {
            "statement": self.statement,
            "table_version": self.table_version,
            "periods": list(self.periods),
            "rows": [row.to_dict() for row in self.rows],
            "named_refs": dict(self.named_refs),
            "warnings": [w.to_dict() for w in self.warnings],
            "checks": [check.to_dict() for check in self.checks],
        }
