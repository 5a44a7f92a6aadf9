"""Extraction dataclasses and type definitions.

This module contains pure data structures with no business logic dependencies,
ensuring they can be imported without circular dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from nsbu_ifrs.errors import ProcessingWarning

__all__ = [
    "ExtractionResult",
    "LineItem",
    "ReportMetadata",
    "SectionBoundaries",
    "StructureDescriptor",
    "ValueColumn",
]


@dataclass(frozen=True)
class ValueColumn:
    """One value column: a balance date (start/end) or a reporting period."""

    key: str
    label: str
    column: int


@dataclass(frozen=True)
class SectionBoundaries:
    """First row of each P&L section marker, resolved in a single scan.

    ``other_operating_is_section`` records how the "other operating expenses"
    row was resolved: its own section, or an ordinary admin line item.
    """

    revenue: int | None = None
    cogs: int | None = None
    overhead: int | None = None
    admin: int | None = None
    other_operating: int | None = None
    other_operating_is_section: bool = False
    other_income: int | None = None
    income_tax: int | None = None
    gen_services: int | None = None
    last_row: int = 0

    def _section_starts(self) -> list[tuple[str, int]]:
        starts = [
            ("revenue", self.revenue),
            ("cogs", self.cogs),
            ("overhead", self.overhead),
            ("admin", self.admin),
            ("other_operating", self.other_operating if self.other_operating_is_section else None),
            ("other_income", self.other_income),
            ("income_tax", self.income_tax),
        ]
        return sorted(((name, row) for name, row in starts if row is not None), key=lambda s: s[1])

    def range_for(self, section: str) -> range | None:
        """Rows belonging to ``section``: its marker up to the next marker.

        Returns None when the section's marker was not found. The income tax
        section is always the single marker row.
        """
        starts = self._section_starts()
        for i, (name, row) in enumerate(starts):
            if name != section:
                continue
            if section == "income_tax":
                return range(row, row + 1)
            end = starts[i + 1][1] if i + 1 < len(starts) else self.last_row + 1
            return range(row, end)
        return None


@dataclass(frozen=True)
class StructureDescriptor:
    """Where things are on one sheet; produced by the structure detector.

    Attributes
    ----------
        statement: Statement type tag.
        header_row: Row holding column headers (None when not found).
        code_column: Column of line/account codes (None when absent).
        label_column: Column of line labels.
        data_start_row: First row after the header block.
        value_columns: Ordered value columns (start/end, or periods).
        unit_divisor: Declared magnitude of source values (1, 1e3, 1e6, 1e9).
        unit_declared: False when the divisor is the configured default.
        scale: Factor that converts source values into the output unit.
        last_row: Last meaningful row before the signature block.
        code_kind: ``"row"`` for 3-digit form codes, ``"account"`` for 4-digit accounts.
        boundaries: P&L section boundaries (None for other statements).
        missing: Mandatory columns that could not be located.
        warnings: Fallbacks taken during detection.
    """

    statement: str
    header_row: int | None
    code_column: int | None
    label_column: int
    data_start_row: int
    value_columns: tuple[ValueColumn, ...]
    unit_divisor: int
    unit_declared: bool
    scale: float
    last_row: int
    code_kind: str = "row"
    boundaries: SectionBoundaries | None = None
    missing: tuple[str, ...] = ()
    warnings: tuple[ProcessingWarning, ...] = ()

    @property
    def periods(self) -> tuple[str, ...]:
        return tuple(c.label for c in self.value_columns)


@dataclass(frozen=True)
class LineItem:
    """One extracted line before classification.

    The classification key is ``code`` for coded rows and ``category`` for
    label-keyed rows (P&L sections and buckets). Subheaders carry no values and
    are never summed.
    """

    label: str
    period_values: tuple[float | None, ...] = ()
    code: str | None = None
    category: str | None = None
    is_subheader: bool = False
    row: int | None = None

    @property
    def key(self) -> str | None:
        return self.code if self.code is not None else self.category

    def value_at(self, period: int) -> float:
        """Value for a period, treating blanks as zero."""
        if period >= len(self.period_values):
            return 0.0
        value = self.period_values[period]
        return 0.0 if value is None else value


@dataclass(frozen=True)
class ReportMetadata:
    company_name: str | None = None
    tax_id: str | None = None
    report_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"company_name": self.company_name, "tax_id": self.tax_id, "report_date": self.report_date}


@dataclass(frozen=True)
class ExtractionResult:
    """Everything one line extractor produced for one sheet."""

    statement: str
    sheet_name: str
    structure: StructureDescriptor
    items: tuple[LineItem, ...]
    metadata: ReportMetadata = field(default_factory=ReportMetadata)
    warnings: tuple[ProcessingWarning, ...] = ()
    rows_scanned: int = 0

    @property
    def periods(self) -> tuple[str, ...]:
        return self.structure.periods

    def item_for(self, key: str) -> LineItem | None:
        return next((item for item in self.items if item.key == key), None)
