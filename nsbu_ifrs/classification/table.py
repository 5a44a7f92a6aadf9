"""Static, validated classification tables (NSBU code -> IFRS metadata).

A table is an immutable object built once per statement type from
``resources/<statement>/classification.json`` and passed explicitly into the
transformer. Validation happens at load time: a key collision, an overlapping
account claim, or a formula over an unknown operand raises
:class:`~nsbu_ifrs.errors.ClassificationTableError` before any job runs.

Account ranges
--------------
A 4-digit account code names a range: trailing zeros are stripped (keeping at
least two digits) and the rest is used as a prefix, so ``"2900"`` covers
2900-2999 and ``"6950"`` covers 6950-6959. ``excluded_accounts`` use the same
rule to carve nested sub-ranges out of an entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from nsbu_ifrs.classification.formula import FormulaError, Term, compile_formula
from nsbu_ifrs.config import get_statement_config, setup_logging
from nsbu_ifrs.errors import ClassificationTableError
from nsbu_ifrs.extractor.types import LineItem

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from nsbu_ifrs.errors import WarningLog

logger = setup_logging(__name__)

__all__ = [
    "ClassificationEntry",
    "ClassificationTable",
    "LayoutBlock",
    "SourceTotal",
    "account_range_prefix",
    "aggregate_account_balances",
    "load_classification_table",
]


def account_range_prefix(account: str) -> str:
    """Range prefix of an account code: trailing zeros stripped, at least 2 digits.

    Examples
    --------
    - "2900" -> "29"
    - "2980" -> "298"
    - "0910" -> "091"
    - "1000" -> "10"
    """
    stripped = account.rstrip("0")
    return account[: max(len(stripped), 2)]


# =============================================================================
# Table rows
# =============================================================================


@dataclass(frozen=True)
class ClassificationEntry:
    """One row of a classification table.

    Attributes
    ----------
        code: Source row code (``"010"``) or category key (``"admin.payroll"``).
        accounts: Chart-of-accounts codes summed into this row (empty if calculated).
        ifrs_label: Presentation label.
        section: Layout section key.
        subsection: Presentation group inside the section.
        is_negative: Contra item; displayed negated so it reduces its section.
        is_calculated: Never read from source; derived from ``formula``.
        formula: Linear formula over other codes (calculated entries only).
        excluded_accounts: Nested sub-ranges carved out of ``accounts``.
        description: NSBU line name, for audit output.
        flow_type: ``"inflow"``/``"outflow"`` for cash flow lines.
        use_source_label: Keep each source line's own label (itemized sections).
        order: Declaration order inside the table.
        terms: Compiled ``formula``.
    """

    code: str
    ifrs_label: str
    section: str
    accounts: tuple[str, ...] = ()
    subsection: str = ""
    is_negative: bool = False
    is_calculated: bool = False
    formula: str | None = None
    excluded_accounts: tuple[str, ...] = ()
    description: str = ""
    flow_type: str | None = None
    use_source_label: bool = False
    order: int = 0
    terms: tuple[Term, ...] = ()

    @property
    def sign(self) -> int:
        return -1 if self.is_negative else 1

    @property
    def account_ranges(self) -> tuple[str, ...]:
        return tuple(account_range_prefix(a) for a in self.accounts)

    @property
    def excluded_ranges(self) -> tuple[str, ...]:
        return tuple(account_range_prefix(a) for a in self.excluded_accounts)

    def claims_account(self, account: str) -> bool:
        """True if ``account`` falls inside this entry's ranges and is not excluded."""
        if not any(account.startswith(p) for p in self.account_ranges):
            return False
        return not any(account.startswith(p) for p in self.excluded_ranges)


@dataclass(frozen=True)
class LayoutBlock:
    """One block of a layout template: a section, or a calculated row."""

    kind: str
    label: str
    key: str | None = None
    total_label: str | None = None
    ref: str | None = None
    formula: str | None = None
    terms: tuple[Term, ...] = ()
    blank_after: bool = False


@dataclass(frozen=True)
class SourceTotal:
    """A total row of the source form, used only for cross-validation."""

    code: str
    ref: str
    label: str


# =============================================================================
# Table
# =============================================================================


class ClassificationTable:
    """Immutable, validated lookup from source code to :class:`ClassificationEntry`.

    Parameters
    ----------
    statement
        Statement type tag.
    version
        Table version string, carried into layouts for auditability.
    entries
        Entries in declaration order (display order inside sections).
    layout
        Layout template blocks in display order.
    source_totals
        Source total rows keyed by code.
    balance_check
        Optional pair of named refs that must be equal (assets vs. equity and
        liabilities).

    Raises
    ------
    ClassificationTableError
        If any load-time invariant is violated.
    """

    def __init__(
        self,
        statement: str,
        version: str,
        entries: Sequence[ClassificationEntry],
        layout: Sequence[LayoutBlock],
        source_totals: Iterable[SourceTotal] = (),
        balance_check: tuple[str, str] | None = None,
    ) -> None:
        self.statement = statement
        self.version = version
        self.entries = tuple(entries)
        self.layout = tuple(layout)
        self.source_totals = MappingProxyType({t.code: t for t in source_totals})
        self.balance_check = balance_check

        by_code: dict[str, ClassificationEntry] = {}
        for entry in self.entries:
            if entry.code in by_code:
                msg = f"{statement}: duplicate classification code {entry.code!r}"
                raise ClassificationTableError(msg)
            by_code[entry.code] = entry
        self._by_code = MappingProxyType(by_code)
        self._account_index = sorted(
            ((prefix, entry) for entry in self.entries for prefix in entry.account_ranges),
            key=lambda pair: (-len(pair[0]), pair[1].order),
        )
        self._validate()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def classify(self, code: str) -> ClassificationEntry | None:
        """Return the entry for ``code``, or None when the code is unmapped."""
        return self._by_code.get(code)

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(self._by_code)

    @property
    def section_keys(self) -> tuple[str, ...]:
        return tuple(b.key for b in self.layout if b.kind == "section" and b.key)

    def entries_for_section(self, section: str) -> list[ClassificationEntry]:
        return [e for e in self.entries if e.section == section]

    def entry_for_account(self, account: str) -> ClassificationEntry | None:
        """Most specific entry whose ranges claim ``account``."""
        for prefix, entry in self._account_index:
            if account.startswith(prefix) and entry.claims_account(account):
                return entry
        return None

    # -------------------------------------------------------------------------
    # Load-time validation
    # -------------------------------------------------------------------------

    def _fail(self, message: str) -> None:
        msg = f"{self.statement} classification table: {message}"
        raise ClassificationTableError(msg)

    def _validate(self) -> None:
        sections = set(self.section_keys)
        for entry in self.entries:
            if entry.section not in sections:
                self._fail(f"entry {entry.code} names unknown section {entry.section!r}")
            self._validate_entry_formula(entry)
            for excluded in entry.excluded_ranges:
                if not any(excluded.startswith(p) and excluded != p for p in entry.account_ranges):
                    self._fail(f"entry {entry.code} excludes {excluded!r} outside its own account ranges")
        self._validate_account_overlaps()
        self._validate_layout()

    def _validate_entry_formula(self, entry: ClassificationEntry) -> None:
        if not entry.is_calculated:
            if entry.formula:
                self._fail(f"entry {entry.code} has a formula but is not calculated")
            return
        if not entry.terms:
            self._fail(f"calculated entry {entry.code} has no formula")
        for term in entry.terms:
            if not term.is_code:
                self._fail(f"calculated entry {entry.code} references non-code operand {term.ref!r}")
            if term.ref == entry.code:
                self._fail(f"calculated entry {entry.code} references itself")
            operand = self._by_code.get(term.ref)
            if operand is None:
                self._fail(f"calculated entry {entry.code} references unknown code {term.ref}")
            elif operand.order > entry.order:
                self._fail(f"calculated entry {entry.code} references {term.ref} declared after it")

    def _validate_account_overlaps(self) -> None:
        active = [e for e in self.entries if not e.is_calculated and e.accounts]
        for i, first in enumerate(active):
            for second in active[i + 1 :]:
                for a in first.account_ranges:
                    for b in second.account_ranges:
                        if self._ranges_collide(first, a, second, b):
                            self._fail(
                                f"entries {first.code} and {second.code} both claim accounts in range {a!r}/{b!r}"
                            )

    @staticmethod
    def _ranges_collide(first: ClassificationEntry, a: str, second: ClassificationEntry, b: str) -> bool:
        if a == b:
            return True
        if b.startswith(a):
            # first is broader; fine only if it carves out second's range
            return not any(b.startswith(x) for x in first.excluded_ranges)
        if a.startswith(b):
            return not any(a.startswith(x) for x in second.excluded_ranges)
        return False

    def _validate_layout(self) -> None:
        defined: set[str] = set()
        seen_sections: set[str] = set()
        for block in self.layout:
            if block.kind == "section":
                if block.key in seen_sections:
                    self._fail(f"section {block.key!r} appears twice in the layout")
                if block.ref and block.total_label is None:
                    self._fail(f"section {block.key!r} names reference {block.ref!r} but has no total row")
                seen_sections.add(block.key or "")
            elif block.kind == "calculated":
                if not block.terms:
                    self._fail(f"calculated row {block.label!r} has no formula")
                for term in block.terms:
                    if term.is_code and term.ref not in self._by_code:
                        self._fail(f"calculated row {block.label!r} references unknown code {term.ref}")
                    if not term.is_code and term.ref not in defined:
                        self._fail(f"calculated row {block.label!r} references {term.ref!r} before it is defined")
            else:
                self._fail(f"unknown layout block type {block.kind!r}")
            if block.ref:
                if block.ref in defined:
                    self._fail(f"named reference {block.ref!r} defined twice")
                defined.add(block.ref)

        for total in self.source_totals.values():
            if total.code in self._by_code:
                self._fail(f"source total {total.code} is also a classification entry")
            if total.ref not in defined:
                self._fail(f"source total {total.code} points at unknown reference {total.ref!r}")
        if self.balance_check and not set(self.balance_check) <= defined:
            self._fail(f"balance check references unknown names {self.balance_check}")

    # -------------------------------------------------------------------------
    # Construction from configuration
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ClassificationTable:
        """Build a table from its JSON form.

        Raises
        ------
        ClassificationTableError
            If a required key is missing, a formula does not compile, or any
            table invariant is violated.
        """
        statement = str(raw.get("statement", ""))
        try:
            entries = [_entry_from_dict(code, spec, order) for order, (code, spec) in enumerate(raw["entries"].items())]
            layout = [_block_from_dict(block) for block in raw["layout"]]
            totals = [
                SourceTotal(code=code, ref=spec["ref"], label=spec.get("label", code))
                for code, spec in raw.get("source_totals", {}).items()
            ]
        except (KeyError, TypeError, FormulaError) as e:
            msg = f"{statement} classification table is malformed: {e}"
            raise ClassificationTableError(msg) from e

        balance_check = raw.get("balance_check")
        return cls(
            statement=statement,
            version=str(raw.get("version", "")),
            entries=entries,
            layout=layout,
            source_totals=totals,
            balance_check=tuple(balance_check) if balance_check else None,
        )


def _entry_from_dict(code: str, spec: Mapping[str, Any], order: int) -> ClassificationEntry:
    accounts = spec.get("accounts", [])
    is_calculated = accounts == "calculated"
    formula = spec.get("formula")
    return ClassificationEntry(
        code=code,
        ifrs_label=spec["ifrs_label"],
        section=spec["section"],
        accounts=() if is_calculated else tuple(accounts),
        subsection=spec.get("subsection", ""),
        is_negative=bool(spec.get("is_negative", False)),
        is_calculated=is_calculated,
        formula=formula,
        excluded_accounts=tuple(spec.get("excluded_accounts", ())),
        description=spec.get("description", ""),
        flow_type=spec.get("flow_type"),
        use_source_label=bool(spec.get("use_source_label", False)),
        order=order,
        terms=compile_formula(formula) if formula else (),
    )


def _block_from_dict(spec: Mapping[str, Any]) -> LayoutBlock:
    kind = spec["type"]
    formula = spec.get("formula")
    return LayoutBlock(
        kind=kind,
        label=spec.get("title") or spec.get("label", ""),
        key=spec.get("key"),
        total_label=spec.get("total_label"),
        ref=spec.get("ref"),
        formula=formula,
        terms=compile_formula(formula) if formula else (),
        blank_after=bool(spec.get("blank_after", kind == "section")),
    )


@lru_cache(maxsize=None)
def load_classification_table(statement: str) -> ClassificationTable:
    """Load and validate the configured table for ``statement`` (cached).

    Raises
    ------
    ClassificationTableError
        If the file repeats a key or fails validation.
    FileNotFoundError
        If the statement has no classification file.
    """
    try:
        raw = get_statement_config(statement, "classification.json")
    except ValueError as e:
        msg = f"{statement} classification table could not be loaded: {e}"
        raise ClassificationTableError(msg) from e
    table = ClassificationTable.from_dict(raw)
    logger.debug(f"Loaded {statement} classification table v{table.version} ({len(table)} entries)")
    return table


# =============================================================================
# Account-level aggregation
# =============================================================================


def aggregate_account_balances(
    table: ClassificationTable,
    items: Sequence[LineItem],
    warnings: WarningLog,
) -> list[LineItem]:
    """Fold 4-digit account balances into table row-code items.

    An account whose range prefix is extended by another account present in the
    input is a group row (its children carry the detail) and is skipped.
    Accounts no entry claims are dropped with an ``unmapped_account`` warning.

    Returns
    -------
    list[LineItem]
        One item per claimed entry, in table declaration order.
    """
    present = {item.code for item in items if item.code}
    period_count = max((len(item.period_values) for item in items), default=0)
    totals: dict[str, list[float]] = {}
    first_rows: dict[str, int | None] = {}

    for item in items:
        if item.code is None or item.is_subheader:
            continue
        prefix = account_range_prefix(item.code)
        if any(other != item.code and other.startswith(prefix) for other in present):
            logger.debug(f"Account {item.code} is a group row with detailed sub-accounts; skipped")
            continue
        entry = table.entry_for_account(item.code)
        if entry is None:
            warnings.add(f"Account {item.code} ({item.label}) is not mapped to any line", row=item.row,
                         code="unmapped_account")
            continue
        bucket = totals.setdefault(entry.code, [0.0] * period_count)
        first_rows.setdefault(entry.code, item.row)
        for i in range(period_count):
            bucket[i] += item.value_at(i)

    return [
        LineItem(label=entry.ifrs_label, period_values=tuple(totals[entry.code]), code=entry.code,
                 row=first_rows[entry.code])
        for entry in table.entries
        if entry.code in totals
    ]
