"""Tests for classification tables, their load-time validation, and account folding."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from nsbu_ifrs.classification import (
    ClassificationTable,
    account_range_prefix,
    aggregate_account_balances,
    compile_formula,
    load_classification_table,
)
from nsbu_ifrs.classification.formula import FormulaError, Term, evaluate_terms
from nsbu_ifrs.config import STATEMENT_TYPES
from nsbu_ifrs.errors import ClassificationTableError, WarningLog
from nsbu_ifrs.extractor.types import LineItem


@pytest.fixture
def mini_table() -> dict[str, Any]:
    """Smallest valid balance-sheet-like table."""
    return {
        "statement": "balance_sheet",
        "version": "test",
        "entries": {
            "010": {"accounts": ["0100"], "ifrs_label": "Gross", "section": "assets"},
            "011": {"accounts": ["0200"], "ifrs_label": "Depreciation", "section": "assets", "is_negative": True},
            "012": {"accounts": "calculated", "formula": "010 - 011", "ifrs_label": "Net", "section": "assets"},
            "180": {"accounts": ["2900"], "excluded_accounts": ["2980"], "ifrs_label": "Goods", "section": "assets"},
        },
        "source_totals": {"130": {"ref": "totalAssets", "label": "Total"}},
        "layout": [
            {"type": "section", "key": "assets", "title": "ASSETS", "total_label": "Total assets", "ref": "totalAssets"},
            {"type": "calculated", "label": "Check", "ref": "check", "formula": "totalAssets"},
        ],
    }


def _build(raw: dict[str, Any]) -> ClassificationTable:
    return ClassificationTable.from_dict(raw)


# =============================================================================
# Configured tables
# =============================================================================


class TestConfiguredTables:
    """Tests for the tables shipped with the package."""

    @pytest.mark.parametrize("statement", STATEMENT_TYPES)
    def test_loads_and_validates(self, statement: str) -> None:
        table = load_classification_table(statement)
        assert table.statement == statement
        assert len(table) > 0
        assert table.version

    def test_cached_instance(self) -> None:
        assert load_classification_table("balance_sheet") is load_classification_table("balance_sheet")

    def test_classify_is_pure(self) -> None:
        """Same code, same entry, every time."""
        table = load_classification_table("balance_sheet")
        first = table.classify("011")
        assert first is not None
        assert first is table.classify("011")
        assert first.is_negative
        assert first.section == "non_current_assets"

    def test_unmapped_code(self) -> None:
        table = load_classification_table("balance_sheet")
        assert table.classify("999") is None
        assert "999" not in table

    def test_calculated_entry(self) -> None:
        entry = load_classification_table("balance_sheet").classify("012")
        assert entry is not None
        assert entry.is_calculated
        assert entry.accounts == ()
        assert entry.terms == (Term("010", 1, is_code=True), Term("011", -1, is_code=True))

    def test_unknown_statement(self) -> None:
        with pytest.raises(ClassificationTableError):
            load_classification_table("equity_changes")

    def test_sections_match_layout(self) -> None:
        table = load_classification_table("profit_loss")
        assert table.section_keys == (
            "revenue",
            "cogs",
            "operating_expenses",
            "depreciation",
            "finance",
            "income_tax",
        )


# =============================================================================
# Load-time validation
# =============================================================================


class TestValidation:
    """Tests for ClassificationTable load-time invariants."""

    def test_valid_table(self, mini_table: dict[str, Any]) -> None:
        table = _build(mini_table)
        assert table.codes == ("010", "011", "012", "180")
        assert table.source_totals["130"].ref == "totalAssets"

    def test_unknown_section(self, mini_table: dict[str, Any]) -> None:
        mini_table["entries"]["010"]["section"] = "nowhere"
        with pytest.raises(ClassificationTableError, match="unknown section"):
            _build(mini_table)

    def test_formula_unknown_operand(self, mini_table: dict[str, Any]) -> None:
        mini_table["entries"]["012"]["formula"] = "010 - 019"
        with pytest.raises(ClassificationTableError, match="unknown code 019"):
            _build(mini_table)

    def test_formula_self_reference(self, mini_table: dict[str, Any]) -> None:
        mini_table["entries"]["012"]["formula"] = "010 - 012"
        with pytest.raises(ClassificationTableError, match="references itself"):
            _build(mini_table)

    def test_formula_on_plain_entry(self, mini_table: dict[str, Any]) -> None:
        mini_table["entries"]["010"]["formula"] = "011"
        with pytest.raises(ClassificationTableError, match="not calculated"):
            _build(mini_table)

    def test_malformed_formula(self, mini_table: dict[str, Any]) -> None:
        mini_table["entries"]["012"]["formula"] = "010 * 011"
        with pytest.raises(ClassificationTableError, match="malformed"):
            _build(mini_table)

    def test_missing_required_key(self, mini_table: dict[str, Any]) -> None:
        del mini_table["entries"]["010"]["ifrs_label"]
        with pytest.raises(ClassificationTableError, match="malformed"):
            _build(mini_table)

    def test_overlapping_accounts(self, mini_table: dict[str, Any]) -> None:
        mini_table["entries"]["011"]["accounts"] = ["0100"]
        with pytest.raises(ClassificationTableError, match="both claim"):
            _build(mini_table)

    def test_nested_range_requires_exclusion(self, mini_table: dict[str, Any]) -> None:
        """A narrower range inside a broader one is an overlap unless carved out."""
        mini_table["entries"]["190"] = {"accounts": ["2980"], "ifrs_label": "Markup", "section": "assets"}
        _build(mini_table)

        del mini_table["entries"]["180"]["excluded_accounts"]
        with pytest.raises(ClassificationTableError, match="both claim"):
            _build(mini_table)

    def test_exclusion_outside_range(self, mini_table: dict[str, Any]) -> None:
        mini_table["entries"]["180"]["excluded_accounts"] = ["3100"]
        with pytest.raises(ClassificationTableError, match="outside its own account ranges"):
            _build(mini_table)

    def test_layout_reference_before_definition(self, mini_table: dict[str, Any]) -> None:
        mini_table["layout"].insert(0, {"type": "calculated", "label": "Early", "ref": "early", "formula": "totalAssets"})
        with pytest.raises(ClassificationTableError, match="before it is defined"):
            _build(mini_table)

    def test_duplicate_named_reference(self, mini_table: dict[str, Any]) -> None:
        mini_table["layout"][1]["ref"] = "totalAssets"
        with pytest.raises(ClassificationTableError, match="defined twice"):
            _build(mini_table)

    def test_source_total_must_point_at_reference(self, mini_table: dict[str, Any]) -> None:
        mini_table["source_totals"]["130"]["ref"] = "totalNothing"
        with pytest.raises(ClassificationTableError, match="unknown reference"):
            _build(mini_table)

    def test_source_total_is_not_an_entry(self, mini_table: dict[str, Any]) -> None:
        mini_table["source_totals"]["010"] = {"ref": "totalAssets"}
        with pytest.raises(ClassificationTableError, match="also a classification entry"):
            _build(mini_table)

    def test_duplicate_code(self, mini_table: dict[str, Any]) -> None:
        table = _build(mini_table)
        entries = [*table.entries, table.entries[0]]
        with pytest.raises(ClassificationTableError, match="duplicate classification code"):
            ClassificationTable(table.statement, table.version, entries, table.layout)

    def test_ref_without_total_row(self, mini_table: dict[str, Any]) -> None:
        mini_table["layout"][0]["total_label"] = None
        with pytest.raises(ClassificationTableError, match="has no total row"):
            _build(mini_table)

    def test_input_not_mutated(self, mini_table: dict[str, Any]) -> None:
        snapshot = copy.deepcopy(mini_table)
        _build(mini_table)
        assert mini_table == snapshot


# =============================================================================
# Account ranges
# =============================================================================


class TestAccountRanges:
    """Tests for 4-digit account range handling."""

    @pytest.mark.parametrize(
        ("account", "prefix"),
        [("2900", "29"), ("2980", "298"), ("0910", "091"), ("1000", "10"), ("6951", "6951")],
    )
    def test_range_prefix(self, account: str, prefix: str) -> None:
        assert account_range_prefix(account) == prefix

    def test_excluded_sub_range(self) -> None:
        """2900 claims 2910 but not 2980, which it explicitly excludes."""
        entry = load_classification_table("balance_sheet").classify("180")
        assert entry is not None
        assert entry.claims_account("2910")
        assert not entry.claims_account("2980")
        assert not entry.claims_account("3000")

    def test_most_specific_entry_wins(self) -> None:
        table = load_classification_table("balance_sheet")
        assert table.entry_for_account("6950").code == "750"
        assert table.entry_for_account("6910").code == "760"

    def test_aggregate_excludes_nested_account(self) -> None:
        """Goods for resale sums 2900-2999 except anything in 2980."""
        table = load_classification_table("balance_sheet")
        items = [
            LineItem(label="Товары на складе", period_values=(100.0, 120.0), code="2910", row=5),
            LineItem(label="Товары в пути", period_values=(20.0, 0.0), code="2920", row=6),
            LineItem(label="Торговая наценка", period_values=(-30.0, -35.0), code="2980", row=7),
        ]
        warnings = WarningLog()

        folded = aggregate_account_balances(table, items, warnings)

        assert [(item.code, item.period_values) for item in folded] == [("180", (120.0, 120.0))]
        assert folded[0].row == 5
        assert warnings.codes() == ["unmapped_account"]

    def test_group_rows_skipped(self) -> None:
        """A parent account with detailed children is not double counted."""
        table = load_classification_table("balance_sheet")
        items = [
            LineItem(label="Основные средства", period_values=(300.0,), code="0100", row=3),
            LineItem(label="Здания", period_values=(200.0,), code="0120", row=4),
            LineItem(label="Машины", period_values=(100.0,), code="0130", row=5),
        ]
        folded = aggregate_account_balances(table, items, WarningLog())
        assert [(item.code, item.period_values) for item in folded] == [("010", (300.0,))]


# =============================================================================
# Formulas
# =============================================================================


class TestFormula:
    """Tests for the linear formula compiler."""

    def test_codes_and_names(self) -> None:
        assert compile_formula("operatingTotal + 070 + 080") == (
            Term("operatingTotal", 1),
            Term("070", 1, is_code=True),
            Term("080", 1, is_code=True),
        )

    def test_coefficients_merge(self) -> None:
        assert compile_formula("2 * a - (b - a)") == (Term("a", 3), Term("b", -1))

    def test_cancelled_operand_dropped(self) -> None:
        assert compile_formula("a + b - a") == (Term("b", 1),)

    @pytest.mark.parametrize("formula", ["", "a * b", "a / 2", "a + 1", "max(a, b)", "a +"])
    def test_rejects_non_linear(self, formula: str) -> None:
        with pytest.raises(FormulaError):
            compile_formula(formula)

    def test_evaluate(self) -> None:
        terms = compile_formula("010 - 011")
        assert evaluate_terms(terms, {"010": 1000.0, "011": 200.0}) == 800.0
        assert evaluate_terms(terms, {"010": 1000.0}) == 1000.0
