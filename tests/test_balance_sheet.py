"""Tests for balance sheet line extraction."""

from __future__ import annotations

import pytest

from nsbu_ifrs.config import Settings
from nsbu_ifrs.errors import CancellationToken, ExtractionCancelled, MissingColumnsError, WarningLog
from nsbu_ifrs.extractor import extract_balance_sheet, extract_statement
from nsbu_ifrs.extractor.structure import detect_structure
from nsbu_ifrs.reader.cells import Formula, Sheet


def _extract(rows: list[list[object]]) -> tuple[list, WarningLog]:
    sheet = Sheet.from_values("Баланс", rows)
    structure = detect_structure(sheet, "balance_sheet", Settings())
    warnings = WarningLog()
    return extract_balance_sheet(sheet, structure, warnings), warnings


HEADER = [["тыс. сум", None, None, None], ["Актив", "Код стр.", "На начало", "На конец"]]


class TestExtractBalanceSheet:
    """Tests for extract_balance_sheet()."""

    def test_coded_rows_extracted_in_order(self, balance_sheet_sheet: Sheet) -> None:
        """Every coded row becomes an item; uncoded titles are skipped."""
        result = extract_statement(balance_sheet_sheet, "balance_sheet", Settings())

        assert [item.code for item in result.items] == [
            "010", "011", "012", "130", "390", "400", "410", "450", "480", "780",
        ]
        pp_and_e = result.item_for("010")
        assert pp_and_e is not None
        assert pp_and_e.period_values == (1000.0, 1200.0)
        assert pp_and_e.label == "Основные средства: первоначальная стоимость"
        assert pp_and_e.row == 7

    def test_extraction_result_fields(self, balance_sheet_sheet: Sheet) -> None:
        result = extract_statement(balance_sheet_sheet, "balance_sheet", Settings())
        assert result.periods == ("Beginning of period", "End of period")
        assert result.metadata.tax_id == "301234567"
        assert result.rows_scanned == 11
        assert result.warnings == ()

    def test_formatted_values_and_dash(self) -> None:
        items, warnings = _extract(
            [*HEADER, ["Запасы", "150", "1 234,5", "-"], ["Дебиторы", 220, "(50)", None]],
        )
        assert items[0].period_values == (1234.5, 0.0)
        assert items[1].code == "220"
        assert items[1].period_values == (-50.0, None)
        assert len(warnings) == 0

    def test_formula_cached_result_used(self) -> None:
        items, _ = _extract([*HEADER, ["Итого", "130", Formula(result=800, expression="=SUM(C3:C5)"), 900]])
        assert items[0].period_values == (800.0, 900.0)

    def test_hidden_helper_row_dropped(self) -> None:
        """A -1 in the first numeric value cell marks a hidden helper row."""
        items, _ = _extract([*HEADER, ["Служебная", "999", -1, 0], ["Запасы", "150", 10, 20]])
        assert [item.code for item in items] == ["150"]

    def test_duplicate_code_keeps_first(self) -> None:
        items, warnings = _extract([*HEADER, ["Запасы", "150", 10, 20], ["Запасы (повтор)", "150", 99, 99]])
        assert len(items) == 1
        assert items[0].period_values == (10.0, 20.0)
        assert warnings.codes() == ["duplicate_code"]

    def test_unparseable_value_warns(self) -> None:
        items, warnings = _extract([*HEADER, ["Запасы", "150", "н/д", 20]])
        assert items[0].period_values == (0.0, 20.0)
        assert warnings.codes() == ["unparsed_number"]
        assert next(iter(warnings)).row == 3

    def test_millions_scaled_to_thousands(self) -> None:
        items, _ = _extract(
            [["млн. сум", None, None, None], ["Актив", "Код стр.", "На начало", "На конец"],
             ["Запасы", "150", 2, 3.5]],
        )
        assert items[0].period_values == (2000.0, 3500.0)

    def test_missing_columns_raise(self) -> None:
        sheet = Sheet.from_values("S", [["Актив", "На начало"], ["Запасы", 10]])
        with pytest.raises(MissingColumnsError) as exc_info:
            extract_statement(sheet, "balance_sheet", Settings())
        assert exc_info.value.missing == ("code",)
        assert "balance_sheet" in exc_info.value.reason

    def test_cancellation(self, balance_sheet_sheet: Sheet) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ExtractionCancelled):
            extract_statement(balance_sheet_sheet, "balance_sheet", Settings(), token)

    def test_source_sheet_not_mutated(self, balance_sheet_sheet: Sheet) -> None:
        before = [[c.value for c in balance_sheet_sheet.row(r)] for r in range(1, balance_sheet_sheet.row_count + 1)]
        extract_statement(balance_sheet_sheet, "balance_sheet", Settings())
        after = [[c.value for c in balance_sheet_sheet.row(r)] for r in range(1, balance_sheet_sheet.row_count + 1)]
        assert before == after
