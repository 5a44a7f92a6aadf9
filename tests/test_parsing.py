"""Tests for the shared text and number parsing helpers."""

from __future__ import annotations

import pytest

from nsbu_ifrs.utils.parsing import is_blank, is_numeric_cell, normalize_code, normalize_text, parse_amount


class TestParseAmount:
    """Tests for parse_amount()."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (1234, 1234.0),
            (12.5, 12.5),
            ("1 234 567", 1234567.0),
            ("1\xa0234", 1234.0),
            ("1,234,567", 1234567.0),
            ("1234,56", 1234.56),
            ("1.234.567", 1234567.0),
            ("1.234,56", 1234.56),
            ("(1 234)", -1234.0),
            ("-500", -500.0),
            ("−500", -500.0),
        ],
    )
    def test_nsbu_number_formats(self, raw: object, expected: float) -> None:
        """Separators, comma decimals and parenthesised negatives are understood."""
        assert parse_amount(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "   ", "-", "–", "—"])
    def test_dash_and_blank_mean_zero(self, raw: object) -> None:
        """A literal dash or an empty cell parses to zero."""
        assert parse_amount(raw) == 0.0

    @pytest.mark.parametrize("raw", ["н/д", "abc", True, float("nan")])
    def test_text_is_unparseable(self, raw: object) -> None:
        """Non-numeric content returns None rather than a guess."""
        assert parse_amount(raw) is None


class TestCellPredicates:
    """Tests for is_blank() and is_numeric_cell()."""

    def test_is_blank(self) -> None:
        assert is_blank(None)
        assert is_blank("  ")
        assert not is_blank(0)
        assert not is_blank("-")

    def test_dash_is_not_numeric(self) -> None:
        """A dash counts as zero in sums but not as a number for column detection."""
        assert not is_numeric_cell("-")
        assert not is_numeric_cell(None)
        assert is_numeric_cell("1 200")
        assert is_numeric_cell(0)


class TestNormalize:
    """Tests for normalize_text() and normalize_code()."""

    def test_normalize_text(self) -> None:
        assert normalize_text("  Код  стр. ") == "код стр."
        assert normalize_text("Итого\xa0по  разделу") == "итого по разделу"
        assert normalize_text(None) == ""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("010", "010"),
            (10, "010"),
            (10.0, "010"),
            ("130.", "130"),
            ("2900", "2900"),
            ("Итого", None),
            (10.5, None),
            (None, None),
        ],
    )
    def test_normalize_code(self, raw: object, expected: str | None) -> None:
        assert normalize_code(raw) == expected

    def test_account_width(self) -> None:
        """Account codes pad to four digits when requested."""
        assert normalize_code("910", width=4) == "0910"
