"""Tests for the workbook writer and JSON/CSV exports."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pandas as pd
import pytest
from openpyxl import load_workbook

from nsbu_ifrs.extractor.types import LineItem, ReportMetadata
from nsbu_ifrs.transformer import IFRSLayout, transform_balance_sheet
from nsbu_ifrs.writer import (
    calculated_formula,
    layout_to_frame,
    load_layout_json,
    save_layout_json,
    sum_formula,
    write_layout_csv,
    write_layout_workbook,
)

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def layout(make_extraction: Any) -> IFRSLayout:
    items = [
        LineItem(label="ОС", period_values=(1000.0, 1200.0), code="010", row=7),
        LineItem(label="Износ", period_values=(200.0, 300.0), code="011", row=8),
    ]
    return transform_balance_sheet(make_extraction("balance_sheet", items))


class TestFormulas:
    """Tests for formula string builders."""

    @pytest.mark.parametrize(
        ("rows", "expected"),
        [
            ([5, 6, 7, 9], "=SUM(B5:B7,B9)"),
            ([9, 5], "=SUM(B5,B9)"),
            ([4], "=SUM(B4)"),
            ([], "=0"),
        ],
    )
    def test_sum_formula(self, rows: list[int], expected: str) -> None:
        assert sum_formula("B", rows) == expected

    @pytest.mark.parametrize(
        ("terms", "expected"),
        [
            ([(5, 1), (9, 1), (12, -1)], "=C5+C9-C12"),
            ([(5, -1), (6, 1)], "=-C5+C6"),
            ([(5, 2), (6, -3)], "=2*C5-3*C6"),
            ([], "=0"),
        ],
    )
    def test_calculated_formula(self, terms: list[tuple[int, int]], expected: str) -> None:
        assert calculated_formula("C", terms) == expected


class TestLayoutToFrame:
    """Tests for layout_to_frame()."""

    def test_formulas_point_at_item_rows(self, layout: IFRSLayout) -> None:
        frame = layout_to_frame(layout, first_excel_row=5)

        assert list(frame.columns) == ["Line item", "Beginning of period", "End of period"]
        assert frame.iloc[0]["Line item"] == "ASSETS - NON-CURRENT"
        assert frame.iloc[2]["Beginning of period"] == 1000.0
        assert frame.iloc[3]["End of period"] == -300.0
        assert frame.iloc[4]["Beginning of period"] == "=B7+B8"
        assert frame.iloc[5]["End of period"] == "=SUM(C7:C8)"

    def test_values_only(self, layout: IFRSLayout) -> None:
        frame = layout_to_frame(layout, first_excel_row=5, formulas=False)
        assert frame.iloc[4]["Beginning of period"] == 800.0
        assert frame.iloc[5]["End of period"] == 900.0

    def test_empty_section_total(self, layout: IFRSLayout) -> None:
        frame = layout_to_frame(layout, first_excel_row=1)
        index = layout.named_refs["totalCurrentAssets"]
        assert frame.iloc[index]["Beginning of period"] == "=0"

    def test_label_rows_have_no_values(self, layout: IFRSLayout) -> None:
        frame = layout_to_frame(layout, first_excel_row=1)
        assert pd.isna(frame.iloc[0]["Beginning of period"])
        assert pd.isna(frame.iloc[1]["End of period"])


class TestWriteLayoutWorkbook:
    """Tests for write_layout_workbook()."""

    def test_written_workbook(self, layout: IFRSLayout, tmp_path: Path) -> None:
        metadata = ReportMetadata(company_name="ООО «Строй Инвест»", tax_id="301234567", report_date="31.12.2024")
        path = write_layout_workbook(layout, tmp_path / "out" / "bs.xlsx", metadata)

        ws = load_workbook(path)["balance_sheet"]
        assert ws.cell(row=1, column=1).value == "IFRS Statement of Financial Position"
        assert ws.cell(row=2, column=1).value == "Company: ООО «Строй Инвест»"
        assert ws.cell(row=3, column=1).value == "Taxpayer ID: 301234567"
        assert ws.cell(row=4, column=1).value == "Report date: 31.12.2024"
        assert ws.cell(row=6, column=1).value == "Line item"
        assert ws.cell(row=7, column=1).value == "ASSETS - NON-CURRENT"
        assert ws.cell(row=9, column=2).value == 1000
        assert ws.cell(row=11, column=2).value == "=B9+B10"
        assert ws.cell(row=12, column=3).value == "=SUM(C9:C10)"

    def test_sheet_name_truncated(self, layout: IFRSLayout, tmp_path: Path) -> None:
        path = write_layout_workbook(layout, tmp_path / "bs.xlsx", sheet_name="Statement of Financial Position 2024")
        assert load_workbook(path).sheetnames == ["Statement of Financial Position"]


class TestExports:
    """Tests for JSON and CSV exports."""

    def test_json_round_trip(self, layout: IFRSLayout, tmp_path: Path) -> None:
        summary = {"transformations": 2, "changes": 2}
        path = save_layout_json(layout, tmp_path / "bs.json", summary, ReportMetadata(tax_id="301234567"))

        data = load_layout_json(path)

        assert data["summary"] == summary
        assert data["metadata"]["tax_id"] == "301234567"
        assert data["layout"]["statement"] == "balance_sheet"
        assert data["layout"]["named_refs"]["totalAssets"] == layout.named_refs["totalAssets"]
        assert len(data["layout"]["rows"]) == len(layout.rows)

    def test_missing_json(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_layout_json(tmp_path / "missing.json")

    def test_csv(self, layout: IFRSLayout, tmp_path: Path) -> None:
        path = write_layout_csv(layout, tmp_path / "bs.csv")
        frame = pd.read_csv(path)
        assert list(frame.columns) == ["kind", "label", "code", "ref", "Beginning of period", "End of period"]
        assert len(frame) == len(layout.rows)
        totals = frame[frame["ref"] == "totalNonCurrentAssets"]
        assert totals["End of period"].iloc[0] == 900.0
