"""Pytest configuration for nsbu_ifrs tests.

This module provides:
- In-memory NSBU source sheets (balance sheet, P&L, cash flow) built with
  ``Sheet.from_values`` so no workbook files are needed
- A factory for hand-made extraction results used by transformer tests
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from nsbu_ifrs.extractor.types import ExtractionResult, LineItem, StructureDescriptor, ValueColumn
from nsbu_ifrs.reader.cells import Sheet

# =============================================================================
# Source sheets
# =============================================================================

BALANCE_SHEET_ROWS: list[list[object]] = [
    ["ООО «Строй Инвест»", None, None, None],
    ["ИНН 301234567", None, None, None],
    ["Бухгалтерский баланс на 31.12.2024", None, None, None],
    ["тыс. сум", None, None, None],
    ["Актив", "Код стр.", "На начало периода", "На конец периода"],
    ["I. Долгосрочные активы", None, None, None],
    ["Основные средства: первоначальная стоимость", "010", 1000, 1200],
    ["Износ основных средств", "011", 200, 300],
    ["Остаточная стоимость", "012", 800, 900],
    ["Итого по разделу I", "130", 800, 900],
    ["Итого по разделу II", "390", 0, 0],
    ["Всего по активу", "400", 800, 900],
    ["Уставный капитал", "410", 500, 500],
    ["Нераспределенная прибыль", "450", 300, 400],
    ["Итого по разделу I пассива", "480", 800, 900],
    ["Всего по пассиву", "780", 800, 900],
    ["Руководитель", None, "Главный бухгалтер", None],
]

PROFIT_LOSS_ROWS: list[list[object]] = [
    ["ООО «Строй Инвест»", None, None, None],
    ["Отчет о прибылях и убытках", None, None, None],
    ["тыс. сум", None, None, None],
    ["Статья", "Январь", "Февраль", "Март"],
    ["ДОХОДЫ", 500, 520, 540],
    ["Выручка по проектам", None, None, None],
    ["Проект А", 300, 320, 330],
    ["Проект Б", 200, 200, 210],
    ["РАСХОДЫ", -300, -310, -320],
    ["Материалы проекта А", -180, -190, -200],
    ["Субподряд проекта Б", -120, -120, -120],
    ["Накладные проекта", -100, -100, -100],
    ["ФОТ ИТР", -60, -60, -60],
    ["ЕСП ИТР", -10, -10, -10],
    ["Аренда офиса на объекте", -30, -30, -30],
    ["Административно-хозяйственные расходы", -80, -80, -80],
    ["ФОТ АУП", -50, -50, -50],
    ["ГСМ", -10, -10, -10],
    ["Амортизация", -20, -20, -20],
    ["Прочие доходы и расходы", 5, 5, 5],
    ["Процентный доход", 15, 15, 15],
    ["Расходы по процентам", -10, -10, -10],
    ["Налог на прибыль", -12, -13, -14],
    ["Чистая прибыль", 13, 22, 31],
    ["Руководитель", None, None, None],
]
PROFIT_LOSS_BOLD_ROWS = (6,)

CASH_FLOW_ROWS: list[list[object]] = [
    ["Отчет о движении денежных средств", None],
    ["тыс. сум", None],
    ["Показатель", 2024],
    ["Денежные потоки от операционной деятельности", None],
    ["Приток денежных средств", None],
    ["Поступления от покупателей", 5000],
    ["Прочие поступления", 200],
    ["Отток денежных средств", None],
    ["Оплата поставщикам", -3000],
    ["Выплаты персоналу", -1000],
    ["Налог на прибыль уплаченный", -100],
    ["Итого по операционной деятельности", 1100],
    ["Денежные потоки от инвестиционной деятельности", None],
    ["Отток", None],
    ["Приобретение основных средств", -400],
    ["Приобретение нематериальных активов", -50],
    ["Денежные потоки от финансовой деятельности", None],
    ["Приток", None],
    ["Получение кредитов", 600],
    ["Отток", None],
    ["Выплата дивидендов", -200],
    ["Чистое изменение денежных средств", 1050],
    ["Остаток денежных средств на начало периода", 300],
    ["Остаток денежных средств на конец периода", 1350],
    ["Руководитель", None],
]

CODED_CASH_FLOW_ROWS: list[list[object]] = [
    ["Отчет о движении денежных средств", None, None],
    ["тыс. сум", None, None],
    ["Показатель", "Код стр.", 2024],
    ["Операционная деятельность", None, None],
    ["Поступления от покупателей", "010", 5000],
    ["Платежи поставщикам", "020", -3000],
    ["Платежи поставщикам (повтор)", "020", -999],
    ["Финансовая деятельность", None, None],
    ["Получение кредитов", "110", 600],
    ["Итого по финансовой деятельности", "180", 600],
    ["Руководитель", None, None],
]


@pytest.fixture
def balance_sheet_sheet() -> Sheet:
    """Balance sheet with 3-digit row codes, start/end columns, and source totals."""
    return Sheet.from_values("Баланс", BALANCE_SHEET_ROWS)


@pytest.fixture
def profit_loss_sheet() -> Sheet:
    """Monthly P&L with section markers, a bold subheader, and bucketed sections."""
    return Sheet.from_values("ОПУ", PROFIT_LOSS_ROWS, bold_rows=PROFIT_LOSS_BOLD_ROWS)


@pytest.fixture
def cash_flow_sheet() -> Sheet:
    """Label-keyed cash flow statement (no code column)."""
    return Sheet.from_values("ДДС", CASH_FLOW_ROWS)


@pytest.fixture
def coded_cash_flow_sheet() -> Sheet:
    """Cash flow statement carrying its own line codes."""
    return Sheet.from_values("ДДС", CODED_CASH_FLOW_ROWS)


# =============================================================================
# Hand-made extraction results
# =============================================================================

ExtractionFactory = Callable[..., ExtractionResult]


@pytest.fixture
def make_extraction() -> ExtractionFactory:
    """Factory for extraction results without going through detection."""

    def _make(
        statement: str,
        items: Sequence[LineItem],
        periods: Sequence[str] = ("Beginning of period", "End of period"),
        code_kind: str = "row",
    ) -> ExtractionResult:
        structure = StructureDescriptor(
            statement=statement,
            header_row=1,
            code_column=2 if statement == "balance_sheet" else None,
            label_column=1,
            data_start_row=2,
            value_columns=tuple(
                ValueColumn(key=f"p{i}", label=label, column=3 + i) for i, label in enumerate(periods)
            ),
            unit_divisor=1000,
            unit_declared=True,
            scale=1.0,
            last_row=len(items) + 1,
            code_kind=code_kind,
        )
        return ExtractionResult(statement=statement, sheet_name="Sheet1", structure=structure, items=tuple(items))

    return _make
