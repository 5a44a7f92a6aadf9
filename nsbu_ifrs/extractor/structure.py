"""Heuristic structure detection over loosely formatted NSBU sheets.

The detector scans a bounded window of header rows to find the code, label and
value columns, the unit of measurement, and the last meaningful row before the
signature block. For P&L sheets it also resolves section boundaries in one
scan. It never raises: anything unresolved falls back to a safe default and a
warning is attached to the returned descriptor. Missing mandatory columns are
listed in ``missing`` for the extractor to turn into a hard failure.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import date, datetime
from typing import TYPE_CHECKING

from nsbu_ifrs.config import Settings, get_settings, setup_logging
from nsbu_ifrs.errors import WarningLog
from nsbu_ifrs.extractor.rules import (
    DetectionRules,
    get_balance_sheet_rules,
    get_detection_rules,
    get_profit_loss_rules,
)
from nsbu_ifrs.extractor.types import ReportMetadata, SectionBoundaries, StructureDescriptor, ValueColumn
from nsbu_ifrs.utils.parsing import is_numeric_cell, normalize_code

if TYPE_CHECKING:
    from collections.abc import Callable

    from nsbu_ifrs.extractor.rules import BalanceSheetRules, CashFlowRules, ProfitLossRules, StatementRules
    from nsbu_ifrs.reader.cells import Cell, Sheet

logger = setup_logging(__name__)

__all__ = [
    "detect_last_row",
    "detect_metadata",
    "detect_period_columns",
    "detect_section_boundaries",
    "detect_structure",
    "detect_unit_divisor",
]


# =============================================================================
# Shared helpers
# =============================================================================


def _contains_word(text: str, word: str) -> bool:
    """Match ``word`` as a prefix at a word boundary inside ``text``."""
    return re.search(rf"(?<!\w){re.escape(word)}", text) is not None


def _find_keyword_cell(sheet: Sheet, keywords: tuple[str, ...], last_row: int) -> tuple[int, int] | None:
    """Return ``(row, col)`` of the first header cell containing any keyword."""
    for r, cells in sheet.iter_rows(1, last_row):
        for cell in cells:
            text = cell.normalized
            if text and any(k in text for k in keywords):
                return r, cell.col
    return None


def detect_unit_divisor(
    sheet: Sheet,
    settings: Settings,
    rules: DetectionRules,
    warnings: WarningLog,
) -> tuple[int, bool]:
    """Find the declared unit of measurement in the header window.

    Magnitude words are checked largest first (billion, million, thousand) so
    "млрд" is never mistaken for a smaller unit.

    Returns
    -------
    tuple[int, bool]
        ``(divisor, declared)``; when no unit text is found the configured
        default is returned with ``declared=False`` and a warning is recorded.
    """
    header_text = " ".join(sheet.row_text(r) for r in range(1, min(settings.header_scan_rows, sheet.row_count) + 1))
    for divisor, words in rules.unit_words:
        if any(_contains_word(header_text, w) for w in words):
            logger.debug(f"Unit divisor {divisor} declared in header")
            return divisor, True

    warnings.add(
        f"No unit of measurement found in the first {settings.header_scan_rows} rows; "
        f"assuming values are in units of {settings.default_unit_divisor}",
        code="unit_defaulted",
    )
    return settings.default_unit_divisor, False


def detect_last_row(sheet: Sheet, start_row: int, rules: DetectionRules) -> int:
    """Row before the first signature/footer marker, else the sheet's last row."""
    for r in range(max(start_row, 1), sheet.row_count + 1):
        text = sheet.row_text(r)
        if text and any(marker in text for marker in rules.signature_markers):
            logger.debug(f"Signature block starts at row {r}")
            return r - 1
    return sheet.row_count


def detect_metadata(sheet: Sheet, settings: Settings, rules: DetectionRules | None = None) -> ReportMetadata:
    """Company name, taxpayer id, and report date from the header block."""
    rules = rules or get_detection_rules()
    company: str | None = None
    tax_id: str | None = None
    report_date: str | None = None
    for r, cells in sheet.iter_rows(1, settings.header_scan_rows):
        row_text = sheet.row_text(r)
        if not row_text:
            continue
        if company is None:
            for cell in cells:
                if cell.normalized and any(_contains_word(cell.normalized, k) for k in rules.company_keywords):
                    company = cell.text
                    break
        if tax_id is None and any(_contains_word(row_text, k) for k in rules.tax_id_keywords):
            match = rules.tax_id_pattern.search(row_text)
            if match:
                tax_id = match.group(0)
        if report_date is None:
            match = rules.date_pattern.search(row_text)
            if match:
                report_date = match.group(0)
    return ReportMetadata(company_name=company, tax_id=tax_id, report_date=report_date)


def _first_numeric_column(sheet: Sheet, after_col: int, start_row: int, end_row: int) -> int | None:
    """Leftmost column right of ``after_col`` holding any number in the data rows."""
    for col in range(after_col + 1, sheet.column_count + 1):
        for r in range(start_row, end_row + 1):
            if is_numeric_cell(sheet.cell(r, col).value):
                return col
    return None


def _detect_code_kind(sheet: Sheet, code_column: int, start_row: int, end_row: int) -> str:
    """``"account"`` when four-digit account codes outnumber form row codes."""
    row_codes = 0
    account_codes = 0
    for r in range(start_row, end_row + 1):
        raw = sheet.cell(r, code_column).value
        code = normalize_code(raw)
        if code is None:
            continue
        if len(code) == 4:
            account_codes += 1
        else:
            row_codes += 1
    return "account" if account_codes > row_codes else "row"


# =============================================================================
# Period columns (P&L and cash flow)
# =============================================================================


def _period_label(cell: Cell, rules: DetectionRules) -> str | None:
    """Header label when the cell is a month, quarter, year, or date token."""
    if isinstance(cell.value, datetime | date):
        return cell.value.strftime("%Y-%m")
    if isinstance(cell.value, float) and cell.value.is_integer():
        return str(int(cell.value)) if rules.is_period_label(str(int(cell.value))) else None
    return cell.text if rules.is_period_label(cell.normalized) else None


def detect_period_columns(
    sheet: Sheet,
    settings: Settings,
    rules: DetectionRules,
    min_columns: int,
) -> tuple[int | None, tuple[ValueColumn, ...]]:
    """Find the earliest row holding at least ``min_columns`` period tokens.

    Returns
    -------
    tuple
        ``(header_row, columns)``; ``(None, ())`` when no row qualifies.
    """
    scan_end = min(settings.period_scan_rows, sheet.row_count)
    for r, cells in sheet.iter_rows(1, scan_end):
        labels = [(cell.col, _period_label(cell, rules)) for cell in cells if not cell.is_empty]
        # Numeric years only count on a row whose every number is a year
        if any(label is None and is_numeric_cell(sheet.cell(r, col).value) for col, label in labels):
            labels = [(col, label) for col, label in labels if not isinstance(sheet.cell(r, col).value, int | float)]
        columns = tuple(
            ValueColumn(key=f"p{i}", label=label, column=col)
            for i, (col, label) in enumerate((col, label) for col, label in labels if label is not None)
        )
        if len(columns) >= min_columns:
            logger.debug(f"Period header at row {r}: {[c.label for c in columns]}")
            return r, columns
    return None, ()


def _label_column(sheet: Sheet, before_col: int | None, start_row: int, end_row: int) -> int | None:
    """Leftmost column (left of the values) holding non-numeric text in data rows."""
    last_col = (before_col - 1) if before_col else sheet.column_count
    for col in range(1, last_col + 1):
        for r in range(start_row, end_row + 1):
            cell = sheet.cell(r, col)
            if not cell.is_empty and not is_numeric_cell(cell.value):
                return col
    return None


# =============================================================================
# Profit and loss section boundaries
# =============================================================================


def _resolve_other_operating(rows: list[int], admin: int | None, distance: int) -> tuple[int | None, bool]:
    """Pick the "other operating expenses" row and whether it opens a section.

    The first occurrence more than ``distance`` rows past the admin start is a
    section header; failing that, the first occurrence is an admin line.
    """
    if not rows:
        return None, False
    if admin is None:
        return rows[0], True
    section_row = next((r for r in rows if r > admin + distance), None)
    if section_row is not None:
        return section_row, True
    return rows[0], False


def detect_section_boundaries(
    sheet: Sheet,
    label_column: int,
    start_row: int,
    last_row: int,
    settings: Settings,
    warnings: WarningLog,
    rules: ProfitLossRules | None = None,
) -> SectionBoundaries:
    """Resolve P&L section boundaries with a single scan over the label column.

    Pass 1 (here) records the first row matching each section marker, and
    every row matching "other operating expenses". That label is ambiguous: an
    occurrence is a section of its own when it sits more than
    ``settings.other_operating_distance`` rows past the admin start, otherwise
    an ordinary admin line. Pass 2 (the extractor) uses the result purely as
    slice ranges.
    """
    rules = rules or get_profit_loss_rules()
    found: dict[str, int] = {}
    other_op_rows: list[int] = []
    for r in range(start_row, last_row + 1):
        label = sheet.cell(r, label_column).text
        if not label:
            continue
        for name, pattern in rules.section_markers.items():
            if not pattern.search(label):
                continue
            if name == "other_operating":
                other_op_rows.append(r)
            elif name not in found:
                found[name] = r

    revenue = found.get("revenue")
    if revenue is None:
        revenue = start_row
        warnings.add(f"Revenue marker not found; revenue assumed to start at row {start_row}", code="missing_marker")
    for name in ("cogs", "overhead", "admin", "other_income", "income_tax"):
        if name not in found:
            warnings.add(f"Section marker '{name}' not found; section treated as empty", code="missing_marker")

    admin = found.get("admin")
    other_op, is_section = _resolve_other_operating(other_op_rows, admin, settings.other_operating_distance)
    if other_op is not None:
        resolution = "its own section" if is_section else "an admin line item"
        warnings.add(
            f"'Other operating expenses' at row {other_op} treated as {resolution} "
            f"(admin starts at {admin}, distance threshold {settings.other_operating_distance})",
            row=other_op,
            severity="info",
            code="ambiguous_boundary",
        )

    return SectionBoundaries(
        revenue=revenue,
        cogs=found.get("cogs"),
        overhead=found.get("overhead"),
        admin=admin,
        other_operating=other_op,
        other_operating_is_section=is_section,
        other_income=found.get("other_income"),
        income_tax=found.get("income_tax"),
        gen_services=found.get("gen_services"),
        last_row=last_row,
    )


# =============================================================================
# Per-statement detectors
# =============================================================================


def _detect_balance_sheet(
    sheet: Sheet,
    settings: Settings,
    rules: DetectionRules,
    warnings: WarningLog,
    bs_rules: BalanceSheetRules | None = None,
) -> StructureDescriptor:
    bs_rules = bs_rules or get_balance_sheet_rules()
    window = min(settings.header_scan_rows, sheet.row_count)
    missing: list[str] = []

    code_cell = _find_keyword_cell(sheet, rules.code_keywords, window)
    code_column = code_cell[1] if code_cell else None
    header_row = code_cell[0] if code_cell else None
    if code_column is None:
        missing.append("code")

    label_column = 1
    data_start_row = (header_row + 1) if header_row else 1
    label_cell = None
    for r, cells in sheet.iter_rows(1, window):
        label_cell = next((c for c in cells if c.normalized in bs_rules.label_keywords), None)
        if label_cell is not None:
            label_column = label_cell.col
            data_start_row = r + 1
            header_row = header_row or r
            break
    if label_cell is None:
        warnings.add("Label column header ('Актив') not found; using the first column", code="label_fallback")

    last_row = detect_last_row(sheet, data_start_row, rules)

    value_columns: list[ValueColumn] = []
    taken = {code_column, label_column}
    for key, keywords in bs_rules.value_keywords.items():
        cell_pos = _find_keyword_cell(sheet, keywords, window)
        if cell_pos is None or cell_pos[1] in taken:
            warnings.add(f"Value column '{key}' not found in header", code="period_fallback")
            continue
        taken.add(cell_pos[1])
        value_columns.append(ValueColumn(key=key, label=bs_rules.value_labels.get(key, key), column=cell_pos[1]))
    value_columns.sort(key=lambda c: c.column)

    if not value_columns and code_column is not None:
        col = _first_numeric_column(sheet, code_column, data_start_row, last_row)
        if col is not None:
            value_columns.append(ValueColumn(key="end", label=bs_rules.value_labels.get("end", "end"), column=col))
            warnings.add(f"No start/end headers found; using column {col} as the only value column",
                         code="period_fallback")
    if not value_columns:
        missing.append("value")

    code_kind = _detect_code_kind(sheet, code_column, data_start_row, last_row) if code_column else "row"
    divisor, declared = detect_unit_divisor(sheet, settings, rules, warnings)
    return StructureDescriptor(
        statement="balance_sheet",
        header_row=header_row,
        code_column=code_column,
        label_column=label_column,
        data_start_row=data_start_row,
        value_columns=tuple(value_columns),
        unit_divisor=divisor,
        unit_declared=declared,
        scale=divisor / settings.output_unit,
        last_row=last_row,
        code_kind=code_kind,
        missing=tuple(missing),
    )


def _detect_periodic(
    statement: str,
    sheet: Sheet,
    settings: Settings,
    rules: DetectionRules,
    warnings: WarningLog,
    min_columns: int,
    code_cell: tuple[int, int] | None = None,
) -> tuple[int | None, int, int | None, int, int, tuple[ValueColumn, ...], list[str]]:
    """Shared period-column detection for P&L and cash flow sheets.

    ``code_cell`` is the ``(row, col)`` of a line-code header. Its column never
    becomes a value column, and its row serves as the header row when no
    period header is found.
    """
    header_row, value_columns = detect_period_columns(sheet, settings, rules, min_columns)
    if header_row is None and code_cell is not None:
        header_row = code_cell[0]
    data_start_row = (header_row + 1) if header_row else 1
    last_row = detect_last_row(sheet, data_start_row, rules)
    missing: list[str] = []

    first_value_col = value_columns[0].column if value_columns else None
    label_column = _label_column(sheet, first_value_col, data_start_row, last_row)
    if label_column is None:
        label_column = 1
        warnings.add("No label column found; using the first column", code="label_fallback")

    code_column = code_cell[1] if code_cell else None
    if code_column == label_column:
        code_column = None
    value_columns = tuple(c for c in value_columns if c.column != code_column)

    if not value_columns:
        col = _first_numeric_column(sheet, max(label_column, code_column or 0), data_start_row, last_row)
        if col is not None:
            value_columns = (ValueColumn(key="p0", label="Total", column=col),)
            warnings.add(
                f"No {statement} period header found; using column {col} as a single 'Total' period",
                code="period_fallback",
            )
    if not value_columns:
        missing.append("value")
    return header_row, label_column, code_column, data_start_row, last_row, value_columns, missing


def _detect_profit_loss(
    sheet: Sheet,
    settings: Settings,
    rules: DetectionRules,
    warnings: WarningLog,
    pnl_rules: ProfitLossRules | None = None,
) -> StructureDescriptor:
    header_row, label_column, _, data_start_row, last_row, value_columns, missing = _detect_periodic(
        "profit_loss", sheet, settings, rules, warnings, settings.pnl_min_period_columns
    )
    boundaries = detect_section_boundaries(
        sheet, label_column, data_start_row, last_row, settings, warnings, pnl_rules
    )
    divisor, declared = detect_unit_divisor(sheet, settings, rules, warnings)
    return StructureDescriptor(
        statement="profit_loss",
        header_row=header_row,
        code_column=None,
        label_column=label_column,
        data_start_row=data_start_row,
        value_columns=value_columns,
        unit_divisor=divisor,
        unit_declared=declared,
        scale=divisor / settings.output_unit,
        last_row=last_row,
        boundaries=boundaries,
        missing=tuple(missing),
    )


def _detect_cash_flow(
    sheet: Sheet,
    settings: Settings,
    rules: DetectionRules,
    warnings: WarningLog,
    _cf_rules: CashFlowRules | None = None,
) -> StructureDescriptor:
    # Cash flow markers and label rules only matter to the extractor
    code_cell = _find_keyword_cell(sheet, rules.code_keywords, min(settings.header_scan_rows, sheet.row_count))
    header_row, label_column, code_column, data_start_row, last_row, value_columns, missing = _detect_periodic(
        "cash_flow", sheet, settings, rules, warnings, settings.cash_flow_min_period_columns, code_cell
    )
    divisor, declared = detect_unit_divisor(sheet, settings, rules, warnings)
    return StructureDescriptor(
        statement="cash_flow",
        header_row=header_row,
        code_column=code_column,
        label_column=label_column,
        data_start_row=data_start_row,
        value_columns=value_columns,
        unit_divisor=divisor,
        unit_declared=declared,
        scale=divisor / settings.output_unit,
        last_row=last_row,
        missing=tuple(missing),
    )


_DETECTORS: dict[str, Callable[..., StructureDescriptor]] = {
    "balance_sheet": _detect_balance_sheet,
    "profit_loss": _detect_profit_loss,
    "cash_flow": _detect_cash_flow,
}


def detect_structure(
    sheet: Sheet,
    statement: str,
    settings: Settings | None = None,
    rules: DetectionRules | None = None,
    statement_rules: StatementRules | None = None,
) -> StructureDescriptor:
    """Detect the layout of ``sheet`` for the given statement type.

    Parameters
    ----------
    sheet
        Normalized sheet grid.
    statement
        One of ``"balance_sheet"``, ``"profit_loss"``, ``"cash_flow"``.
    settings
        Numeric heuristics; defaults to :func:`nsbu_ifrs.config.get_settings`.
    rules
        Shared detection keywords; defaults to the configured ones.
    statement_rules
        Statement-specific rules (balance sheet header keywords, P&L section
        markers); defaults to the configured ones.

    Returns
    -------
    StructureDescriptor
        Descriptor with fallbacks applied and the warnings they produced.

    Raises
    ------
    ValueError
        Only for an unknown statement tag (a programming error, not a sheet issue).
    """
    detector = _DETECTORS.get(statement)
    if detector is None:
        msg = f"Unknown statement type: {statement}"
        raise ValueError(msg)

    settings = settings or get_settings()
    rules = rules or get_detection_rules()
    warnings = WarningLog(logger)
    descriptor = detector(sheet, settings, rules, warnings, statement_rules)

    logger.info(
        f"Detected {statement} structure in '{sheet.name}': header row {descriptor.header_row}, "
        f"{len(descriptor.value_columns)} value column(s), unit {descriptor.unit_divisor}, "
        f"rows {descriptor.data_start_row}-{descriptor.last_row}"
    )
    return replace(descriptor, warnings=tuple(warnings))
