"""Statement extraction entry point: detect the structure, then extract lines."""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING

from nsbu_ifrs.config import STATEMENT_TYPES, Settings, get_settings, setup_logging
from nsbu_ifrs.errors import MissingColumnsError, UnsupportedStatementError, WarningLog
from nsbu_ifrs.extractor.balance_sheet import extract_balance_sheet
from nsbu_ifrs.extractor.cash_flow import extract_cash_flow
from nsbu_ifrs.extractor.profit_loss import extract_profit_loss
from nsbu_ifrs.extractor.structure import detect_metadata, detect_structure
from nsbu_ifrs.extractor.types import ExtractionResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from nsbu_ifrs.errors import CancellationToken
    from nsbu_ifrs.extractor.rules import StatementRules
    from nsbu_ifrs.extractor.types import LineItem, StructureDescriptor
    from nsbu_ifrs.reader.cells import Sheet

logger = setup_logging(__name__)

_EXTRACTORS: dict[str, Callable[..., list[LineItem]]] = {
    "balance_sheet": extract_balance_sheet,
    "profit_loss": extract_profit_loss,
    "cash_flow": extract_cash_flow,
}


def extract_statement(
    sheet: Sheet,
    statement: str,
    settings: Settings | None = None,
    token: CancellationToken | None = None,
    structure: StructureDescriptor | None = None,
    rules: StatementRules | None = None,
) -> ExtractionResult:
    """Detect the layout of ``sheet`` and extract its line items.

    Parameters
    ----------
    sheet
        Normalized source sheet; never mutated.
    statement
        One of ``"balance_sheet"``, ``"profit_loss"``, ``"cash_flow"``.
    settings
        Numeric heuristics; defaults to the configured ones.
    token
        Optional cancellation token checked once per row.
    structure
        Pre-computed descriptor (skips detection when given).
    rules
        Statement-specific rules used by both detection and extraction;
        defaults to the configured ones.

    Returns
    -------
    ExtractionResult
        Items, metadata, and every warning raised by detection and extraction.

    Raises
    ------
    UnsupportedStatementError
        If ``statement`` is not a supported statement type.
    MissingColumnsError
        If the statement's mandatory columns were not found.
    ExtractionCancelled
        If ``token`` is cancelled or its deadline passes mid-extraction.
    """
    if statement not in STATEMENT_TYPES:
        msg = f"Unsupported statement type: {statement!r}. Valid: {', '.join(STATEMENT_TYPES)}"
        raise UnsupportedStatementError(msg)

    settings = settings or get_settings()
    structure = structure or detect_structure(sheet, statement, settings, statement_rules=rules)
    if structure.missing:
        raise MissingColumnsError(statement, structure.missing, sheet.name)

    warnings = WarningLog(logger)
    extract = _EXTRACTORS[statement]
    # The balance sheet extractor reads codes only; its rules drive detection
    if rules is not None and statement != "balance_sheet":
        extract = partial(extract, rules=rules)
    items = extract(sheet, structure, warnings, token)
    metadata = detect_metadata(sheet, settings)

    return ExtractionResult(
        statement=statement,
        sheet_name=sheet.name,
        structure=structure,
        items=tuple(items),
        metadata=metadata,
        warnings=(*structure.warnings, *warnings),
        rows_scanned=max(structure.last_row - structure.data_start_row + 1, 0),
    )
