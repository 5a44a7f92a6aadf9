"""Job-level orchestration: read → detect → extract → classify → transform.

One call converts one source document for one statement type. Nothing is
shared between calls except the cached, read-only classification tables, so
jobs can run concurrently on separate threads or processes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import IO, TYPE_CHECKING, Any

from nsbu_ifrs.classification.table import load_classification_table
from nsbu_ifrs.config import STATEMENT_TYPES, setup_logging
from nsbu_ifrs.errors import NoReadableSheetsError, UnsupportedStatementError
from nsbu_ifrs.extractor.extraction import extract_statement
from nsbu_ifrs.reader.cells import Workbook
from nsbu_ifrs.reader.workbook_reader import read_workbook
from nsbu_ifrs.transformer.transform import transform

if TYPE_CHECKING:
    from pathlib import Path

    from nsbu_ifrs.classification.table import ClassificationTable
    from nsbu_ifrs.config import Settings
    from nsbu_ifrs.errors import CancellationToken, ProcessingWarning
    from nsbu_ifrs.extractor.types import ExtractionResult
    from nsbu_ifrs.reader.cells import Sheet
    from nsbu_ifrs.transformer.layout import IFRSLayout

logger = setup_logging(__name__)

__all__ = [
    "ConversionResult",
    "ProcessingSummary",
    "convert_sheet",
    "convert_workbook",
    "log_conversion_report",
]


@dataclass(frozen=True)
class ProcessingSummary:
    """Counters reported at the job boundary.

    Attributes
    ----------
        transformations: Extracted leaf items fed to the transformer.
        changes: Item rows in the resulting layout.
        original_rows: Source rows walked by the extractor.
        processed_rows: Rows in the resulting layout.
        worksheets: Worksheets in the source workbook.
        warnings: Every warning raised by detection, extraction and transformation.
    """

    transformations: int
    changes: int
    original_rows: int
    processed_rows: int
    worksheets: int = 1
    warnings: tuple[ProcessingWarning, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "transformations": self.transformations,
            "changes": self.changes,
            "originalRows": self.original_rows,
            "processedRows": self.processed_rows,
            "worksheets": self.worksheets,
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass(frozen=True)
class ConversionResult:
    """Layout plus the extraction it came from and the job summary."""

    layout: IFRSLayout
    extraction: ExtractionResult
    summary: ProcessingSummary

    @property
    def warnings(self) -> tuple[ProcessingWarning, ...]:
        return self.summary.warnings


def _check_statement(statement: str) -> None:
    if statement not in STATEMENT_TYPES:
        msg = f"Unsupported statement type: {statement!r}. Valid: {', '.join(STATEMENT_TYPES)}"
        raise UnsupportedStatementError(msg)


def convert_sheet(
    sheet: Sheet,
    statement: str,
    *,
    table: ClassificationTable | None = None,
    settings: Settings | None = None,
    token: CancellationToken | None = None,
) -> ConversionResult:
    """Convert one sheet.

    Raises
    ------
    UnsupportedStatementError
        If ``statement`` is outside the supported set.
    MissingColumnsError
        If the sheet lacks the statement's mandatory columns.
    ClassificationTableError
        If the configured table fails validation.
    ExtractionCancelled
        If ``token`` is cancelled mid-extraction.
    """
    _check_statement(statement)
    table = table if table is not None else load_classification_table(statement)

    extraction = extract_statement(sheet, statement, settings, token)
    layout = transform(extraction, table, settings)

    summary = ProcessingSummary(
        transformations=sum(1 for item in extraction.items if not item.is_subheader),
        changes=len(layout.item_rows),
        original_rows=extraction.rows_scanned,
        processed_rows=len(layout.rows),
        warnings=(*extraction.warnings, *layout.warnings),
    )
    logger.info(
        f"Converted {statement} sheet '{sheet.name}': {summary.transformations} items, "
        f"{summary.processed_rows} layout rows, {len(summary.warnings)} warnings",
    )
    return ConversionResult(layout=layout, extraction=extraction, summary=summary)


def convert_workbook(
    source: Workbook | str | Path | IO[bytes],
    statement: str,
    *,
    sheet_name: str | None = None,
    table: ClassificationTable | None = None,
    settings: Settings | None = None,
    token: CancellationToken | None = None,
) -> ConversionResult:
    """Convert the first non-empty sheet (or ``sheet_name``) of a workbook.

    Parameters
    ----------
    source
        Already-read :class:`Workbook`, or a path / binary stream to read.
    statement
        Statement type tag.
    sheet_name
        Sheet to convert instead of the first non-empty one.
    table
        Classification table override (e.g. a newer table version).
    settings
        Heuristic overrides.
    token
        Optional cancellation token.

    Returns
    -------
    ConversionResult
        Layout, extraction and job summary.

    Raises
    ------
    NoReadableSheetsError
        If the workbook cannot be read, has no content, or lacks ``sheet_name``.
    UnsupportedStatementError
        If ``statement`` is outside the supported set.
    """
    _check_statement(statement)
    workbook = source if isinstance(source, Workbook) else read_workbook(source)

    if sheet_name is not None:
        sheet = workbook.get(sheet_name)
        if sheet is None or sheet.is_empty:
            msg = f"Sheet '{sheet_name}' is missing or empty. Available: {', '.join(workbook.sheet_names)}"
            raise NoReadableSheetsError(msg)
    else:
        sheet = workbook.first_non_empty()
        if sheet is None:
            msg = f"Workbook {workbook.source or '<memory>'} has no readable sheets"
            raise NoReadableSheetsError(msg)

    result = convert_sheet(sheet, statement, table=table, settings=settings, token=token)
    return replace(result, summary=replace(result.summary, worksheets=len(workbook.sheets)))


def log_conversion_report(result: ConversionResult) -> None:
    """Log a human-readable summary of one conversion."""
    layout = result.layout
    logger.info("=" * 60)
    logger.info(f"{layout.statement} (table v{layout.table_version}), periods: {', '.join(layout.periods)}")
    for ref, index in layout.named_refs.items():
        values = ", ".join(f"{v:,.2f}" for v in layout.rows[index].values)
        logger.info(f"  {ref:<28} {values}")
    for warning in result.warnings:
        where = f" (row {warning.row})" if warning.row is not None else ""
        logger.info(f"  [{warning.severity}] {warning.message}{where}")
    logger.info("=" * 60)
