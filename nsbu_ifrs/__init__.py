"""nsbu-ifrs: reclassify NSBU financial statements into IFRS presentation.

The package reads national-standard (NSBU) balance sheets, profit and loss
statements and cash flow statements from loosely formatted spreadsheets and
rebuilds them as IFRS layouts whose totals and derived rows are live formulas.

Architecture
------------
* ``reader``: normalized cell grid (``Cell``/``Sheet``) over openpyxl workbooks.
* ``extractor``: structure detection (header, code/label/value columns, unit,
  P&L section boundaries) and one line extractor per statement type.
* ``classification``: versioned, load-time validated code → IFRS tables.
* ``transformer``: template-driven layout with named references and
  cross-checks against the source form's own totals.
* ``writer``: Excel output with ``=SUM``/arithmetic formulas, JSON/CSV exports.
* ``pipeline``: one job end to end, with the job-boundary summary counters.

Configuration
-------------
Tables, keywords and heuristics live as JSON under ``nsbu_ifrs/resources``;
``NSBU_IFRS_CONFIG_DIR`` points at an alternative tree. ``OUTPUT_DIR``,
``LOGS_DIR`` and ``LOG_LEVEL`` may be set in the environment or a ``.env`` file.

Examples
--------
Convert a balance sheet:

    >>> python -m nsbu_ifrs.main report.xlsx --statement balance_sheet

From Python:

    >>> from nsbu_ifrs import convert_workbook
    >>> result = convert_workbook("report.xlsx", "balance_sheet")
    >>> result.layout.values_for("totalAssets")
"""

from nsbu_ifrs.errors import ConversionError, ProcessingWarning
from nsbu_ifrs.pipeline import ConversionResult, ProcessingSummary, convert_sheet, convert_workbook

__version__ = "0.1.0"
__all__ = [
    "ConversionError",
    "ConversionResult",
    "ProcessingSummary",
    "ProcessingWarning",
    "__version__",
    "convert_sheet",
    "convert_workbook",
]
