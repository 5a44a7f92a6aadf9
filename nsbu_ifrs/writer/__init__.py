"""Writers for IFRS layouts.

Public API:
    - write_layout_workbook: Layout to .xlsx with live SUM/arithmetic formulas
    - layout_to_frame: Layout to a DataFrame of values and formula strings
    - save_layout_json / load_layout_json: Layout and job summary as JSON
    - write_layout_csv: Flattened layout values as CSV
"""

from nsbu_ifrs.writer.layout_export import load_layout_json, save_layout_json, write_layout_csv
from nsbu_ifrs.writer.workbook_writer import (
    STATEMENT_TITLES,
    calculated_formula,
    layout_to_frame,
    sum_formula,
    write_layout_workbook,
)

__all__ = [
    # Workbook
    "STATEMENT_TITLES",
    "calculated_formula",
    "layout_to_frame",
    "sum_formula",
    "write_layout_workbook",
    # Exports
    "load_layout_json",
    "save_layout_json",
    "write_layout_csv",
]
