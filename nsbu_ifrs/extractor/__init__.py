"""Structure detection and line extraction for NSBU statements.

Public API:
    - extract_statement: Detect structure and extract items for one sheet
    - detect_structure: Locate header, code/label/value columns, units, boundaries
    - LineItem, StructureDescriptor, ExtractionResult: Extraction data types
"""

from nsbu_ifrs.extractor.balance_sheet import extract_balance_sheet
from nsbu_ifrs.extractor.cash_flow import extract_cash_flow
from nsbu_ifrs.extractor.extraction import extract_statement
from nsbu_ifrs.extractor.profit_loss import extract_profit_loss
from nsbu_ifrs.extractor.structure import (
    detect_metadata,
    detect_section_boundaries,
    detect_structure,
    detect_unit_divisor,
)
from nsbu_ifrs.extractor.types import (
    ExtractionResult,
    LineItem,
    ReportMetadata,
    SectionBoundaries,
    StructureDescriptor,
    ValueColumn,
)

__all__ = [
    # Entry points
    "extract_statement",
    "extract_balance_sheet",
    "extract_profit_loss",
    "extract_cash_flow",
    # Structure detection
    "detect_structure",
    "detect_metadata",
    "detect_section_boundaries",
    "detect_unit_divisor",
    # Types
    "ExtractionResult",
    "LineItem",
    "ReportMetadata",
    "SectionBoundaries",
    "StructureDescriptor",
    "ValueColumn",
]
