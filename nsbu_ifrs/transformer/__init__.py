"""IFRS transformer: classified line items to an ordered IFRS layout.

Public API:
    - transform: Generic template-driven transformer
    - transform_balance_sheet / transform_profit_loss / transform_cash_flow
    - IFRSLayout, IFRSSection, LayoutRow: Layout data structures
    - check_source_totals, check_balance: Cross-validation helpers
"""

from nsbu_ifrs.transformer.layout import ROW_KINDS, IFRSLayout, IFRSSection, LayoutRow
from nsbu_ifrs.transformer.transform import (
    transform,
    transform_balance_sheet,
    transform_cash_flow,
    transform_profit_loss,
)
from nsbu_ifrs.transformer.validation import TotalCheckResult, check_balance, check_source_totals

__all__ = [
    # Transformer
    "transform",
    "transform_balance_sheet",
    "transform_cash_flow",
    "transform_profit_loss",
    # Layout
    "ROW_KINDS",
    "IFRSLayout",
    "IFRSSection",
    "LayoutRow",
    # Validation
    "TotalCheckResult",
    "check_balance",
    "check_source_totals",
]
