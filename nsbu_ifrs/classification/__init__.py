"""Classification tables: NSBU code to IFRS section, label and sign.

Public API:
    - load_classification_table: Cached, validated table for one statement type
    - ClassificationTable: Immutable lookup passed into the transformer
    - aggregate_account_balances: Fold 4-digit account balances into row codes
    - compile_formula: Linear formula compiler used by calculated rows
"""

from nsbu_ifrs.classification.formula import FormulaError, Term, compile_formula, evaluate_terms
from nsbu_ifrs.classification.table import (
    ClassificationEntry,
    ClassificationTable,
    LayoutBlock,
    SourceTotal,
    account_range_prefix,
    aggregate_account_balances,
    load_classification_table,
)

__all__ = [
    # Tables
    "ClassificationEntry",
    "ClassificationTable",
    "LayoutBlock",
    "SourceTotal",
    "load_classification_table",
    # Accounts
    "account_range_prefix",
    "aggregate_account_balances",
    # Formulas
    "FormulaError",
    "Term",
    "compile_formula",
    "evaluate_terms",
]
