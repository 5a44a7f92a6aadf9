"""Shared utility functions for nsbu_ifrs package."""

from nsbu_ifrs.utils.parsing import (
    is_blank,
    is_numeric_cell,
    normalize_code,
    normalize_text,
    parse_amount,
)

__all__ = [
    "is_blank",
    "is_numeric_cell",
    "normalize_code",
    "normalize_text",
    "parse_amount",
]
