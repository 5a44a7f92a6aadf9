"""Shared parsing utilities for NSBU spreadsheet text and numbers.

NSBU reports mix Russian, Uzbek and English header text and format amounts
with spaces, commas or dots as thousands separators, a literal dash for zero,
and parentheses for negatives.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Any

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_DASHES = {"-", "–", "—", "−"}
_NUMBER = re.compile(r"\d+(\.\d+)?")
_THOUSANDS_COMMA = re.compile(r"\d{1,3}(,\d{3})+")
_CODE = re.compile(r"\d{1,4}")


def normalize_text(value: Any) -> str:
    """Lower-case, collapse whitespace, and strip a cell value.

    Examples
    --------
    - "  Код  стр. " -> "код стр."
    - None -> ""
    """
    if value is None:
        return ""
    text = str(value).replace("\xa0", " ").replace("ё", "е").replace("Ё", "Е")
    return _WHITESPACE.sub(" ", text).strip().lower()


def is_blank(value: Any) -> bool:
    """True for empty cells and whitespace-only strings."""
    return value is None or (isinstance(value, str) and not value.strip())


def parse_amount(value: Any) -> float | None:
    """Parse a numeric cell tolerating NSBU formatting conventions.

    Handles:
    - Numbers as-is (ints, floats; NaN is treated as unparseable)
    - A literal dash or blank text meaning zero
    - Spaces, non-breaking spaces and apostrophes as thousands separators
    - "1,234,567" (comma thousands) and "1234,56" (comma decimal)
    - "(1 234)" and "-1 234" as negatives

    Parameters
    ----------
    value
        Resolved cell value (cached formula results already applied).

    Returns
    -------
    float | None
        Parsed value, ``0.0`` for dash/blank, or None when the cell holds text
        that is not a number.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
        return None if math.isnan(number) else number
    if isinstance(value, datetime | date):
        return None

    cleaned = str(value).strip()
    if not cleaned or cleaned in _DASHES:
        return 0.0

    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative = True
        cleaned = cleaned[1:-1].strip()
    if cleaned[:1] in _DASHES:
        negative = not negative
        cleaned = cleaned[1:]

    # Thousands separators: spaces of any kind and apostrophes
    cleaned = re.sub(r"[\s']", "", cleaned)

    if "," in cleaned and "." in cleaned:
        # Whichever separator comes last is the decimal point
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", "") if _THOUSANDS_COMMA.fullmatch(cleaned) else cleaned.replace(",", ".")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")

    if not _NUMBER.fullmatch(cleaned):
        logger.debug("Could not parse number: %r", value)
        return None

    result = float(cleaned)
    return -result if negative else result


def is_numeric_cell(value: Any) -> bool:
    """True when a cell holds a real number (not blank, not a dash)."""
    if is_blank(value):
        return False
    if isinstance(value, str) and value.strip() in _DASHES:
        return False
    return parse_amount(value) is not None


def normalize_code(value: Any, width: int = 3) -> str | None:
    """Normalize a line or account code cell.

    Row codes shorter than ``width`` are zero-padded ("10" -> "010"); four-digit
    account codes are kept as-is. Returns None for anything that is not a code.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    text = str(value).strip().rstrip(".")
    if not _CODE.fullmatch(text):
        return None
    return text.zfill(width) if len(text) < width else text
