"""Detection keywords and row-classification rules loaded from configuration.

Every keyword list, skip pattern and bucket predicate used by the detector and
the extractors lives in JSON under ``resources/``. This module compiles them
once into frozen objects so the rules can be unit-tested and extended without
touching extraction control flow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from nsbu_ifrs.config import get_config, get_statement_config

__all__ = [
    "BalanceSheetRules",
    "BucketRule",
    "CashFlowRules",
    "DetectionRules",
    "LabelRule",
    "ProfitLossRules",
    "StatementRules",
    "first_matching",
    "get_balance_sheet_rules",
    "get_cash_flow_rules",
    "get_detection_rules",
    "get_profit_loss_rules",
    "matches_any",
]


def _compile(pattern: str, *, ignore_case: bool = True) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE if ignore_case else 0)


def matches_any(patterns: tuple[re.Pattern[str], ...], text: str) -> bool:
    """True if any pattern matches the (stripped) label text."""
    return any(p.search(text) for p in patterns)


@dataclass(frozen=True)
class BucketRule:
    """Ordered ``(predicate, tag)`` pair; the first matching rule wins."""

    pattern: re.Pattern[str]
    category: str

    def matches(self, label: str) -> bool:
        return bool(self.pattern.search(label))


def first_matching(rules: tuple[BucketRule, ...], label: str) -> str | None:
    """Return the category of the first rule matching ``label``."""
    return next((rule.category for rule in rules if rule.matches(label)), None)


# =============================================================================
# Shared detection keywords
# =============================================================================


@dataclass(frozen=True)
class DetectionRules:
    """Keywords shared by every statement type (from ``config.json``)."""

    unit_words: tuple[tuple[int, tuple[str, ...]], ...]
    signature_markers: tuple[str, ...]
    code_keywords: tuple[str, ...]
    month_patterns: tuple[re.Pattern[str], ...]
    quarter_pattern: re.Pattern[str]
    year_pattern: re.Pattern[str]
    company_keywords: tuple[str, ...]
    tax_id_keywords: tuple[str, ...]
    tax_id_pattern: re.Pattern[str]
    date_pattern: re.Pattern[str]

    def is_period_label(self, text: str) -> bool:
        """True for month, quarter, or year header tokens (normalized text)."""
        if not text:
            return False
        if any(p.search(text) for p in self.month_patterns):
            return True
        return bool(self.quarter_pattern.search(text) or self.year_pattern.search(text))


@lru_cache(maxsize=1)
def get_detection_rules() -> DetectionRules:
    """Compile the shared detection keywords from ``config.json``."""
    config = get_config()
    periods = config["periods"]
    metadata = config["metadata"]
    return DetectionRules(
        unit_words=tuple((int(u["divisor"]), tuple(u["words"])) for u in config["units"]),
        signature_markers=tuple(config["signature_markers"]),
        code_keywords=tuple(config["code_keywords"]),
        month_patterns=tuple(_compile(p) for p in periods["months"]),
        quarter_pattern=_compile(periods["quarter"]),
        year_pattern=_compile(periods["year"]),
        company_keywords=tuple(metadata["company_keywords"]),
        tax_id_keywords=tuple(metadata["tax_id_keywords"]),
        tax_id_pattern=re.compile(metadata["tax_id_pattern"]),
        date_pattern=re.compile(metadata["date_pattern"]),
    )


# =============================================================================
# Statement rules
# =============================================================================


@dataclass(frozen=True)
class BalanceSheetRules:
    label_keywords: tuple[str, ...]
    value_keywords: dict[str, tuple[str, ...]]
    value_labels: dict[str, str]


@lru_cache(maxsize=1)
def get_balance_sheet_rules() -> BalanceSheetRules:
    raw = get_statement_config("balance_sheet", "extraction.json")
    return BalanceSheetRules(
        label_keywords=tuple(raw["label_keywords"]),
        value_keywords={key: tuple(words) for key, words in raw["value_columns"].items()},
        value_labels=dict(raw["value_labels"]),
    )


@dataclass(frozen=True)
class ProfitLossRules:
    """Section markers, skip patterns and bucket rules for P&L sheets.

    Markers and skip patterns are case-sensitive: upper-case "РАСХОДЫ" opens a
    section while "Расходы на технику" is an ordinary line. Bucket rules are not.

    Attributes
    ----------
        section_markers: Section name -> marker pattern (first match wins).
        global_skip: Patterns dropped in every section (ratios, EBITDA, totals).
        section_skip: Per-section aggregate patterns for files lacking bold.
        bucket_rules: Per-section ordered rules reducing rows into buckets.
    """

    section_markers: dict[str, re.Pattern[str]]
    global_skip: tuple[re.Pattern[str], ...]
    section_skip: dict[str, tuple[re.Pattern[str], ...]]
    bucket_rules: dict[str, tuple[BucketRule, ...]] = field(default_factory=dict)

    def bucket_categories(self) -> list[str]:
        """Distinct bucket categories in rule declaration order."""
        seen: list[str] = []
        for rules in self.bucket_rules.values():
            for rule in rules:
                if rule.category not in seen:
                    seen.append(rule.category)
        return seen


def _bucket_rules(raw: dict[str, list[dict[str, str]]]) -> dict[str, tuple[BucketRule, ...]]:
    return {
        section: tuple(BucketRule(_compile(r["pattern"]), r["category"]) for r in rules)
        for section, rules in raw.items()
    }


@lru_cache(maxsize=1)
def get_profit_loss_rules() -> ProfitLossRules:
    raw = get_statement_config("profit_loss", "extraction.json")
    skips: dict[str, Any] = raw["skip_patterns"]
    return ProfitLossRules(
        section_markers={name: _compile(p, ignore_case=False) for name, p in raw["section_markers"].items()},
        global_skip=tuple(_compile(p, ignore_case=False) for p in skips["global"]),
        section_skip={
            name: tuple(_compile(p, ignore_case=False) for p in pats) for name, pats in skips.items() if name != "global"
        },
        bucket_rules=_bucket_rules(raw["bucket_rules"]),
    )


@dataclass(frozen=True)
class LabelRule:
    """Maps a cash flow label to a line code, optionally scoped to activity/direction."""

    pattern: re.Pattern[str]
    code: str
    activity: str | None = None
    direction: str | None = None

    def applies(self, label: str, activity: str | None, direction: str | None) -> bool:
        if self.activity is not None and self.activity != activity:
            return False
        if self.direction is not None and self.direction != direction:
            return False
        return bool(self.pattern.search(label))


@dataclass(frozen=True)
class CashFlowRules:
    activity_markers: dict[str, tuple[str, ...]]
    direction_markers: dict[str, tuple[str, ...]]
    skip_patterns: tuple[re.Pattern[str], ...]
    label_rules: tuple[LabelRule, ...]
    fallback_codes: dict[str, str]

    def code_for_label(self, label: str, activity: str | None, direction: str | None) -> str | None:
        """Resolve a label to a line code; falls back per activity and direction."""
        for rule in self.label_rules:
            if rule.applies(label, activity, direction):
                return rule.code
        if activity is None or direction is None:
            return None
        return self.fallback_codes.get(f"{activity}.{direction}")


@lru_cache(maxsize=1)
def get_cash_flow_rules() -> CashFlowRules:
    raw = get_statement_config("cash_flow", "extraction.json")
    return CashFlowRules(
        activity_markers={k: tuple(v) for k, v in raw["activity_markers"].items()},
        direction_markers={k: tuple(v) for k, v in raw["direction_markers"].items()},
        skip_patterns=tuple(_compile(p) for p in raw["skip_patterns"]),
        label_rules=tuple(
            LabelRule(_compile(r["pattern"]), r["code"], r.get("activity"), r.get("direction"))
            for r in raw["label_rules"]
        ),
        fallback_codes=dict(raw["fallback_codes"]),
    )


# Any one statement's rules, as accepted by detection and extraction entry points
StatementRules = BalanceSheetRules | ProfitLossRules | CashFlowRules
