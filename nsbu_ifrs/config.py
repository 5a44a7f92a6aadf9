"""Configuration management for nsbu-ifrs.

This module centralizes file-system paths, environment variables, the JSON
configuration loaders, and the logger factory shared by every stage of the
conversion pipeline.

Configuration files
-------------------
* ``config.json``: shared detection keywords, unit words, signature markers,
  and numeric heuristics (see :class:`Settings`)
* ``<statement>/classification.json``: classification table, source totals,
  and layout template for one statement type
* ``<statement>/extraction.json``: statement-specific header keywords, section
  markers, skip patterns, and bucket rules

Environment variables
---------------------
``NSBU_IFRS_CONFIG_DIR`` points the loaders at an alternative configuration
tree (e.g. a newer table version). ``OUTPUT_DIR`` and ``LOGS_DIR`` override the
default output and log directories; ``LOG_LEVEL`` sets the console log level.
Values may also be supplied through a ``.env`` file in the working directory.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Project paths
PACKAGE_DIR = Path(__file__).parent
PROJECT_ROOT = PACKAGE_DIR.parent
CONFIG_DIR = Path(os.getenv("NSBU_IFRS_CONFIG_DIR", PACKAGE_DIR / "resources"))
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", PROJECT_ROOT / "output"))
LOGS_DIR = Path(os.getenv("LOGS_DIR", PROJECT_ROOT / "logs"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Closed set of statement-type tags accepted at the job boundary
STATEMENT_TYPES = ("balance_sheet", "profit_loss", "cash_flow")


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    """Build a dict from JSON pairs, refusing repeated keys."""
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            msg = f"Duplicate key in configuration: {key!r}"
            raise ValueError(msg)
        result[key] = value
    return result


def load_json_config(path: Path) -> dict[str, Any]:
    """Load a JSON configuration file, rejecting duplicate object keys.

    Parameters
    ----------
    path : Path
        File to load.

    Returns
    -------
    dict[str, Any]
        Parsed JSON object in declaration order.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file repeats a key inside any JSON object.
    """
    if not path.exists():
        msg = f"Configuration file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open(encoding="utf-8") as f:
        return json.load(f, object_pairs_hook=_reject_duplicate_keys)  # type: ignore[no-any-return]


def get_config() -> dict[str, Any]:
    """Load the shared project configuration.

    Returns
    -------
    dict[str, Any]
        Parsed contents of ``config.json``.

    Raises
    ------
    FileNotFoundError
        If ``config.json`` is missing.
    """
    return load_json_config(CONFIG_DIR / "config.json")


def get_statement_config(statement: str, filename: str) -> dict[str, Any]:
    """Load one statement-specific configuration file.

    Parameters
    ----------
    statement : str
        Statement type tag, one of :data:`STATEMENT_TYPES`.
    filename : str
        File inside the statement directory (e.g. ``"classification.json"``).

    Returns
    -------
    dict[str, Any]
        Parsed JSON object.

    Raises
    ------
    ValueError
        If ``statement`` is not a known statement type.
    FileNotFoundError
        If the file does not exist.
    """
    if statement not in STATEMENT_TYPES:
        msg = f"Unknown statement type: {statement}. Valid: {', '.join(STATEMENT_TYPES)}"
        raise ValueError(msg)
    return load_json_config(CONFIG_DIR / statement / filename)


# =============================================================================
# Numeric heuristics
# =============================================================================


@dataclass(frozen=True)
class Settings:
    """Numeric knobs used by detection, extraction, and validation.

    Attributes
    ----------
        header_scan_rows: Rows inspected when looking for headers and units.
        period_scan_rows: Rows inspected when looking for a period header row.
        default_unit_divisor: Divisor assumed when no unit text is found.
        output_unit: Unit every extracted value is normalised to.
        other_operating_distance: Rows past the admin start after which
            "other operating expenses" opens its own section.
        pnl_min_period_columns: Period tokens needed on one P&L header row.
        cash_flow_min_period_columns: Period tokens needed on one cash flow header row.
        sum_tolerance: Absolute difference tolerated by total cross-checks.
    """

    header_scan_rows: int = 20
    period_scan_rows: int = 15
    default_unit_divisor: int = 1000
    output_unit: int = 1000
    other_operating_distance: int = 5
    pnl_min_period_columns: int = 3
    cash_flow_min_period_columns: int = 1
    sum_tolerance: float = 0.5


def get_settings(overrides: dict[str, Any] | None = None) -> Settings:
    """Build :class:`Settings` from ``config.json`` plus optional overrides.

    Unknown keys in the ``settings`` block are ignored so older code can read
    newer configuration trees.
    """
    raw = dict(get_config().get("settings", {}))
    if overrides:
        raw.update(overrides)
    known = {f.name for f in fields(Settings)}
    return Settings(**{k: v for k, v in raw.items() if k in known})


def setup_logging(name: str = "nsbu_ifrs") -> logging.Logger:
    """Configure a console+file logger if not already present.

    Parameters
    ----------
    name : str, optional
        Logger namespace; reused to avoid duplicate handlers.

    Returns
    -------
    logging.Logger
        Logger with a console handler at ``LOG_LEVEL`` and a DEBUG-level daily
        file handler under ``LOGS_DIR``.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(logging.DEBUG)

        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
        console_format = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
        console_handler.setFormatter(console_format)
        logger.addHandler(console_handler)

        # File handler
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        log_filename = f"{datetime.now(UTC).strftime('%Y-%m-%d')}_run.log"
        file_handler = logging.FileHandler(LOGS_DIR / log_filename, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_format = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    return logger
