"""JSON and CSV exports of a layout and its job summary.

JSON files carry the full layout (rows, named references, warnings) so a
downstream consumer can rebuild formulas without re-running extraction.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from nsbu_ifrs.config import OUTPUT_DIR, setup_logging

if TYPE_CHECKING:
    from pathlib import Path

    from nsbu_ifrs.extractor.types import ReportMetadata
    from nsbu_ifrs.transformer.layout import IFRSLayout

logger = setup_logging(__name__)

__all__ = [
    "load_layout_json",
    "save_layout_json",
    "write_layout_csv",
]


def save_layout_json(
    layout: IFRSLayout,
    path: Path | None = None,
    summary: dict[str, Any] | None = None,
    metadata: ReportMetadata | None = None,
) -> Path:
    """Save a layout (plus optional summary and metadata) as JSON.

    Parameters
    ----------
    layout
        Transformer output.
    path
        Target file; defaults to ``OUTPUT_DIR/<statement>_ifrs.json``.
    summary
        Job counters as produced by ``ProcessingSummary.to_dict()``.
    metadata
        Report header fields.

    Returns
    -------
    Path
        Location of the written JSON file.
    """
    if path is None:
        path = OUTPUT_DIR / f"{layout.statement}_ifrs.json"
    path.parent.mkdir(parents=True, exist_ok=True)

    output: dict[str, Any] = {"layout": layout.to_dict()}
    if summary is not None:
        output["summary"] = summary
    if metadata is not None:
        output["metadata"] = metadata.to_dict()

    with path.open("w", encoding="utf-8") as f:
        json.dump(output, f, indent=2, ensure_ascii=False, default=str)

    logger.info(f"Saved layout JSON: {path}")
    return path


def load_layout_json(path: Path) -> dict[str, Any]:
    """Load a JSON file written by :func:`save_layout_json`."""
    if not path.exists():
        msg = f"Layout file not found: {path}"
        raise FileNotFoundError(msg)
    with path.open(encoding="utf-8") as f:
        return json.load(f)  # type: ignore[no-any-return]


def write_layout_csv(layout: IFRSLayout, path: Path | None = None) -> Path:
    """Write the flattened layout (one line per row, computed values) to CSV."""
    if path is None:
        path = OUTPUT_DIR / f"{layout.statement}_ifrs.csv"
    path.parent.mkdir(parents=True, exist_ok=True)

    layout.to_dataframe().to_csv(path, index=False, encoding="utf-8")

    logger.info(f"Saved layout CSV: {path}")
    return path
