#!/usr/bin/env python3
"""NSBU → IFRS converter CLI: read a workbook, convert one statement, write outputs.

Usage (from project root):
    python -m nsbu_ifrs.main report.xlsx --statement balance_sheet
    python -m nsbu_ifrs.main pnl.xlsx -t profit_loss --output out/pnl_ifrs.xlsx --json out/pnl.json
    python -m nsbu_ifrs.main cf.xlsx -t cash_flow --sheet "ДДС" --timeout 60 --quiet

CLI Flags:
    INPUT               Source .xlsx workbook
    --statement, -t     balance_sheet | profit_loss | cash_flow (required)
    --output, -o        Target .xlsx (default: OUTPUT_DIR/<input>_<statement>_ifrs.xlsx)
    --json              Also save the layout and job summary as JSON
    --csv               Also save the flattened layout values as CSV
    --sheet             Sheet to convert (default: first non-empty sheet)
    --timeout           Abort extraction after this many seconds
    --values-only       Write computed values instead of live formulas
    --quiet             Don't log the conversion report
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path when running directly
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from nsbu_ifrs.config import OUTPUT_DIR, STATEMENT_TYPES, setup_logging  # noqa: E402
from nsbu_ifrs.errors import CancellationToken, ConversionError  # noqa: E402
from nsbu_ifrs.pipeline import convert_workbook, log_conversion_report  # noqa: E402
from nsbu_ifrs.writer import save_layout_json, write_layout_csv, write_layout_workbook  # noqa: E402

logger = setup_logging(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert an NSBU statement workbook into an IFRS presentation.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m nsbu_ifrs.main report.xlsx -t balance_sheet
  python -m nsbu_ifrs.main pnl.xlsx -t profit_loss --json out/pnl.json
  python -m nsbu_ifrs.main cf.xlsx -t cash_flow --values-only --quiet
        """,
    )
    parser.add_argument("input", type=Path, help="Source .xlsx workbook")
    parser.add_argument("--statement", "-t", required=True, choices=STATEMENT_TYPES, help="Statement type")
    parser.add_argument("--output", "-o", type=Path, help="Target .xlsx file")
    parser.add_argument("--json", type=Path, dest="json_path", help="Also save layout + summary as JSON")
    parser.add_argument("--csv", type=Path, dest="csv_path", help="Also save flattened layout as CSV")
    parser.add_argument("--sheet", help="Sheet to convert (default: first non-empty)")
    parser.add_argument("--timeout", type=float, help="Abort extraction after this many seconds")
    parser.add_argument("--values-only", action="store_true", help="Write values instead of live formulas")
    parser.add_argument("--quiet", action="store_true", help="Don't log the conversion report")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse CLI flags and run one conversion.

    Returns
    -------
    int
        ``0`` on success; ``1`` when the job fails with a conversion error.
    """
    args = build_parser().parse_args(argv)

    if not args.input.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    token = CancellationToken(timeout=args.timeout) if args.timeout else None
    try:
        result = convert_workbook(args.input, args.statement, sheet_name=args.sheet, token=token)
    except ConversionError as e:
        logger.error(f"Conversion failed: {e.reason}")
        return 1

    output = args.output or OUTPUT_DIR / f"{args.input.stem}_{args.statement}_ifrs.xlsx"
    write_layout_workbook(result.layout, output, result.extraction.metadata, formulas=not args.values_only)
    if args.json_path:
        save_layout_json(result.layout, args.json_path, result.summary.to_dict(), result.extraction.metadata)
    if args.csv_path:
        write_layout_csv(result.layout, args.csv_path)

    if not args.quiet:
        log_conversion_report(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
