#!/usr/bin/env python3
"""Summarise an LCOV tracefile and optionally enforce a line-coverage floor.

Exit code 0 = report read (and floor met), 1 = missing report or below floor.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from cargocov.reports.lcov import LcovSummary, format_summary, summarize_lcov


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cargocov summary",
        description="Summarise an LCOV report produced by `cargocov run`.",
    )
    parser.add_argument(
        "lcov",
        nargs="?",
        default="lcov.info",
        help="LCOV tracefile (default: lcov.info)",
    )
    parser.add_argument(
        "--fail-under",
        type=float,
        help="Exit 1 if total line coverage is below this percentage",
    )
    parser.add_argument(
        "--per-file",
        action="store_true",
        help="Also list each source file",
    )
    return parser


def print_per_file(summary: LcovSummary) -> None:
    for path, fc in sorted(summary.files.items()):
        print(
            f"  {path:50s} {fc.line_pct:5.1f}% line "
            f"({fc.lines_hit}/{fc.lines_found}), {fc.branch_pct:5.1f}% branch"
        )


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    lcov_path = Path(args.lcov)
    if not lcov_path.exists():
        print(f"Error: LCOV report not found: {lcov_path}", file=sys.stderr)
        print("Run: cargocov run", file=sys.stderr)
        return 1

    summary = summarize_lcov(lcov_path)
    if not summary.files:
        print(f"Error: no coverage records in {lcov_path}", file=sys.stderr)
        return 1

    print(f"{lcov_path}: {len(summary.files)} source files")
    if args.per_file:
        print_per_file(summary)
    print(f"Total: {format_summary(summary)}")

    if args.fail_under is not None and summary.line_pct < args.fail_under:
        print(
            f"✗ line coverage {summary.line_pct:.1f}% is below {args.fail_under:.1f}%",
            file=sys.stderr,
        )
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
