"""Command builder for lcov's genhtml renderer."""

from __future__ import annotations

from pathlib import Path
from typing import List


def genhtml_command(
    report: Path,
    output_dir: Path,
    binary: str = "genhtml",
    branch_coverage: bool = True,
) -> List[str]:
    # "--ignore-errors source" keeps one unreadable source file from
    # aborting the whole report.
    command = [
        binary,
        "-o", f"{output_dir}/",
        "--show-details",
        "--highlight",
        "--ignore-errors", "source",
        "--legend",
        str(report),
    ]
    if branch_coverage:
        command.append("--branch-coverage")
    return command
