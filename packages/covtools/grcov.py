"""Command builders for the grcov conversion and rust-covfix fix-up."""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

DEFAULT_IGNORE = ("/*", "tests/*")


def grcov_command(
    archive: Path,
    output: Path,
    source_root: str = ".",
    ignore: Sequence[str] = DEFAULT_IGNORE,
    binary: str = "grcov",
) -> List[str]:
    command = [
        binary,
        str(archive),
        "-s", source_root,
        "-t", "lcov",
        "--llvm",
        "--branch",
        "--ignore-not-existing",
    ]
    for pattern in ignore:
        command.extend(["--ignore", pattern])
    command.extend(["-o", str(output)])
    return command


def covfix_command(report: Path, binary: str = "rust-covfix") -> List[str]:
    """rust-covfix rewrites the report in place (input and output are the same file)."""
    return [binary, "-o", str(report), str(report)]
