"""LCOV tracefile summary.

Reads the report produced by grcov/rust-covfix and totals line, branch and
function coverage.  Several records for the same source file (one per test
binary) are merged by taking the highest hit count per line and branch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class LcovFileSummary:
    path: str
    lines: Dict[int, int] = field(default_factory=dict)
    branches: Dict[Tuple[int, int, int], int] = field(default_factory=dict)
    functions_found: int = 0
    functions_hit: int = 0

    @property
    def lines_found(self) -> int:
        return len(self.lines)

    @property
    def lines_hit(self) -> int:
        return sum(1 for hits in self.lines.values() if hits > 0)

    @property
    def branches_found(self) -> int:
        return len(self.branches)

    @property
    def branches_hit(self) -> int:
        return sum(1 for taken in self.branches.values() if taken > 0)

    @property
    def line_pct(self) -> float:
        return _pct(self.lines_hit, self.lines_found)

    @property
    def branch_pct(self) -> float:
        return _pct(self.branches_hit, self.branches_found)


@dataclass
class LcovSummary:
    files: Dict[str, LcovFileSummary] = field(default_factory=dict)

    @property
    def lines_found(self) -> int:
        return sum(f.lines_found for f in self.files.values())

    @property
    def lines_hit(self) -> int:
        return sum(f.lines_hit for f in self.files.values())

    @property
    def branches_found(self) -> int:
        return sum(f.branches_found for f in self.files.values())

    @property
    def branches_hit(self) -> int:
        return sum(f.branches_hit for f in self.files.values())

    @property
    def functions_found(self) -> int:
        return sum(f.functions_found for f in self.files.values())

    @property
    def functions_hit(self) -> int:
        return sum(f.functions_hit for f in self.files.values())

    @property
    def line_pct(self) -> float:
        return _pct(self.lines_hit, self.lines_found)

    @property
    def branch_pct(self) -> float:
        return _pct(self.branches_hit, self.branches_found)

    @property
    def function_pct(self) -> float:
        return _pct(self.functions_hit, self.functions_found)

    def to_dict(self) -> Dict[str, object]:
        return {
            "files": len(self.files),
            "lines_found": self.lines_found,
            "lines_hit": self.lines_hit,
            "line_pct": round(self.line_pct, 2),
            "branches_found": self.branches_found,
            "branches_hit": self.branches_hit,
            "branch_pct": round(self.branch_pct, 2),
            "functions_found": self.functions_found,
            "functions_hit": self.functions_hit,
            "function_pct": round(self.function_pct, 2),
        }


def _pct(hit: int, found: int) -> float:
    if found == 0:
        return 0.0
    return hit / found * 100


def _count(value: str) -> int:
    # BRDA uses "-" for a branch whose block never ran.
    return 0 if value == "-" else int(value)


def parse_lcov(text: str) -> LcovSummary:
    """Total the records in *text*.  Records with unparseable numbers are skipped."""
    summary = LcovSummary()
    current = None
    skipped = 0

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue

        try:
            current = _apply_record(summary, current, line)
        except ValueError:
            skipped += 1

    if skipped:
        logger.warning("Skipped %d malformed LCOV record(s)", skipped)
    return summary


def _apply_record(
    summary: LcovSummary, current: Optional[LcovFileSummary], line: str
) -> Optional[LcovFileSummary]:
    """Fold one record into *summary* and return the file now being read."""
    if line.startswith("SF:"):
        path = line[3:]
        return summary.files.setdefault(path, LcovFileSummary(path=path))
    if current is None:
        return None
    if line == "end_of_record":
        return None

    if line.startswith("DA:"):
        parts = line[3:].split(",")
        if len(parts) >= 2:
            line_no = int(parts[0])
            hits = _count(parts[1])
            current.lines[line_no] = max(current.lines.get(line_no, 0), hits)
    elif line.startswith("BRDA:"):
        parts = line[5:].split(",")
        if len(parts) >= 4:
            key = (int(parts[0]), int(parts[1]), int(parts[2]))
            current.branches[key] = max(current.branches.get(key, 0), _count(parts[3]))
    elif line.startswith("FNF:"):
        current.functions_found = max(current.functions_found, int(line[4:]))
    elif line.startswith("FNH:"):
        current.functions_hit = max(current.functions_hit, int(line[4:]))
    return current


def summarize_lcov(path: Path) -> LcovSummary:
    """Parse the tracefile at *path*.  Raises FileNotFoundError if absent."""
    return parse_lcov(path.read_text(encoding="utf-8", errors="replace"))


def format_summary(summary: LcovSummary) -> str:
    return (
        f"lines: {summary.lines_hit}/{summary.lines_found} ({summary.line_pct:.1f}%), "
        f"branches: {summary.branches_hit}/{summary.branches_found} ({summary.branch_pct:.1f}%), "
        f"functions: {summary.functions_hit}/{summary.functions_found} ({summary.function_pct:.1f}%)"
    )
