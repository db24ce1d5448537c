"""Report artifacts for cargocov runs.

Provides:
- LCOV summary (lcov.py)
- Run Manifest (manifest.py)
"""

from cargocov.reports.lcov import LcovSummary, summarize_lcov
from cargocov.reports.manifest import build_run_manifest

__all__ = ["LcovSummary", "build_run_manifest", "summarize_lcov"]
