"""Bundle gcov data files (``.gcno``/``.gcda``) into a store-only zip."""

from __future__ import annotations

import fnmatch
import logging
import os
import zipfile
from pathlib import Path
from typing import Iterable, List, Sequence

from .errors import ArchiveError

logger = logging.getLogger(__name__)

# zip(1) exits with 12 when it is given nothing to do.
NOTHING_TO_ARCHIVE_EXIT_CODE = 12


def coverage_patterns(prefix: str) -> List[str]:
    """Basename globs for the crate's own units and its integration tests."""
    return [f"{prefix}*.gc*", "test-*.gc*"]


def find_coverage_files(root: Path, patterns: Sequence[str]) -> List[Path]:
    """Walk *root* and return every file whose basename matches a pattern.

    Results are in a stable, sorted order so archives are reproducible.
    """
    matches: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            if any(fnmatch.fnmatchcase(name, pattern) for pattern in patterns):
                matches.append(Path(dirpath) / name)
    return matches


def write_archive(archive_path: Path, files: Iterable[Path], root: Path) -> int:
    """Write *files* to *archive_path* uncompressed and return the count.

    The archive is always rebuilt from scratch.  A file that vanished since
    discovery aborts the whole archive rather than producing a partial one.
    """
    files = list(files)
    if not files:
        raise ArchiveError(
            f"no instrumentation data files found under {root}",
            exit_code=NOTHING_TO_ARCHIVE_EXIT_CODE,
        )

    partial = archive_path.with_name(archive_path.name + ".partial")
    try:
        with zipfile.ZipFile(partial, "w", compression=zipfile.ZIP_STORED) as bundle:
            for path in files:
                arcname = Path(os.path.relpath(path, root)).as_posix()
                bundle.write(path, arcname)
    except FileNotFoundError as exc:
        partial.unlink(missing_ok=True)
        raise ArchiveError(f"{exc.filename} disappeared while archiving") from exc
    except OSError as exc:
        partial.unlink(missing_ok=True)
        raise ArchiveError(f"could not write {archive_path}: {exc}") from exc

    os.replace(partial, archive_path)
    logger.info("Archived %d coverage file(s) into %s", len(files), archive_path)
    return len(files)


def archive_coverage_data(root: Path, prefix: str, archive_path: Path) -> int:
    files = find_coverage_files(root, coverage_patterns(prefix))
    return write_archive(archive_path, files, root)
