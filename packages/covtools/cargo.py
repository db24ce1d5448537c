"""Cargo side of the pipeline: stale artifact cleanup and the
instrumented build and test runs."""

from __future__ import annotations

import glob
import logging
import shutil
from pathlib import Path
from typing import Dict, List, Sequence

from .runner import CommandRunner, StepResult

logger = logging.getLogger(__name__)

DEFAULT_TOOLCHAIN = "nightly"
DEFAULT_RUSTFLAGS = (
    "-Zprofile -Ccodegen-units=1 -Copt-level=0 -Clink-dead-code "
    "-Coverflow-checks=off -Zpanic_abort_tests -C panic=abort"
)


def instrumentation_env(
    rustflags: str = DEFAULT_RUSTFLAGS,
    incremental: str = "0",
) -> Dict[str, str]:
    """Variables that switch rustc into gcov-profiling mode."""
    return {
        "CARGO_INCREMENTAL": incremental,
        "RUSTFLAGS": rustflags,
    }


def clean_stale_artifacts(deps_dir: Path, prefix: str) -> List[Path]:
    """Remove ``<prefix>-*`` entries from *deps_dir*.

    Old test binaries and their ``.gcno`` notes would otherwise be picked up
    by the archive step alongside fresh ones.  A missing directory or no
    matches is fine.
    """
    if not prefix:
        raise ValueError("refusing to clean with an empty artifact prefix")
    if not deps_dir.is_dir():
        logger.debug("No deps directory at %s, nothing to clean", deps_dir)
        return []

    removed: List[Path] = []
    for path in sorted(deps_dir.glob(f"{glob.escape(prefix)}-*")):
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        removed.append(path)
    logger.info("Removed %d stale artifact(s) matching %s-* in %s", len(removed), prefix, deps_dir)
    return removed


def cargo_command(
    subcommand: str,
    toolchain: str = DEFAULT_TOOLCHAIN,
    extra_args: Sequence[str] = (),
) -> List[str]:
    command = ["cargo"]
    if toolchain:
        command.append(f"+{toolchain}")
    command.append(subcommand)
    command.extend(extra_args)
    return command


def build_and_test(
    runner: CommandRunner,
    env: Dict[str, str],
    toolchain: str = DEFAULT_TOOLCHAIN,
    build_args: Sequence[str] = (),
    test_args: Sequence[str] = (),
) -> List[StepResult]:
    """Build, then test, both under *env*.  The first failure propagates."""
    return [
        runner.run("build", cargo_command("build", toolchain, build_args), extra_env=env),
        runner.run("test", cargo_command("test", toolchain, test_args), extra_env=env),
    ]
