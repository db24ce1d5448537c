"""The coverage pipeline.

Runs, in order and fail-fast:

1. Clean stale ``<prefix>-*`` artifacts from the deps directory
2. ``cargo build`` then ``cargo test`` with gcov instrumentation
3. Archive ``.gcno``/``.gcda`` files into a store-only zip
4. Convert the archive to LCOV with grcov
5. Fix known LCOV inaccuracies with rust-covfix
6. Render HTML with genhtml (optional)
7. Upload to Codecov (optional)

Any failure raises a ``PipelineError`` and nothing after it runs.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from covtools import archive, cargo, codecov
from covtools.genhtml import genhtml_command
from covtools.grcov import covfix_command, grcov_command
from covtools.runner import REDACTED, CommandRunner, StepResult, format_command

from cargocov.config import PipelineConfig
from cargocov.project import ProjectContext, resolve_project_context
from cargocov.reports.lcov import LcovSummary, format_summary, summarize_lcov

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    project: ProjectContext
    steps: List[StepResult] = field(default_factory=list)
    outputs: Dict[str, str] = field(default_factory=dict)
    archived_files: int = 0
    html_rendered: bool = False
    uploaded: bool = False
    summary: Optional[LcovSummary] = None


def _progress(index: int, total: int, message: str) -> None:
    print(f"\n[{index}/{total}] {message}")


def _step_count(config: PipelineConfig) -> int:
    return 5 + (0 if config.skip_html else 1) + (1 if config.upload else 0)


def plan_commands(config: PipelineConfig, project: ProjectContext) -> List[Tuple[str, str]]:
    """Describe each step without running anything.

    Returns ``(step, description)`` pairs; external commands are shown with
    the token placeholder instead of a real token.
    """
    env = cargo.instrumentation_env(config.rustflags, config.cargo_incremental)
    archive_path = project.path(config.archive_path)

    plan: List[Tuple[str, str]] = [
        ("clean", f"remove {project.path(config.deps_dir) / (project.prefix + '-*')}"),
        ("build", format_command(cargo.cargo_command("build", config.toolchain, config.build_args), env)),
        ("test", format_command(cargo.cargo_command("test", config.toolchain, config.test_args), env)),
        (
            "archive",
            f"zip (stored) {', '.join(archive.coverage_patterns(project.prefix))} -> {archive_path}",
        ),
        (
            "convert",
            " ".join(grcov_command(Path(config.archive_path), Path(config.lcov_path), ".", config.grcov_ignore, config.grcov_binary)),
        ),
        ("fix", " ".join(covfix_command(Path(config.lcov_path), config.covfix_binary))),
    ]
    if not config.skip_html:
        plan.append((
            "html",
            " ".join(genhtml_command(
                Path(config.lcov_path), Path(config.html_dir), config.genhtml_binary, config.branch_coverage,
            )),
        ))
    if config.upload:
        plan.append((
            "upload",
            f"fetch {config.uploader_url}; "
            + " ".join(codecov.uploader_command(Path("<uploader>"), Path(config.lcov_path), REDACTED)),
        ))
    return plan


def run_pipeline(
    config: PipelineConfig,
    root: Optional[Path] = None,
    runner: Optional[CommandRunner] = None,
    env: Optional[Mapping[str, str]] = None,
) -> PipelineResult:
    """Run the whole pipeline for the crate at *root*.

    *env* is only consulted for the upload token (defaults to
    ``os.environ``).

    Raises:
        PipelineError: from whichever step failed first.
    """
    root = root or Path.cwd()
    project = resolve_project_context(root, config.manifest_path)
    print(f"Project: {project.crate_name} (artifact prefix {project.prefix})")

    # Checked up front so a missing token does not cost a full build.
    token = codecov.read_token(os.environ if env is None else env, config.token_env) if config.upload else None

    runner = runner or CommandRunner(cwd=root, timeout=config.command_timeout)
    result = PipelineResult(project=project, steps=runner.history)
    total = _step_count(config)
    deps_dir = project.path(config.deps_dir)
    archive_path = project.path(config.archive_path)
    lcov_path = project.path(config.lcov_path)
    html_dir = project.path(config.html_dir)

    _progress(1, total, f"Cleaning stale artifacts in {config.deps_dir}...")
    cargo.clean_stale_artifacts(deps_dir, project.prefix)

    _progress(2, total, "Building and testing with coverage instrumentation...")
    cargo.build_and_test(
        runner,
        cargo.instrumentation_env(config.rustflags, config.cargo_incremental),
        config.toolchain,
        config.build_args,
        config.test_args,
    )

    _progress(3, total, "Archiving coverage data...")
    result.archived_files = archive.archive_coverage_data(root, project.prefix, archive_path)
    result.outputs["archive"] = str(archive_path)

    _progress(4, total, "Converting to LCOV...")
    runner.run(
        "convert",
        grcov_command(Path(config.archive_path), Path(config.lcov_path), ".", config.grcov_ignore, config.grcov_binary),
    )
    result.outputs["lcov"] = str(lcov_path)

    _progress(5, total, "Fixing LCOV report...")
    runner.run("fix", covfix_command(Path(config.lcov_path), config.covfix_binary))

    if lcov_path.exists():
        result.summary = summarize_lcov(lcov_path)
        logger.info("Coverage: %s", format_summary(result.summary))
    else:
        logger.warning("%s was not produced; skipping summary", lcov_path)

    index = 5
    if config.skip_html:
        logger.info("Skipping HTML report")
    else:
        index += 1
        _progress(index, total, f"Rendering HTML report into {config.html_dir}/...")
        runner.run(
            "html",
            genhtml_command(Path(config.lcov_path), Path(config.html_dir), config.genhtml_binary, config.branch_coverage),
        )
        result.html_rendered = True
        result.outputs["html"] = str(html_dir)

    if config.upload:
        index += 1
        _progress(index, total, "Uploading to Codecov...")
        codecov.upload_report(
            runner,
            Path(config.lcov_path),
            token or "",
            url=config.uploader_url,
            timeout=config.http_timeout,
        )
        result.uploaded = True

    return result
