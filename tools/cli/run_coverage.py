#!/usr/bin/env python3
"""Build, test and report coverage for the Cargo project in the current directory.

This command runs the complete coverage pipeline:
1. Clean stale build artifacts for the crate
2. Instrumented cargo build + cargo test
3. Archive gcov data, convert with grcov, fix with rust-covfix
4. Render HTML with genhtml (unless skipped)
5. Upload to Codecov (if requested)

Positional arguments keep the classic coverage.sh calling convention:

    cargocov run                    # LCOV + HTML
    cargocov run ontravis           # LCOV only (CI)
    cargocov run ontravis sendcov   # LCOV only, then upload

Output:
- ccov.zip, lcov.info and report/ in the project root
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from covtools.errors import PipelineError
from covtools.runner import CommandRunner

from cargocov.config import (
    SKIP_HTML_SENTINEL,
    UPLOAD_SENTINEL,
    PipelineConfig,
    apply_env_defaults,
    load_config,
    load_env_file,
    resolve_run_mode,
)
from cargocov.pipeline import PipelineResult, plan_commands, run_pipeline
from cargocov.project import resolve_project_context
from cargocov.reports.lcov import format_summary
from cargocov.reports.manifest import build_run_manifest, now_utc, write_run_manifest

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cargocov run",
        description="Produce (and optionally upload) a gcov coverage report for a Cargo project.",
    )
    parser.add_argument(
        "mode",
        nargs="?",
        help=f"'{SKIP_HTML_SENTINEL}' skips the HTML report; any other value renders it",
    )
    parser.add_argument(
        "upload_flag",
        nargs="?",
        metavar="upload",
        help=f"'{UPLOAD_SENTINEL}' uploads lcov.info to Codecov (requires MODE)",
    )
    parser.add_argument(
        "--skip-html",
        action="store_true",
        help="Skip the genhtml report (same as MODE=ontravis)",
    )
    parser.add_argument(
        "--upload",
        action="store_true",
        help="Upload the report to Codecov (same as UPLOAD=sendcov)",
    )
    parser.add_argument(
        "--config",
        help="Path to a cargocov.yaml config file (default: ./cargocov.yaml if present)",
    )
    parser.add_argument(
        "--manifest-out",
        help="Directory to write run_manifest.json into",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print what would be done without executing",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=LOG_LEVELS,
        help="Logging level (default: INFO)",
    )
    return parser


def resolve_config(args: argparse.Namespace, root: Path) -> PipelineConfig:
    """Load the YAML config and apply the command-line switches on top."""
    config = load_config(args.config, root)
    skip_html, upload = resolve_run_mode(args.mode, args.upload_flag)
    config.skip_html = config.skip_html or skip_html or args.skip_html
    config.upload = config.upload or upload or args.upload
    return config


def _print_plan(config: PipelineConfig, root: Path) -> None:
    project = resolve_project_context(root, config.manifest_path)
    print("DRY RUN - would run:")
    print(f"  crate: {project.crate_name}")
    print(f"  prefix: {project.prefix}")
    for step, description in plan_commands(config, project):
        print(f"  - {step}: {description}")
    if config.skip_html:
        print("  - html: skipped")
    if not config.upload:
        print("  - upload: skipped")


def _print_summary(result: PipelineResult) -> None:
    print(f"\n{'='*60}")
    print("COVERAGE COMPLETE")
    print(f"{'='*60}")
    print(f"  Crate:   {result.project.crate_name}")
    print(f"  Archive: {result.outputs.get('archive')} ({result.archived_files} files)")
    print(f"  LCOV:    {result.outputs.get('lcov')}")
    if result.html_rendered:
        print(f"  HTML:    {result.outputs.get('html')}/index.html")
    if result.uploaded:
        print("  Upload:  sent to Codecov")
    if result.summary is not None:
        print(f"  {format_summary(result.summary)}")


def _write_manifest(
    out_dir: str,
    run_id: str,
    started_at: str,
    argv: List[str],
    config: PipelineConfig,
    runner: CommandRunner,
    result: Optional[PipelineResult],
    exit_code: int,
    root: Path,
) -> str:
    project: Dict[str, Any] = {}
    outputs: Dict[str, str] = {}
    coverage: Optional[Dict[str, Any]] = None
    if result is not None:
        project = result.project.to_dict()
        outputs = dict(result.outputs)
        if result.summary is not None:
            coverage = result.summary.to_dict()

    manifest = build_run_manifest(
        run_id=run_id,
        started_at=started_at,
        command_name="run",
        argv=argv,
        project=project,
        steps=[step.to_dict(runner.secrets) for step in runner.history],
        output_paths=outputs,
        status="succeeded" if exit_code == 0 else "failed",
        exit_code=exit_code,
        effective_config=config.to_dict(),
        coverage=coverage,
        cwd=root,
    )
    return write_run_manifest(manifest, Path(out_dir))


def main(argv: Optional[list[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    root = Path.cwd()
    apply_env_defaults(load_env_file(os.path.join(str(root), ".env")))

    parser = build_parser()
    args, extra = parser.parse_known_args(argv)
    unknown_options = [arg for arg in extra if arg.startswith("-")]
    if unknown_options:
        parser.error(f"unrecognized arguments: {' '.join(unknown_options)}")

    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )
    if extra:
        logger.debug("Ignoring extra arguments: %s", extra)

    try:
        config = resolve_config(args, root)
        if args.dry_run:
            _print_plan(config, root)
            return 0
    except PipelineError as exc:
        logger.error("%s", exc)
        return exc.exit_code

    run_id = uuid.uuid4().hex[:8]
    started_at = now_utc()
    runner = CommandRunner(cwd=root, timeout=config.command_timeout)
    result: Optional[PipelineResult] = None
    exit_code = 0

    try:
        result = run_pipeline(config, root, runner=runner)
    except PipelineError as exc:
        logger.error("%s", exc)
        exit_code = exc.exit_code

    if args.manifest_out:
        manifest_path = _write_manifest(
            args.manifest_out, run_id, started_at, argv, config, runner, result, exit_code, root,
        )
        print(f"Manifest: {manifest_path}")

    if result is not None:
        _print_summary(result)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
