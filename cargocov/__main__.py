"""Module entrypoint for running cargocov CLI commands.

This is the canonical CLI entrypoint for cargocov.
Usage: python -m cargocov <command> [options]
"""

from __future__ import annotations

import sys
from typing import Optional

from tools.cli.lcov_summary import main as summary_main
from tools.cli.run_coverage import main as run_main


def print_usage() -> None:
    """Print CLI usage information."""
    print("cargocov - gcov coverage reports for Cargo projects")
    print("")
    print("Usage: cargocov <command> [options]")
    print("       python -m cargocov <command> [options]")
    print("")
    print("Commands:")
    print("  run [MODE] [UPLOAD]   Build, test, convert and report coverage")
    print("  summary [LCOV]        Summarise an existing LCOV report")
    print("")
    print("Options:")
    print("  -h, --help        Show this help message")
    print("  --version         Show version information")
    print("")
    print("Examples:")
    print("  cargocov run")
    print("  cargocov run ontravis sendcov")
    print("  cargocov run --skip-html --manifest-out artifacts/")
    print("  cargocov summary lcov.info --fail-under 80")


def print_version() -> None:
    """Print version information."""
    from cargocov import __version__
    print(f"cargocov {__version__}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entrypoint."""
    if argv is None:
        argv = sys.argv[1:]

    if len(argv) < 1:
        print_usage()
        return 1

    command = argv[0]

    if command in ("-h", "--help"):
        print_usage()
        return 0

    if command in ("-v", "--version"):
        print_version()
        return 0

    if command == "run":
        return run_main(argv[1:])
    if command == "summary":
        return summary_main(argv[1:])

    print(f"Unknown command: {command}", file=sys.stderr)
    print("Run 'cargocov --help' for usage.", file=sys.stderr)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
