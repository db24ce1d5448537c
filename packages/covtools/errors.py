"""Exception hierarchy for the coverage toolchain wrappers.

Every failure that should stop the pipeline is a ``PipelineError``.  The
``exit_code`` attribute is what the CLI returns to the shell.
"""

from __future__ import annotations

from typing import List


class PipelineError(Exception):
    """Base class for fatal pipeline failures."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


class ManifestError(PipelineError):
    """Cargo manifest is missing or does not declare a package name."""


class ConfigError(PipelineError):
    """Configuration file or environment is unusable."""


class ArchiveError(PipelineError):
    """Instrumentation data could not be bundled."""


class UploadError(PipelineError):
    """Uploader script could not be fetched."""


class CommandFailed(PipelineError):
    """An external program exited non-zero."""

    def __init__(self, step: str, command: List[str], returncode: int):
        self.step = step
        self.command = list(command)
        self.returncode = returncode
        super().__init__(
            f"{step}: '{command[0]}' exited with status {returncode}",
            exit_code=returncode,
        )


class ToolNotFound(PipelineError):
    """An external program is not installed or not on PATH."""

    def __init__(self, step: str, program: str):
        self.step = step
        self.program = program
        # Same status a shell reports for an unknown command.
        super().__init__(f"{step}: '{program}' not found on PATH", exit_code=127)
