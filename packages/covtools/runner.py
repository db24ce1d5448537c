"""Traced, fail-fast execution of external programs.

Each command is echoed to the ``covtools.trace`` logger before it runs, in
the same ``+ cmd args`` shape a shell prints under ``set -x``.  Output is not
captured: the child inherits stdout/stderr so build and test logs stream
straight to the terminal.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import CommandFailed, ToolNotFound

logger = logging.getLogger(__name__)
trace_logger = logging.getLogger("covtools.trace")

REDACTED = "<REDACTED>"
TIMEOUT_EXIT_CODE = 124


@dataclass
class StepResult:
    step: str
    command: List[str]
    returncode: int
    duration_seconds: float

    def to_dict(self, secrets: Iterable[str] = ()) -> Dict[str, object]:
        return {
            "step": self.step,
            "command": redact_command(self.command, secrets),
            "returncode": self.returncode,
            "duration_seconds": round(self.duration_seconds, 3),
        }


def redact_command(command: Sequence[str], secrets: Iterable[str] = ()) -> List[str]:
    hidden = {s for s in secrets if s}
    return [REDACTED if part in hidden else part for part in command]


def format_command(
    command: Sequence[str],
    env: Optional[Dict[str, str]] = None,
    secrets: Iterable[str] = (),
) -> str:
    """Render a command the way ``set -x`` would, secrets masked."""
    secrets = list(secrets)
    assignments = [
        f"{key}={shlex.quote(REDACTED if value in secrets and value else value)}"
        for key, value in (env or {}).items()
    ]
    return " ".join(assignments + [shlex.join(redact_command(command, secrets))])


@dataclass
class CommandRunner:
    """Runs commands from *cwd*, raising on the first non-zero exit."""

    cwd: Path = field(default_factory=Path.cwd)
    timeout: Optional[float] = None
    secrets: List[str] = field(default_factory=list)
    history: List[StepResult] = field(default_factory=list)

    def add_secret(self, value: str) -> None:
        if value and value not in self.secrets:
            self.secrets.append(value)

    def run(
        self,
        step: str,
        command: Sequence[str],
        extra_env: Optional[Dict[str, str]] = None,
    ) -> StepResult:
        """Run *command* and record it.

        ``extra_env`` is layered over a copy of ``os.environ`` for this child
        only; the parent environment is never modified.

        Raises:
            ToolNotFound: the program is not on PATH.
            CommandFailed: non-zero exit, signal death or timeout.
        """
        command = [str(part) for part in command]
        env = {**os.environ, **extra_env} if extra_env else None
        trace_logger.info("+ %s", format_command(command, extra_env, self.secrets))

        started = time.monotonic()
        try:
            proc = subprocess.run(
                command,
                cwd=str(self.cwd),
                env=env,
                timeout=self.timeout,
                check=False,
            )
            returncode = proc.returncode
        except FileNotFoundError as exc:
            raise ToolNotFound(step, command[0]) from exc
        except subprocess.TimeoutExpired:
            logger.error("%s: timed out after %ss", step, self.timeout)
            returncode = TIMEOUT_EXIT_CODE

        if returncode < 0:
            # Killed by a signal; report it the way a shell does.
            returncode = 128 + (-returncode)

        result = StepResult(
            step=step,
            command=command,
            returncode=returncode,
            duration_seconds=time.monotonic() - started,
        )
        self.history.append(result)
        if returncode != 0:
            raise CommandFailed(step, command, returncode)
        logger.debug("%s finished in %.2fs", step, result.duration_seconds)
        return result
