"""Wrappers around the Rust coverage toolchain (cargo, grcov, rust-covfix,
genhtml, the Codecov uploader)."""

from .errors import (
    ArchiveError,
    CommandFailed,
    ConfigError,
    ManifestError,
    PipelineError,
    ToolNotFound,
    UploadError,
)
from .http_client import HttpClient
from .runner import CommandRunner, StepResult

__all__ = [
    "ArchiveError",
    "CommandFailed",
    "CommandRunner",
    "ConfigError",
    "HttpClient",
    "ManifestError",
    "PipelineError",
    "StepResult",
    "ToolNotFound",
    "UploadError",
]
