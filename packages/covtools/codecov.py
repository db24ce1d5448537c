"""Upload an LCOV report with the Codecov bash uploader.

The uploader is fetched fresh on every upload and run with ``bash``; what it
does with the report (and how it fails) is up to the script.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Mapping, Optional
from urllib.parse import urlsplit

import requests

from .errors import ConfigError, UploadError
from .http_client import HttpClient
from .runner import CommandRunner, StepResult

logger = logging.getLogger(__name__)

DEFAULT_UPLOADER_URL = "https://codecov.io/bash"
DEFAULT_TOKEN_ENV = "CODECOV_TOKEN"
DEFAULT_HTTP_TIMEOUT = 20.0


def read_token(env: Optional[Mapping[str, str]] = None, name: str = DEFAULT_TOKEN_ENV) -> str:
    """Return the upload token.  Unset is an error; an empty value is passed through."""
    env = os.environ if env is None else env
    if name not in env:
        raise ConfigError(f"{name} is not set; it is required to upload coverage")
    return env[name]


def fetch_uploader(
    url: str = DEFAULT_UPLOADER_URL,
    client: Optional[HttpClient] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> str:
    """Download the uploader script and return its source."""
    parts = urlsplit(url)
    if client is None:
        client = HttpClient(base_url=f"{parts.scheme}://{parts.netloc}", timeout=timeout)
    path = f"{parts.path}?{parts.query}" if parts.query else parts.path
    try:
        script = client.get_text(path)
    except requests.RequestException as exc:
        raise UploadError(f"could not fetch uploader from {url}: {exc}") from exc
    if not script.strip():
        raise UploadError(f"uploader fetched from {url} is empty")
    logger.debug("Fetched uploader (%d bytes) from %s", len(script), url)
    return script


def uploader_command(script: Path, report: Path, token: str, shell: str = "bash") -> List[str]:
    return [shell, str(script), "-f", str(report), "-t", token]


def upload_report(
    runner: CommandRunner,
    report: Path,
    token: str,
    url: str = DEFAULT_UPLOADER_URL,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> StepResult:
    """Fetch the uploader and run it against *report*.

    The token is registered as a runner secret so it never shows up in the
    command trace or the run manifest.
    """
    runner.add_secret(token)
    script = fetch_uploader(url, timeout=timeout)

    handle = tempfile.NamedTemporaryFile(
        "w", suffix=".sh", prefix="codecov-", delete=False, encoding="utf-8"
    )
    try:
        with handle:
            handle.write(script)
        return runner.run("upload", uploader_command(Path(handle.name), report, token))
    finally:
        os.unlink(handle.name)
