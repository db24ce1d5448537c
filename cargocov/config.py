"""Pipeline configuration.

Defaults reproduce the classic ``coverage.sh`` workflow.  A YAML file
(``cargocov.yaml`` in the project root, or ``--config``) may override any
field; CLI flags are applied on top by the caller.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from covtools.cargo import DEFAULT_RUSTFLAGS, DEFAULT_TOOLCHAIN
from covtools.codecov import DEFAULT_HTTP_TIMEOUT, DEFAULT_TOKEN_ENV, DEFAULT_UPLOADER_URL
from covtools.errors import ConfigError
from covtools.grcov import DEFAULT_IGNORE

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "cargocov.yaml"
SKIP_HTML_SENTINEL = "ontravis"
UPLOAD_SENTINEL = "sendcov"

_LIST_FIELDS = {"build_args", "test_args", "grcov_ignore"}
_BOOL_FIELDS = {"branch_coverage", "skip_html", "upload"}
_FLOAT_FIELDS = {"http_timeout", "command_timeout"}
_OPTIONAL_FIELDS = {"command_timeout"}

_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}


@dataclass
class PipelineConfig:
    """Every path, program and switch the pipeline uses.

    Paths are relative to the project root unless absolute.
    """

    manifest_path: str = "Cargo.toml"
    deps_dir: str = "target/debug/deps"
    toolchain: str = DEFAULT_TOOLCHAIN
    rustflags: str = DEFAULT_RUSTFLAGS
    cargo_incremental: str = "0"
    build_args: List[str] = field(default_factory=list)
    test_args: List[str] = field(default_factory=list)

    archive_path: str = "ccov.zip"
    lcov_path: str = "lcov.info"
    html_dir: str = "report"
    grcov_ignore: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    grcov_binary: str = "grcov"
    covfix_binary: str = "rust-covfix"
    genhtml_binary: str = "genhtml"
    branch_coverage: bool = True

    skip_html: bool = False
    upload: bool = False
    uploader_url: str = DEFAULT_UPLOADER_URL
    token_env: str = DEFAULT_TOKEN_ENV
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    command_timeout: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def config_from_mapping(data: Mapping[str, Any], base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """Overlay *data* on *base* (or the defaults).

    Keys may use dashes or underscores.  Unknown keys are rejected so a typo
    does not silently fall back to a default.
    """
    config = base or PipelineConfig()
    known = {f.name for f in fields(PipelineConfig)}
    values: Dict[str, Any] = {}
    for raw_key, value in data.items():
        key = str(raw_key).replace("-", "_")
        if key not in known:
            raise ConfigError(f"unknown configuration key: {raw_key}")
        values[key] = _coerce(key, raw_key, value)
    merged = config.to_dict()
    merged.update(values)
    return PipelineConfig(**merged)


def _parse_bool(raw_key: Any, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ConfigError(f"{raw_key} must be true or false, got {value!r}")


def _coerce(key: str, raw_key: Any, value: Any) -> Any:
    """Convert a YAML value to the type of field *key*.

    Raises:
        ConfigError: the value cannot stand for that field.
    """
    if value is None and key in _OPTIONAL_FIELDS:
        return None
    if key in _LIST_FIELDS:
        if isinstance(value, str):
            value = value.split()
        if not isinstance(value, list) or any(isinstance(item, (dict, list)) for item in value):
            raise ConfigError(f"{raw_key} must be a list")
        return [str(item) for item in value]
    if key in _BOOL_FIELDS:
        return _parse_bool(raw_key, value)
    if key in _FLOAT_FIELDS:
        if isinstance(value, bool):
            raise ConfigError(f"{raw_key} must be a number, got {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{raw_key} must be a number, got {value!r}") from exc
        if number <= 0:
            raise ConfigError(f"{raw_key} must be positive, got {value!r}")
        return number
    # Everything else ends up on a command line or in an environment variable.
    if isinstance(value, (bool, dict, list)) or value is None:
        raise ConfigError(f"{raw_key} must be a string, got {value!r}")
    return str(value)


def load_config(path: Optional[str] = None, root: Optional[Path] = None) -> PipelineConfig:
    """Load configuration from YAML.

    An explicit *path* must exist.  Without one, ``cargocov.yaml`` under
    *root* is used when present, otherwise the defaults.
    """
    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"config file not found: {path}")
    else:
        config_path = (root or Path.cwd()) / DEFAULT_CONFIG_FILE
        if not config_path.exists():
            return PipelineConfig()

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"could not parse {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping at the top level")

    logger.debug("Loaded configuration from %s", config_path)
    return config_from_mapping(data)


def resolve_run_mode(mode: Optional[str], upload_arg: Optional[str]) -> Tuple[bool, bool]:
    """Map the two positional arguments to ``(skip_html, upload)``.

    The upload argument only counts when the mode argument was given too.
    """
    skip_html = mode is not None and mode == SKIP_HTML_SENTINEL
    upload = mode is not None and upload_arg is not None and upload_arg == UPLOAD_SENTINEL
    return skip_html, upload


def load_env_file(path: str) -> Dict[str, str]:
    """Load key/value pairs from a .env-style file."""
    if not os.path.exists(path):
        return {}

    env: Dict[str, str] = {}
    with open(path, "r", encoding="utf-8") as handle:
        for raw_line in handle:
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export "):].strip()
            value = value.strip().strip("'").strip('"')
            if key:
                env[key] = value
    return env


def apply_env_defaults(env: Dict[str, str]) -> None:
    """Populate os.environ with defaults from .env."""
    for key, value in env.items():
        os.environ.setdefault(key, value)
