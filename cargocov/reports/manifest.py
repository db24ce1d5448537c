"""Run Manifest builder.

Produces a JSON manifest capturing run provenance: timing, command,
crate identity, executed steps, output paths, config hash, and version
information.
"""

from __future__ import annotations

import hashlib
import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import cargocov

MANIFEST_VERSION = "1.0.0"
MANIFEST_FILENAME = "run_manifest.json"


def now_utc() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _duration_seconds(started: str, finished: str) -> float:
    """Compute seconds between two ISO timestamps."""
    try:
        t0 = datetime.fromisoformat(started)
        t1 = datetime.fromisoformat(finished)
        return round((t1 - t0).total_seconds(), 3)
    except (ValueError, TypeError):
        return 0.0


def _git_commit(cwd: Optional[Path] = None) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True, text=True, timeout=5,
            cwd=str(cwd) if cwd else None,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode == 0:
        return result.stdout.strip() or None
    return None


def stable_config_hash(config: Dict[str, Any]) -> str:
    """SHA-256 of deterministically-serialised config dict.

    Secrets (keys containing 'password', 'secret', 'token', 'key')
    are redacted before hashing.
    """
    redacted = redact_secrets(config)
    canonical = json.dumps(redacted, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def redact_secrets(obj: Any) -> Any:
    secret_keys = {"password", "secret", "token", "key", "api_key"}
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            # token_env names a variable, it is not a secret itself
            if k != "token_env" and any(s in k.lower() for s in secret_keys):
                out[k] = "<REDACTED>"
            else:
                out[k] = redact_secrets(v)
        return out
    if isinstance(obj, list):
        return [redact_secrets(item) for item in obj]
    return obj


def build_run_manifest(
    run_id: str,
    started_at: str,
    command_name: str,
    argv: List[str],
    project: Dict[str, str],
    steps: List[Dict[str, Any]],
    output_paths: Dict[str, str],
    status: str = "succeeded",
    exit_code: int = 0,
    effective_config: Optional[Dict[str, Any]] = None,
    finished_at: Optional[str] = None,
    coverage: Optional[Dict[str, Any]] = None,
    cwd: Optional[Path] = None,
) -> Dict[str, Any]:
    """Build a Run Manifest dict.

    Parameters
    ----------
    run_id : str
        Unique run identifier.
    started_at : str
        ISO-8601 timestamp when the run started.
    command_name : str
        CLI command name (e.g. "run").
    argv : list[str]
        Safe CLI arguments (secrets should already be stripped).
    project : dict
        ``ProjectContext.to_dict()`` of the crate, or ``{}`` when the
        manifest could not be read.
    steps : list[dict]
        Executed commands, in order, as ``StepResult.to_dict()``.
    output_paths : dict
        Mapping of path labels to filesystem paths.
    status : str
        "succeeded" or "failed".
    exit_code : int
        Process exit code for the run.
    effective_config : dict | None
        Config dict to hash (secrets auto-redacted).
    finished_at : str | None
        ISO-8601 timestamp when the run finished.  If ``None``,
        ``now_utc()`` is used.
    coverage : dict | None
        ``LcovSummary.to_dict()`` when a report was produced.
    """
    fin = finished_at or now_utc()

    config_hash = ""
    if effective_config:
        config_hash = stable_config_hash(effective_config)

    return {
        "manifest_version": MANIFEST_VERSION,
        "run_id": run_id,
        "started_at": started_at,
        "finished_at": fin,
        "duration_seconds": _duration_seconds(started_at, fin),
        "command_name": command_name,
        "argv": argv,
        "status": status,
        "exit_code": exit_code,
        "project": project,
        "steps": steps,
        "output_paths": output_paths,
        "coverage": coverage or {},
        "effective_config_hash_sha256": config_hash,
        "cargocov_version": cargocov.__version__,
        "git_commit": _git_commit(cwd),
    }


def write_run_manifest(
    manifest: Dict[str, Any],
    output_dir: Path,
) -> str:
    """Write ``run_manifest.json`` to *output_dir* and return the path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / MANIFEST_FILENAME
    path.write_text(json.dumps(manifest, indent=2, sort_keys=True), encoding="utf-8")
    return str(path)
