"""Project identity derived from the Cargo manifest.

The crate name decides which build artifacts get cleaned and which gcov
files are archived, so it is validated before anything touches the disk.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Union

from covtools.errors import ManifestError

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r'^name\s*=\s*"(.*)"')


def normalize_crate_name(name: str) -> str:
    """Crate name as rustc spells it in artifact filenames (``my-crate`` -> ``my_crate``)."""
    return name.replace("-", "_")


def read_crate_name(manifest_path: Path) -> str:
    """Return the value of the first ``name = "..."`` line in *manifest_path*.

    Raises:
        ManifestError: the file is missing, unreadable, or has no usable name.
    """
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ManifestError(f"manifest not found: {manifest_path}") from exc
    except OSError as exc:
        raise ManifestError(f"could not read {manifest_path}: {exc}") from exc

    for line in text.splitlines():
        match = _NAME_RE.match(line)
        if match:
            name = match.group(1).strip()
            if not name:
                raise ManifestError(f"empty package name in {manifest_path}")
            return name
    raise ManifestError(f'no name = "..." entry in {manifest_path}')


@dataclass
class ProjectContext:
    """Resolved crate identity and the root everything else is relative to."""

    root: Path
    manifest_path: Path
    crate_name: str

    @property
    def prefix(self) -> str:
        """Artifact filename prefix: target/debug/deps/<prefix>-<hash>."""
        return normalize_crate_name(self.crate_name)

    def path(self, relative: Union[str, Path]) -> Path:
        """Resolve a configured path against the project root."""
        candidate = Path(relative)
        return candidate if candidate.is_absolute() else self.root / candidate

    def to_dict(self) -> Dict[str, str]:
        return {
            "root": str(self.root),
            "manifest_path": str(self.manifest_path),
            "crate_name": self.crate_name,
            "prefix": self.prefix,
        }


def resolve_project_context(root: Path, manifest_path: Union[str, Path] = "Cargo.toml") -> ProjectContext:
    manifest = Path(manifest_path)
    if not manifest.is_absolute():
        manifest = root / manifest
    crate_name = read_crate_name(manifest)
    ctx = ProjectContext(root=root, manifest_path=manifest, crate_name=crate_name)
    logger.debug("Resolved project: %s", ctx.to_dict())
    return ctx
