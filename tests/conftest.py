from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

_REPO_ROOT = Path(__file__).resolve().parent.parent
for _path in (_REPO_ROOT, _REPO_ROOT / "packages"):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

_ISOLATED_ENV_VARS = (
    "CODECOV_TOKEN",
    "CARGO_INCREMENTAL",
    "RUSTFLAGS",
)

CRATE_PREFIX = "my_crate"

SAMPLE_LCOV = """\
TN:
SF:src/lib.rs
FN:1,my_crate::add
FNDA:3,my_crate::add
FNF:1
FNH:1
DA:1,3
DA:2,3
DA:5,0
BRDA:2,0,0,3
BRDA:2,0,1,-
BRF:2
BRH:1
LF:3
LH:2
end_of_record
"""


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep the developer's shell variables out of every test."""
    for key in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def cargo_project(tmp_path, monkeypatch) -> Path:
    """A crate root named ``my-crate`` with the cwd switched into it."""
    (tmp_path / "Cargo.toml").write_text(
        '[package]\nname = "my-crate"\nversion = "0.1.0"\nedition = "2018"\n',
        encoding="utf-8",
    )
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "lib.rs").write_text("pub fn add(a: i32, b: i32) -> i32 { a + b }\n")
    monkeypatch.chdir(tmp_path)
    return tmp_path


_REAL_RUN = subprocess.run


class FakeToolchain:
    """Stands in for cargo, grcov, rust-covfix, genhtml and bash.

    Each program leaves behind the files the real one would, so the
    pipeline's own filesystem steps (clean, archive, summary) run for real.
    """

    def __init__(self, prefix: str = CRATE_PREFIX):
        self.prefix = prefix
        self.calls: List[Dict[str, object]] = []
        self.exit_codes: Dict[str, int] = {}
        self.lcov_text = SAMPLE_LCOV

    def fail(self, key: str, returncode: int) -> None:
        """Make the program identified by *key* (e.g. "build", "grcov") exit non-zero."""
        self.exit_codes[key] = returncode

    def programs(self) -> List[str]:
        return [self._key(call["command"]) for call in self.calls]

    @staticmethod
    def _key(command: List[str]) -> str:
        if command[0] == "cargo":
            return [part for part in command[1:] if not part.startswith("+")][0]
        return Path(command[0]).name

    def __call__(self, command, cwd=None, env=None, timeout=None, check=False, **kwargs):
        command = list(command)
        if command and command[0] == "git":
            # Not a toolchain program: the patch lands on the shared subprocess module.
            return _REAL_RUN(command, cwd=cwd, env=env, timeout=timeout, check=check, **kwargs)
        root = Path(cwd) if cwd else Path.cwd()
        self.calls.append({"command": command, "cwd": root, "env": env})
        key = self._key(command)

        returncode = self.exit_codes.get(key, 0)
        if returncode == 0:
            self._produce(key, command, root)
        return subprocess.CompletedProcess(command, returncode)

    def _produce(self, key: str, command: List[str], root: Path) -> None:
        deps = root / "target" / "debug" / "deps"
        if key == "build":
            deps.mkdir(parents=True, exist_ok=True)
            (deps / f"{self.prefix}-1a2b3c").write_bytes(b"\x7fELF")
            (deps / f"{self.prefix}-1a2b3c.gcno").write_bytes(b"oncg")
        elif key == "test":
            (deps / f"{self.prefix}-1a2b3c.gcda").write_bytes(b"adcg")
            (deps / "test-integration.gcda").write_bytes(b"adcg")
        elif key == "grcov":
            output = root / command[command.index("-o") + 1]
            output.write_text(self.lcov_text, encoding="utf-8")
        elif key == "genhtml":
            html_dir = root / command[command.index("-o") + 1]
            html_dir.mkdir(parents=True, exist_ok=True)
            (html_dir / "index.html").write_text("<html></html>", encoding="utf-8")


@pytest.fixture
def fake_toolchain(monkeypatch) -> FakeToolchain:
    fake = FakeToolchain()
    monkeypatch.setattr("covtools.runner.subprocess.run", fake)
    return fake


@pytest.fixture
def fake_uploader(monkeypatch):
    """Replace the network fetch of the uploader script; records each call."""
    fetched: List[Optional[str]] = []

    def _fetch(url, client=None, timeout=20.0):
        fetched.append(url)
        return "#!/bin/bash\necho uploading\n"

    monkeypatch.setattr("covtools.codecov.fetch_uploader", _fetch)
    return fetched
