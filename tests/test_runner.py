"""Tests for covtools.runner (traced, fail-fast subprocess execution)."""

from __future__ import annotations

import logging
import os
import subprocess

import pytest

from covtools.errors import CommandFailed, ToolNotFound
from covtools.runner import REDACTED, CommandRunner, format_command, redact_command


class _Recorder:
    def __init__(self, returncode=0, exc=None):
        self.returncode = returncode
        self.exc = exc
        self.calls = []

    def __call__(self, command, cwd=None, env=None, timeout=None, check=False):
        self.calls.append({"command": command, "cwd": cwd, "env": env, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return subprocess.CompletedProcess(command, self.returncode)


class TestFormatCommand:
    def test_quotes_arguments(self):
        assert format_command(["grcov", "--ignore", "/*"]) == "grcov --ignore '/*'"

    def test_env_prefix(self):
        rendered = format_command(["cargo", "build"], {"CARGO_INCREMENTAL": "0", "RUSTFLAGS": "-Zprofile -C x"})
        assert rendered == "CARGO_INCREMENTAL=0 RUSTFLAGS='-Zprofile -C x' cargo build"

    def test_secrets_masked(self):
        rendered = format_command(["bash", "up.sh", "-t", "s3cret"], secrets=["s3cret"])
        assert "s3cret" not in rendered
        assert REDACTED in rendered

    def test_empty_secret_is_not_masked(self):
        assert redact_command(["a", ""], secrets=[""]) == ["a", ""]


class TestCommandRunner:
    def test_success_records_history(self, monkeypatch, tmp_path):
        fake = _Recorder()
        monkeypatch.setattr("covtools.runner.subprocess.run", fake)
        runner = CommandRunner(cwd=tmp_path)

        result = runner.run("build", ["cargo", "build"])

        assert result.returncode == 0
        assert result.step == "build"
        assert runner.history == [result]
        assert fake.calls[0]["cwd"] == str(tmp_path)
        assert fake.calls[0]["env"] is None

    def test_nonzero_exit_raises_with_same_code(self, monkeypatch, tmp_path):
        monkeypatch.setattr("covtools.runner.subprocess.run", _Recorder(returncode=101))
        runner = CommandRunner(cwd=tmp_path)

        with pytest.raises(CommandFailed) as excinfo:
            runner.run("test", ["cargo", "test"])

        assert excinfo.value.exit_code == 101
        assert excinfo.value.step == "test"
        assert runner.history[-1].returncode == 101

    def test_signal_death_maps_to_shell_convention(self, monkeypatch, tmp_path):
        monkeypatch.setattr("covtools.runner.subprocess.run", _Recorder(returncode=-9))
        with pytest.raises(CommandFailed) as excinfo:
            CommandRunner(cwd=tmp_path).run("test", ["cargo", "test"])
        assert excinfo.value.exit_code == 137

    def test_missing_program(self, monkeypatch, tmp_path):
        monkeypatch.setattr(
            "covtools.runner.subprocess.run",
            _Recorder(exc=FileNotFoundError(2, "No such file", "grcov")),
        )
        with pytest.raises(ToolNotFound) as excinfo:
            CommandRunner(cwd=tmp_path).run("convert", ["grcov", "ccov.zip"])
        assert excinfo.value.exit_code == 127
        assert "grcov" in str(excinfo.value)

    def test_timeout_reported_as_124(self, monkeypatch, tmp_path):
        monkeypatch.setattr(
            "covtools.runner.subprocess.run",
            _Recorder(exc=subprocess.TimeoutExpired(["cargo", "test"], 5)),
        )
        with pytest.raises(CommandFailed) as excinfo:
            CommandRunner(cwd=tmp_path, timeout=5).run("test", ["cargo", "test"])
        assert excinfo.value.exit_code == 124

    def test_extra_env_scoped_to_child(self, monkeypatch, tmp_path):
        fake = _Recorder()
        monkeypatch.setattr("covtools.runner.subprocess.run", fake)
        monkeypatch.setenv("KEEP_ME", "1")

        CommandRunner(cwd=tmp_path).run("build", ["cargo", "build"], extra_env={"RUSTFLAGS": "-Zprofile"})

        child_env = fake.calls[0]["env"]
        assert child_env["RUSTFLAGS"] == "-Zprofile"
        assert child_env["KEEP_ME"] == "1"
        assert "RUSTFLAGS" not in os.environ

    def test_trace_logged_with_token_hidden(self, monkeypatch, tmp_path, caplog):
        monkeypatch.setattr("covtools.runner.subprocess.run", _Recorder())
        runner = CommandRunner(cwd=tmp_path)
        runner.add_secret("tok-123")

        with caplog.at_level(logging.INFO, logger="covtools.trace"):
            runner.run("upload", ["bash", "codecov.sh", "-f", "lcov.info", "-t", "tok-123"])

        traces = [r.getMessage() for r in caplog.records if r.name == "covtools.trace"]
        assert traces == [f"+ bash codecov.sh -f lcov.info -t '{REDACTED}'"]

    def test_step_to_dict_redacts(self, monkeypatch, tmp_path):
        monkeypatch.setattr("covtools.runner.subprocess.run", _Recorder())
        runner = CommandRunner(cwd=tmp_path)
        result = runner.run("upload", ["bash", "x.sh", "-t", "abc"])
        assert result.to_dict(["abc"])["command"] == ["bash", "x.sh", "-t", REDACTED]

    def test_add_secret_ignores_empty_and_duplicates(self):
        runner = CommandRunner()
        runner.add_secret("")
        runner.add_secret("a")
        runner.add_secret("a")
        assert runner.secrets == ["a"]
