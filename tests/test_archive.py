"""Tests for covtools.archive (gcov data bundling)."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from covtools import archive
from covtools.errors import ArchiveError


def _touch(path: Path, data: bytes = b"gcov") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


class TestFindCoverageFiles:
    def test_matches_both_patterns_recursively(self, tmp_path):
        deps = tmp_path / "target" / "debug" / "deps"
        _touch(deps / "my_crate-1.gcno")
        _touch(deps / "my_crate-1.gcda")
        _touch(deps / "test-foo.gcda")
        _touch(tmp_path / "nested" / "my_crate.gcov")
        _touch(deps / "my_crate-1")
        _touch(deps / "serde-1.gcda")
        _touch(deps / "my_crate-1.rlib")

        found = archive.find_coverage_files(tmp_path, archive.coverage_patterns("my_crate"))
        names = sorted(p.relative_to(tmp_path).as_posix() for p in found)

        assert names == [
            "nested/my_crate.gcov",
            "target/debug/deps/my_crate-1.gcda",
            "target/debug/deps/my_crate-1.gcno",
            "target/debug/deps/test-foo.gcda",
        ]

    def test_patterns(self):
        assert archive.coverage_patterns("abc") == ["abc*.gc*", "test-*.gc*"]


class TestWriteArchive:
    def test_stored_without_compression(self, tmp_path):
        files = [
            _touch(tmp_path / "target" / "my_crate-1.gcda", b"x" * 512),
            _touch(tmp_path / "target" / "test-a.gcno", b"y" * 512),
        ]
        out = tmp_path / "ccov.zip"

        count = archive.write_archive(out, files, tmp_path)

        assert count == 2
        with zipfile.ZipFile(out) as bundle:
            infos = bundle.infolist()
            assert [i.filename for i in infos] == ["target/my_crate-1.gcda", "target/test-a.gcno"]
            assert all(i.compress_type == zipfile.ZIP_STORED for i in infos)
            assert bundle.read("target/my_crate-1.gcda") == b"x" * 512
        assert not (tmp_path / "ccov.zip.partial").exists()

    def test_nothing_to_archive(self, tmp_path):
        with pytest.raises(ArchiveError) as excinfo:
            archive.write_archive(tmp_path / "ccov.zip", [], tmp_path)
        assert excinfo.value.exit_code == archive.NOTHING_TO_ARCHIVE_EXIT_CODE
        assert not (tmp_path / "ccov.zip").exists()

    def test_vanished_file_is_fatal(self, tmp_path):
        present = _touch(tmp_path / "my_crate-1.gcda")
        gone = tmp_path / "my_crate-2.gcda"

        with pytest.raises(ArchiveError, match="disappeared"):
            archive.write_archive(tmp_path / "ccov.zip", [present, gone], tmp_path)
        assert not (tmp_path / "ccov.zip").exists()
        assert not (tmp_path / "ccov.zip.partial").exists()

    def test_rebuilt_from_scratch(self, tmp_path):
        out = tmp_path / "ccov.zip"
        first = _touch(tmp_path / "my_crate-old.gcda")
        archive.write_archive(out, [first], tmp_path)
        first.unlink()

        second = _touch(tmp_path / "my_crate-new.gcda")
        archive.write_archive(out, [second], tmp_path)

        with zipfile.ZipFile(out) as bundle:
            assert bundle.namelist() == ["my_crate-new.gcda"]


def test_archive_coverage_data_end_to_end(tmp_path):
    _touch(tmp_path / "target" / "debug" / "deps" / "my_crate-9.gcda")
    out = tmp_path / "ccov.zip"
    assert archive.archive_coverage_data(tmp_path, "my_crate", out) == 1
    assert out.exists()
