"""Tests for versa.atomic module."""

import json
import stat
from pathlib import Path
from unittest.mock import patch

from versa.atomic import atomic_write_json, atomic_write_text, read_json


class TestAtomicWriteText:
    def test_creates_file_and_parents(self, tmp_path: Path):
        file_path = tmp_path / "nested" / "deep" / "state.json"

        result = atomic_write_text(file_path, "hello")

        assert result.is_ok()
        assert result.unwrap() == file_path
        assert file_path.read_text() == "hello"

    def test_overwrites(self, tmp_path: Path):
        file_path = tmp_path / "f.txt"
        file_path.write_text("old")

        atomic_write_text(file_path, "new")

        assert file_path.read_text() == "new"

    def test_default_permissions(self, tmp_path: Path):
        file_path = tmp_path / "f.txt"

        atomic_write_text(file_path, "content")

        mode = file_path.stat().st_mode
        assert mode & stat.S_IRWXU == stat.S_IRUSR | stat.S_IWUSR
        assert mode & stat.S_IRWXG == 0
        assert mode & stat.S_IRWXO == 0

    def test_custom_permissions(self, tmp_path: Path):
        file_path = tmp_path / "f.txt"
        atomic_write_text(file_path, "content", mode=0o644)
        assert file_path.stat().st_mode & 0o777 == 0o644

    def test_no_temp_files_left(self, tmp_path: Path):
        atomic_write_text(tmp_path / "f.txt", "content")
        assert [p.name for p in tmp_path.iterdir()] == ["f.txt"]

    def test_failed_rename_cleans_up(self, tmp_path: Path):
        file_path = tmp_path / "f.txt"
        file_path.write_text("original")

        with patch("versa.atomic.os.replace", side_effect=OSError("rename failed")):
            result = atomic_write_text(file_path, "new")

        assert result.is_err()
        assert result.unwrap_err().code == "ATOMIC_WRITE_FAILED"
        assert file_path.read_text() == "original"
        assert [p.name for p in tmp_path.iterdir()] == ["f.txt"]

    def test_permission_error(self, tmp_path: Path):
        with patch("versa.atomic.tempfile.mkstemp", side_effect=PermissionError("denied")):
            result = atomic_write_text(tmp_path / "f.txt", "x")

        assert result.unwrap_err().code == "ATOMIC_PERMISSION_DENIED"


class TestAtomicWriteJson:
    def test_compact_by_default(self, tmp_path: Path):
        file_path = tmp_path / "data.json"

        atomic_write_json(file_path, {"a": [1, 2]})

        assert file_path.read_text() == '{"a": [1, 2]}'

    def test_keeps_unicode(self, tmp_path: Path):
        file_path = tmp_path / "data.json"
        atomic_write_json(file_path, {"content": "héllo ✓"}, indent=2)
        assert "héllo ✓" in file_path.read_text(encoding="utf-8")

    def test_unserializable(self, tmp_path: Path):
        result = atomic_write_json(tmp_path / "data.json", {"bad": object()})

        assert result.unwrap_err().code == "JSON_SERIALIZATION_FAILED"
        assert not (tmp_path / "data.json").exists()


class TestReadJson:
    def test_reads(self, tmp_path: Path):
        (tmp_path / "d.json").write_text(json.dumps({"x": 1}))
        assert read_json(tmp_path / "d.json").unwrap() == {"x": 1}

    def test_missing(self, tmp_path: Path):
        assert read_json(tmp_path / "nope.json").unwrap_err().code == "FILE_NOT_FOUND"

    def test_invalid(self, tmp_path: Path):
        (tmp_path / "d.json").write_text("{")
        assert read_json(tmp_path / "d.json").unwrap_err().code == "JSON_READ_FAILED"
