"""Tests for the versa CLI."""

import asyncio
import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from versa.cli import main
from versa.engine import CheckpointEngine


@pytest.fixture
def project(tmp_path: Path, monkeypatch):
    """A project directory with one source file, used as cwd."""
    root = tmp_path / "proj"
    (root / ".versa").mkdir(parents=True)
    (root / "app.py").write_text("line1\nline2\n")
    monkeypatch.chdir(root)
    return root


@pytest.fixture
def runner():
    return CliRunner()


def _engine(project: Path) -> CheckpointEngine:
    engine = CheckpointEngine.for_project(project)
    asyncio.run(engine.load())
    return engine


def _snap(runner, *args):
    result = runner.invoke(main, ["snap", *args])
    assert result.exit_code == 0, result.output
    return result


class TestSnap:
    def test_snap_persists_checkpoint(self, runner, project):
        result = _snap(runner, "app.py", "-m", "first")

        assert "first" in result.output
        engine = _engine(project)
        [cp] = engine.checkpoints
        assert cp.file_path == "app.py"
        assert cp.content == "line1\nline2\n"
        assert cp.manual is True
        assert cp.change_type == "manual"
        engine.close()

    def test_auto_snap_skipped_when_disabled(self, runner, project):
        result = runner.invoke(main, ["config", "set", "auto_save", "false"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(main, ["snap", "app.py", "--auto"])

        assert result.exit_code == 1
        assert "not created" in result.output

    def test_missing_file(self, runner, project):
        result = runner.invoke(main, ["snap", "nope.py"])
        assert result.exit_code != 0

    def test_non_utf8_file(self, runner, project):
        (project / "latin1.txt").write_bytes(b"caf\xe9\n")

        result = runner.invoke(main, ["snap", "latin1.txt"])

        assert result.exit_code == 1
        assert "Not UTF-8 text" in result.output
        engine = _engine(project)
        assert engine.checkpoints == []
        engine.close()


class TestRestoreAndDiff:
    def test_restore_overwrites_file(self, runner, project):
        _snap(runner, "app.py")
        (project / "app.py").write_text("broken\n")
        engine = _engine(project)
        cp_id = engine.checkpoints[0].id
        engine.close()

        result = runner.invoke(main, ["restore", cp_id])

        assert result.exit_code == 0, result.output
        assert (project / "app.py").read_text() == "line1\nline2\n"

    def test_restore_to_stdout(self, runner, project):
        _snap(runner, "app.py")
        engine = _engine(project)
        cp_id = engine.checkpoints[0].id
        engine.close()

        result = runner.invoke(main, ["restore", cp_id, "--stdout"])

        assert result.output == "line1\nline2\n"

    def test_restore_unknown(self, runner, project):
        result = runner.invoke(main, ["restore", "cp_missing"])
        assert result.exit_code == 1

    def test_diff_against_disk(self, runner, project):
        _snap(runner, "app.py")
        (project / "app.py").write_text("line1\nline2\nline3\n")
        engine = _engine(project)
        cp_id = engine.checkpoints[0].id
        engine.close()

        result = runner.invoke(main, ["diff", cp_id])

        assert result.exit_code == 0, result.output
        assert "+1" in result.output
        assert "-0" in result.output

    def test_diff_two_checkpoints(self, runner, project):
        _snap(runner, "app.py")
        (project / "app.py").write_text("changed\nline2\n")
        _snap(runner, "app.py")
        engine = _engine(project)
        newer, older = [cp.id for cp in engine.checkpoints]
        engine.close()

        result = runner.invoke(main, ["diff", older, newer])

        assert result.exit_code == 0, result.output
        assert "~1" in result.output

    def test_diff_against_non_utf8_file(self, runner, project):
        _snap(runner, "app.py")
        (project / "app.py").write_bytes(b"\xff\xfe\x00binary")
        engine = _engine(project)
        cp_id = engine.checkpoints[0].id
        engine.close()

        result = runner.invoke(main, ["diff", cp_id])

        assert result.exit_code == 1
        assert "Not UTF-8 text" in result.output


class TestBranches:
    def test_create_switch_and_snap(self, runner, project):
        _snap(runner, "app.py")
        assert runner.invoke(main, ["branch", "create", "feature"]).exit_code == 0
        assert runner.invoke(main, ["branch", "switch", "feature"]).exit_code == 0
        _snap(runner, "app.py")

        engine = _engine(project)
        assert engine.current_branch == "feature"
        assert len(engine.list_checkpoints("feature")) == 2
        assert len(engine.list_checkpoints("main")) == 1
        engine.close()

        listing = runner.invoke(main, ["branch", "list"])
        assert "feature" in listing.output

    def test_switch_unknown(self, runner, project):
        result = runner.invoke(main, ["branch", "switch", "ghost"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_create_duplicate(self, runner, project):
        assert runner.invoke(main, ["branch", "create", "main"]).exit_code == 1


class TestHousekeeping:
    def test_log_empty(self, runner, project):
        result = runner.invoke(main, ["log"])
        assert "No checkpoints" in result.output

    def test_rm(self, runner, project):
        _snap(runner, "app.py")
        engine = _engine(project)
        cp_id = engine.checkpoints[0].id
        engine.close()

        assert runner.invoke(main, ["rm", cp_id]).exit_code == 0
        assert runner.invoke(main, ["rm", cp_id]).exit_code == 1

    def test_clear_file(self, runner, project):
        (project / "other.py").write_text("x")
        _snap(runner, "app.py")
        _snap(runner, "other.py")

        result = runner.invoke(main, ["clear", "app.py", "-f"])

        assert result.exit_code == 0
        engine = _engine(project)
        assert [cp.file_path for cp in engine.checkpoints] == ["other.py"]
        engine.close()

    def test_clear_cancelled(self, runner, project):
        _snap(runner, "app.py")

        result = runner.invoke(main, ["clear"], input="n\n")

        assert "Cancelled" in result.output
        engine = _engine(project)
        assert len(engine.checkpoints) == 1
        engine.close()

    def test_stats_json(self, runner, project):
        _snap(runner, "app.py")
        _snap(runner, "app.py", "--auto")

        result = runner.invoke(main, ["stats", "--json"])

        data = json.loads(result.output)
        assert data["totalCheckpoints"] == 2
        assert data["manualCheckpoints"] == 1
        assert data["fileCount"] == 1


class TestExportImport:
    def test_roundtrip_into_fresh_project(self, runner, project, tmp_path, monkeypatch):
        _snap(runner, "app.py")
        export_path = tmp_path / "export.json"
        assert runner.invoke(main, ["export", str(export_path)]).exit_code == 0
        assert json.loads(export_path.read_text())["version"] == "1.0"

        other = tmp_path / "other"
        (other / ".versa").mkdir(parents=True)
        monkeypatch.chdir(other)

        result = runner.invoke(main, ["import", str(export_path)])

        assert result.exit_code == 0, result.output
        assert "+1" in result.output

    def test_import_rejects_non_export(self, runner, project, tmp_path):
        bogus = tmp_path / "bogus.json"
        bogus.write_text(json.dumps({"hello": "world"}))

        result = runner.invoke(main, ["import", str(bogus)])

        assert result.exit_code == 1


class TestConfigCommands:
    def test_set_writes_project_config(self, runner, project):
        result = runner.invoke(main, ["config", "set", "max_checkpoints", "25"])

        assert result.exit_code == 0, result.output
        data = yaml.safe_load((project / ".versa" / "config.yaml").read_text())
        assert data == {"max_checkpoints": 25}

    def test_set_rejects_out_of_range(self, runner, project):
        result = runner.invoke(main, ["config", "set", "max_checkpoints", "1000"])
        assert result.exit_code == 1

    def test_set_unknown_key(self, runner, project):
        result = runner.invoke(main, ["config", "set", "colour", "blue"])
        assert result.exit_code == 1

    def test_list(self, runner, project):
        result = runner.invoke(main, ["config", "list"])
        assert "max_checkpoints: 50" in result.output
