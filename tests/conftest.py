"""Shared fixtures for Versa tests."""

import logging
from pathlib import Path

import pytest

from versa.branches import BranchRegistry
from versa.store import CheckpointStore


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch):
    """Keep every test away from the real ~/.versa."""
    home = tmp_path / "versa-home"
    monkeypatch.setenv("VERSA_HOME", str(home))
    return home


@pytest.fixture(autouse=True)
def reset_versa_logger():
    """Undo configure_logging() calls made by CLI tests."""
    yield
    root = logging.getLogger("versa")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)
    root.propagate = True


@pytest.fixture
def registry():
    return BranchRegistry()


@pytest.fixture
def store(registry):
    """A store with no persistence hook."""
    return CheckpointStore(registry)
