"""Tests for versa.restore module."""

from versa.restore import RestoreCoordinator
from versa.store import CheckpointStore


class TestRestore:
    def test_unknown_id(self, store: CheckpointStore):
        assert RestoreCoordinator(store.get).restore("cp_unknown") is None

    def test_returns_stored_content(self, store: CheckpointStore):
        content = "déjà vu\r\n\ttabs and unicode ✓\n"
        cp = store.create("notes.md", content, manual=True)

        result = RestoreCoordinator(store.get).restore(cp.id)

        assert result is not None
        assert result.content == content
        assert result.checkpoint is cp

    def test_restore_changes_nothing(self, store: CheckpointStore):
        cp = store.create("a.py", "v1")
        store.create("a.py", "v2")
        before_state = store.to_state()
        before_state.pop("savedAt")

        RestoreCoordinator(store.get).restore(cp.id)

        after_state = store.to_state()
        after_state.pop("savedAt")
        assert after_state == before_state
        assert store.get(cp.id).content == "v1"
