"""Tests for versa.branches module."""

from versa.branches import BranchRegistry
from versa.checkpoint import build_checkpoint
from versa.types import BranchName


def _cp(file_path="a.py", content="x", branch="main"):
    return build_checkpoint(file_path, content, BranchName(branch))


class TestCreateBranch:
    """Tests for BranchRegistry.create_branch()."""

    def test_main_exists_by_default(self, registry: BranchRegistry):
        assert registry.list_branches() == ["main"]
        assert registry.current_branch == "main"

    def test_copies_source_list(self, registry: BranchRegistry):
        first = _cp()
        registry.append(first)

        assert registry.create_branch("feature", "main") is True
        assert registry.list_checkpoints("feature") == [first]

    def test_defaults_to_current_branch(self, registry: BranchRegistry):
        registry.create_branch("dev")
        registry.switch_branch("dev")
        cp = _cp(branch="dev")
        registry.append(cp)

        registry.create_branch("dev2")

        assert registry.list_checkpoints("dev2") == [cp]

    def test_rejects_existing_name(self, registry: BranchRegistry):
        assert registry.create_branch("main") is False
        registry.create_branch("feature")
        assert registry.create_branch("feature") is False

    def test_rejects_unknown_source(self, registry: BranchRegistry):
        assert registry.create_branch("feature", "nope") is False
        assert "feature" not in registry.list_branches()

    def test_rejects_empty_name(self, registry: BranchRegistry):
        assert registry.create_branch("") is False

    def test_branches_are_independent(self, registry: BranchRegistry):
        """Growth after the copy does not leak between branches."""
        registry.append(_cp(content="base"))
        registry.create_branch("feature", "main")

        registry.append(_cp(content="main-only"))
        registry.switch_branch("feature")
        registry.append(_cp(content="feature-only", branch="feature"))

        main_contents = [cp.content for cp in registry.list_checkpoints("main")]
        feature_contents = [cp.content for cp in registry.list_checkpoints("feature")]
        assert main_contents == ["base", "main-only"]
        assert feature_contents == ["base", "feature-only"]


class TestSwitchBranch:
    def test_switch_known(self, registry: BranchRegistry):
        registry.create_branch("feature")
        assert registry.switch_branch("feature") is True
        assert registry.current_branch == "feature"

    def test_switch_unknown_keeps_current(self, registry: BranchRegistry):
        assert registry.switch_branch("ghost") is False
        assert registry.current_branch == "main"

    def test_switch_back_to_main(self, registry: BranchRegistry):
        registry.create_branch("feature")
        registry.switch_branch("feature")
        assert registry.switch_branch("main") is True


class TestRemoval:
    def test_discard_removes_from_every_branch(self, registry: BranchRegistry):
        shared = _cp()
        registry.append(shared)
        registry.create_branch("feature")

        assert registry.discard(shared.id) == 2
        assert registry.list_checkpoints("main") == []
        assert registry.list_checkpoints("feature") == []

    def test_discard_file(self, registry: BranchRegistry):
        keep = _cp(file_path="b.py")
        registry.append(_cp(file_path="a.py"))
        registry.append(keep)

        registry.discard_file("a.py")

        assert registry.list_checkpoints("main") == [keep]

    def test_reset(self, registry: BranchRegistry):
        registry.create_branch("feature")
        registry.switch_branch("feature")
        registry.append(_cp(branch="feature"))

        registry.reset()

        assert registry.list_branches() == ["main"]
        assert registry.current_branch == "main"
        assert registry.list_checkpoints("main") == []


class TestReplace:
    def test_recreates_main_and_falls_back(self, registry: BranchRegistry):
        registry.replace({"dev": []}, "missing")

        assert set(registry.list_branches()) == {"dev", "main"}
        assert registry.current_branch == "main"

    def test_add_missing_never_overwrites(self, registry: BranchRegistry):
        existing = _cp()
        registry.append(existing)

        assert registry.add_missing("main", []) is False
        assert registry.list_checkpoints("main") == [existing]
        assert registry.add_missing("imported", [existing]) is True

    def test_list_checkpoints_returns_copy(self, registry: BranchRegistry):
        registry.list_checkpoints("main").append(_cp())
        assert registry.list_checkpoints("main") == []
