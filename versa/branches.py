"""Named branches of checkpoints.

Each branch is an ordered list (oldest first) of checkpoints. Creating a
branch copies the source list; the two lists then grow independently. The
active branch decides where new checkpoints are attached. ``main`` always
exists and there is no way to delete a branch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from versa.checkpoint import Checkpoint
from versa.types import MAIN_BRANCH, BranchName

logger = logging.getLogger(__name__)


class BranchRegistry:
    """Branch name → checkpoint list, plus the active branch."""

    def __init__(self) -> None:
        self._branches: dict[BranchName, list[Checkpoint]] = {MAIN_BRANCH: []}
        self._current: BranchName = MAIN_BRANCH

    @property
    def current_branch(self) -> BranchName:
        return self._current

    def create_branch(self, name: str, from_branch: str | None = None) -> bool:
        """Create ``name`` as a copy of ``from_branch`` (default: active).

        Returns False if the name is taken, empty, or the source is unknown.
        """
        if not name:
            logger.warning("Branch name must not be empty")
            return False
        if name in self._branches:
            logger.warning(f"Branch already exists: {name}")
            return False

        source = BranchName(from_branch or self._current)
        if source not in self._branches:
            logger.warning(f"Source branch does not exist: {source}")
            return False

        # New list, shared checkpoints: they are immutable
        self._branches[BranchName(name)] = list(self._branches[source])
        logger.info(f"Created branch {name} from {source}")
        return True

    def switch_branch(self, name: str) -> bool:
        """Make ``name`` the active branch. False if it doesn't exist."""
        if name not in self._branches:
            logger.warning(f"Branch does not exist: {name}")
            return False

        self._current = BranchName(name)
        logger.info(f"Switched to branch {name}")
        return True

    def list_branches(self) -> list[BranchName]:
        return list(self._branches)

    def list_checkpoints(self, name: str) -> list[Checkpoint]:
        """Checkpoints on a branch, oldest first. Empty for unknown names."""
        return list(self._branches.get(BranchName(name), []))

    def has_branch(self, name: str) -> bool:
        return name in self._branches

    def append(self, checkpoint: Checkpoint) -> None:
        """Attach a new checkpoint to the active branch."""
        self._branches.setdefault(self._current, []).append(checkpoint)

    def discard(self, checkpoint_id: str) -> int:
        """Remove a checkpoint id from every branch. Returns removals."""
        removed = 0
        for name, items in self._branches.items():
            kept = [cp for cp in items if cp.id != checkpoint_id]
            removed += len(items) - len(kept)
            self._branches[name] = kept
        return removed

    def discard_file(self, file_path: str) -> None:
        """Remove every checkpoint of ``file_path`` from every branch."""
        for name, items in self._branches.items():
            self._branches[name] = [cp for cp in items if cp.file_path != file_path]

    def reset(self) -> None:
        """Back to a single empty main branch, active."""
        self._branches = {MAIN_BRANCH: []}
        self._current = MAIN_BRANCH

    def replace(
        self,
        branches: dict[str, Iterable[Checkpoint]],
        current: str | None,
    ) -> None:
        """Install branch state loaded from persistence.

        ``main`` is recreated if missing; an unknown ``current`` falls back
        to main.
        """
        self._branches = {BranchName(name): list(items) for name, items in branches.items()}
        self._branches.setdefault(MAIN_BRANCH, [])
        if current and current in self._branches:
            self._current = BranchName(current)
        else:
            self._current = MAIN_BRANCH

    def add_missing(self, name: str, checkpoints: Iterable[Checkpoint]) -> bool:
        """Add a branch only if the name is unknown (import merge)."""
        if name in self._branches or not name:
            return False
        self._branches[BranchName(name)] = list(checkpoints)
        return True

    def to_dict(self) -> dict[str, list[dict]]:
        return {
            name: [cp.to_dict() for cp in items] for name, items in self._branches.items()
        }
