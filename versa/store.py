"""Checkpoint storage for Versa.

Owns the global, newest-first list of every checkpoint across all branches
and keeps it consistent with the per-branch lists in ``BranchRegistry``:
anything removed from one is removed from the other.

Capacity is global. After each create, if the store holds more than
``max_checkpoints``, the single oldest checkpoint is evicted, whatever file
or branch it belongs to. Editing one file can therefore push out the last
snapshot of another.

Every mutation calls ``on_change`` so the owner can schedule persistence.
Callers must not rely on that save having completed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from versa.branches import BranchRegistry
from versa.checkpoint import (
    DEFAULT_CHANGE_TYPE,
    DEFAULT_LANGUAGE,
    Checkpoint,
    build_checkpoint,
)
from versa.config import MAX_CHECKPOINTS, MIN_CHECKPOINTS
from versa.types import MAIN_BRANCH, CheckpointId

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHECKPOINTS = 50
EXPORT_VERSION = "1.0"


@dataclass(frozen=True)
class Stats:
    """Summary counts for a status bar or panel header."""

    total_checkpoints: int
    branches: int
    current_branch: str
    file_count: int
    manual_checkpoints: int
    auto_checkpoints: int
    oldest_checkpoint: int | None  # epoch millis
    newest_checkpoint: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCheckpoints": self.total_checkpoints,
            "branches": self.branches,
            "currentBranch": self.current_branch,
            "fileCount": self.file_count,
            "manualCheckpoints": self.manual_checkpoints,
            "autoCheckpoints": self.auto_checkpoints,
            "oldestCheckpoint": self.oldest_checkpoint,
            "newestCheckpoint": self.newest_checkpoint,
        }


class CheckpointStore:
    """Creates, finds, deletes and evicts checkpoints."""

    def __init__(
        self,
        registry: BranchRegistry,
        max_checkpoints: int = DEFAULT_MAX_CHECKPOINTS,
        auto_save: bool = True,
        default_language: str = DEFAULT_LANGUAGE,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.registry = registry
        self._checkpoints: list[Checkpoint] = []  # newest first
        self.max_checkpoints = max_checkpoints
        self.auto_save_enabled = auto_save
        self.default_language = default_language
        self._on_change = on_change

    def __len__(self) -> int:
        return len(self._checkpoints)

    @property
    def checkpoints(self) -> list[Checkpoint]:
        """All checkpoints, newest first (a copy)."""
        return list(self._checkpoints)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        file_path: str,
        content: str | None,
        language: str | None = None,
        change_type: str = DEFAULT_CHANGE_TYPE,
        description: str = "",
        manual: bool = False,
    ) -> Checkpoint | None:
        """Snapshot ``content`` of ``file_path`` on the active branch.

        Returns None when file_path or content is missing, or when automatic
        snapshots are disabled and ``manual`` is False. Empty content is a
        valid snapshot.
        """
        if not file_path or content is None:
            logger.warning("Checkpoint not created: file path and content are required")
            return None

        if not self.auto_save_enabled and not manual:
            logger.debug(f"Auto checkpoints disabled, skipping {file_path}")
            return None

        checkpoint = build_checkpoint(
            file_path=file_path,
            content=content,
            branch=self.registry.current_branch,
            language=language or self.default_language,
            change_type=change_type,
            description=description,
            manual=manual,
        )

        self.registry.append(checkpoint)
        self._checkpoints.insert(0, checkpoint)
        self._evict_overflow(limit=1)

        logger.info(f"Created checkpoint {checkpoint.id}: {checkpoint.description} ({file_path})")
        self._changed()
        return checkpoint

    def delete(self, checkpoint_id: str) -> bool:
        """Remove a checkpoint everywhere. False if the id is unknown."""
        for index, cp in enumerate(self._checkpoints):
            if cp.id == checkpoint_id:
                break
        else:
            return False

        del self._checkpoints[index]
        self.registry.discard(checkpoint_id)
        logger.info(f"Deleted checkpoint {checkpoint_id}")
        self._changed()
        return True

    def clear(self, file_path: str | None = None) -> None:
        """Drop one file's checkpoints, or reset everything to empty main."""
        if file_path:
            before = len(self._checkpoints)
            self._checkpoints = [cp for cp in self._checkpoints if cp.file_path != file_path]
            self.registry.discard_file(file_path)
            logger.info(f"Cleared {before - len(self._checkpoints)} checkpoints for {file_path}")
        else:
            self._checkpoints = []
            self.registry.reset()
            logger.info("Cleared all checkpoints")
        self._changed()

    def set_auto_save(self, enabled: bool) -> None:
        """Enable or disable non-manual checkpoints."""
        self.auto_save_enabled = bool(enabled)
        logger.info(f"Automatic checkpoints {'enabled' if enabled else 'disabled'}")

    def set_max_checkpoints(self, value: int) -> bool:
        """Change the capacity (1-200). Evicts down to the new cap at once."""
        if isinstance(value, bool) or not isinstance(value, int):
            logger.warning(f"Max checkpoints must be an integer, got {value!r}")
            return False
        if not MIN_CHECKPOINTS <= value <= MAX_CHECKPOINTS:
            logger.warning(
                f"Max checkpoints must be between {MIN_CHECKPOINTS} and {MAX_CHECKPOINTS}"
            )
            return False

        self.max_checkpoints = value
        logger.info(f"Max checkpoints set to {value}")
        if self._evict_overflow():
            self._changed()
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, checkpoint_id: str) -> Checkpoint | None:
        for cp in self._checkpoints:
            if cp.id == checkpoint_id:
                return cp
        return None

    def get_for_file(self, file_path: str) -> list[Checkpoint]:
        """Checkpoints of one file from any branch, newest first."""
        return [cp for cp in self._checkpoints if cp.file_path == file_path]

    def get_stats(self) -> Stats:
        manual = sum(1 for cp in self._checkpoints if cp.manual)
        return Stats(
            total_checkpoints=len(self._checkpoints),
            branches=len(self.registry.list_branches()),
            current_branch=self.registry.current_branch,
            file_count=len({cp.file_path for cp in self._checkpoints}),
            manual_checkpoints=manual,
            auto_checkpoints=len(self._checkpoints) - manual,
            oldest_checkpoint=self._checkpoints[-1].timestamp if self._checkpoints else None,
            newest_checkpoint=self._checkpoints[0].timestamp if self._checkpoints else None,
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_state(self) -> dict[str, Any]:
        """Full state in the persisted payload shape."""
        return {
            "checkpoints": [cp.to_dict() for cp in self._checkpoints],
            "branches": self.registry.to_dict(),
            "currentBranch": self.registry.current_branch,
            "savedAt": int(datetime.now(UTC).timestamp() * 1000),
        }

    def load_state(self, state: dict[str, Any] | None) -> bool:
        """Replace in-memory state with a persisted payload.

        Malformed or missing state leaves a single empty main branch.
        Returns True if anything was loaded.
        """
        if not isinstance(state, dict) or not isinstance(state.get("checkpoints"), list):
            if state is not None:
                logger.warning("Ignoring malformed checkpoint state")
            self._checkpoints = []
            self.registry.reset()
            return False

        checkpoints = _parse_checkpoints(state["checkpoints"])
        checkpoints.sort(key=lambda cp: cp.timestamp, reverse=True)
        self._checkpoints = checkpoints

        index = {cp.id: cp for cp in checkpoints}
        self.registry.replace(
            _link_branches(state.get("branches"), index),
            state.get("currentBranch"),
        )
        # A lowered cap may not have been applied before the last save
        self._evict_overflow()
        logger.info(f"Loaded {len(self._checkpoints)} checkpoints")
        return True

    def export_state(self, file_path: str | None = None) -> dict[str, Any]:
        """Export payload; optionally only one file's checkpoints."""
        selected = self.get_for_file(file_path) if file_path else self._checkpoints
        return {
            "checkpoints": [cp.to_dict() for cp in selected],
            "branches": self.registry.to_dict(),
            "currentBranch": self.registry.current_branch,
            "exportedAt": datetime.now(UTC).isoformat(),
            "version": EXPORT_VERSION,
        }

    def import_state(self, data: Any) -> bool:
        """Merge an export into the store.

        Checkpoints with ids already present are skipped; branch names
        already known are left untouched. The result is capped like any
        other growth of the store.
        """
        if not isinstance(data, dict) or not isinstance(data.get("checkpoints"), list):
            logger.warning("Invalid checkpoint import data")
            return False

        existing = {cp.id for cp in self._checkpoints}
        incoming = [cp for cp in _parse_checkpoints(data["checkpoints"]) if cp.id not in existing]

        merged = incoming + self._checkpoints
        merged.sort(key=lambda cp: cp.timestamp, reverse=True)
        self._checkpoints = merged

        index = {cp.id: cp for cp in merged}
        added_branches = 0
        for name, items in _link_branches(data.get("branches"), index).items():
            if self.registry.add_missing(name, items):
                added_branches += 1

        evicted = self._evict_overflow()
        logger.info(
            f"Imported {len(incoming)} checkpoints and {added_branches} branches"
            + (f", evicted {evicted} over capacity" if evicted else "")
        )
        self._changed()
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _evict_overflow(self, limit: int | None = None) -> int:
        """Evict oldest checkpoints while over capacity. Returns count."""
        evicted = 0
        while len(self._checkpoints) > self.max_checkpoints:
            if limit is not None and evicted >= limit:
                break
            oldest = self._checkpoints.pop()
            self.registry.discard(oldest.id)
            evicted += 1
            logger.debug(f"Evicted checkpoint {oldest.id} ({oldest.file_path})")
        return evicted

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()


def _parse_checkpoints(items: list[Any]) -> list[Checkpoint]:
    parsed = []
    seen: set[str] = set()
    for item in items:
        cp = Checkpoint.from_dict(item) if isinstance(item, dict) else None
        if cp is None:
            logger.debug("Skipping unreadable checkpoint record")
            continue
        if cp.id in seen:
            continue
        seen.add(cp.id)
        parsed.append(cp)
    return parsed


def _link_branches(
    branches: Any,
    index: dict[CheckpointId, Checkpoint],
) -> dict[str, list[Checkpoint]]:
    """Resolve serialized branch lists to checkpoints in ``index``.

    Entries whose id isn't in the global list are dropped so branch lists
    never reference checkpoints the store doesn't hold.
    """
    if not isinstance(branches, dict):
        return {MAIN_BRANCH: []}

    linked: dict[str, list[Checkpoint]] = {}
    for name, items in branches.items():
        if not isinstance(name, str) or not isinstance(items, list):
            continue
        resolved = []
        for item in items:
            item_id = item.get("id") if isinstance(item, dict) else item
            cp = index.get(item_id) if isinstance(item_id, str) else None
            if cp is not None:
                resolved.append(cp)
        linked[name] = resolved
    return linked
