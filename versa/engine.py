"""Checkpoint engine: the object editors and tools talk to.

Wires a ``BranchRegistry``, ``CheckpointStore``, ``DiffEngine``,
``RestoreCoordinator`` and ``PersistenceGateway`` together. Construct one per
workspace and pass it to whoever needs it:

    engine = CheckpointEngine.for_project(project_root, content_provider=editor.get_text)
    await engine.load()
    cp = engine.create("src/app.py", editor.get_text(), language="python")
    ...
    result = engine.restore(cp.id)
    editor.set_text(result.content)

All in-memory operations are synchronous. Persistence after a mutation is
scheduled on a background worker; ``flush()`` waits for it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from versa.branches import BranchRegistry
from versa.checkpoint import DEFAULT_CHANGE_TYPE, Checkpoint
from versa.config import VersaConfig, get_state_dir, get_versa_config
from versa.diff import ContentProvider, DiffEngine, DiffResult, diff_content
from versa.persistence import (
    BackgroundSaver,
    MemoryBackend,
    PersistenceGateway,
    default_backends,
)
from versa.restore import RestoreCoordinator, RestoreResult
from versa.store import CheckpointStore, Stats
from versa.types import BranchName

logger = logging.getLogger(__name__)


class CheckpointEngine:
    """Checkpoint/branch versioning for a set of edited files."""

    def __init__(
        self,
        config: VersaConfig | None = None,
        gateway: PersistenceGateway | None = None,
        content_provider: ContentProvider | None = None,
    ) -> None:
        self.config = (config or VersaConfig()).sanitized()
        self.gateway = gateway or PersistenceGateway(
            [MemoryBackend()], key=self.config.storage_key
        )
        self.registry = BranchRegistry()
        self.store = CheckpointStore(
            self.registry,
            max_checkpoints=self.config.max_checkpoints,
            auto_save=self.config.auto_save,
            default_language=self.config.default_language,
            on_change=self._schedule_save,
        )
        self.differ = DiffEngine(self.store.get, content_provider)
        self.restorer = RestoreCoordinator(self.store.get)
        self._saver = BackgroundSaver(self.gateway)
        self.initialized = False

    @classmethod
    def for_project(
        cls,
        project_path: Path | None = None,
        config: VersaConfig | None = None,
        content_provider: ContentProvider | None = None,
    ) -> CheckpointEngine:
        """Engine persisting under the project's (or user's) state dir."""
        config = config or get_versa_config(project_path)
        backends = default_backends(
            get_state_dir(project_path),
            use_sqlite=config.use_sqlite,
            keep_json_backup=config.keep_json_backup,
        )
        gateway = PersistenceGateway(backends, key=config.storage_key)
        return cls(config=config, gateway=gateway, content_provider=content_provider)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> bool:
        """Restore persisted state. Starts empty on missing/corrupt state."""
        try:
            state = await self.gateway.load()
        except Exception as e:
            logger.warning(f"Could not load checkpoints, starting empty: {e}")
            state = None

        loaded = self.store.load_state(state)
        self.initialized = True
        return loaded

    async def save(self) -> bool:
        """Persist now and wait for the result."""
        return await self.gateway.save(self.store.to_state())

    def flush(self, timeout: float | None = None) -> bool:
        """Block until every scheduled background save has finished."""
        return self._saver.flush(timeout)

    def close(self, timeout: float | None = None) -> None:
        self._saver.close(timeout)

    def _schedule_save(self) -> None:
        # Snapshot now so later mutations don't leak into this save
        self._saver.submit(self.store.to_state())

    # ------------------------------------------------------------------
    # Checkpoints
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
        """Snapshot content for a file on the current branch.

        Args:
            file_path: Path the snapshot belongs to
            content: Full buffer text (empty string allowed)
            language: Language hint, defaults to the configured one
            change_type: edit, ai-edit, manual, save or auto
            description: Free text; a default is derived from change_type
            manual: True for explicit user snapshots

        Returns:
            The new checkpoint, or None if file_path or content is missing
            or the change is automatic while auto-save is off.
        """
        return self.store.create(
            file_path,
            content,
            language=language,
            change_type=change_type,
            description=description,
            manual=manual,
        )

    def get(self, checkpoint_id: str) -> Checkpoint | None:
        return self.store.get(checkpoint_id)

    def get_for_file(self, file_path: str) -> list[Checkpoint]:
        """Checkpoints for one file, newest first."""
        return self.store.get_for_file(file_path)

    def delete(self, checkpoint_id: str) -> bool:
        """Remove a checkpoint from the store and from every branch.

        Returns:
            True if it existed. Deleting an unknown id changes nothing.
        """
        return self.store.delete(checkpoint_id)

    def clear(self, file_path: str | None = None) -> None:
        """Remove checkpoints for one file, or everything when file_path is None.

        Clearing everything also resets branches to a single empty main.
        """
        self.store.clear(file_path)

    def set_auto_save(self, enabled: bool) -> None:
        self.store.set_auto_save(enabled)

    def set_max_checkpoints(self, value: int) -> bool:
        """Change the capacity, evicting the oldest checkpoints if now over it.

        Returns:
            False (and no change) unless value is an integer in 1..200.
        """
        return self.store.set_max_checkpoints(value)

    def get_stats(self) -> Stats:
        return self.store.get_stats()

    @property
    def checkpoints(self) -> list[Checkpoint]:
        return self.store.checkpoints

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    @property
    def current_branch(self) -> BranchName:
        return self.registry.current_branch

    def create_branch(self, name: str, from_branch: str | None = None) -> bool:
        """Create a branch holding a copy of another branch's checkpoint list.

        Args:
            name: New branch name, must not exist yet
            from_branch: Source branch, defaults to the current one

        Returns:
            True if created. The current branch does not change.
        """
        created = self.registry.create_branch(name, from_branch)
        if created:
            self._schedule_save()
        return created

    def switch_branch(self, name: str) -> bool:
        """Make an existing branch current. Returns False if it doesn't exist."""
        switched = self.registry.switch_branch(name)
        if switched:
            self._schedule_save()
        return switched

    def list_branches(self) -> list[BranchName]:
        return self.registry.list_branches()

    def list_checkpoints(self, branch: str) -> list[Checkpoint]:
        return self.registry.list_checkpoints(branch)

    # ------------------------------------------------------------------
    # Diff and restore
    # ------------------------------------------------------------------

    def diff(self, old: str, new: str) -> DiffResult:
        return diff_content(old, new)

    def compare(
        self,
        checkpoint_id: str,
        other_id: str | None = None,
        current_content: str | None = None,
    ) -> DiffResult | None:
        """Diff a checkpoint against another checkpoint or the live content.

        Args:
            checkpoint_id: The older side of the comparison
            other_id: Checkpoint to compare against; when omitted the live
                content is used instead
            current_content: Live content; falls back to the engine's
                content provider when None

        Returns:
            DiffResult, or None if either id is unknown or no live content
            is available.
        """
        return self.differ.compare(checkpoint_id, other_id, current_content)

    def restore(self, checkpoint_id: str) -> RestoreResult | None:
        """Fetch a checkpoint's content for the caller to apply.

        Read-only: store, branches and eviction order are untouched.

        Returns:
            RestoreResult with content and checkpoint, or None if unknown.
        """
        return self.restorer.restore(checkpoint_id)

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_state(self, file_path: str | None = None) -> dict[str, Any]:
        """Build an export document, optionally limited to one file."""
        return self.store.export_state(file_path)

    def import_state(self, data: Any) -> bool:
        """Merge an export document into the store.

        Checkpoints with ids already present are skipped, unknown branches
        are added, and the capacity is enforced afterwards.

        Returns:
            False if data is not an export document.
        """
        return self.store.import_state(data)
