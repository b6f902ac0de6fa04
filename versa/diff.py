"""Line diffs between checkpoints.

The comparison is positional: line i of one side is compared with line i of
the other, with no alignment. Inserting one line near the top therefore
reports every following line as changed. Counts are for at-a-glance display
("+3 -1 ~2"), not for producing patches.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from versa.checkpoint import Checkpoint

logger = logging.getLogger(__name__)

ContentProvider = Callable[[], str | None]


@dataclass(frozen=True)
class DiffResult:
    """Line counts from a positional comparison."""

    additions: int = 0
    deletions: int = 0
    changes: int = 0

    @property
    def total(self) -> int:
        return self.additions + self.deletions + self.changes

    def to_dict(self) -> dict[str, int]:
        return {
            "additions": self.additions,
            "deletions": self.deletions,
            "changes": self.changes,
            "total": self.total,
        }


def diff_content(old: str, new: str) -> DiffResult:
    """Compare two buffers line by line, by index."""
    old_lines = old.split("\n")
    new_lines = new.split("\n")

    additions = deletions = changes = 0
    for i in range(max(len(old_lines), len(new_lines))):
        if i >= len(old_lines):
            additions += 1
        elif i >= len(new_lines):
            deletions += 1
        elif old_lines[i] != new_lines[i]:
            changes += 1

    return DiffResult(additions=additions, deletions=deletions, changes=changes)


class DiffEngine:
    """Compares stored checkpoints with each other or with live content.

    Args:
        lookup: Resolves a checkpoint id (usually ``CheckpointStore.get``)
        content_provider: Returns the editor's current buffer, or None when
            no editor is attached
    """

    def __init__(
        self,
        lookup: Callable[[str], Checkpoint | None],
        content_provider: ContentProvider | None = None,
    ) -> None:
        self._lookup = lookup
        self.content_provider = content_provider

    def compare(
        self,
        checkpoint_id: str,
        other_id: str | None = None,
        current_content: str | None = None,
    ) -> DiffResult | None:
        """Diff a checkpoint against another checkpoint or the live buffer.

        With ``other_id`` the second side is that checkpoint's content.
        Otherwise ``current_content`` is used if given, then the content
        provider. Returns None if either checkpoint is unknown or there is
        no live content to compare against.
        """
        base = self._lookup(checkpoint_id)
        if base is None:
            logger.debug(f"Compare: unknown checkpoint {checkpoint_id}")
            return None

        if other_id:
            other = self._lookup(other_id)
            if other is None:
                logger.debug(f"Compare: unknown checkpoint {other_id}")
                return None
            target = other.content
        elif current_content is not None:
            target = current_content
        elif self.content_provider is not None:
            target = self.content_provider()
            if target is None:
                return None
        else:
            return None

        return diff_content(base.content, target)
