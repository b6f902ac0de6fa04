"""Point-in-time restore.

Restoring is read-only: the coordinator hands back the stored content and
the caller (an editor, the CLI) decides where to write it. No engine state
changes as a result.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from versa.checkpoint import Checkpoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RestoreResult:
    content: str
    checkpoint: Checkpoint


class RestoreCoordinator:
    def __init__(self, lookup: Callable[[str], Checkpoint | None]) -> None:
        self._lookup = lookup

    def restore(self, checkpoint_id: str) -> RestoreResult | None:
        """Fetch a checkpoint's content, or None if the id is unknown."""
        checkpoint = self._lookup(checkpoint_id)
        if checkpoint is None:
            logger.warning(f"Checkpoint not found: {checkpoint_id}")
            return None

        logger.info(f"Restoring checkpoint {checkpoint.id}: {checkpoint.description}")
        return RestoreResult(content=checkpoint.content, checkpoint=checkpoint)
