"""Versa: checkpoint and branch versioning for editor buffers."""

__version__ = "0.3.0"

from versa.checkpoint import Checkpoint, CheckpointMetadata
from versa.diff import DiffResult, diff_content
from versa.engine import CheckpointEngine
from versa.types import BranchName, CheckpointId

__all__ = [
    "__version__",
    "BranchName",
    "Checkpoint",
    "CheckpointEngine",
    "CheckpointId",
    "CheckpointMetadata",
    "DiffResult",
    "diff_content",
]
