"""Checkpoint model for Versa.

A checkpoint is an immutable, full-content snapshot of one file taken at one
moment, tagged with the branch that was active when it was taken. Content is
stored whole, never as a delta.

Serialized form (camelCase keys, shared by persistence and export):
    {
      "id": "cp_1736550000000_k3j9x0a2b",
      "filePath": "src/app.py",
      "content": "...",
      "language": "python",
      "changeType": "ai-edit",
      "description": "AI edit",
      "timestamp": 1736550000000,
      "branch": "main",
      "manual": false,
      "metadata": {"lines": 42, "size": 1337, "hash": "-1x2y3z"}
    }
"""

from __future__ import annotations

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Any

from versa.hashing import hash_content
from versa.types import BranchName, CheckpointId

DEFAULT_LANGUAGE = "plaintext"
DEFAULT_CHANGE_TYPE = "edit"

CHANGE_DESCRIPTIONS = {
    "edit": "Manual edit",
    "ai-edit": "AI edit",
    "manual": "Manual save",
    "save": "File save",
    "auto": "Auto save",
}
FALLBACK_DESCRIPTION = "Code change"

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass(frozen=True)
class CheckpointMetadata:
    """Facts derived from content at creation time."""

    lines: int
    size: int
    hash: str

    @classmethod
    def from_content(cls, content: str) -> CheckpointMetadata:
        return cls(
            lines=len(content.split("\n")),
            size=len(content),
            hash=hash_content(content),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"lines": self.lines, "size": self.size, "hash": self.hash}


@dataclass(frozen=True)
class Checkpoint:
    """A full-content snapshot of one file."""

    id: CheckpointId
    file_path: str
    content: str
    language: str
    change_type: str  # edit, ai-edit, manual, save, auto (label only)
    description: str
    timestamp: int  # epoch milliseconds
    branch: BranchName  # branch active at creation, never changes
    manual: bool
    metadata: CheckpointMetadata

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted/exported dict shape."""
        return {
            "id": self.id,
            "filePath": self.file_path,
            "content": self.content,
            "language": self.language,
            "changeType": self.change_type,
            "description": self.description,
            "timestamp": self.timestamp,
            "branch": self.branch,
            "manual": self.manual,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Checkpoint | None:
        """Deserialize a checkpoint, or None if required fields are missing.

        Metadata is recomputed from content when absent or malformed.
        """
        try:
            checkpoint_id = data["id"]
            file_path = data["filePath"]
            content = data["content"]
        except (KeyError, TypeError):
            return None

        if not isinstance(checkpoint_id, str) or not checkpoint_id:
            return None
        if not isinstance(file_path, str) or not file_path or not isinstance(content, str):
            return None

        meta = data.get("metadata")
        try:
            metadata = CheckpointMetadata(
                lines=int(meta["lines"]), size=int(meta["size"]), hash=str(meta["hash"])
            )
        except (KeyError, TypeError, ValueError):
            metadata = CheckpointMetadata.from_content(content)

        change_type = data.get("changeType") or DEFAULT_CHANGE_TYPE
        try:
            timestamp = int(data.get("timestamp") or 0)
        except (TypeError, ValueError):
            timestamp = 0

        return cls(
            id=CheckpointId(checkpoint_id),
            file_path=file_path,
            content=content,
            language=data.get("language") or DEFAULT_LANGUAGE,
            change_type=change_type,
            description=data.get("description") or describe_change(change_type),
            timestamp=timestamp,
            branch=BranchName(data.get("branch") or "main"),
            manual=bool(data.get("manual", False)),
            metadata=metadata,
        )


def describe_change(change_type: str) -> str:
    """Default human-readable label for a change type."""
    return CHANGE_DESCRIPTIONS.get(change_type, FALLBACK_DESCRIPTION)


_clock_lock = threading.Lock()
_last_timestamp = 0


def now_millis() -> int:
    """Epoch milliseconds, never lower than a previously returned value."""
    global _last_timestamp
    with _clock_lock:
        _last_timestamp = max(_last_timestamp, int(time.time() * 1000))
        return _last_timestamp


def generate_checkpoint_id(timestamp: int | None = None) -> CheckpointId:
    """Generate an id of the form cp_<millis>_<9 base36 chars>."""
    if timestamp is None:
        timestamp = now_millis()
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return CheckpointId(f"cp_{timestamp}_{suffix}")


def build_checkpoint(
    file_path: str,
    content: str,
    branch: BranchName,
    language: str = DEFAULT_LANGUAGE,
    change_type: str = DEFAULT_CHANGE_TYPE,
    description: str = "",
    manual: bool = False,
) -> Checkpoint:
    """Assemble a new checkpoint, stamping id, time and metadata."""
    timestamp = now_millis()
    change_type = change_type or DEFAULT_CHANGE_TYPE
    return Checkpoint(
        id=generate_checkpoint_id(timestamp),
        file_path=file_path,
        content=content,
        language=language or DEFAULT_LANGUAGE,
        change_type=change_type,
        description=description or describe_change(change_type),
        timestamp=timestamp,
        branch=branch,
        manual=manual,
        metadata=CheckpointMetadata.from_content(content),
    )
