"""Atomic file writes for Versa.

Temp file + rename, which is atomic on POSIX. Used by the JSON fallback
backend, config saving and CLI exports so a crash mid-write never leaves a
truncated state file behind.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from versa.errors import Err, Ok, Result, VersaError

logger = logging.getLogger(__name__)


def atomic_write_text(
    path: Path,
    content: str,
    mode: int = 0o600,
) -> Result[Path, VersaError]:
    """Atomically write text content to a file.

    Creates parent directories (0o700) if they don't exist.

    Args:
        path: Target file path
        content: Text content to write
        mode: File permissions (default 0o600 - owner read/write only)

    Returns:
        Ok(path) on success, Err(VersaError) on failure
    """
    path = Path(path)
    temp_path: str | None = None

    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

        # Same directory as the target, rename across filesystems isn't atomic
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.stem}_",
            suffix=f"{path.suffix}.tmp",
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
        temp_path = None

        logger.debug(f"Atomic write complete: {path}")
        return Ok(path)

    except PermissionError as e:
        logger.error(f"Permission denied writing {path}: {e}")
        return Err(
            VersaError(
                code="ATOMIC_PERMISSION_DENIED",
                message=f"Permission denied writing to {path}",
                context={"path": str(path)},
            )
        )

    except OSError as e:
        logger.error(f"OS error writing {path}: {e}")
        return Err(
            VersaError(
                code="ATOMIC_WRITE_FAILED",
                message=f"Failed to write {path}: {e}",
                context={"path": str(path), "error": str(e)},
            )
        )

    finally:
        _cleanup_temp(temp_path)


def atomic_write_json(
    path: Path,
    data: Any,
    mode: int = 0o600,
    indent: int | None = None,
) -> Result[Path, VersaError]:
    """Atomically write JSON data to a file.

    State payloads can hold full file contents, so output is compact unless
    an indent is requested (exports use indent=2).
    """
    try:
        content = json.dumps(data, indent=indent, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.error(f"JSON serialization failed: {e}")
        return Err(
            VersaError(
                code="JSON_SERIALIZATION_FAILED",
                message=f"Failed to serialize data to JSON: {e}",
                context={"error": str(e)},
            )
        )

    return atomic_write_text(path, content, mode)


def read_json(path: Path) -> Result[Any, VersaError]:
    """Read and parse a JSON file."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            return Ok(json.load(f))
    except FileNotFoundError:
        return Err(
            VersaError(
                code="FILE_NOT_FOUND",
                message=f"No such file: {path}",
                context={"path": str(path)},
            )
        )
    except (OSError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        return Err(
            VersaError(
                code="JSON_READ_FAILED",
                message=f"Failed to read JSON from {path}: {e}",
                context={"path": str(path), "error": str(e)},
            )
        )


def _cleanup_temp(temp_path: str | None) -> None:
    """Remove a leftover temp file, ignoring errors."""
    if temp_path is None:
        return

    try:
        os.unlink(temp_path)
        logger.debug(f"Cleaned up temp file: {temp_path}")
    except OSError:
        # Already gone
        pass
