"""Persistence for Versa engine state.

State is saved as one JSON document under a logical key through an ordered
chain of backends:

1. ``SqliteDocumentBackend`` - primary, a SQLite document table (aiosqlite)
2. ``JsonFileBackend``       - fallback, one JSON file per key, also kept as
                               a redundant backup when the primary succeeds
3. ``MemoryBackend``         - in-process only, for tests and scratch use

``PersistenceGateway.save`` tries backends in priority order; the first
success ends the fallback search, then backends flagged ``keep_backup``
receive a best-effort mirror copy. ``load`` returns the first valid payload
in the same order. Backend failures are logged and never raised.

Saves triggered by engine mutations run on ``BackgroundSaver``, a single
worker thread, so callers never wait for I/O and saves land in order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import aiosqlite

from versa.atomic import atomic_write_json, read_json
from versa.checkpoint import now_millis

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "checkpoints"
SQLITE_FILENAME = "checkpoints.db"


@runtime_checkable
class StorageBackend(Protocol):
    """Key/value contract every backend implements."""

    name: str
    keep_backup: bool

    def is_available(self) -> bool: ...

    async def save(self, key: str, payload: dict[str, Any]) -> bool: ...

    async def load(self, key: str) -> dict[str, Any] | None: ...


class MemoryBackend:
    """Dict-backed store. Payloads are round-tripped through JSON so callers
    can't observe shared mutable state."""

    def __init__(self, name: str = "memory", keep_backup: bool = False) -> None:
        self.name = name
        self.keep_backup = keep_backup
        self._data: dict[str, str] = {}

    def is_available(self) -> bool:
        return True

    async def save(self, key: str, payload: dict[str, Any]) -> bool:
        self._data[key] = json.dumps(payload)
        return True

    async def load(self, key: str) -> dict[str, Any] | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None


class JsonFileBackend:
    """One JSON file per key, written atomically."""

    def __init__(self, directory: Path, keep_backup: bool = True) -> None:
        self.name = "json"
        self.directory = Path(directory)
        self.keep_backup = keep_backup

    def path_for(self, key: str) -> Path:
        # Keys become file names: no separators or traversal
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "-", key).strip("-") or "state"
        return self.directory / f"{safe}.json"

    def is_available(self) -> bool:
        return True

    async def save(self, key: str, payload: dict[str, Any]) -> bool:
        result = await asyncio.to_thread(atomic_write_json, self.path_for(key), payload)
        if result.is_err():
            logger.warning(f"JSON backend save failed: {result.unwrap_err().message}")
            return False
        return True

    async def load(self, key: str) -> dict[str, Any] | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        result = await asyncio.to_thread(read_json, path)
        if result.is_err():
            logger.warning(f"JSON backend load failed: {result.unwrap_err().message}")
            return None
        data = result.unwrap()
        return data if isinstance(data, dict) else None


class SqliteDocumentBackend:
    """Documents in a single SQLite table, keyed by logical name.

    A connection is opened per operation: saves run on a background worker
    whose event loop is short-lived.
    """

    def __init__(self, db_path: Path, keep_backup: bool = False) -> None:
        self.name = "sqlite"
        self.db_path = Path(db_path)
        self.keep_backup = keep_backup

    def is_available(self) -> bool:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        except OSError as e:
            logger.debug(f"SQLite backend unavailable: {e}")
            return False
        return True

    async def _prepare(self, db: aiosqlite.Connection) -> None:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute(
            "CREATE TABLE IF NOT EXISTS documents ("
            " key TEXT PRIMARY KEY,"
            " payload TEXT NOT NULL,"
            " saved_at INTEGER NOT NULL)"
        )

    async def save(self, key: str, payload: dict[str, Any]) -> bool:
        async with aiosqlite.connect(self.db_path) as db:
            await self._prepare(db)
            await db.execute(
                "INSERT INTO documents (key, payload, saved_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET payload = excluded.payload, "
                "saved_at = excluded.saved_at",
                (key, json.dumps(payload, ensure_ascii=False), now_millis()),
            )
            await db.commit()
        return True

    async def load(self, key: str) -> dict[str, Any] | None:
        if not self.db_path.exists():
            return None
        async with aiosqlite.connect(self.db_path) as db:
            await self._prepare(db)
            async with db.execute("SELECT payload FROM documents WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return None
        data = json.loads(row[0])
        return data if isinstance(data, dict) else None


class PersistenceGateway:
    """Saves and loads state through backends in priority order."""

    def __init__(self, backends: list[StorageBackend], key: str = DEFAULT_STORAGE_KEY) -> None:
        self.backends = list(backends)
        self.key = key

    async def save(self, state: dict[str, Any]) -> bool:
        """Store state in the first backend that accepts it.

        Returns True if any backend stored it. Never raises.
        """
        primary = None
        for backend in self.backends:
            if await self._try_save(backend, state):
                primary = backend
                break
            logger.info(f"Falling back from {backend.name} backend")

        if primary is None:
            logger.warning("Checkpoint state not persisted: no backend available")
            return False

        # Redundant copies behind the one that succeeded
        later = self.backends[self.backends.index(primary) + 1 :]
        for backend in later:
            if backend.keep_backup:
                await self._try_save(backend, state)

        logger.debug(f"Saved checkpoint state via {primary.name}")
        return True

    async def load(self) -> dict[str, Any] | None:
        """Return the first valid payload, or None if no backend has one."""
        for backend in self.backends:
            if not backend.is_available():
                continue
            try:
                data = await backend.load(self.key)
            except Exception as e:
                logger.warning(f"Loading from {backend.name} backend failed: {e}")
                continue
            if data is None:
                continue
            if not isinstance(data, dict) or not isinstance(data.get("checkpoints"), list):
                logger.warning(f"Ignoring malformed state in {backend.name} backend")
                continue
            logger.debug(f"Loaded checkpoint state from {backend.name}")
            return data
        return None

    async def _try_save(self, backend: StorageBackend, state: dict[str, Any]) -> bool:
        if not backend.is_available():
            return False
        try:
            return bool(await backend.save(self.key, state))
        except Exception as e:
            # Any backend error (sqlite, OS, serialization) means "try the next one"
            logger.warning(f"Saving to {backend.name} backend failed: {e}")
            return False


def default_backends(
    state_dir: Path,
    use_sqlite: bool = True,
    keep_json_backup: bool = True,
) -> list[StorageBackend]:
    """Standard chain for a state directory: SQLite, then JSON file."""
    backends: list[StorageBackend] = []
    if use_sqlite:
        backends.append(SqliteDocumentBackend(state_dir / SQLITE_FILENAME))
    backends.append(JsonFileBackend(state_dir, keep_backup=keep_json_backup))
    return backends


class BackgroundSaver:
    """Runs gateway saves on one worker thread, in submission order.

    ``submit`` returns immediately. Failures are logged by the gateway; an
    unexpected exception is logged here and dropped so the next save still
    runs.
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self.gateway = gateway
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="versa-save")
        self._lock = threading.Lock()
        self._pending: list[Future] = []
        self._closed = False

    def submit(self, state: dict[str, Any]) -> Future | None:
        with self._lock:
            if self._closed:
                logger.debug("Saver closed, dropping state save")
                return None
            future = self._executor.submit(self._run, state)
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
            return future

    def _run(self, state: dict[str, Any]) -> bool:
        try:
            return asyncio.run(self.gateway.save(state))
        except Exception:
            logger.warning("Background checkpoint save failed", exc_info=True)
            return False

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for every submitted save. False on timeout."""
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            try:
                future.result(timeout=timeout)
            except FutureTimeoutError:
                return False
        return True

    def close(self, timeout: float | None = None) -> None:
        self.flush(timeout)
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=True)
