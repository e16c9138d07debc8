"""
Durable session storage.

Job state and active-job registrations are mirrored into a session-scoped
key/value store so they survive a reload. Three backends are provided:

- InMemorySessionStore: process-local dict (tests, single-shot scripts)
- FileSessionStore: one JSON file per key, written atomically
- RedisSessionStore: redis keys expiring with the session TTL

Callers never talk to a backend directly; they go through SafeStorage,
whose methods return a StorageResult instead of raising.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

import redis.asyncio as redis_lib
from redis.exceptions import RedisError

from .config.storage import StorageConfig
from .errors import ErrorCode, ErrorContext, PersistenceError, StorageReadError, StorageWriteError
from .logging import JobLogger, get_logger

T = TypeVar("T")

_SAFE_KEY = re.compile(r"[^a-zA-Z0-9_.-]")


@runtime_checkable
class SessionStore(Protocol):
    """String key/value store scoped to the current session."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemorySessionStore:
    """Dict-backed session store, optionally with a byte quota."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(v) for k, v in self._data.items() if k != key)
            if used + len(value) > self.quota_bytes:
                raise OSError(f"Session storage quota exceeded ({self.quota_bytes} bytes)")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)


class FileSessionStore:
    """One JSON document per key under a session directory."""

    def __init__(self, directory: Path, key_prefix: str = "") -> None:
        self.dir = Path(directory)
        self.key_prefix = key_prefix
        self.dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        return self.dir / f"{_SAFE_KEY.sub('_', self.key_prefix + key)}.json"

    def get(self, key: str) -> str | None:
        try:
            return self._path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        # Atomic replace to avoid partial writes
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)

    def remove(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)

    def clear(self) -> None:
        """End the session: drop every persisted document."""
        for path in self.dir.glob("*.json"):
            path.unlink(missing_ok=True)


class RedisSessionStore:
    """
    Redis-backed session store; keys expire with the session.

    The SessionStore contract is synchronous, so reads are served from a
    local mirror filled by ``load()`` and writes go to the mirror at once.
    Changes are flushed to redis by a background task on the running loop;
    only the latest value per key is written. Without a running loop the
    changes stay pending until the next ``flush()``.
    """

    def __init__(
        self,
        client: redis_lib.Redis,
        key_prefix: str = "",
        ttl_seconds: int | None = None,
        logger: JobLogger | None = None,
    ) -> None:
        self.client = client
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds
        self.logger = logger or get_logger("job_tracker.persistence")
        self._mirror: dict[str, str] = {}
        # key -> latest value, None means delete
        self._pending: dict[str, str | None] = {}
        self._flush_task: asyncio.Task | None = None

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 5.0, **kwargs: Any) -> RedisSessionStore:
        client = redis_lib.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, **kwargs)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def load(self) -> int:
        """Fill the local mirror with every key under the prefix. Returns the key count."""
        loaded = 0
        async for redis_key in self.client.scan_iter(match=f"{self.key_prefix}*"):
            if isinstance(redis_key, bytes):
                redis_key = redis_key.decode("utf-8")
            value = await self.client.get(redis_key)
            if value is None:
                continue
            if isinstance(value, bytes):
                value = value.decode("utf-8")
            self._mirror[redis_key[len(self.key_prefix):]] = value
            loaded += 1
        return loaded

    def get(self, key: str) -> str | None:
        return self._mirror.get(key)

    def set(self, key: str, value: str) -> None:
        self._mirror[key] = value
        self._schedule(key, value)

    def remove(self, key: str) -> None:
        self._mirror.pop(key, None)
        self._schedule(key, None)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _schedule(self, key: str, value: str | None) -> None:
        self._pending[key] = value
        if self._flush_task is not None and not self._flush_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._flush_task = loop.create_task(self.flush())

    async def flush(self) -> bool:
        """Write pending changes to redis. Failed keys stay pending for the next flush."""
        while self._pending:
            batch, self._pending = self._pending, {}
            try:
                for key, value in batch.items():
                    if value is None:
                        await self.client.delete(self._key(key))
                    else:
                        await self.client.set(self._key(key), value, ex=self.ttl_seconds)
            except (RedisError, OSError) as exc:
                for key, value in batch.items():
                    # newer writes made during the flush win
                    self._pending.setdefault(key, value)
                self.logger.error(
                    f"Failed to flush session state to redis: {exc}",
                    keys=sorted(batch),
                    error_code=ErrorCode.STORAGE_WRITE_ERROR.value,
                )
                return False
        return True

    async def close(self) -> None:
        if self._flush_task is not None and not self._flush_task.done():
            await self._flush_task
        await self.flush()
        await self.client.aclose()


def build_session_store(config: StorageConfig) -> SessionStore:
    """Create the session store selected by ``config.backend``."""
    if config.backend == "fs":
        return FileSessionStore(config.dir, key_prefix=config.key_prefix)
    if config.backend == "redis":
        return RedisSessionStore.from_url(
            config.redis_url,
            key_prefix=config.key_prefix,
            ttl_seconds=config.ttl_seconds,
        )
    return InMemorySessionStore()


async def open_session_store(config: StorageConfig) -> SessionStore:
    """Build the configured store and, for redis, load the session's keys."""
    store = build_session_store(config)
    if isinstance(store, RedisSessionStore):
        await store.load()
    return store


# =============================================================================
# Safe adapter
# =============================================================================


@dataclass
class StorageResult(Generic[T]):
    """Outcome of a storage operation; ``error`` is set instead of raising."""

    value: T | None = None
    error: PersistenceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value


class SafeStorage:
    """
    JSON view over a SessionStore that never raises.

    Read failures (missing backend, corrupt JSON) and write failures (quota
    exceeded, connection refused) are logged at error level and returned as
    a failed StorageResult. In-memory state stays authoritative.
    """

    def __init__(self, store: SessionStore, logger: JobLogger | None = None) -> None:
        self.store = store
        self.logger = logger or get_logger("job_tracker.persistence")

    def read_json(self, key: str) -> StorageResult[Any]:
        try:
            raw = self.store.get(key)
            if raw is None:
                return StorageResult()
            return StorageResult(value=json.loads(raw))
        except Exception as exc:
            error = StorageReadError(
                f"Failed to load state from storage: {exc}",
                context=ErrorContext(operation="read", extra={"key": key}),
                cause=exc,
            )
            self.logger.error(error.message, key=key, error_code=error.code.value)
            return StorageResult(error=error)

    def write_json(self, key: str, value: Any) -> StorageResult[None]:
        try:
            self.store.set(key, json.dumps(value, separators=(",", ":"), ensure_ascii=False))
            return StorageResult()
        except Exception as exc:
            error = StorageWriteError(
                f"Failed to save state to storage: {exc}",
                context=ErrorContext(operation="write", extra={"key": key}),
                cause=exc,
            )
            self.logger.error(error.message, key=key, error_code=error.code.value)
            return StorageResult(error=error)

    def remove(self, key: str) -> StorageResult[None]:
        try:
            self.store.remove(key)
            return StorageResult()
        except Exception as exc:
            error = PersistenceError(
                f"Failed to clear persisted state: {exc}",
                context=ErrorContext(operation="remove", extra={"key": key}),
                cause=exc,
            )
            self.logger.error(error.message, key=key, error_code=error.code.value)
            return StorageResult(error=error)


__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "FileSessionStore",
    "RedisSessionStore",
    "build_session_store",
    "open_session_store",
    "StorageResult",
    "SafeStorage",
]
