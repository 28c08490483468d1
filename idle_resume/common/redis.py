"""Redis connection and the persisted timestamp store for idle-resume state."""

from __future__ import annotations

import math
import os
import threading
from typing import Protocol

import redis
import structlog


_REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
_REDIS_PORT = int(os.environ.get("REDIS_PORT", "6379"))
_REDIS_DB = int(os.environ.get("REDIS_DB", "0"))
_REDIS_PASSWORD = os.environ.get("REDIS_PASSWORD") or None

_client: redis.Redis | None = None
_log = structlog.get_logger("timer_store")


def get_redis() -> redis.Redis:
    """Return a shared Redis client (lazy singleton)."""
    global _client
    if _client is None:
        _client = redis.Redis(
            host=_REDIS_HOST,
            port=_REDIS_PORT,
            db=_REDIS_DB,
            password=_REDIS_PASSWORD,
            decode_responses=True,
        )
    return _client


class TimerStore(Protocol):
    """Dumb string map; all key naming happens in the callers."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...


class RedisTimerStore:
    """TimerStore backed by plain Redis string keys."""

    def __init__(self, client: redis.Redis | None = None) -> None:
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis()
        return self._client

    def get(self, key: str) -> str | None:
        return self.client.get(key)

    def set(self, key: str, value: str) -> None:
        self.client.set(key, value)

    def clear(self, key: str) -> None:
        self.client.delete(key)


class MemoryTimerStore:
    """Process-local TimerStore (tests, ``--memory`` runs)."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def clear(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._data)


# ── Timestamp helpers ────────────────────────────────────────────────────────


def read_timestamp(store: TimerStore, key: str, *, strict: bool = False) -> int | None:
    """Return the stored millisecond timestamp, or None if unset/unreadable.

    With ``strict`` a Redis failure is re-raised instead of reading as unset.
    """
    try:
        raw = store.get(key)
    except redis.RedisError as exc:
        if strict:
            raise
        _log.warning("timer_store_read_failed", key=key, error=str(exc))
        return None
    if not raw:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return int(value) if math.isfinite(value) else None


def write_timestamp(store: TimerStore, key: str, value: int) -> None:
    """Persist *value* under *key*; storage failures are logged, not raised."""
    try:
        store.set(key, str(int(value)))
    except redis.RedisError as exc:
        _log.warning("timer_store_write_failed", key=key, error=str(exc))
