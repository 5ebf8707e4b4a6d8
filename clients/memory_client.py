"""
In-process stand-in for ValkeyClient.

Same method surface and TTL semantics, backed by a dict guarded by a lock.
Expiry is evaluated lazily against an injected clock, so tests can advance
time instead of sleeping. Also usable for single-process local runs.
"""

import json
import math
import threading
from datetime import datetime, timedelta

from utils.timezone import Clock, now_utc


class InMemoryValkeyClient:
    """Thread-safe in-memory key/value store with per-key expiry."""

    def __init__(self, clock: Clock = now_utc):
        self._clock = clock
        self._data: dict[str, tuple[str, datetime | None]] = {}
        self._lock = threading.RLock()

    def _live(self, key: str) -> tuple[str, datetime | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def _expiry(self, expire_seconds: int | None) -> datetime | None:
        if expire_seconds is None:
            return None
        return self._clock() + timedelta(seconds=expire_seconds)

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def set(
        self,
        key: str,
        value: str,
        expire_seconds: int | None = None,
        only_if_exists: bool = False,
    ) -> bool:
        with self._lock:
            if only_if_exists and self._live(key) is None:
                return False
            self._data[key] = (str(value), self._expiry(expire_seconds))
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._live(key) is not None
            self._data.pop(key, None)
            return existed

    def ttl(self, key: str) -> int:
        """Same contract as Valkey TTL: -2 missing, -1 no expiry."""
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return -2
            _, expires_at = entry
            if expires_at is None:
                return -1
            return math.ceil((expires_at - self._clock()).total_seconds())

    def incr_window(self, key: str, window_seconds: int) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                count, expires_at = 0, self._expiry(window_seconds)
            else:
                count, expires_at = int(entry[0]), entry[1]
            count += 1
            self._data[key] = (str(count), expires_at)
            return count

    def decr_existing(self, key: str) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return 0
            count = int(entry[0]) - 1
            self._data[key] = (str(count), entry[1])
            return count

    def set_json(
        self,
        key: str,
        value: dict | list,
        expire_seconds: int | None = None,
        only_if_exists: bool = False,
    ) -> bool:
        return self.set(key, json.dumps(value), expire_seconds, only_if_exists)

    def get_json(self, key: str) -> dict | list | None:
        value = self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in key '{key}': {e}")

    def replace_json(
        self,
        old_key: str | None,
        key: str,
        value: dict | list,
        expire_seconds: int,
    ) -> None:
        with self._lock:
            if old_key is not None:
                self._data.pop(old_key, None)
            self._data[key] = (json.dumps(value), self._expiry(expire_seconds))

    def keys(self, prefix: str = "") -> list[str]:
        """Live keys starting with prefix. Test helper, not part of ValkeyClient."""
        with self._lock:
            return [k for k in list(self._data) if k.startswith(prefix) and self._live(k)]

    def close(self) -> None:
        with self._lock:
            self._data.clear()
