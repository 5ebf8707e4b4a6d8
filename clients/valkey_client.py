"""
Valkey (Redis protocol) store for sessions and rate-limit counters.

redis-py underneath, strings decoded on read. Connection problems raise;
nothing here degrades to a default. Operations that touch a key more than
once (window counters, session rotation) run as MULTI/EXEC pipelines so
concurrent requests cannot interleave inside them.
"""

import json
import logging

import redis

logger = logging.getLogger(__name__)


def _decode_json(key: str, raw: str | None) -> dict | list | None:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in key '{key}': {e}")


class ValkeyClient:
    """
    Key/value operations used by RateLimiter and SessionManager.

    Usage:
        valkey = ValkeyClient("redis://localhost:6379/0")
        attempts = valkey.incr_window("ratelimit:login:a@x.com|10.0.0.1", 300)
        valkey.set_json("session:abc", {...}, expire_seconds=7200)
    """

    def __init__(self, url: str):
        """
        Connect and ping once.

        Raises:
            redis.ConnectionError: Server unreachable.
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        return self._client.get(key)

    def set(
        self,
        key: str,
        value: str,
        expire_seconds: int | None = None,
        only_if_exists: bool = False,
    ) -> bool:
        """
        Write key. With only_if_exists (SET XX) an absent key stays absent
        and False is returned.
        """
        return bool(self._client.set(key, value, ex=expire_seconds, xx=only_if_exists))

    def delete(self, key: str) -> bool:
        """True if the key existed."""
        return self._client.delete(key) > 0

    def ttl(self, key: str) -> int:
        """Seconds to expiry; -1 when the key never expires, -2 when it is absent."""
        return self._client.ttl(key)

    def incr_window(self, key: str, window_seconds: int) -> int:
        """
        Count one hit in a fixed window and return the new count.

        The first hit creates the key at 0 with the window as its TTL
        (SET NX EX); INCR never touches an existing TTL, so the window
        closes on schedule regardless of later hits.
        """
        with self._client.pipeline(transaction=True) as pipe:
            pipe.set(key, 0, ex=window_seconds, nx=True)
            pipe.incr(key)
            _, count = pipe.execute()
        return int(count)

    def decr_existing(self, key: str) -> int:
        """
        Take one off a live counter and return the new count.

        A missing key stays missing (plain DECR would create it at -1 with
        no TTL) and 0 is returned. WATCH retries if the key changes or
        expires between the check and the DECR.
        """
        with self._client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    if not pipe.exists(key):
                        pipe.unwatch()
                        return 0
                    pipe.multi()
                    pipe.decr(key)
                    (count,) = pipe.execute()
                    return int(count)
                except redis.WatchError:
                    continue

    def set_json(
        self,
        key: str,
        value: dict | list,
        expire_seconds: int | None = None,
        only_if_exists: bool = False,
    ) -> bool:
        return self.set(key, json.dumps(value), expire_seconds, only_if_exists)

    def get_json(self, key: str) -> dict | list | None:
        """
        Raises:
            ValueError: Stored value is not JSON.
        """
        return _decode_json(key, self.get(key))

    def replace_json(
        self,
        old_key: str | None,
        key: str,
        value: dict | list,
        expire_seconds: int,
    ) -> None:
        """Drop old_key and write key atomically; no reader ever sees both."""
        with self._client.pipeline(transaction=True) as pipe:
            if old_key is not None:
                pipe.delete(old_key)
            pipe.setex(key, expire_seconds, json.dumps(value))
            pipe.execute()

    def close(self) -> None:
        self._client.close()
        logger.info("ValkeyClient closed")
