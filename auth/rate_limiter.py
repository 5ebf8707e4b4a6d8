"""Fixed-window attempt counters backed by Valkey.

A bucket is a counter key whose TTL is set when the first hit creates it;
later hits increment without touching the TTL, so the window never slides.
Once the key expires the next hit starts a fresh window.

Actions are guarded by three buckets (see RateLimiter.reserve) so both
"many accounts from one origin" and "one account from many origins" are
bounded, not only the exact (account, origin) pair.
"""

import logging

from auth.config import AuthConfig, RateLimitPolicy
from auth.exceptions import RateLimitedError
from clients.valkey_client import ValkeyClient

logger = logging.getLogger(__name__)


class RateLimiter:
    """Attempt counting per key, with policy-level helpers for auth actions."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    # Primitive bucket operations

    def attempts(self, key: str) -> int:
        """Attempts recorded in the current window (0 if none)."""
        current = self._valkey.get(self._key(key))
        return int(current) if current is not None else 0

    def too_many_attempts(self, key: str, max_attempts: int) -> bool:
        return self.attempts(key) >= max_attempts

    def hit(self, key: str, window_seconds: int) -> int:
        """Record one attempt; starts the window if none is open. Returns the new count."""
        return self._valkey.incr_window(self._key(key), window_seconds)

    def available_in(self, key: str) -> int:
        """Seconds until the window resets (0 if no window is open)."""
        return max(self._valkey.ttl(self._key(key)), 0)

    def remaining_attempts(self, key: str, max_attempts: int) -> int:
        return max(max_attempts - self.attempts(key), 0)

    def clear(self, key: str) -> None:
        """Forget all attempts for key."""
        self._valkey.delete(self._key(key))

    # Policy helpers

    @staticmethod
    def pair_key(policy: RateLimitPolicy, principal: str, origin: str | None) -> str:
        """Bucket for one principal from one origin. Principal is normalized to lowercase."""
        return f"{policy.namespace}:{principal.strip().lower()}|{origin or 'unknown'}"

    def _buckets(self, policy: RateLimitPolicy, principal: str, origin: str | None) -> list[tuple[str, int]]:
        spread = policy.max_attempts * self._config.rate_limit_spread_factor
        return [
            (self.pair_key(policy, principal, origin), policy.max_attempts),
            (f"{policy.namespace}:origin:{origin or 'unknown'}", spread),
            (f"{policy.namespace}:principal:{principal.strip().lower()}", spread),
        ]

    def reserve(self, policy: RateLimitPolicy, principal: str, origin: str | None) -> None:
        """
        Count this attempt against every bucket, then refuse it if any bucket
        is now over its limit.

        The increment comes first and the comparison uses the count it
        returned, so each of N parallel callers sees a distinct count and at
        most max_attempts of them are admitted per window. A refused attempt
        stays counted.

        Raises:
            RateLimitedError: retry_after_seconds is the longest wait among
                the exhausted buckets (at least 1).
        """
        waits = []
        for key, limit in self._buckets(policy, principal, origin):
            if self.hit(key, policy.window_seconds) > limit:
                waits.append(self.available_in(key))
        if waits:
            retry_after = max(max(waits), 1)
            logger.warning(f"Rate limit reached for {policy.namespace} from {origin}")
            raise RateLimitedError(retry_after_seconds=retry_after)

    def forgive(self, policy: RateLimitPolicy, principal: str, origin: str | None) -> None:
        """
        Undo a reserved attempt that turned out legitimate.

        The (principal, origin) bucket is cleared; the wider buckets only
        give back the one hit, so earlier failures in them keep counting.
        """
        pair, *wider = self._buckets(policy, principal, origin)
        self.clear(pair[0])
        for key, _ in wider:
            self._valkey.decr_existing(self._key(key))
