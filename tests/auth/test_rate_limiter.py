"""Tests for RateLimiter - fixed-window attempt counting."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from auth.config import RateLimitPolicy
from auth.exceptions import RateLimitedError

POLICY = RateLimitPolicy(namespace="test", max_attempts=3, window_seconds=60)
IP = "10.0.0.1"


class TestPrimitives:
    def test_fresh_key_has_no_attempts(self, rate_limiter):
        assert rate_limiter.attempts("k") == 0
        assert rate_limiter.available_in("k") == 0
        assert rate_limiter.remaining_attempts("k", 3) == 3

    def test_hits_accumulate_until_limit(self, rate_limiter):
        for expected in (1, 2, 3):
            assert rate_limiter.hit("k", 60) == expected

        assert rate_limiter.too_many_attempts("k", 3)
        assert rate_limiter.remaining_attempts("k", 3) == 0

    def test_window_does_not_slide(self, rate_limiter, clock):
        rate_limiter.hit("k", 60)
        clock.advance(50)
        rate_limiter.hit("k", 60)

        assert rate_limiter.available_in("k") == 10
        clock.advance(10)
        assert rate_limiter.attempts("k") == 0

    def test_clear_forgets_attempts(self, rate_limiter):
        rate_limiter.hit("k", 60)
        rate_limiter.clear("k")

        assert rate_limiter.attempts("k") == 0

    def test_concurrent_hits_all_counted(self, rate_limiter):
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: rate_limiter.hit("k", 60), range(100)))

        assert rate_limiter.attempts("k") == 100


class TestPolicyHelpers:
    def test_pair_key_normalizes_principal(self, rate_limiter):
        key = rate_limiter.pair_key(POLICY, "  User@Example.COM ", IP)
        assert key == "test:user@example.com|10.0.0.1"

    def test_pair_key_without_origin(self, rate_limiter):
        assert rate_limiter.pair_key(POLICY, "a@b.c", None) == "test:a@b.c|unknown"

    def test_reserve_admits_up_to_limit(self, rate_limiter):
        for _ in range(POLICY.max_attempts):
            rate_limiter.reserve(POLICY, "a@b.c", IP)

        assert rate_limiter.attempts(rate_limiter.pair_key(POLICY, "a@b.c", IP)) == POLICY.max_attempts

    def test_reserve_refuses_over_limit_with_retry_after(self, rate_limiter, clock):
        for _ in range(POLICY.max_attempts):
            rate_limiter.reserve(POLICY, "a@b.c", IP)
        clock.advance(20)

        with pytest.raises(RateLimitedError) as exc_info:
            rate_limiter.reserve(POLICY, "a@b.c", IP)

        assert exc_info.value.retry_after_seconds == 40

    def test_refused_attempts_stay_counted(self, rate_limiter):
        for _ in range(POLICY.max_attempts + 2):
            try:
                rate_limiter.reserve(POLICY, "a@b.c", IP)
            except RateLimitedError:
                pass

        assert rate_limiter.attempts(rate_limiter.pair_key(POLICY, "a@b.c", IP)) == POLICY.max_attempts + 2

    def test_reserve_lifts_after_window(self, rate_limiter, clock):
        for _ in range(POLICY.max_attempts):
            rate_limiter.reserve(POLICY, "a@b.c", IP)
        clock.advance(POLICY.window_seconds)

        rate_limiter.reserve(POLICY, "a@b.c", IP)

    def test_principals_tracked_separately(self, rate_limiter):
        for _ in range(POLICY.max_attempts):
            rate_limiter.reserve(POLICY, "a@b.c", IP)

        rate_limiter.reserve(POLICY, "other@b.c", IP)

    def test_rotating_principals_from_one_origin_are_bounded(self, rate_limiter, config):
        spread = POLICY.max_attempts * config.rate_limit_spread_factor
        for i in range(spread):
            rate_limiter.reserve(POLICY, f"user{i}@b.c", IP)

        with pytest.raises(RateLimitedError):
            rate_limiter.reserve(POLICY, "fresh@b.c", IP)

    def test_rotating_origins_for_one_principal_are_bounded(self, rate_limiter, config):
        spread = POLICY.max_attempts * config.rate_limit_spread_factor
        for i in range(spread):
            rate_limiter.reserve(POLICY, "a@b.c", f"10.0.1.{i}")

        with pytest.raises(RateLimitedError):
            rate_limiter.reserve(POLICY, "a@b.c", "10.0.2.1")

    def test_parallel_reservations_never_exceed_the_limit(self, rate_limiter):
        workers = 20
        barrier = threading.Barrier(workers)

        def attempt(_):
            barrier.wait()
            try:
                rate_limiter.reserve(POLICY, "a@b.c", IP)
            except RateLimitedError:
                return False
            return True

        with ThreadPoolExecutor(max_workers=workers) as pool:
            admitted = list(pool.map(attempt, range(workers)))

        assert admitted.count(True) <= POLICY.max_attempts
        assert rate_limiter.attempts(rate_limiter.pair_key(POLICY, "a@b.c", IP)) == workers

    def test_forgive_clears_pair_and_returns_one_hit_to_wider_buckets(self, rate_limiter):
        for _ in range(POLICY.max_attempts):
            rate_limiter.reserve(POLICY, "a@b.c", IP)

        rate_limiter.forgive(POLICY, "a@b.c", IP)

        assert rate_limiter.attempts(rate_limiter.pair_key(POLICY, "a@b.c", IP)) == 0
        assert rate_limiter.attempts(f"test:origin:{IP}") == POLICY.max_attempts - 1
        assert rate_limiter.attempts("test:principal:a@b.c") == POLICY.max_attempts - 1

    def test_forgive_after_window_creates_nothing(self, rate_limiter, clock):
        rate_limiter.reserve(POLICY, "a@b.c", IP)
        clock.advance(POLICY.window_seconds)

        rate_limiter.forgive(POLICY, "a@b.c", IP)

        assert rate_limiter.available_in(f"test:origin:{IP}") == 0
        assert rate_limiter.attempts(f"test:origin:{IP}") == 0
