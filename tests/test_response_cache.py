"""
Tests for the response cache: TTL, invalidation and single-flight.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from personalization_service.cache import QA, RECOMMENDATIONS, SUMMARIZE, ResponseCache, make_key, ttl_for
from personalization_service.models import CacheEntry, CacheScope
from personalization_service.storage import InMemoryStore


class FakeClock:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FailingStore(InMemoryStore):
    def get(self, namespace, key):
        raise ConnectionError("store offline")

    def put(self, namespace, key, value):
        raise ConnectionError("store offline")


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(InMemoryStore(), clock=clock)


class TestKeys:
    """Deterministic keys and TTLs."""

    def test_key_ignores_param_order(self):
        assert make_key(SUMMARIZE, article_id="a", length="short") == make_key(SUMMARIZE, length="short", article_id="a")

    def test_key_differs_by_kind_and_params(self):
        assert make_key(SUMMARIZE, article_id="a") != make_key(QA, article_id="a")
        assert make_key(SUMMARIZE, article_id="a") != make_key(SUMMARIZE, article_id="b")

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            make_key("translate", article_id="a")

    def test_default_ttls(self):
        assert ttl_for(SUMMARIZE) == 24 * 3600
        assert ttl_for(RECOMMENDATIONS) == 3600


class TestCacheEntry:
    def test_expiry_must_follow_creation(self):
        with pytest.raises(ValueError):
            CacheEntry(key="k", payload=1, created_at=10.0, expires_at=10.0)


class TestTTL:
    """Hits before expiry, misses at and after it."""

    def test_hit_before_expiry(self, cache, clock):
        cache.put("k", {"v": 1}, ttl=60)
        clock.advance(59.9)
        lookup = cache.get("k")
        assert lookup.hit and lookup.payload == {"v": 1}

    def test_miss_at_expiry(self, cache, clock):
        cache.put("k", {"v": 1}, ttl=60)
        clock.advance(60)
        assert not cache.get("k").hit
        assert cache.store.get("cache", "k") is None

    def test_non_positive_ttl_rejected(self, cache):
        with pytest.raises(ValueError):
            cache.put("k", 1, ttl=0)

    def test_sweep_expired(self, cache, clock):
        cache.put("short", 1, ttl=10)
        cache.put("long", 2, ttl=100)
        clock.advance(50)
        assert cache.sweep_expired() == 1
        assert cache.get("long").hit


class TestInvalidation:
    """Scoped removal of entries."""

    def test_by_article_leaves_others(self, cache):
        cache.put("s1", "x", 60, kind=SUMMARIZE, scope=CacheScope(article_id="A"))
        cache.put("q1", "y", 60, kind=QA, scope=CacheScope(article_id="A"))
        cache.put("s2", "z", 60, kind=SUMMARIZE, scope=CacheScope(article_id="B"))

        assert cache.invalidate(CacheScope(article_id="A")) == 2
        assert not cache.get("s1").hit
        assert not cache.get("q1").hit
        assert cache.get("s2").hit

    def test_by_user_and_kind(self, cache):
        cache.put("r1", [], 60, kind=RECOMMENDATIONS, scope=CacheScope(user_id="u1"))
        cache.put("r2", [], 60, kind=RECOMMENDATIONS, scope=CacheScope(user_id="u2"))
        assert cache.invalidate(CacheScope(user_id="u1", kind=RECOMMENDATIONS)) == 1
        assert cache.get("r2").hit

    def test_article_and_user_together_remove_both(self, cache):
        cache.put("s1", "x", 60, kind=SUMMARIZE, scope=CacheScope(article_id="A"))
        cache.put("r1", [], 60, kind=RECOMMENDATIONS, scope=CacheScope(user_id="U"))
        cache.put("s2", "z", 60, kind=SUMMARIZE, scope=CacheScope(article_id="B"))

        assert cache.invalidate(CacheScope(article_id="A", user_id="U")) == 2
        assert not cache.get("s1").hit
        assert not cache.get("r1").hit
        assert cache.get("s2").hit

    def test_kind_narrows_combined_scope(self, cache):
        cache.put("s1", "x", 60, kind=SUMMARIZE, scope=CacheScope(article_id="A"))
        cache.put("r1", [], 60, kind=RECOMMENDATIONS, scope=CacheScope(user_id="U"))

        assert cache.invalidate(CacheScope(article_id="A", user_id="U", kind=RECOMMENDATIONS)) == 1
        assert cache.get("s1").hit

    def test_empty_scope_removes_nothing(self, cache):
        cache.put("k", 1, 60, kind=SUMMARIZE, scope=CacheScope(article_id="A"))
        assert cache.invalidate(CacheScope()) == 0
        assert cache.get("k").hit


class TestComputeOrWait:
    """Single-flight computation per key."""

    def test_second_call_is_a_hit(self, cache):
        calls = []
        compute = lambda: calls.append(1) or {"v": len(calls)}
        first, hit1 = cache.compute_or_wait("k", 60, compute)
        second, hit2 = cache.compute_or_wait("k", 60, compute)
        assert (first, hit1) == ({"v": 1}, False)
        assert (second, hit2) == ({"v": 1}, True)
        assert len(calls) == 1

    def test_concurrent_callers_share_one_computation(self, cache):
        """N concurrent identical requests run the computation once."""
        release = threading.Event()
        counter = {"n": 0}
        lock = threading.Lock()

        def compute():
            with lock:
                counter["n"] += 1
            release.wait(timeout=5)
            return {"answer": 42}

        followers = 8
        with ThreadPoolExecutor(max_workers=followers + 1) as pool:
            leader = pool.submit(cache.compute_or_wait, "k", 60, compute)
            assert wait_until(lambda: cache.in_flight("k"))
            waiting = [pool.submit(cache.compute_or_wait, "k", 60, compute) for _ in range(followers)]
            assert wait_until(lambda: cache.stats()["coalesced"] == followers)
            release.set()
            results = [leader.result(timeout=5)] + [f.result(timeout=5) for f in waiting]

        assert counter["n"] == 1
        assert all(payload == {"answer": 42} for payload, _ in results)
        assert results[0][1] is False
        assert all(hit for _, hit in results[1:])
        assert not cache.in_flight("k")

    def test_independent_keys_do_not_wait(self, cache):
        release = threading.Event()

        def slow():
            release.wait(timeout=5)
            return "slow"

        with ThreadPoolExecutor(max_workers=2) as pool:
            blocked = pool.submit(cache.compute_or_wait, "slow", 60, slow)
            assert wait_until(lambda: cache.in_flight("slow"))
            fast, hit = cache.compute_or_wait("fast", 60, lambda: "fast")
            assert (fast, hit) == ("fast", False)
            release.set()
            assert blocked.result(timeout=5)[0] == "slow"

    def test_failure_releases_key_and_propagates(self, cache):
        def boom():
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError):
            cache.compute_or_wait("k", 60, boom)
        assert not cache.in_flight("k")
        assert cache.compute_or_wait("k", 60, lambda: "ok") == ("ok", False)

    def test_should_cache_filters_results(self, cache):
        calls = []

        def compute():
            calls.append(1)
            return {"confidence": "Low"}

        keep = lambda payload: payload["confidence"] != "Low"
        cache.compute_or_wait("k", 60, compute, should_cache=keep)
        cache.compute_or_wait("k", 60, compute, should_cache=keep)
        assert len(calls) == 2

    def test_unavailable_store_still_computes(self, clock):
        cache = ResponseCache(FailingStore(), clock=clock)
        assert cache.compute_or_wait("k", 60, lambda: "fresh") == ("fresh", False)
        assert cache.stats()["errors"] >= 2
