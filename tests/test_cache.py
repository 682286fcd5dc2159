"""Tests for fingerprinting and the content caches."""

import pytest

from jitphone.cache import (
    ContentCache,
    DictBackend,
    LRUBackend,
    canonicalize_source,
    fingerprint,
    make_cache,
)
from jitphone.config import Settings
from jitphone.service import TransformationService


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


# --- Fingerprints ---


def test_canonicalize_source_ignores_cosmetic_whitespace():
    assert canonicalize_source("a = 1   \r\nb = 2\n\n") == "a = 1\nb = 2"


def test_fingerprint_is_stable_and_option_sensitive():
    base = fingerprint("let x = 1", {"level": 2, "profile": "p"})
    assert base == fingerprint("let x = 1  \n", {"profile": "p", "level": 2})
    assert base != fingerprint("let x = 1", {"level": 3, "profile": "p"})
    assert base != fingerprint("let x = 2", {"level": 2, "profile": "p"})
    assert len(base) == 64


# --- ContentCache ---


def test_get_or_compute_counts_hits_and_misses():
    cache = ContentCache("compile")
    calls = []

    def compute():
        calls.append(1)
        return {"code": "x"}

    first, hit = cache.get_or_compute("k", compute)
    assert not hit
    second, hit = cache.get_or_compute("k", compute)
    assert hit
    assert second is first
    assert len(calls) == 1

    stats = cache.stats()
    assert (stats.hits, stats.misses, stats.size) == (1, 1, 1)
    assert stats.to_dict()["hit_rate"] == 0.5


def test_lookup_does_not_touch_counters():
    cache = ContentCache("c")
    assert cache.lookup("missing", "default") == "default"
    cache.get_or_compute("k", lambda: 7)
    assert cache.lookup("k") == 7
    assert cache.stats().hits == 0


def test_falsy_values_are_cached():
    cache = ContentCache("c")
    cache.get_or_compute("k", lambda: None)
    _, hit = cache.get_or_compute("k", lambda: 1)
    assert hit


def test_clear_resets_entries_and_counters():
    cache = ContentCache("c")
    cache.get_or_compute("k", lambda: 1)
    cache.get_or_compute("k", lambda: 1)
    cache.clear()
    stats = cache.stats()
    assert (stats.hits, stats.misses, stats.size) == (0, 0, 0)
    assert stats.hit_rate == 0.0


# --- Backends ---


def test_lru_backend_evicts_least_recently_used():
    backend = LRUBackend(max_entries=2)
    cache = ContentCache("c", backend)
    cache.get_or_compute("a", lambda: 1)
    cache.get_or_compute("b", lambda: 2)
    cache.get_or_compute("a", lambda: 1)  # a becomes most recent
    cache.get_or_compute("c", lambda: 3)
    assert len(backend) == 2
    assert cache.lookup("b") is None
    assert cache.lookup("a") == 1


def test_lru_backend_expires_entries():
    clock = FakeClock()
    cache = ContentCache("c", LRUBackend(max_entries=10, ttl_seconds=5, clock=clock))
    cache.get_or_compute("k", lambda: "old")
    clock.now = 6.0
    value, hit = cache.get_or_compute("k", lambda: "new")
    assert (value, hit) == ("new", False)


def test_lru_backend_rejects_zero_capacity():
    with pytest.raises(ValueError):
        LRUBackend(max_entries=0)


def test_make_cache_picks_backend():
    assert isinstance(make_cache("a").backend, DictBackend)
    bounded = make_cache("b", max_entries=3)
    assert isinstance(bounded.backend, LRUBackend)
    assert bounded.backend.max_entries == 3
    assert make_cache("c", ttl_seconds=60).backend.max_entries == 1024


def test_injected_empty_backend_is_kept():
    backend = LRUBackend(max_entries=2)
    assert len(backend) == 0
    assert ContentCache("c", backend).backend is backend


def test_service_caches_follow_settings():
    service = TransformationService(settings=Settings(cache_max_entries=1))
    for cache in (service.compile_cache, service.pipeline.cache, service.adapter.cache):
        assert isinstance(cache.backend, LRUBackend)
        assert cache.backend.max_entries == 1
