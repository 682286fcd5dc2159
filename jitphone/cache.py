"""Content-addressed caches for pipeline artifacts.

Every stage (compile, optimize, adapt) keys its results by a fingerprint of
the canonicalized input plus its options. Identical keys always map to
identical values, so a cache hit can replay a stored artifact verbatim.

The default backend is an unbounded dict. ``LRUBackend`` adds an entry cap and
an optional time-to-live for long-running processes.
"""

from __future__ import annotations

import hashlib
import json
import time
from collections import OrderedDict
from dataclasses import dataclass

_MISSING = object()


def canonicalize_source(text: str) -> str:
    """Normalize newlines and trailing whitespace so cosmetic edits share a key."""
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return "\n".join(line.rstrip() for line in lines).strip("\n")


def fingerprint(source: str, options: dict | None = None) -> str:
    """Stable SHA-256 over canonical source text and sorted options."""
    payload = json.dumps(
        {"source": canonicalize_source(source), "options": options or {}},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# --- Backends ---


class CacheBackend:
    """Storage interface used by :class:`ContentCache`."""

    def get(self, key: str):
        """Return the stored value, or the module sentinel when absent."""
        raise NotImplementedError

    def set(self, key: str, value) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError


class DictBackend(CacheBackend):
    """Unbounded in-memory store. Entries live for the whole process."""

    def __init__(self):
        self._data: dict = {}

    def get(self, key: str):
        return self._data.get(key, _MISSING)

    def set(self, key: str, value) -> None:
        self._data[key] = value

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class LRUBackend(CacheBackend):
    """Bounded store with least-recently-used eviction and optional TTL."""

    def __init__(self, max_entries: int = 1024, ttl_seconds: float = 0.0, clock=time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: OrderedDict = OrderedDict()

    def get(self, key: str):
        entry = self._data.get(key)
        if entry is None:
            return _MISSING
        stored_at, value = entry
        if self.ttl_seconds and self._clock() - stored_at > self.ttl_seconds:
            del self._data[key]
            return _MISSING
        self._data.move_to_end(key)
        return value

    def set(self, key: str, value) -> None:
        self._data[key] = (self._clock(), value)
        self._data.move_to_end(key)
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


# --- Cache front ---


@dataclass
class CacheStats:
    name: str
    hits: int = 0
    misses: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "hits": self.hits,
            "misses": self.misses,
            "size": self.size,
            "hit_rate": round(self.hit_rate, 4),
        }


class ContentCache:
    """Fingerprint-keyed cache that counts hits and misses."""

    def __init__(self, name: str, backend: CacheBackend | None = None):
        self.name = name
        self.backend = backend if backend is not None else DictBackend()
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key: str, compute):
        """Return ``(value, hit)``; ``compute()`` only runs on a miss."""
        value = self.backend.get(key)
        if value is not _MISSING:
            self.hits += 1
            return value, True
        self.misses += 1
        value = compute()
        self.backend.set(key, value)
        return value, False

    def lookup(self, key: str, default=None):
        """Peek without touching the counters."""
        value = self.backend.get(key)
        return default if value is _MISSING else value

    def clear(self) -> None:
        self.backend.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> CacheStats:
        return CacheStats(name=self.name, hits=self.hits, misses=self.misses, size=len(self.backend))


def make_cache(name: str, max_entries: int = 0, ttl_seconds: float = 0.0) -> ContentCache:
    """Build a cache from settings values; ``max_entries=0`` means unbounded."""
    if max_entries or ttl_seconds:
        backend: CacheBackend = LRUBackend(max_entries=max_entries or 1024, ttl_seconds=ttl_seconds)
    else:
        backend = DictBackend()
    return ContentCache(name, backend)
