"""
Cache abstraction for resolved file URLs.

Provides a bounded in-process TTL + LRU cache and a Redis-backed
implementation for deployments running several workers.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

import redis


class UrlCache(Protocol):
    """Minimal key/value cache with per-entry expiry."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


@dataclass
class TtlLruCache:
    """
    In-process cache holding at most `max_entries` items.

    Entries expire `ttl_seconds` after they were written. Expired entries are
    dropped when read and swept on every write; when the cache is still full
    after a sweep the least recently used entry is evicted.
    """

    max_entries: int = 1024
    ttl_seconds: float = 3600
    clock: Callable[[], float] = time.monotonic
    _entries: OrderedDict = field(default_factory=OrderedDict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def __post_init__(self):
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self.clock():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: str) -> None:
        with self._lock:
            now = self.clock()
            self._sweep(now)
            self._entries[key] = (value, now + self.ttl_seconds)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def _sweep(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]


@dataclass
class RedisUrlCache:
    """Redis-backed cache; Redis enforces expiry and its own eviction policy."""

    url: str
    ttl_seconds: int = 3600
    key_prefix: str = "examprep:file-url:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def get(self, key: str) -> Optional[str]:
        return self.client.get(self.key_prefix + key)

    def set(self, key: str, value: str) -> None:
        self.client.setex(self.key_prefix + key, self.ttl_seconds, value)
