"""
Cache Module

Shared key-value storage for cached image variants and service statistics.

Features:
- RedisStore for production, MemoryStore for tests and local runs
- Cache facade with base64 payloads, atomic counters and
  compare-and-swap updates
"""

from .errors import StoreUnavailableError
from .store import KeyValueStore, RedisStore
from .memory_store import MemoryStore
from .cache_service import Cache, cache_key

__all__ = [
    "Cache",
    "cache_key",
    "KeyValueStore",
    "RedisStore",
    "MemoryStore",
    "StoreUnavailableError",
]
