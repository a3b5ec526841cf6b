"""
Memory Store Implementation

In-process key-value store implementing the same contract as RedisStore.
Used by the test-suite and for single-process development runs
(STORE_BACKEND=memory).

Features:
- asyncio.Lock around every operation, so incr() and transact() are
  indivisible with respect to other coroutines on the loop
- Values are kept as text, exactly as Redis would return them with
  decode_responses=True
- Unbounded: no TTL, no eviction
"""

import asyncio
from typing import Dict, Optional, Sequence

from .errors import StoreUnavailableError
from .store import DEFAULT_MAX_RETRIES, Writer


class MemoryStore:
    """
    Coroutine-safe in-memory storage

    Usage:
        store = MemoryStore()
        await store.set("photo.jpg", payload)
        hits = await store.incr("cacheHits")
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = asyncio.Lock()
        self._closed = False

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise StoreUnavailableError("Memory store is closed", operation)

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            self._check_open("get")
            return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._check_open("set")
            self._data[key] = str(value)

    async def setnx(self, key: str, value: str) -> bool:
        async with self._lock:
            self._check_open("setnx")
            if key in self._data:
                return False
            self._data[key] = str(value)
            return True

    async def incr(self, key: str) -> int:
        """
        Atomic add-1, same semantics as Redis INCR: a missing key counts
        as 0, a non-integer value is an error.
        """
        async with self._lock:
            self._check_open("incr")
            raw = self._data.get(key, "0")
            try:
                value = int(raw) + 1
            except ValueError as e:
                raise StoreUnavailableError(
                    f"INCR {key}: value is not an integer", "incr"
                ) from e
            self._data[key] = str(value)
            return value

    async def dbsize(self) -> int:
        async with self._lock:
            self._check_open("dbsize")
            return len(self._data)

    async def transact(
        self,
        keys: Sequence[str],
        writer: Writer,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> Dict[str, str]:
        # The lock is held across read, compute and write, so there is never
        # a conflict to retry.
        async with self._lock:
            self._check_open("transact")
            current = {key: self._data.get(key) for key in keys}
            writes = writer(current)
            for key, value in writes.items():
                self._data[key] = str(value)
            return writes

    async def ping(self) -> bool:
        async with self._lock:
            self._check_open("ping")
            return True

    async def close(self) -> None:
        async with self._lock:
            self._closed = True

    def dump(self) -> Dict[str, str]:
        """Copy of the raw contents (tests and debugging)."""
        return dict(self._data)
