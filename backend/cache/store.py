"""
Key-Value Store Backends

The shared store is the single source of truth for cached image payloads and
for every statistic. Two implementations share one contract:

- RedisStore: redis-py asyncio client, used in production
- MemoryStore (memory_store.py): in-process, used in tests and local runs

Contract notes:
- Values are text. Binary payloads are encoded by the caller.
- incr() must be indivisible; concurrent callers never lose an update.
- transact() is a compare-and-swap read-modify-write over a set of keys:
  the writer function sees a consistent view and its writes are applied only
  if none of the keys changed in the meantime, otherwise it is re-run.
"""

import logging
from typing import Callable, Dict, Optional, Protocol, Sequence

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from .errors import StoreUnavailableError

logger = logging.getLogger(__name__)

# Receives the current values of the watched keys, returns the keys to write.
Writer = Callable[[Dict[str, Optional[str]]], Dict[str, str]]

DEFAULT_MAX_RETRIES = 10


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def setnx(self, key: str, value: str) -> bool: ...

    async def incr(self, key: str) -> int: ...

    async def dbsize(self) -> int: ...

    async def transact(
        self,
        keys: Sequence[str],
        writer: Writer,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> Dict[str, str]: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisStore:
    """
    KeyValueStore backed by Redis.

    Every RedisError is re-raised as StoreUnavailableError so callers only
    deal with one failure type. Nothing here retries except transact(),
    which re-runs on WATCH conflicts.
    """

    def __init__(self, client: "redis.Redis"):
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: Optional[float] = None) -> "RedisStore":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        logger.info(f"[RedisStore] Using {url}")
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except RedisError as e:
            raise StoreUnavailableError(f"GET {key} failed: {e}", "get") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self._client.set(key, value)
        except RedisError as e:
            raise StoreUnavailableError(f"SET {key} failed: {e}", "set") from e

    async def setnx(self, key: str, value: str) -> bool:
        try:
            return bool(await self._client.set(key, value, nx=True))
        except RedisError as e:
            raise StoreUnavailableError(f"SET NX {key} failed: {e}", "setnx") from e

    async def incr(self, key: str) -> int:
        try:
            return int(await self._client.incr(key))
        except RedisError as e:
            raise StoreUnavailableError(f"INCR {key} failed: {e}", "incr") from e

    async def dbsize(self) -> int:
        try:
            return int(await self._client.dbsize())
        except RedisError as e:
            raise StoreUnavailableError(f"DBSIZE failed: {e}", "dbsize") from e

    async def transact(
        self,
        keys: Sequence[str],
        writer: Writer,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> Dict[str, str]:
        """
        WATCH keys, read them, compute writes, MULTI/EXEC.

        Raises StoreUnavailableError if the keys keep changing underneath us
        for more than max_retries attempts.
        """
        attempts = 0
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(*keys)
                        current = {}
                        for key in keys:
                            current[key] = await pipe.get(key)
                        writes = writer(current)
                        pipe.multi()
                        for key, value in writes.items():
                            pipe.set(key, value)
                        await pipe.execute()
                        return writes
                    except WatchError:
                        attempts += 1
                        if attempts > max_retries:
                            raise StoreUnavailableError(
                                f"Transaction on {list(keys)} kept conflicting "
                                f"after {max_retries} retries",
                                "transact",
                            )
                        logger.debug(f"[RedisStore] Conflict on {list(keys)}, retry {attempts}")
                        await pipe.reset()
        except RedisError as e:
            raise StoreUnavailableError(f"Transaction on {list(keys)} failed: {e}", "transact") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            raise StoreUnavailableError(f"PING failed: {e}", "ping") from e

    async def close(self) -> None:
        await self._client.aclose()
