"""
Image Cache Service

Wraps a KeyValueStore with the operations the pipeline and the statistics
engine need:
- get/set of opaque byte payloads (stored base64-encoded)
- atomic counter increments
- whole-store size
- plain text values and transactional read-modify-write for statistics

Cache keys are `filename` for originals and `filename_{W}x{H}` for resized
variants. Writes overwrite unconditionally (last writer wins).
"""

import base64
import binascii
import logging
from typing import Dict, Optional, Sequence

from .store import DEFAULT_MAX_RETRIES, KeyValueStore, Writer

logger = logging.getLogger(__name__)


def cache_key(filename: str, resolution: Optional[str] = None) -> str:
    """Derive the cache key for an image variant."""
    if resolution:
        return f"{filename}_{resolution}"
    return filename


class Cache:
    """
    Cache facade over the shared store.

    StoreUnavailableError from the store is propagated unchanged; the caller
    decides whether that is fatal.
    """

    def __init__(self, store: KeyValueStore, max_retries: int = DEFAULT_MAX_RETRIES):
        self.store = store
        self.max_retries = max_retries

    async def get(self, key: str) -> Optional[bytes]:
        """
        Get a cached payload.

        Returns:
            The decoded bytes, or None on a miss. A payload that is not valid
            base64 is logged and treated as a miss.
        """
        encoded = await self.store.get(key)
        if encoded is None:
            return None
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            logger.warning(f"[Cache] Undecodable payload at {key}, treating as miss")
            return None

    async def set(self, key: str, data: bytes) -> None:
        await self.store.set(key, base64.b64encode(data).decode("ascii"))
        logger.debug(f"[Cache] Stored {key} ({len(data)} bytes)")

    async def increment(self, counter: str) -> int:
        return await self.store.incr(counter)

    async def size(self) -> int:
        """Number of keys in the store, statistics keys included."""
        return await self.store.dbsize()

    async def get_value(self, key: str) -> Optional[str]:
        return await self.store.get(key)

    async def initialize_value(self, key: str, default: str) -> bool:
        """Set key to default only if it is absent. Returns True if written."""
        return await self.store.setnx(key, default)

    async def update_values(self, keys: Sequence[str], writer: Writer) -> Dict[str, str]:
        return await self.store.transact(keys, writer, max_retries=self.max_retries)
