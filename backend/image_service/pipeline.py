"""
Request Pipeline

Serves one image request:

1. Existence check against the image directory
2. Cache key derivation (`filename` or `filename_{W}x{H}`)
3. Cache lookup - on a hit, record hit statistics and return the payload
4. On a miss, load the original, resize it when a resolution was asked for,
   write the result to the cache and record miss statistics

Failure policy:
- Missing image: counted as an error and a miss, ImageNotFoundError raised
- Resize failure: counted as an error, nothing cached, TransformError raised
- Store failure on cache get/set: fatal for the request, StoreUnavailableError
  raised (an error increment is attempted)
- Store failure while recording statistics: logged, the image is still served

Concurrent misses on the same key are not coalesced: each one resizes and
writes, and the last write wins.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from cache import Cache, StoreUnavailableError, cache_key
from stats import (
    MOST_REQUESTED_IMAGES,
    MOST_REQUESTED_RESOLUTIONS,
    ORIGINAL_LABEL,
    StatisticsEngine,
)

from .errors import ImageNotFoundError, TransformError
from .image_store import ImageStore
from .transformer import Transformer
from .validation import Resolution

logger = logging.getLogger(__name__)


class CacheStatus(str, Enum):
    HIT = "HIT"
    MISS = "MISS"


@dataclass
class ImageResponse:
    """Payload returned to the HTTP layer."""
    content: bytes
    content_type: str
    cache_status: CacheStatus
    cache_key: str


class RequestPipeline:
    """
    Orchestrates ImageStore, Transformer, Cache and StatisticsEngine.

    All collaborators are injected; the pipeline holds no state of its own
    between requests.
    """

    def __init__(
        self,
        image_store: ImageStore,
        transformer: Transformer,
        cache: Cache,
        statistics: StatisticsEngine,
    ):
        self.image_store = image_store
        self.transformer = transformer
        self.cache = cache
        self.statistics = statistics

    async def _record(self, update: Callable[..., Awaitable[Any]], *args: Any) -> None:
        """Run a statistics update; a store failure or corrupt value here does not fail the request."""
        try:
            await update(*args)
        except (StoreUnavailableError, ValueError) as e:
            logger.warning(f"[Pipeline] Statistics update {update.__name__} failed: {e}")

    async def _store_failed(self, key: str, operation: str, error: StoreUnavailableError) -> None:
        logger.error(f"[Pipeline] Cache {operation} failed for {key}: {error}")
        await self._record(self.statistics.record_error)

    async def _not_found(self, filename: str) -> None:
        logger.info(f"[Pipeline] Image not found: {filename}")
        await self._record(self.statistics.record_error)
        await self._record(self.statistics.record_miss)

    async def handle(self, filename: str, resolution: Optional[Resolution] = None) -> ImageResponse:
        """
        Serve filename, resized to resolution when given.

        Raises:
            ImageNotFoundError: the image is not in the image directory
            TransformError: resizing failed
            StoreUnavailableError: the cache could not be read or written
        """
        if not self.image_store.exists(filename):
            await self._not_found(filename)
            raise ImageNotFoundError(filename)

        resolution_label = str(resolution) if resolution else None
        key = cache_key(filename, resolution_label)
        content_type = self.image_store.content_type(filename)

        try:
            cached = await self.cache.get(key)
        except StoreUnavailableError as e:
            await self._store_failed(key, "lookup", e)
            raise

        if cached is not None:
            logger.debug(f"[Pipeline] Cache hit: {key}")
            await self._record(
                self.statistics.record_hit, resolution_label or ORIGINAL_LABEL, filename
            )
            return ImageResponse(cached, content_type, CacheStatus.HIT, key)

        logger.debug(f"[Pipeline] Cache miss: {key}")
        started = time.perf_counter()

        try:
            data = self.image_store.read(filename)
        except ImageNotFoundError:
            # Removed between the existence check and the read
            await self._not_found(filename)
            raise

        if resolution is not None:
            try:
                data = await self.transformer.resize(
                    data, resolution.width, resolution.height, filename=filename
                )
            except TransformError:
                await self._record(self.statistics.record_error)
                raise
            await self._record(self.statistics.record_resize)
            await self._record(
                self.statistics.update_frequency, MOST_REQUESTED_RESOLUTIONS, resolution_label
            )

        try:
            await self.cache.set(key, data)
        except StoreUnavailableError as e:
            await self._store_failed(key, "write", e)
            raise

        await self._record(self.statistics.record_miss)
        elapsed_ms = (time.perf_counter() - started) * 1000
        await self._record(self.statistics.record_processing_time, elapsed_ms)
        await self._record(self.statistics.update_frequency, MOST_REQUESTED_IMAGES, filename)
        await self._record(self.statistics.record_request)

        logger.info(f"[Pipeline] Served {key} ({len(data)} bytes, {elapsed_ms:.1f} ms)")
        return ImageResponse(data, content_type, CacheStatus.MISS, key)
