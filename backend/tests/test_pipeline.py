"""
Request pipeline tests

Covers the hit/miss state machine, the statistics each path records and
the failure policy.

Run:
    pytest tests/test_pipeline.py -v
"""

import asyncio

import pytest

from cache import Cache, StoreUnavailableError
from image_service import CacheStatus, RequestPipeline
from image_service.errors import ImageNotFoundError, TransformError
from image_service.transformer import Transformer
from image_service.validation import Resolution
from stats import StatisticsEngine
from stats.engine import COUNTERS, FREQUENCY_MAPS, AVERAGE_PROCESSING_TIME
from conftest import FailingStore, assert_counters, image_size

STATISTICS_KEYS = set(COUNTERS) | set(FREQUENCY_MAPS) | {AVERAGE_PROCESSING_TIME}


def _pipeline_on(store, image_store, transformer=None):
    cache = Cache(store)
    return RequestPipeline(image_store, transformer or Transformer(), cache, StatisticsEngine(cache))


# ============================================
# 1. Miss and hit on originals
# ============================================

class TestOriginals:
    """Requests without a resolution"""

    @pytest.mark.asyncio
    async def test_first_request_is_a_miss_with_original_bytes(self, pipeline, statistics, photo_bytes):
        result = await pipeline.handle("photo.jpg")

        assert result.content == photo_bytes
        assert result.content_type == "image/jpeg"
        assert result.cache_status == CacheStatus.MISS
        assert result.cache_key == "photo.jpg"

        snapshot = await statistics.snapshot()
        assert_counters(snapshot, cache_misses=1, total_requests=1, resized_images=0, cache_hits=0)
        assert snapshot.most_requested_images == {"photo.jpg": 1}
        assert snapshot.most_requested_resolutions == {}
        assert snapshot.average_processing_time >= 0

    @pytest.mark.asyncio
    async def test_second_request_is_a_hit(self, pipeline, statistics, photo_bytes):
        await pipeline.handle("photo.jpg")
        result = await pipeline.handle("photo.jpg")

        assert result.cache_status == CacheStatus.HIT
        assert result.content == photo_bytes

        snapshot = await statistics.snapshot()
        assert_counters(snapshot, cache_hits=1, cache_misses=1, total_requests=2)
        assert snapshot.most_requested_resolutions == {"original": 1}
        assert snapshot.most_requested_images == {"photo.jpg": 2}

    @pytest.mark.asyncio
    async def test_hit_returns_stored_payload_exactly(self, pipeline, cache):
        await cache.set("photo.jpg", b"\x89cached-bytes\x00")

        result = await pipeline.handle("photo.jpg")

        assert result.cache_status == CacheStatus.HIT
        assert result.content == b"\x89cached-bytes\x00"

    @pytest.mark.asyncio
    async def test_png_content_type(self, pipeline):
        result = await pipeline.handle("logo.png")
        assert result.content_type == "image/png"

        hit = await pipeline.handle("logo.png")
        assert hit.content_type == "image/png"


# ============================================
# 2. Resized variants
# ============================================

class TestResize:
    """Requests with a resolution"""

    @pytest.mark.asyncio
    async def test_miss_resizes_and_caches(self, pipeline, statistics, store):
        result = await pipeline.handle("photo.jpg", Resolution(100, 100))

        assert result.cache_status == CacheStatus.MISS
        assert result.cache_key == "photo.jpg_100x100"
        assert image_size(result.content) == (100, 100)
        assert "photo.jpg_100x100" in store.dump()

        snapshot = await statistics.snapshot()
        assert_counters(snapshot, resized_images=1, cache_misses=1, total_requests=1)
        assert snapshot.most_requested_resolutions == {"100x100": 1}

    @pytest.mark.asyncio
    async def test_repeat_is_byte_identical_hit(self, pipeline, statistics):
        first = await pipeline.handle("photo.jpg", Resolution(50, 40))
        second = await pipeline.handle("photo.jpg", Resolution(50, 40))

        assert second.cache_status == CacheStatus.HIT
        assert second.content == first.content

        snapshot = await statistics.snapshot()
        assert_counters(snapshot, resized_images=1, cache_hits=1, total_requests=2)
        assert snapshot.most_requested_resolutions == {"50x40": 2}

    @pytest.mark.asyncio
    async def test_variants_are_cached_separately(self, pipeline, store):
        await pipeline.handle("photo.jpg")
        await pipeline.handle("photo.jpg", Resolution(20, 20))

        keys = store.dump()
        assert "photo.jpg" in keys
        assert "photo.jpg_20x20" in keys

    @pytest.mark.asyncio
    async def test_concurrent_misses_all_succeed(self, pipeline, statistics):
        results = await asyncio.gather(*(
            pipeline.handle("photo.jpg", Resolution(30, 30)) for _ in range(5)
        ))

        assert all(image_size(r.content) == (30, 30) for r in results)
        snapshot = await statistics.snapshot()
        assert snapshot.total_requests == 5
        assert snapshot.cache_hits + snapshot.cache_misses == 5


# ============================================
# 3. Failures
# ============================================

class TestFailures:
    """Not found, transform failure and store failures"""

    @pytest.mark.asyncio
    async def test_missing_image(self, pipeline, statistics, store):
        with pytest.raises(ImageNotFoundError):
            await pipeline.handle("missing.jpg", Resolution(10, 10))

        assert_counters(
            await statistics.snapshot(), total_errors=1, cache_misses=1, total_requests=0
        )
        assert set(store.dump()) <= STATISTICS_KEYS

    @pytest.mark.asyncio
    async def test_path_outside_image_dir_is_not_found(self, pipeline, images_dir, photo_bytes):
        (images_dir.parent / "outside.jpg").write_bytes(photo_bytes)

        with pytest.raises(ImageNotFoundError):
            await pipeline.handle("../outside.jpg")

    @pytest.mark.asyncio
    async def test_transform_failure_counts_error_and_caches_nothing(self, pipeline, statistics, store):
        with pytest.raises(TransformError):
            await pipeline.handle("broken.jpg", Resolution(10, 10))

        snapshot = await statistics.snapshot()
        assert_counters(snapshot, total_errors=1, cache_misses=0, resized_images=0, total_requests=0)
        assert "broken.jpg_10x10" not in store.dump()

    @pytest.mark.asyncio
    async def test_cache_lookup_failure_is_fatal(self, image_store):
        store = FailingStore(failing={"get"})
        pipeline = _pipeline_on(store, image_store)

        with pytest.raises(StoreUnavailableError):
            await pipeline.handle("photo.jpg")

        assert store.dump().get("totalErrors") == "1"

    @pytest.mark.asyncio
    async def test_cache_write_failure_is_fatal(self, image_store):
        store = FailingStore(failing={"set"})
        pipeline = _pipeline_on(store, image_store)

        with pytest.raises(StoreUnavailableError):
            await pipeline.handle("photo.jpg")

        assert "photo.jpg" not in store.dump()

    @pytest.mark.asyncio
    async def test_statistics_failure_still_serves_image(self, image_store, photo_bytes):
        store = FailingStore(failing={"incr", "transact"})
        pipeline = _pipeline_on(store, image_store)

        result = await pipeline.handle("photo.jpg")

        assert result.content == photo_bytes
        assert "photo.jpg" in store.dump()

    @pytest.mark.asyncio
    async def test_corrupt_counter_still_serves_image(self, pipeline, store, photo_bytes):
        await store.set("totalRequests", "not-a-number")

        result = await pipeline.handle("photo.jpg")

        assert result.cache_status == CacheStatus.MISS
        assert result.content == photo_bytes
        assert "photo.jpg" in store.dump()

    @pytest.mark.asyncio
    async def test_oversized_resolution_counts_error(self, pipeline, statistics, store):
        with pytest.raises(TransformError):
            await pipeline.handle("photo.jpg", Resolution(99999999999, 1))

        assert_counters(await statistics.snapshot(), total_errors=1, resized_images=0)
        assert "photo.jpg_99999999999x1" not in store.dump()
