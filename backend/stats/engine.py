"""
Statistics Engine

Usage statistics kept in the shared store, so every worker process sees the
same numbers:

- Counters: resizedImages, cacheHits, cacheMisses, totalRequests, totalErrors
  (atomic INCR, never read-then-write)
- averageProcessingTime: running mean of miss-path processing time in ms
- mostRequestedResolutions / mostRequestedImages: label -> count maps,
  stored as JSON objects

The running average and the frequency maps are read-modify-write over a
whole value. Both go through Cache.update_values(), a compare-and-swap
transaction, so concurrent requests never lose an increment.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from cache import Cache

logger = logging.getLogger(__name__)


# ============================================
# Store keys
# ============================================

RESIZED_IMAGES = "resizedImages"
CACHE_HITS = "cacheHits"
CACHE_MISSES = "cacheMisses"
TOTAL_REQUESTS = "totalRequests"
TOTAL_ERRORS = "totalErrors"
AVERAGE_PROCESSING_TIME = "averageProcessingTime"

MOST_REQUESTED_RESOLUTIONS = "mostRequestedResolutions"
MOST_REQUESTED_IMAGES = "mostRequestedImages"

COUNTERS = (RESIZED_IMAGES, CACHE_HITS, CACHE_MISSES, TOTAL_REQUESTS, TOTAL_ERRORS)
FREQUENCY_MAPS = (MOST_REQUESTED_RESOLUTIONS, MOST_REQUESTED_IMAGES)

# Resolution label for requests served without resizing
ORIGINAL_LABEL = "original"


@dataclass
class StatisticsSnapshot:
    """Point-in-time read of every statistic. Not transactional."""
    resized_images: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    total_requests: int = 0
    total_errors: int = 0
    average_processing_time: float = 0.0
    most_requested_resolutions: Dict[str, int] = field(default_factory=dict)
    most_requested_images: Dict[str, int] = field(default_factory=dict)


# ============================================
# Serialization helpers
# ============================================

def parse_counter(raw: Optional[str]) -> int:
    if raw is None or raw == "":
        return 0
    return int(raw)


def parse_average(raw: Optional[str]) -> float:
    if raw is None or raw == "":
        return 0.0
    return float(raw)


def parse_frequency_map(raw: Optional[str]) -> Dict[str, int]:
    """
    Decode a stored frequency map.

    Missing or malformed values decode to an empty map; entries whose count
    is not an integer are dropped. Key order is preserved.
    """
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"[Stats] Invalid frequency map payload: {raw[:60]}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"[Stats] Frequency map is not an object: {raw[:60]}")
        return {}

    counts: Dict[str, int] = {}
    for label, count in data.items():
        if isinstance(count, bool) or not isinstance(count, int):
            logger.warning(f"[Stats] Dropping non-integer count for {label!r}")
            continue
        counts[str(label)] = count
    return counts


def serialize_frequency_map(counts: Dict[str, int]) -> str:
    return json.dumps(counts, ensure_ascii=False)


def top_n(counts: Dict[str, int], n: int) -> Dict[str, int]:
    """
    The n entries with the highest counts, highest first.

    Ties keep the map's insertion order (sorted() is stable, including with
    reverse=True).
    """
    if n <= 0:
        return {}
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return dict(ranked[:n])


# ============================================
# Engine
# ============================================

class StatisticsEngine:
    """
    Records statistics events into the shared store.

    Every method may raise StoreUnavailableError; the pipeline decides
    whether that is fatal for the request.
    """

    def __init__(self, cache: Cache):
        self.cache = cache

    async def initialize(self) -> None:
        """Create missing statistics keys. Existing values are left untouched."""
        created = []
        for key in COUNTERS + (AVERAGE_PROCESSING_TIME,):
            if await self.cache.initialize_value(key, "0"):
                created.append(key)
        for key in FREQUENCY_MAPS:
            if await self.cache.initialize_value(key, serialize_frequency_map({})):
                created.append(key)
        if created:
            logger.info(f"[Stats] Initialized {', '.join(created)}")

    async def record_hit(self, resolution_label: str, filename: str) -> None:
        await self.cache.increment(CACHE_HITS)
        await self.cache.increment(TOTAL_REQUESTS)
        await self.update_frequency(MOST_REQUESTED_RESOLUTIONS, resolution_label)
        await self.update_frequency(MOST_REQUESTED_IMAGES, filename)

    async def record_miss(self) -> int:
        return await self.cache.increment(CACHE_MISSES)

    async def record_resize(self) -> int:
        return await self.cache.increment(RESIZED_IMAGES)

    async def record_error(self) -> int:
        return await self.cache.increment(TOTAL_ERRORS)

    async def record_request(self) -> int:
        return await self.cache.increment(TOTAL_REQUESTS)

    async def record_processing_time(self, elapsed_ms: float) -> float:
        """
        Fold one sample into the running average.

        The sample count is totalRequests as read inside the transaction, so
        it must be called before this request's own totalRequests increment.
        """
        def apply(current: Dict[str, Optional[str]]) -> Dict[str, str]:
            prior_count = parse_counter(current[TOTAL_REQUESTS])
            old_average = parse_average(current[AVERAGE_PROCESSING_TIME])
            new_average = (old_average * prior_count + elapsed_ms) / (prior_count + 1)
            return {AVERAGE_PROCESSING_TIME: repr(new_average)}

        writes = await self.cache.update_values(
            [AVERAGE_PROCESSING_TIME, TOTAL_REQUESTS], apply
        )
        return float(writes[AVERAGE_PROCESSING_TIME])

    async def update_frequency(self, map_key: str, label: str) -> int:
        """Bump label in a frequency map. Returns the label's new count."""
        def bump(current: Dict[str, Optional[str]]) -> Dict[str, str]:
            counts = parse_frequency_map(current[map_key])
            counts[label] = counts.get(label, 0) + 1
            return {map_key: serialize_frequency_map(counts)}

        writes = await self.cache.update_values([map_key], bump)
        return parse_frequency_map(writes[map_key])[label]

    async def frequency_map(self, map_key: str) -> Dict[str, int]:
        return parse_frequency_map(await self.cache.get_value(map_key))

    async def top_n(self, map_key: str, n: int) -> Dict[str, int]:
        return top_n(await self.frequency_map(map_key), n)

    async def snapshot(self) -> StatisticsSnapshot:
        """
        Read every statistic, one key at a time.

        Individual reads are not atomic relative to each other; reporting is
        best-effort.
        """
        values = {}
        for key in COUNTERS + (AVERAGE_PROCESSING_TIME,) + FREQUENCY_MAPS:
            values[key] = await self.cache.get_value(key)

        return StatisticsSnapshot(
            resized_images=parse_counter(values[RESIZED_IMAGES]),
            cache_hits=parse_counter(values[CACHE_HITS]),
            cache_misses=parse_counter(values[CACHE_MISSES]),
            total_requests=parse_counter(values[TOTAL_REQUESTS]),
            total_errors=parse_counter(values[TOTAL_ERRORS]),
            average_processing_time=parse_average(values[AVERAGE_PROCESSING_TIME]),
            most_requested_resolutions=parse_frequency_map(values[MOST_REQUESTED_RESOLUTIONS]),
            most_requested_images=parse_frequency_map(values[MOST_REQUESTED_IMAGES]),
        )
