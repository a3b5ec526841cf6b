"""
Statistics API Routes

- GET /api/statistics - usage statistics for the image service
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from cache import StoreUnavailableError

from .report import StatisticsReport, build_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Statistics"])


@router.get("/statistics", response_model=StatisticsReport)
async def get_statistics(request: Request):
    """
    Get statistics of the image processing service.

    Counters, the average miss-path processing time, the top requested
    resolutions and images, the store size and the hit/miss and
    success/error ratios.
    """
    state = request.app.state
    try:
        snapshot = await state.statistics.snapshot()
        cache_size = await state.cache.size()
        total_images = state.image_store.count()
    except (StoreUnavailableError, OSError, ValueError) as e:
        logger.error(f"[Stats] Failed to retrieve statistics: {e}")
        return PlainTextResponse("Error retrieving statistics!", status_code=500)

    return build_report(
        snapshot,
        total_images=total_images,
        cache_size=cache_size,
        top=state.config.stats_top_n,
    )
