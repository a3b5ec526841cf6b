"""
Statistics Report

Response model for GET /api/statistics and the derived values computed at
report time (ratios, formatted average, top-N maps).
"""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field

from .engine import StatisticsSnapshot, top_n

NOT_APPLICABLE = "N/A"
DEFAULT_TOP_N = 3


class StatisticsReport(BaseModel):
    """Response model for the statistics endpoint (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True)

    total_images: int = Field(..., alias="totalImages", description="Files in the image directory")
    resized_images: int = Field(..., alias="resizedImages", description="Resize operations performed")
    cache_hits: int = Field(..., alias="cacheHits")
    cache_misses: int = Field(..., alias="cacheMisses")
    total_requests: int = Field(..., alias="totalRequests")
    total_errors: int = Field(..., alias="totalErrors")
    average_processing_time: str = Field(
        ..., alias="averageProcessingTime", description="Mean miss-path time, e.g. '150.00 ms'"
    )
    most_requested_resolutions: Dict[str, int] = Field(..., alias="mostRequestedResolutions")
    most_requested_images: Dict[str, int] = Field(..., alias="mostRequestedImages")
    cache_size: int = Field(..., alias="cacheSize", description="Keys in the store, statistics included")
    cache_hit_miss_ratio: str = Field(..., alias="cacheHitMissRatio", description="Two decimals or 'N/A'")
    request_success_error_ratio: str = Field(
        ..., alias="requestSuccessErrorRatio", description="Two decimals or 'N/A'"
    )


def format_ratio(numerator: int, denominator: int) -> str:
    """numerator / denominator to two decimals, 'N/A' when denominator is 0."""
    if denominator == 0:
        return NOT_APPLICABLE
    return f"{numerator / denominator:.2f}"


def format_milliseconds(value: float) -> str:
    return f"{value:.2f} ms"


def build_report(
    snapshot: StatisticsSnapshot,
    total_images: int,
    cache_size: int,
    top: int = DEFAULT_TOP_N,
) -> StatisticsReport:
    return StatisticsReport(
        total_images=total_images,
        resized_images=snapshot.resized_images,
        cache_hits=snapshot.cache_hits,
        cache_misses=snapshot.cache_misses,
        total_requests=snapshot.total_requests,
        total_errors=snapshot.total_errors,
        average_processing_time=format_milliseconds(snapshot.average_processing_time),
        most_requested_resolutions=top_n(snapshot.most_requested_resolutions, top),
        most_requested_images=top_n(snapshot.most_requested_images, top),
        cache_size=cache_size,
        cache_hit_miss_ratio=format_ratio(snapshot.cache_hits, snapshot.cache_misses),
        request_success_error_ratio=format_ratio(
            snapshot.total_requests - snapshot.total_errors, snapshot.total_errors
        ),
    )
