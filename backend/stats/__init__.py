"""
Statistics Module

Usage statistics for the image service, persisted in the shared store.
"""

from .engine import (
    StatisticsEngine,
    StatisticsSnapshot,
    ORIGINAL_LABEL,
    MOST_REQUESTED_IMAGES,
    MOST_REQUESTED_RESOLUTIONS,
    top_n,
)
from .report import StatisticsReport, build_report
from .routes import router as statistics_router

__all__ = [
    "StatisticsEngine",
    "StatisticsSnapshot",
    "StatisticsReport",
    "build_report",
    "top_n",
    "ORIGINAL_LABEL",
    "MOST_REQUESTED_IMAGES",
    "MOST_REQUESTED_RESOLUTIONS",
    "statistics_router",
]
