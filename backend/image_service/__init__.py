"""
Image Service Module

Serves static images over HTTP, resized on demand, with originals and
resized variants cached in a shared key-value store.

Features:
- Cache key per variant: `filename` or `filename_{W}x{H}`
- Pillow resize on cache miss
- Usage statistics recorded on every request
"""

from .app import create_app
from .config import ServiceConfig
from .pipeline import RequestPipeline, ImageResponse, CacheStatus
from .routes_fastapi import router

__all__ = [
    "create_app",
    "ServiceConfig",
    "RequestPipeline",
    "ImageResponse",
    "CacheStatus",
    "router",
]
