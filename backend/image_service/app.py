"""
Application factory.

Builds the store, cache, statistics engine and pipeline inside the FastAPI
lifespan and publishes them on app.state, where the routes pick them up.
Pass `store` to run against an existing store (tests pass a MemoryStore);
a store created here is closed on shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cache import Cache, KeyValueStore, MemoryStore, RedisStore, StoreUnavailableError
from stats import StatisticsEngine, statistics_router

from .config import ServiceConfig
from .image_store import ImageStore
from .pipeline import RequestPipeline
from .routes_fastapi import router as images_router
from .transformer import Transformer

logger = logging.getLogger(__name__)


def create_store(config: ServiceConfig) -> KeyValueStore:
    if config.store_backend == "memory":
        logger.warning("[App] Using in-process memory store; statistics are per-process")
        return MemoryStore()
    if config.store_backend == "redis":
        return RedisStore.from_url(config.redis_url, socket_timeout=config.redis_socket_timeout)
    raise ValueError(f"Unknown STORE_BACKEND: {config.store_backend!r} (use 'redis' or 'memory')")


def create_app(
    config: Optional[ServiceConfig] = None,
    store: Optional[KeyValueStore] = None,
    transformer: Optional[Transformer] = None,
) -> FastAPI:
    config = config or ServiceConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        kv_store = store if store is not None else create_store(config)
        cache = Cache(kv_store, max_retries=config.stats_max_retries)
        statistics = StatisticsEngine(cache)
        image_store = ImageStore(config.images_dir)

        try:
            await statistics.initialize()
        except StoreUnavailableError as e:
            # Missing keys read as zero, so the service can still start
            logger.warning(f"[App] Could not initialize statistics: {e}")

        app.state.config = config
        app.state.store = kv_store
        app.state.cache = cache
        app.state.statistics = statistics
        app.state.image_store = image_store
        app.state.pipeline = RequestPipeline(
            image_store=image_store,
            transformer=transformer or Transformer(),
            cache=cache,
            statistics=statistics,
        )
        logger.info("[App] Image service ready")
        try:
            yield
        finally:
            if store is None:
                await kv_store.close()

    app = FastAPI(
        title="Image Cache Service",
        description="Serves images resized on demand, cached in a shared key-value store",
        lifespan=lifespan,
    )
    app.include_router(images_router)
    app.include_router(statistics_router)

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        try:
            await request.app.state.store.ping()
        except StoreUnavailableError as e:
            return JSONResponse(status_code=503, content={
                "status": "degraded",
                "service": "image-service",
                "store": str(e),
            })
        return JSONResponse(content={
            "status": "healthy",
            "service": "image-service",
            "store": "ok",
        })

    return app
