"""
Service configuration, read from environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class ServiceConfig:
    """Runtime settings for the image service."""
    images_dir: str = "./images"

    # Store settings
    store_backend: str = "redis"            # "redis" or "memory"
    redis_url: str = "redis://redis:6379/0"
    redis_socket_timeout: float = 5.0       # seconds

    # Statistics settings
    stats_top_n: int = 3                    # entries per most-requested map
    stats_max_retries: int = 10             # compare-and-swap retries

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        return cls(
            images_dir=os.getenv("IMAGES_DIR", "./images"),
            store_backend=os.getenv("STORE_BACKEND", "redis").lower(),
            redis_url=os.getenv("REDIS_URL", "redis://redis:6379/0"),
            redis_socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", "5")),
            stats_top_n=int(os.getenv("STATS_TOP_N", "3")),
            stats_max_retries=int(os.getenv("STATS_UPDATE_MAX_RETRIES", "10")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
