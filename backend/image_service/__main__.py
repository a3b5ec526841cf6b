"""
Run the image service with uvicorn.

    python -m image_service
"""

import logging

import uvicorn

from .app import create_app
from .config import ServiceConfig


def main() -> None:
    config = ServiceConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
