"""
Image API Routes

- GET /api/images/{filename}?resolution={W}x{H} - serve an image, resized on
  demand and cached in the shared store
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from cache import StoreUnavailableError

from .errors import ImageNotFoundError, ImageServiceError
from .validation import Resolution, validate_image_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/images", tags=["Images"])


@router.get(
    "/{filename}",
    responses={
        200: {"content": {"image/jpeg": {}, "image/png": {}}, "description": "The requested image"},
        400: {"description": "Invalid filename or resolution"},
        404: {"description": "Image not found"},
        500: {"description": "Error processing image"},
    },
)
async def get_image(
    request: Request,
    filename: str,
    resolution: Optional[str] = Query(
        None, description="Desired resolution in {width}x{height} format", examples=["800x600"]
    ),
):
    """
    Retrieve an image with optional resizing.

    This endpoint:
    1. Validates the filename and resolution
    2. Returns the cached variant if there is one (X-Cache: HIT)
    3. Otherwise loads the original, resizes it if asked to, caches the
       result and returns it (X-Cache: MISS)

    Example:
        GET /api/images/photo.jpg?resolution=100x100
    """
    issues = validate_image_request(filename, resolution)
    if issues:
        return JSONResponse(status_code=400, content={"errors": [i.to_dict() for i in issues]})

    target = Resolution.parse(resolution) if resolution else None

    try:
        result = await request.app.state.pipeline.handle(filename, target)
    except ImageNotFoundError:
        return PlainTextResponse("Image not found!", status_code=404)
    except (ImageServiceError, StoreUnavailableError) as e:
        logger.error(f"[Images] Failed to serve {filename} ({resolution or 'original'}): {e}")
        return PlainTextResponse("Error processing image!", status_code=500)

    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={"X-Cache": result.cache_status.value},
    )
