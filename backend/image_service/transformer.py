"""
Image Transformer

Resizes image bytes to an exact width and height with Pillow.

The image is scaled to cover the target box and centre-cropped, so the
aspect ratio is kept and the output has exactly the requested dimensions.
The output keeps the source format (PNG stays PNG, JPEG stays JPEG) when
Pillow can write it; otherwise it is written as PNG for `.png` names and as
JPEG for everything else.
Pillow work runs in a worker thread so the event loop keeps serving other
requests meanwhile.
"""

import asyncio
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps

from .errors import TransformError

logger = logging.getLogger(__name__)

# Source formats Pillow can read but should be written as something else
SAVE_FORMAT_OVERRIDES = {
    "MPO": "JPEG",
}

# Modes JPEG can store directly
JPEG_MODES = ("RGB", "L", "CMYK")


def _can_write(image_format: str) -> bool:
    if image_format not in Image.SAVE:
        Image.init()
    return image_format in Image.SAVE


def save_format_for(source_format: Optional[str], filename: Optional[str] = None) -> str:
    """Format the resized image is written in."""
    save_format = SAVE_FORMAT_OVERRIDES.get(source_format, source_format) if source_format else None
    if save_format and _can_write(save_format):
        return save_format
    if filename and Path(filename).suffix.lower() == ".png":
        return "PNG"
    return "JPEG"


class Transformer:
    """
    Usage:
        transformer = Transformer()
        resized = await transformer.resize(data, 800, 600, filename="photo.jpg")
    """

    def __init__(self, resample: Image.Resampling = Image.Resampling.LANCZOS):
        self.resample = resample

    async def resize(self, data: bytes, width: int, height: int, filename: Optional[str] = None) -> bytes:
        """
        Resize data to width x height.

        filename only picks the output format when Pillow cannot write the
        source format.

        Raises:
            TransformError: anything Pillow fails on (unreadable bytes,
                invalid or oversized target, unsupported mode).
        """
        if width <= 0 or height <= 0:
            raise TransformError(f"Invalid target size {width}x{height}")

        try:
            resized = await asyncio.to_thread(self._resize, data, width, height, filename)
        except Exception as e:
            logger.error(f"[Transformer] Resize to {width}x{height} failed: {type(e).__name__}: {e}")
            raise TransformError(str(e)) from e

        logger.debug(f"[Transformer] Resized to {width}x{height} ({len(data)} -> {len(resized)} bytes)")
        return resized

    def _resize(self, data: bytes, width: int, height: int, filename: Optional[str]) -> bytes:
        with Image.open(BytesIO(data)) as img:
            save_format = save_format_for(img.format, filename)

            resized = ImageOps.fit(img, (width, height), method=self.resample)

            if save_format == "JPEG" and resized.mode not in JPEG_MODES:
                resized = resized.convert("RGB")

            output = BytesIO()
            resized.save(output, format=save_format)
            return output.getvalue()
