"""
Image Store

Read-only access to the original images in a directory:
existence, bytes, content type by extension and file count.
"""

import logging
from pathlib import Path
from typing import Optional

from .errors import ImageNotFoundError

logger = logging.getLogger(__name__)

PNG_CONTENT_TYPE = "image/png"
JPEG_CONTENT_TYPE = "image/jpeg"


def content_type_for(filename: str) -> str:
    """`.png` is served as image/png, every other extension as image/jpeg."""
    if Path(filename).suffix.lower() == ".png":
        return PNG_CONTENT_TYPE
    return JPEG_CONTENT_TYPE


class ImageStore:
    """Original images on disk, addressed by bare filename."""

    def __init__(self, images_dir: str):
        self.images_dir = Path(images_dir).resolve()
        if not self.images_dir.is_dir():
            logger.warning(f"[ImageStore] Image directory does not exist: {self.images_dir}")
        else:
            logger.info(f"[ImageStore] Serving images from {self.images_dir}")

    def _resolve(self, filename: str) -> Optional[Path]:
        """Path for filename, or None if it would escape the image directory."""
        if not filename:
            return None
        try:
            path = (self.images_dir / filename).resolve()
        except (OSError, ValueError):
            return None
        if path.parent != self.images_dir:
            return None
        return path

    def exists(self, filename: str) -> bool:
        path = self._resolve(filename)
        return path is not None and path.is_file()

    def read(self, filename: str) -> bytes:
        path = self._resolve(filename)
        if path is None:
            raise ImageNotFoundError(filename)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise ImageNotFoundError(filename) from e

    def content_type(self, filename: str) -> str:
        return content_type_for(filename)

    def count(self) -> int:
        """Number of files in the image directory."""
        return sum(1 for entry in self.images_dir.iterdir() if entry.is_file())
