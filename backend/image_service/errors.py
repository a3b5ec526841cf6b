"""
Image Service Errors

Exception hierarchy shared by the pipeline, its collaborators and the routes.
Routes map these to HTTP status codes; nothing above the component
boundary needs to know about redis or Pillow exception types.

StoreUnavailableError is owned by the cache package (it is raised by the
key-value stores) and re-exported here for convenience.
"""

from cache.errors import StoreUnavailableError


class ImageServiceError(Exception):
    """Base class for image service failures."""


class ImageNotFoundError(ImageServiceError):
    """The requested image does not exist in the backing directory."""

    def __init__(self, filename: str):
        super().__init__(f"Image not found: {filename}")
        self.filename = filename


class TransformError(ImageServiceError):
    """The resize primitive rejected the input or failed."""


class InvalidResolutionError(ImageServiceError, ValueError):
    """A resolution string is not a positive {width}x{height} pair."""


__all__ = [
    "ImageServiceError",
    "ImageNotFoundError",
    "TransformError",
    "InvalidResolutionError",
    "StoreUnavailableError",
]
