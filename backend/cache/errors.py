"""
Store errors
"""

from typing import Optional


class StoreUnavailableError(Exception):
    """The key-value store is unreachable, erroring, or kept conflicting."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
