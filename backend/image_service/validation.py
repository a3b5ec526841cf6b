"""
Request validation for GET /api/images/{filename}.

Rules:
- filename: non-empty, ends in .png, .jpg or .jpeg
- resolution (optional query): non-empty, `{width}x{height}`, both positive
"""

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .errors import InvalidResolutionError

FILENAME_PATTERN = re.compile(r".*\.(png|jpg|jpeg)", re.DOTALL)
RESOLUTION_PATTERN = re.compile(r"([0-9]+)x([0-9]+)")


@dataclass(frozen=True)
class Resolution:
    """Target size of a resized variant."""
    width: int
    height: int

    @classmethod
    def parse(cls, text: str) -> "Resolution":
        match = RESOLUTION_PATTERN.fullmatch(text or "")
        if not match:
            raise InvalidResolutionError(f"Invalid resolution: {text!r}")
        width, height = int(match.group(1)), int(match.group(2))
        if width <= 0 or height <= 0:
            raise InvalidResolutionError(f"Resolution must be positive: {text!r}")
        return cls(width, height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass
class ValidationIssue:
    msg: str
    param: str
    location: str
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def validate_image_request(filename: str, resolution: Optional[str]) -> List[ValidationIssue]:
    """Return every validation problem with the request, empty if it is valid."""
    issues: List[ValidationIssue] = []

    if not filename:
        issues.append(ValidationIssue("Image name cannot be empty!", "filename", "params", filename))
    elif not FILENAME_PATTERN.fullmatch(filename):
        issues.append(ValidationIssue(
            "Image name must have a valid file extension!", "filename", "params", filename
        ))

    if resolution is not None:
        if resolution == "":
            issues.append(ValidationIssue("Resolution cannot be empty!", "resolution", "query", resolution))
        elif not RESOLUTION_PATTERN.fullmatch(resolution):
            issues.append(ValidationIssue(
                "Resolution must be in the format {width}x{height}!", "resolution", "query", resolution
            ))
        else:
            try:
                Resolution.parse(resolution)
            except InvalidResolutionError:
                issues.append(ValidationIssue(
                    "Resolution width and height must be positive!", "resolution", "query", resolution
                ))

    return issues
