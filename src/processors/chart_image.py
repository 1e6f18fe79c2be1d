"""
Chart image input: file upload or in-memory capture, validated before analysis.
"""

import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import MAX_IMAGE_BYTES


class ImageValidationError(ValueError):
    """Rejected chart image (wrong type, empty, too large)"""


@dataclass
class ChartImage:
    data: bytes
    mime_type: str
    name: str = "chart.png"

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        mime_type: str = "image/png",
        name: str = "chart.png",
        max_bytes: Optional[int] = None,
    ) -> "ChartImage":
        image = cls(data=data, mime_type=mime_type, name=name)
        validate_chart_image(image, max_bytes)
        return image


def validate_chart_image(image: ChartImage, max_bytes: Optional[int] = None):
    max_bytes = MAX_IMAGE_BYTES if max_bytes is None else max_bytes

    if not image.mime_type or not image.mime_type.startswith("image/"):
        raise ImageValidationError(f"{image.name}: not an image ({image.mime_type or 'unknown type'})")
    if image.size == 0:
        raise ImageValidationError(f"{image.name}: empty file")
    if image.size > max_bytes:
        raise ImageValidationError(
            f"{image.name}: {image.size} bytes exceeds the {max_bytes // (1024 * 1024)}MB limit"
        )


def load_chart_image(path, max_bytes: Optional[int] = None) -> ChartImage:
    """Read and validate a chart image from disk"""
    path = Path(path)
    mime_type, _ = mimetypes.guess_type(path.name)

    if not path.is_file():
        raise ImageValidationError(f"{path}: file not found")

    image = ChartImage(data=path.read_bytes(), mime_type=mime_type or "", name=path.name)
    validate_chart_image(image, max_bytes)
    return image
