"""
Request staging: encodes page images into request parts for one batch.
"""

import base64
import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Sequence

from PIL import Image

from .models import PageImage

logger = logging.getLogger(__name__)


@dataclass
class ImagePart:
    """An image ready to be placed in an API request."""

    page_index: int
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


def detect_mime_type(data: bytes) -> str:
    """Return the MIME type of encoded image bytes, defaulting to PNG."""
    try:
        with Image.open(BytesIO(data)) as img:
            image_format = img.format
    except OSError:
        logger.warning("Could not identify image format; sending as image/png")
        return "image/png"
    return Image.MIME.get(image_format, "image/png")


class ImageStager:
    """
    Holds the encoded request parts of one batch.

    Parts are built on first use and shared between the batch request and any
    degraded per-image requests. ``close()`` drops every buffer; use the stager
    as a context manager so that happens on every exit path.
    """

    def __init__(self):
        self._parts: Dict[int, ImagePart] = {}
        self.closed = False

    def part_for(self, page: PageImage) -> ImagePart:
        if self.closed:
            raise RuntimeError("ImageStager is closed")
        part = self._parts.get(page.index)
        if part is None:
            part = ImagePart(page_index=page.index, mime_type=detect_mime_type(page.data), data=page.data)
            self._parts[page.index] = part
        return part

    def parts_for(self, pages: Sequence[PageImage]) -> List[ImagePart]:
        return [self.part_for(page) for page in pages]

    @property
    def staged_count(self) -> int:
        return len(self._parts)

    def close(self) -> None:
        if not self.closed:
            logger.debug(f"Releasing {len(self._parts)} staged image parts")
        self._parts.clear()
        self.closed = True

    def __enter__(self) -> "ImageStager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
