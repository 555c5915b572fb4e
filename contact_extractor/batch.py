"""
Batch planning for packing page images into size-bounded requests.
"""

import logging
from typing import List, Sequence

from .config import DEFAULT_MAX_BATCH_BYTES
from .models import Batch, PageImage

logger = logging.getLogger(__name__)


def plan(images: Sequence[PageImage], max_bytes: int = DEFAULT_MAX_BATCH_BYTES) -> List[Batch]:
    """
    Split ordered pages into the fewest batches that fit under ``max_bytes``.

    Pages are never reordered; the only choice is where to cut. A page that is
    larger than ``max_bytes`` on its own becomes a singleton batch.

    Args:
        images: Page images in page order
        max_bytes: Maximum cumulative byte size of one batch

    Returns:
        List of batches whose pages, concatenated, equal ``images``
    """
    if max_bytes <= 0:
        raise ValueError("max_bytes must be positive")

    batches: List[Batch] = []
    current: List[PageImage] = []
    current_total = 0

    for image in images:
        if current and current_total + image.byte_size > max_bytes:
            batches.append(Batch(batch_index=len(batches), pages=current, max_bytes=max_bytes))
            current = []
            current_total = 0
        current.append(image)
        current_total += image.byte_size

    if current:
        batches.append(Batch(batch_index=len(batches), pages=current, max_bytes=max_bytes))

    for batch in batches:
        if batch.oversized:
            logger.warning(
                f"Page {batch.pages[0].page_number} is {batch.total_size} bytes, over the "
                f"{max_bytes} byte batch limit; sending it alone"
            )
    return batches


class BatchPlanner:
    """
    Creates batches of document pages for processing.

    Pages are grouped greedily in page order under a byte budget, so tables
    spanning consecutive pages stay in the same request whenever they fit.
    """

    def __init__(self, max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES):
        """
        Initialize the batch planner.

        Args:
            max_batch_bytes: Maximum cumulative payload size per batch (default: 8 MiB)
        """
        if max_batch_bytes <= 0:
            raise ValueError("max_batch_bytes must be positive")
        self.max_batch_bytes = max_batch_bytes

    def create_batches(self, pages: Sequence[PageImage]) -> List[Batch]:
        """
        Split pages into size-bounded batches.

        Args:
            pages: List of page images

        Returns:
            List of batches
        """
        batches = plan(pages, self.max_batch_bytes)
        logger.info(f"Planned {len(batches)} batches for {len(pages)} pages")
        return batches
