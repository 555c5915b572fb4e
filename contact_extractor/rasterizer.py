"""
PDF rasterization: renders pages to size-conditioned PNG images.
"""

import io
import logging
from pathlib import Path
from typing import List, Union

from PIL import Image

from .config import MAX_IMAGE_DIMENSION, PDF_IMAGE_DPI
from .models import PageImage

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg"}


def condition_image(img: Image.Image, max_dimension: int = MAX_IMAGE_DIMENSION) -> bytes:
    """
    Downscale an image so its long edge is at most ``max_dimension`` and encode it as PNG.

    Images already within the limit keep their size.
    """
    if max(img.size) > max_dimension:
        img = img.copy()
        img.thumbnail((max_dimension, max_dimension), Image.LANCZOS)
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


class PDFRasterizer:
    """
    Renders PDF pages to images for the extraction pipeline.

    This class is responsible for:
    1. Converting PDF pages to images at a fixed DPI
    2. Downscaling each page to the maximum dimension the API accepts
    3. Providing the ordered list of page images
    """

    def __init__(self, dpi: int = PDF_IMAGE_DPI, max_dimension: int = MAX_IMAGE_DIMENSION):
        """
        Initialize the rasterizer.

        Args:
            dpi: Resolution for rendering PDF pages (default: 300)
            max_dimension: Maximum long-edge size in pixels (default: 1800)
        """
        self.dpi = dpi
        self.max_dimension = max_dimension

    def rasterize(self, pdf_path: Union[str, Path]) -> List[PageImage]:
        """
        Render every page of a PDF document.

        Args:
            pdf_path: Path to the PDF document

        Returns:
            List of PageImage objects in page order
        """
        try:
            import fitz  # PyMuPDF
        except ImportError:
            raise ImportError(
                "PyMuPDF package not installed. "
                "Install it with: pip install pymupdf"
            )

        pdf_path = Path(pdf_path)
        logger.info(f"Rendering PDF pages at {self.dpi} DPI: {pdf_path}")

        page_images = []
        with fitz.open(pdf_path) as pdf_document:
            for index, page in enumerate(pdf_document):
                pix = page.get_pixmap(dpi=self.dpi)
                with Image.open(io.BytesIO(pix.tobytes("png"))) as img:
                    data = condition_image(img, self.max_dimension)
                page_images.append(PageImage.from_bytes(index, data))

        total = sum(page.byte_size for page in page_images)
        logger.info(f"Rendered {len(page_images)} pages ({total / 1024:.0f}KB total)")
        return page_images

    def load_directory(self, image_dir: Union[str, Path]) -> List[PageImage]:
        """
        Load pre-rendered page images from a directory, ordered by file name.

        Args:
            image_dir: Directory holding one PNG/JPEG per page

        Returns:
            List of PageImage objects
        """
        image_dir = Path(image_dir)
        files = sorted(p for p in image_dir.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
        if not files:
            raise FileNotFoundError(f"No page images found in {image_dir}")

        page_images = []
        for index, path in enumerate(files):
            with Image.open(path) as img:
                data = condition_image(img, self.max_dimension)
            page_images.append(PageImage.from_bytes(index, data))

        logger.info(f"Loaded {len(page_images)} page images from {image_dir}")
        return page_images
