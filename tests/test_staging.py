"""
Tests for request staging.
"""

import base64
import io
import sys
import unittest
from pathlib import Path

from PIL import Image

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from contact_extractor.models import PageImage
from contact_extractor.staging import ImageStager, detect_mime_type

from fakes import make_page, png_bytes


class TestDetectMimeType(unittest.TestCase):
    """Tests for MIME detection."""

    def test_png_and_jpeg(self):
        """Formats are read from the image bytes."""
        buffer = io.BytesIO()
        Image.new("RGB", (4, 4)).save(buffer, format="JPEG")

        self.assertEqual(detect_mime_type(png_bytes()), "image/png")
        self.assertEqual(detect_mime_type(buffer.getvalue()), "image/jpeg")

    def test_unknown_bytes_default_to_png(self):
        """Unreadable bytes fall back to image/png."""
        self.assertEqual(detect_mime_type(b"not an image"), "image/png")


class TestImageStager(unittest.TestCase):
    """Tests for the ImageStager class."""

    def test_parts_are_cached_per_page(self):
        """Staging the same page twice reuses one part."""
        page = make_page(0)
        with ImageStager() as stager:
            first = stager.part_for(page)
            second = stager.parts_for([page, make_page(1)])

            self.assertIs(first, second[0])
            self.assertEqual(stager.staged_count, 2)

    def test_data_url(self):
        """Parts expose base64 and data-URL encodings."""
        page = PageImage.from_bytes(0, png_bytes())
        with ImageStager() as stager:
            part = stager.part_for(page)

        self.assertEqual(base64.b64decode(part.base64), page.data)
        self.assertTrue(part.data_url.startswith("data:image/png;base64,"))

    def test_close_releases_parts(self):
        """Closing drops buffers and refuses further staging."""
        stager = ImageStager()
        stager.part_for(make_page(0))
        stager.close()

        self.assertTrue(stager.closed)
        self.assertEqual(stager.staged_count, 0)
        with self.assertRaises(RuntimeError):
            stager.part_for(make_page(1))

    def test_context_manager_closes_on_error(self):
        """Leaving the block through an exception still closes the stager."""
        stager = ImageStager()
        with self.assertRaises(KeyError):
            with stager:
                stager.part_for(make_page(0))
                raise KeyError("boom")
        self.assertTrue(stager.closed)


if __name__ == "__main__":
    unittest.main()
