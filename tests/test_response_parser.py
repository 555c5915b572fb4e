"""
Tests for parsing model output.
"""

import sys
import unittest
from pathlib import Path

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from contact_extractor.response_parser import ParseError, ResponseParser


class TestResponseParser(unittest.TestCase):
    """Tests for the ResponseParser class."""

    def setUp(self):
        self.parser = ResponseParser()

    def test_plain_array(self):
        """A bare JSON array parses directly."""
        contacts = self.parser.parse('[{"name": "Jane Doe"}, {"name": "John Roe"}]')
        self.assertEqual([c["name"] for c in contacts], ["Jane Doe", "John Roe"])

    def test_code_fence(self):
        """Arrays inside a markdown fence are unwrapped."""
        raw = 'Here you go:\n```json\n[{"name": "Jane Doe"}]\n```'
        self.assertEqual(self.parser.parse(raw), [{"name": "Jane Doe"}])

    def test_surrounding_prose(self):
        """Text around the array is ignored."""
        raw = 'I found these contacts: [{"name": "Jane Doe", "address": "1 Main St"}] Let me know.'
        self.assertEqual(len(self.parser.parse(raw)), 1)

    def test_empty_array(self):
        """A page with no contacts is an empty list, not an error."""
        self.assertEqual(self.parser.parse("[]"), [])

    def test_non_object_items_skipped(self):
        """Strings and numbers inside the array are dropped."""
        contacts = self.parser.parse('[{"name": "A"}, "noise", 3]')
        self.assertEqual(contacts, [{"name": "A"}])

    def test_object_is_not_an_array(self):
        """A JSON object is a parse error."""
        with self.assertRaises(ParseError):
            self.parser.parse('{"name": "Jane Doe"}')

    def test_invalid_json(self):
        """Broken JSON is a parse error."""
        with self.assertRaises(ParseError):
            self.parser.parse('[{"name": "Jane Doe",')

    def test_empty_response(self):
        """Empty output is a parse error."""
        with self.assertRaises(ParseError):
            self.parser.parse("   ")
        with self.assertRaises(ParseError):
            self.parser.parse(None)


if __name__ == "__main__":
    unittest.main()
