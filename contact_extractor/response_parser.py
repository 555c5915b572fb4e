"""
Parsing of raw model output into contact records.
"""

import json
import logging
import re
from typing import List

from .models import ContactRecord

logger = logging.getLogger(__name__)


class ParseError(ValueError):
    """The response body does not contain a JSON array."""


class ResponseParser:
    """
    Extracts the JSON contact array from raw model output.

    Models sometimes wrap the array in a markdown code fence or add a sentence
    around it, so the parser first tries the whole body and then the outermost
    ``[...]`` span.
    """

    def __init__(self):
        """Initialize the response parser."""
        self.fence_pattern = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
        self.array_pattern = re.compile(r"\[[\s\S]*\]")

    def parse(self, raw_output: str, ref: str = "response") -> List[ContactRecord]:
        """
        Parse raw model output into contact records.

        Args:
            raw_output: Response body text
            ref: Label of the batch or image, for log messages

        Returns:
            List of contact dictionaries in response order

        Raises:
            ParseError: No JSON array could be decoded
        """
        text = (raw_output or "").strip()
        if not text:
            raise ParseError(f"Empty response for {ref}")

        fence_match = self.fence_pattern.search(text)
        if fence_match:
            text = fence_match.group(1).strip()

        data = self._decode(text)
        if data is None:
            array_match = self.array_pattern.search(text)
            if array_match:
                data = self._decode(array_match.group(0))

        if not isinstance(data, list):
            logger.debug(f"Response preview for {ref}: {text[:200]}...")
            raise ParseError(f"No JSON array found in response for {ref}")

        contacts = []
        for i, item in enumerate(data):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object item {i} in response for {ref}: {item!r:.80}")
                continue
            contacts.append(item)

        logger.info(f"Parsed {len(contacts)} contacts from {ref}")
        return contacts

    def _decode(self, text: str):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return None
