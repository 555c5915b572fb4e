import re
import logging
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .config import DEFAULT_EXTRACTION_METHOD
from .models import ContactRecord

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

# Address parts some prompts return as separate fields
ADDRESS_FIELDS = ("address", "city", "state", "zip", "postal_code")


def normalize(value) -> str:
    """Case-fold and collapse whitespace; None becomes an empty string."""
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip().casefold()


def dedup_key(record: ContactRecord) -> Tuple[str, str]:
    """Equality key of a contact: normalized (name-or-company, address)."""
    name = normalize(record.get("name")) or normalize(record.get("company"))
    address = " ".join(part for part in (normalize(record.get(f)) for f in ADDRESS_FIELDS) if part)
    return name, address


class ResultMerger:
    """
    Handles merging of per-batch contact arrays into one ordered list.

    Records are stamped with provenance, then deduplicated on
    ``dedup_key``; the first occurrence in page order wins.
    """

    def __init__(self, source_file: Optional[str] = None, extraction_method: str = DEFAULT_EXTRACTION_METHOD):
        """
        Initialize the merger.

        Args:
            source_file: Name of the document the contacts came from
            extraction_method: Label describing how the contacts were extracted
        """
        self.source_file = source_file
        self.extraction_method = extraction_method

    def stamp(self, record: ContactRecord) -> ContactRecord:
        """Return a copy of the record carrying source_file and extraction_method."""
        stamped = dict(record)
        stamped["source_file"] = self.source_file
        stamped["extraction_method"] = self.extraction_method
        return stamped

    def merge(self, batches: Iterable[Sequence[ContactRecord]]) -> List[ContactRecord]:
        """
        Merge per-batch contact arrays.

        Args:
            batches: Contact arrays in batch order

        Returns:
            Stamped, deduplicated contacts in batch order
        """
        merged: List[ContactRecord] = []
        seen: Set[Tuple[str, str]] = set()
        total = 0

        for contacts in batches:
            for record in contacts:
                total += 1
                stamped = self.stamp(record)
                key = dedup_key(stamped)
                if key != ("", ""):
                    if key in seen:
                        logger.debug(f"Dropping duplicate contact: {key[0]!r} at {key[1]!r}")
                        continue
                    seen.add(key)
                merged.append(stamped)

        if total != len(merged):
            logger.info(f"Merged {total} contacts into {len(merged)} after removing duplicates")
        return merged
