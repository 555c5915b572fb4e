"""
Extraction prompt catalog.

Each document type has an instruction template under ``prompt_templates/`` with a
``{batch_context}`` placeholder that is filled per request.
"""

import os
import logging
from typing import Dict, List, Optional

from .config import DEFAULT_DOCUMENT_TYPE, PROMPT_DIR

logger = logging.getLogger(__name__)

PROMPT_FILES: Dict[str, str] = {
    "oil-gas-contacts": "oil_gas_contacts.txt",
    "lease-agreements": "lease_agreements.txt",
}


class PromptTemplate:
    """Instruction prompt for one document type."""

    def __init__(self, document_type: str = DEFAULT_DOCUMENT_TYPE, prompt_dir: str = PROMPT_DIR):
        if document_type not in PROMPT_FILES:
            raise ValueError(
                f"Unknown document type: {document_type}. "
                f"Available: {', '.join(sorted(PROMPT_FILES))}"
            )
        self.document_type = document_type
        with open(os.path.join(prompt_dir, PROMPT_FILES[document_type]), "r", encoding="utf-8") as f:
            self.template = f.read()

    def render(
        self,
        page_numbers: List[int],
        batch_index: Optional[int] = None,
        total_batches: Optional[int] = None,
        single_image: bool = False,
    ) -> str:
        """
        Format the template for one request.

        Args:
            page_numbers: 1-based page numbers of the attached images, in order
            batch_index: 0-based index of the batch
            total_batches: Number of batches in the document
            single_image: True when a batch is being resent one image at a time

        Returns:
            Formatted prompt string
        """
        lines = ["Batch Information:"]
        lines.append(f"- Images attached: {len(page_numbers)}, document pages {page_numbers}")
        if batch_index is not None and total_batches:
            lines.append(f"- This is batch #{batch_index + 1} of {total_batches}")
        if single_image:
            lines.append("- This page is sent on its own; rows may continue from the previous page or onto the next one")
        elif total_batches and total_batches > 1:
            lines.append("- Other pages of the document are sent in separate batches; extract every row visible here")

        return self.template.format(batch_context="\n".join(lines))


def available_document_types() -> List[str]:
    return sorted(PROMPT_FILES)
