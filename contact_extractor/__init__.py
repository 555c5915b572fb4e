"""
Vision Contact Extraction
=========================

This package extracts contact and ownership records from scanned PDF documents
by sending page images, in size-bounded batches, to a vision-capable model.
"""

__version__ = "0.1.0"

from .batch import BatchPlanner, plan
from .cancellation import CancellationToken
from .config import PipelineConfig
from .models import Batch, ExtractionResult, ExtractionStatus, PageImage, PipelineRun


# Avoid importing provider SDK wiring until it is needed
def get_extraction_pipeline():
    from .pipeline import ExtractionPipeline
    return ExtractionPipeline


def get_extraction_client():
    from .extraction_client import ExtractionClient
    return ExtractionClient


__all__ = [
    "Batch",
    "BatchPlanner",
    "CancellationToken",
    "ExtractionResult",
    "ExtractionStatus",
    "PageImage",
    "PipelineConfig",
    "PipelineRun",
    "get_extraction_client",
    "get_extraction_pipeline",
    "plan",
]
