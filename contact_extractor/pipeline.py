"""
Pipeline controller: plans batches, drives them through the extraction client
and merges the results into one run.
"""

import time
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from tqdm import tqdm

from .batch import BatchPlanner
from .cancellation import CancellationToken, RunCancelled
from .config import DEFAULT_EXTRACTION_METHOD, PipelineConfig
from .extraction_client import ExtractionClient
from .merger import ResultMerger
from .models import ContactRecord, PageImage, PipelineRun
from .staging import ImageStager

logger = logging.getLogger(__name__)


class ExtractionPipeline:
    """
    Main pipeline class for one document's extraction run.

    This class orchestrates the run:
    1. Plans size-bounded batches in page order
    2. Submits batches one at a time with a pause between them
    3. Records every batch outcome without aborting on failures
    4. Merges the contacts of all successful batches
    """

    def __init__(
        self,
        client: ExtractionClient,
        config: Optional[PipelineConfig] = None,
        source_file: Optional[str] = None,
        extraction_method: str = DEFAULT_EXTRACTION_METHOD,
        show_progress: bool = True,
    ):
        """
        Initialize the pipeline.

        Args:
            client: Extraction client used for every batch
            config: Pipeline configuration (defaults to the client's)
            source_file: Document name stamped onto each contact
            extraction_method: Method label stamped onto each contact
            show_progress: Whether to display a progress bar
        """
        self.client = client
        self.config = config or client.config
        self.planner = BatchPlanner(max_batch_bytes=self.config.max_batch_bytes)
        self.source_file = source_file
        self.extraction_method = extraction_method
        self.show_progress = show_progress

    def run(self, images: Sequence[PageImage], token: Optional[CancellationToken] = None) -> PipelineRun:
        """
        Extract contacts from an ordered sequence of page images.

        Args:
            images: Page images in page order
            token: Cancellation token; cancelling ends the run after the
                current call and returns the partial result

        Returns:
            PipelineRun with merged contacts, counters and errors
        """
        token = token or CancellationToken()
        run = PipelineRun(source_file=self.source_file)
        started = time.perf_counter()
        merger = ResultMerger(source_file=self.source_file, extraction_method=self.extraction_method)

        batches = self.planner.create_batches(images)
        run.batches_planned = len(batches)
        logger.info(f"Run {run.run_id}: {len(images)} pages in {len(batches)} batches")

        batch_contacts: List[List[ContactRecord]] = []
        inter_batch_delay = self.config.inter_batch_delay_ms / 1000

        try:
            for position, batch in enumerate(tqdm(batches, desc="Extracting batches", disable=not self.show_progress)):
                if position > 0:
                    token.wait(inter_batch_delay)
                token.raise_if_cancelled()

                logger.info(f"Processing batch {batch.batch_index + 1}/{len(batches)}")
                with ImageStager() as stager:
                    result = self.client.submit(batch, stager=stager, token=token, total_batches=len(batches))

                run.record(batch, result)
                if result.succeeded:
                    batch_contacts.append(result.contacts)
                else:
                    logger.error(f"Batch {batch.batch_index + 1} failed ({result.status.value}); continuing")
        except RunCancelled as e:
            if e.partial is not None:
                logger.warning(
                    f"Keeping {len(e.partial.contacts)} contacts from interrupted batch {batch.batch_index + 1}"
                )
                run.record(batch, e.partial)
                batch_contacts.append(e.partial.contacts)
            run.cancelled = True
            logger.warning(
                f"Run {run.run_id} cancelled after {run.batches_processed}/{run.batches_planned} batches"
            )

        run.contacts = merger.merge(batch_contacts)
        run.finished_at = datetime.now(timezone.utc)
        run.elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            f"Run {run.run_id} {run.status}: {run.total_contacts} contacts, "
            f"{run.batches_succeeded} succeeded, {run.batches_degraded} degraded, "
            f"{run.batches_failed} failed of {run.batches_planned} batches in {run.elapsed_ms:.0f}ms"
        )
        return run
