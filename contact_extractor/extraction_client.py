"""
Extraction client: submits batches to the vision API with backoff and degradation.
"""

import time
import logging
from typing import List, Optional, Sequence

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .cancellation import CancellationToken, RunCancelled
from .config import PipelineConfig
from .models import (
    AttemptOutcome,
    Batch,
    ContactRecord,
    ExtractionAttempt,
    ExtractionError,
    ExtractionResult,
    ExtractionStatus,
    PageImage,
)
from .prompts import PromptTemplate
from .response_parser import ParseError, ResponseParser
from .staging import ImagePart, ImageStager
from .transport import (
    HTTP_OK,
    HTTP_OVERLOADED,
    HTTP_PAYLOAD_TOO_LARGE,
    HTTP_RATE_LIMITED,
    RequestTimeout,
    TransportError,
    VisionTransport,
)

logger = logging.getLogger(__name__)

_STATUS_OUTCOMES = {
    HTTP_OK: AttemptOutcome.SUCCESS,
    HTTP_RATE_LIMITED: AttemptOutcome.RATE_LIMITED,
    HTTP_OVERLOADED: AttemptOutcome.OVERLOADED,
    HTTP_PAYLOAD_TOO_LARGE: AttemptOutcome.PAYLOAD_TOO_LARGE,
}


class TransientApiError(Exception):
    """Rate limited, overloaded or timed out; eligible for backoff."""

    def __init__(self, outcome: AttemptOutcome, status_code: Optional[int], message: str):
        super().__init__(message)
        self.outcome = outcome
        self.status_code = status_code


class PayloadTooLarge(Exception):
    """The API rejected the request body as too large (HTTP 413)."""


class ApiError(Exception):
    """Any other HTTP or network failure; never retried."""

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code


class RequestFailed(Exception):
    """Terminal failure of one request, already classified."""

    def __init__(self, status: ExtractionStatus, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.status_code = status_code


class ExtractionClient:
    """
    Client that turns one batch of page images into contact records.

    Per batch it runs a small state machine:

    1. Attempting: send every page of the batch in one request
    2. Backoff: on 429/529 or a timeout, wait ``base * 2^(attempt-1)`` and
       try again, up to ``backoff_max_attempts`` attempts
    3. Degrading: on 413, resend the pages one at a time (at most once per
       batch; a single page that is still too large is terminal)
    4. Succeeded / Failed: reported as an ExtractionResult, never raised

    Only cancellation escapes as an exception (RunCancelled).
    """

    def __init__(
        self,
        transport: VisionTransport,
        config: Optional[PipelineConfig] = None,
        prompt: Optional[PromptTemplate] = None,
        parser: Optional[ResponseParser] = None,
    ):
        """
        Initialize the extraction client.

        Args:
            transport: Provider transport used for every API call
            config: Backoff, timeout and delay settings
            prompt: Instruction prompt (default: oil & gas contacts)
            parser: Response parser
        """
        self.transport = transport
        self.config = config or PipelineConfig()
        self.prompt = prompt or PromptTemplate()
        self.parser = parser or ResponseParser()

    def submit(
        self,
        batch: Batch,
        stager: Optional[ImageStager] = None,
        token: Optional[CancellationToken] = None,
        total_batches: Optional[int] = None,
    ) -> ExtractionResult:
        """
        Extract contacts from one batch.

        Args:
            batch: Batch of page images
            stager: Request buffers for this batch; a private one is used if omitted
            token: Cancellation token checked before every call and during waits
            total_batches: Number of batches in the run, for the prompt

        Returns:
            ExtractionResult describing success, degraded success or failure
        """
        token = token or CancellationToken()
        if stager is None:
            with ImageStager() as own_stager:
                return self._submit_batch(batch, own_stager, token, total_batches)
        return self._submit_batch(batch, stager, token, total_batches)

    def _submit_batch(
        self,
        batch: Batch,
        stager: ImageStager,
        token: CancellationToken,
        total_batches: Optional[int],
    ) -> ExtractionResult:
        ref = f"batch {batch.batch_index + 1} (pages {batch.page_numbers})"
        attempts: List[ExtractionAttempt] = []
        prompt = self.prompt.render(batch.page_numbers, batch.batch_index, total_batches)

        logger.info(f"Sending {len(batch.pages)} page images ({batch.total_size} bytes) for {ref}")
        try:
            contacts = self._request_contacts(ref, prompt, batch.pages, stager, token, attempts)
        except PayloadTooLarge:
            if len(batch.pages) > 1:
                logger.warning(f"Payload too large for {ref}; resending pages one at a time")
                return self._degrade(batch, stager, token, total_batches, attempts)
            page = batch.pages[0]
            logger.error(f"Page {page.page_number} ({page.byte_size} bytes) rejected as too large")
            return ExtractionResult.failure(
                batch.batch_index,
                ExtractionStatus.IMAGE_TOO_LARGE,
                f"Page {page.page_number} is too large for the API ({page.byte_size} bytes)",
                attempts,
                page_index=page.index,
                status_code=HTTP_PAYLOAD_TOO_LARGE,
            )
        except RequestFailed as e:
            logger.error(f"Extraction failed for {ref}: {e.message}")
            return ExtractionResult.failure(
                batch.batch_index, e.status, e.message, attempts, status_code=e.status_code
            )

        logger.info(f"Extracted {len(contacts)} contacts from {ref} in {len(attempts)} attempt(s)")
        return ExtractionResult(
            batch_index=batch.batch_index,
            status=ExtractionStatus.SUCCEEDED,
            contacts=contacts,
            attempts=attempts,
        )

    def _degrade(
        self,
        batch: Batch,
        stager: ImageStager,
        token: CancellationToken,
        total_batches: Optional[int],
        attempts: List[ExtractionAttempt],
    ) -> ExtractionResult:
        """Resend each page of a rejected batch on its own, in page order."""
        contacts: List[ContactRecord] = []
        errors: List[ExtractionError] = []
        delay = self.config.degraded_image_delay_ms / 1000

        for position, page in enumerate(batch.pages):
            ref = f"batch {batch.batch_index + 1} page {page.page_number}"
            prompt = self.prompt.render([page.page_number], batch.batch_index, total_batches, single_image=True)
            try:
                if position > 0:
                    token.wait(delay)
                contacts.extend(self._request_contacts(ref, prompt, [page], stager, token, attempts))
            except RunCancelled as e:
                if contacts:
                    # Hand back the pages already extracted
                    e.partial = ExtractionResult(
                        batch_index=batch.batch_index,
                        status=ExtractionStatus.SUCCEEDED,
                        contacts=contacts,
                        degraded=True,
                        errors=errors,
                        attempts=attempts,
                    )
                raise
            except PayloadTooLarge:
                logger.error(f"Page {page.page_number} ({page.byte_size} bytes) rejected as too large on its own")
                errors.append(ExtractionError(
                    status=ExtractionStatus.IMAGE_TOO_LARGE,
                    message=f"Page {page.page_number} is too large for the API ({page.byte_size} bytes)",
                    batch_index=batch.batch_index,
                    page_index=page.index,
                    status_code=HTTP_PAYLOAD_TOO_LARGE,
                ))
            except RequestFailed as e:
                logger.error(f"Extraction failed for {ref}: {e.message}")
                errors.append(ExtractionError(
                    status=e.status,
                    message=e.message,
                    batch_index=batch.batch_index,
                    page_index=page.index,
                    status_code=e.status_code,
                ))

        if len(errors) == len(batch.pages):
            # Every page failed: report the batch as failed with the first cause
            return ExtractionResult(
                batch_index=batch.batch_index,
                status=errors[0].status,
                errors=errors,
                attempts=attempts,
            )

        logger.info(
            f"Degraded batch {batch.batch_index + 1}: {len(contacts)} contacts from "
            f"{len(batch.pages) - len(errors)}/{len(batch.pages)} pages"
        )
        return ExtractionResult(
            batch_index=batch.batch_index,
            status=ExtractionStatus.SUCCEEDED,
            contacts=contacts,
            degraded=True,
            errors=errors,
            attempts=attempts,
        )

    def _request_contacts(
        self,
        ref: str,
        prompt: str,
        pages: Sequence[PageImage],
        stager: ImageStager,
        token: CancellationToken,
        attempts: List[ExtractionAttempt],
    ) -> List[ContactRecord]:
        """
        Send one request with backoff and parse its contacts.

        Raises:
            PayloadTooLarge: The API answered 413
            RequestFailed: Any other terminal failure
        """
        parts = stager.parts_for(pages)
        timeout = self.config.timeout_for(sum(page.byte_size for page in pages))
        retrying = Retrying(
            stop=stop_after_attempt(self.config.backoff_max_attempts),
            wait=wait_exponential(
                multiplier=self.config.backoff_base_ms / 1000,
                max=self.config.backoff_max_delay_ms / 1000,
            ),
            retry=retry_if_exception_type(TransientApiError),
            sleep=token.wait,
            before_sleep=self._log_backoff,
            reraise=True,
        )

        try:
            text = retrying(self._send_once, ref, prompt, parts, timeout, token, attempts)
        except TransientApiError as e:
            raise RequestFailed(
                ExtractionStatus.RATE_LIMIT_EXHAUSTED,
                f"{ref}: giving up after {self.config.backoff_max_attempts} attempts ({e})",
                e.status_code,
            ) from e
        except ApiError as e:
            raise RequestFailed(ExtractionStatus.OTHER, f"{ref}: {e}", e.status_code) from e

        try:
            return self.parser.parse(text, ref)
        except ParseError as e:
            raise RequestFailed(ExtractionStatus.PARSE_ERROR, str(e), HTTP_OK) from e

    def _send_once(
        self,
        ref: str,
        prompt: str,
        parts: List[ImagePart],
        timeout: float,
        token: CancellationToken,
        attempts: List[ExtractionAttempt],
    ) -> str:
        """Make exactly one API call and classify the outcome."""
        token.raise_if_cancelled()
        attempt_number = sum(1 for attempt in attempts if attempt.ref == ref) + 1
        started = time.perf_counter()

        try:
            response = self.transport.send(prompt, parts, timeout)
        except RequestTimeout as e:
            self._record(attempts, ref, attempt_number, AttemptOutcome.TIMEOUT, started)
            raise TransientApiError(AttemptOutcome.TIMEOUT, None, f"timed out after {timeout:.0f}s") from e
        except TransportError as e:
            self._record(attempts, ref, attempt_number, AttemptOutcome.OTHER_ERROR, started)
            raise ApiError(None, f"network failure: {e}") from e
        except Exception as e:
            # SDK errors the transport does not map still only fail this batch
            self._record(attempts, ref, attempt_number, AttemptOutcome.OTHER_ERROR, started)
            raise ApiError(None, f"unexpected transport failure: {e!r}") from e

        status = response.status_code
        outcome = _STATUS_OUTCOMES.get(status, AttemptOutcome.OTHER_ERROR)
        self._record(attempts, ref, attempt_number, outcome, started, status)

        if status == HTTP_OK:
            return response.text
        if status in (HTTP_RATE_LIMITED, HTTP_OVERLOADED):
            raise TransientApiError(outcome, status, f"HTTP {status}")
        if status == HTTP_PAYLOAD_TOO_LARGE:
            raise PayloadTooLarge(f"HTTP {status}")
        raise ApiError(status, f"HTTP {status}: {response.text[:200]}")

    @staticmethod
    def _record(
        attempts: List[ExtractionAttempt],
        ref: str,
        attempt_number: int,
        outcome: AttemptOutcome,
        started: float,
        status_code: Optional[int] = None,
    ) -> None:
        attempts.append(ExtractionAttempt(
            ref=ref,
            attempt_number=attempt_number,
            outcome=outcome,
            elapsed_ms=(time.perf_counter() - started) * 1000,
            status_code=status_code,
        ))

    @staticmethod
    def _log_backoff(retry_state) -> None:
        error = retry_state.outcome.exception()
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"{retry_state.args[0]}: {error} on attempt {retry_state.attempt_number}, "
            f"retrying in {wait:.1f}s"
        )
