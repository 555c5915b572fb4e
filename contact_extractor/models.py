"""
Shared data models for the extraction pipeline.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from io import BytesIO
from typing import Any, Dict, List, Optional

from PIL import Image

# A contact as returned by the extraction API; opaque beyond provenance tags.
ContactRecord = Dict[str, Any]


@dataclass(frozen=True)
class PageImage:
    """A single rendered document page."""

    index: int  # 0-based page order
    data: bytes = field(repr=False)
    byte_size: int
    width: int
    height: int

    @classmethod
    def from_bytes(cls, index: int, data: bytes) -> "PageImage":
        """Build a page from encoded image bytes, reading dimensions with Pillow."""
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
        return cls(index=index, data=data, byte_size=len(data), width=width, height=height)

    @property
    def page_number(self) -> int:
        return self.index + 1


@dataclass
class Batch:
    """An order-preserving group of pages sent in one request."""

    batch_index: int
    pages: List[PageImage]
    max_bytes: int

    @property
    def total_size(self) -> int:
        return sum(page.byte_size for page in self.pages)

    @property
    def oversized(self) -> bool:
        # Only possible for a singleton whose one page exceeds the cap
        return self.total_size > self.max_bytes

    @property
    def page_numbers(self) -> List[int]:
        return [page.page_number for page in self.pages]


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    TIMEOUT = "timeout"
    OTHER_ERROR = "other_error"


@dataclass
class ExtractionAttempt:
    """One API call made for a batch or, in degraded mode, for one image."""

    ref: str
    attempt_number: int
    outcome: AttemptOutcome
    elapsed_ms: float
    status_code: Optional[int] = None


class ExtractionStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PARSE_ERROR = "parse_error"
    RATE_LIMIT_EXHAUSTED = "rate_limit_exhausted"
    IMAGE_TOO_LARGE = "image_too_large"
    OTHER = "other"


@dataclass
class ExtractionError:
    """Structured description of a failed batch or image."""

    status: ExtractionStatus
    message: str
    batch_index: int
    page_index: Optional[int] = None
    status_code: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "message": self.message,
            "batch_index": self.batch_index,
            "page_index": self.page_index,
            "status_code": self.status_code,
        }


@dataclass
class ExtractionResult:
    """
    Terminal outcome of submitting one batch.

    ``status`` is SUCCEEDED for both direct and degraded success; ``degraded``
    tells them apart. ``errors`` holds the batch failure, or the per-image
    failures of a degraded batch.
    """

    batch_index: int
    status: ExtractionStatus
    contacts: List[ContactRecord] = field(default_factory=list)
    degraded: bool = False
    errors: List[ExtractionError] = field(default_factory=list)
    attempts: List[ExtractionAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status is ExtractionStatus.SUCCEEDED

    @classmethod
    def failure(
        cls,
        batch_index: int,
        status: ExtractionStatus,
        message: str,
        attempts: List[ExtractionAttempt],
        page_index: Optional[int] = None,
        status_code: Optional[int] = None,
    ) -> "ExtractionResult":
        error = ExtractionError(
            status=status,
            message=message,
            batch_index=batch_index,
            page_index=page_index,
            status_code=status_code,
        )
        return cls(batch_index=batch_index, status=status, errors=[error], attempts=attempts)


@dataclass
class BatchOutcome:
    """Per-batch summary kept on the run."""

    batch_index: int
    page_numbers: List[int]
    total_size: int
    status: ExtractionStatus
    degraded: bool
    contact_count: int
    attempt_count: int

    def to_dict(self) -> dict:
        return {
            "batch_index": self.batch_index,
            "page_numbers": self.page_numbers,
            "total_size": self.total_size,
            "status": self.status.value,
            "degraded": self.degraded,
            "contact_count": self.contact_count,
            "attempt_count": self.attempt_count,
        }


@dataclass
class PipelineRun:
    """Counters and results of one pipeline run, returned to the caller."""

    source_file: Optional[str] = None
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    elapsed_ms: float = 0.0
    batches_planned: int = 0
    batches_succeeded: int = 0
    batches_degraded: int = 0
    batches_failed: int = 0
    contacts: List[ContactRecord] = field(default_factory=list)
    errors: List[ExtractionError] = field(default_factory=list)
    outcomes: List[BatchOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def total_contacts(self) -> int:
        return len(self.contacts)

    @property
    def batches_processed(self) -> int:
        return len(self.outcomes)

    @property
    def status(self) -> str:
        if self.cancelled:
            return "cancelled"
        if self.batches_planned == 0:
            return "empty"
        if self.batches_processed == self.batches_planned and not self.errors:
            return "complete"
        if self.batches_succeeded + self.batches_degraded == 0:
            return "failed"
        return "partial"

    def record(self, batch: Batch, result: ExtractionResult) -> None:
        """Fold one batch result into the counters."""
        if result.succeeded and result.degraded:
            self.batches_degraded += 1
        elif result.succeeded:
            self.batches_succeeded += 1
        else:
            self.batches_failed += 1
        self.errors.extend(result.errors)
        self.outcomes.append(
            BatchOutcome(
                batch_index=batch.batch_index,
                page_numbers=batch.page_numbers,
                total_size=batch.total_size,
                status=result.status,
                degraded=result.degraded,
                contact_count=len(result.contacts),
                attempt_count=len(result.attempts),
            )
        )

    def to_dict(self, include_contacts: bool = True) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            "run_id": self.run_id,
            "source_file": self.source_file,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "batches_planned": self.batches_planned,
            "batches_succeeded": self.batches_succeeded,
            "batches_degraded": self.batches_degraded,
            "batches_failed": self.batches_failed,
            "total_contacts": self.total_contacts,
            "cancelled": self.cancelled,
            "errors": [error.to_dict() for error in self.errors],
            "batches": [outcome.to_dict() for outcome in self.outcomes],
        }
        if include_contacts:
            data["contacts"] = self.contacts
        return data
