import threading
from typing import Callable, Optional


class RunCancelled(Exception):
    """
    Raised inside a run when its cancellation token fires.

    ``partial`` carries the ExtractionResult of a degraded batch that was
    interrupted after some of its pages had already been extracted.
    """

    def __init__(self, partial=None):
        super().__init__("run cancelled")
        self.partial = partial


class CancellationToken:
    """
    Cooperative cancellation signal for one pipeline run.

    Every delay in the pipeline goes through ``wait`` so a cancel interrupts
    inter-batch pauses and retry backoff alike. ``sleep`` replaces the
    interruptible wait, which tests use to record delays instead of sleeping.
    """

    def __init__(self, sleep: Optional[Callable[[float], None]] = None):
        self._event = threading.Event()
        self._sleep = sleep

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled()

    def wait(self, seconds: float) -> None:
        """Wait for ``seconds``, raising RunCancelled if cancelled before or during the wait."""
        self.raise_if_cancelled()
        if seconds > 0:
            if self._sleep is not None:
                self._sleep(seconds)
            else:
                self._event.wait(seconds)
        self.raise_if_cancelled()
