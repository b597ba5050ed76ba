"""Batch scheduling of per-file processing with progress and cancellation."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Iterable, List, Optional

from .config import BATCH_SIZE, PACING_DELAY, IntakeSettings
from .processor import SingleFileProcessor
from .schemas import ProcessedInvoice, UploadCandidate
from .utils import chunked

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class OperationCancelled(Exception):
    """The caller cancelled the run; partial results are discarded."""

    def __init__(self, processed: int = 0, total: int = 0) -> None:
        super().__init__("Operation was cancelled")
        self.processed = processed
        self.total = total


class CancellationToken:
    """Flag the caller may set from any thread.

    The scheduler only polls it at group boundaries, so files already in
    flight always finish.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class BatchScheduler:
    def __init__(
        self,
        processor: Optional[SingleFileProcessor] = None,
        batch_size: int = BATCH_SIZE,
        pacing_delay: float = PACING_DELAY,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.processor = processor or SingleFileProcessor()
        self.batch_size = batch_size
        self.pacing_delay = pacing_delay

    @classmethod
    def from_settings(cls, settings: IntakeSettings) -> "BatchScheduler":
        return cls(
            processor=SingleFileProcessor.from_settings(settings),
            batch_size=settings.batch_size,
            pacing_delay=settings.pacing_delay,
        )

    async def run(
        self,
        candidates: Iterable[UploadCandidate],
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> List[ProcessedInvoice]:
        """Process ``candidates`` group by group and return outcomes in input order.

        Members of a group run concurrently; the next group starts only after
        the whole group has resolved. ``on_progress`` receives the percentage
        of files done after each group. Raises OperationCancelled when
        ``cancel`` is set before a group starts.
        """
        candidates = list(candidates)
        total = len(candidates)
        results: List[ProcessedInvoice] = []
        if total == 0:
            return results

        logger.info("Processing %d file(s) in groups of %d", total, self.batch_size)
        for group in chunked(candidates, self.batch_size):
            if cancel is not None and cancel.cancelled:
                logger.warning("Processing cancelled after %d of %d file(s)", len(results), total)
                raise OperationCancelled(len(results), total)

            outcomes = await asyncio.gather(*(self.processor.process(candidate) for candidate in group))
            results.extend(outcomes)

            percent = len(results) * 100 / total
            logger.debug("Progress %.1f%% (%d/%d)", percent, len(results), total)
            if on_progress is not None:
                on_progress(percent)

            if self.pacing_delay and len(results) < total:
                await asyncio.sleep(self.pacing_delay)

        logger.info(
            "Processed %d file(s): %d succeeded, %d failed",
            total,
            sum(1 for r in results if r.success),
            sum(1 for r in results if not r.success),
        )
        return results

    def run_sync(
        self,
        candidates: Iterable[UploadCandidate],
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> List[ProcessedInvoice]:
        return asyncio.run(self.run(candidates, on_progress=on_progress, cancel=cancel))
