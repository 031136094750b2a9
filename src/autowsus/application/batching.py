"""
Batch processor for long record-at-a-time loops.

Batching here is for progress reporting only: items are still handed to the
callback one at a time, in order, on the calling thread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterator, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchProgress:
    """Snapshot passed to the progress callback."""
    batches_done: int
    total_batches: int
    processed: int
    total: int
    succeeded: int

    @property
    def percent_complete(self) -> float:
        if self.total == 0:
            return 100.0
        return round(self.processed * 100.0 / self.total, 1)


@dataclass
class BatchReport(Generic[T]):
    """Aggregate result of a for_each_batch call."""
    succeeded: int = 0
    failures: list[tuple[T, str]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most size items."""
    if size < 1:
        raise ValueError(f"batch size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BatchProcessor:
    """
    Runs a per-item callback over batches and reports progress.

    The callback's return value is ignored; an exception marks that item as
    failed and processing continues with the next item.
    """

    def __init__(
        self,
        progress_every: int = 5,
        on_progress: Callable[[BatchProgress], None] | None = None,
        failure_types: tuple[type[BaseException], ...] = (Exception,),
    ):
        self.progress_every = max(1, progress_every)
        self.on_progress = on_progress or self._log_progress
        self.failure_types = failure_types

    @staticmethod
    def _log_progress(progress: BatchProgress) -> None:
        logger.info(
            "Batch %d/%d: %.1f%% complete, %d succeeded",
            progress.batches_done, progress.total_batches,
            progress.percent_complete, progress.succeeded,
        )

    def for_each_batch(self, items: Sequence[T], size: int, fn: Callable[[T], object]) -> BatchReport[T]:
        """
        Apply fn to every item, grouped into batches of size.

        Args:
            items: Items to process
            size: Batch size used for progress reporting
            fn: Per-item callback

        Returns:
            BatchReport with the success count and (item, message) failures
        """
        report: BatchReport[T] = BatchReport()
        total = len(items)
        total_batches = (total + size - 1) // size if size > 0 else 0
        processed = 0

        for batch_number, batch in enumerate(chunked(items, size), start=1):
            for item in batch:
                try:
                    fn(item)
                    report.succeeded += 1
                except self.failure_types as exc:
                    logger.debug("Item %r failed: %s", item, exc)
                    report.failures.append((item, str(exc)))
                processed += 1

            if batch_number % self.progress_every == 0 or batch_number == total_batches:
                self.on_progress(BatchProgress(
                    batches_done=batch_number,
                    total_batches=total_batches,
                    processed=processed,
                    total=total,
                    succeeded=report.succeeded,
                ))

        return report
