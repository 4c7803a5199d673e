"""
Resumable batch execution over a row range.

**Conceptual**: Minting, setting instance metadata and sending initial funds
all have the same shape: split the rows [start, end) into batches of
batch_size, submit one ledger transaction per batch, and never resubmit a batch
that already went through. BatchRunner implements that loop once, driven by a
counter on the BatchRecord:

    while start + counter * batch_size < end:
        apply_batch(counter, batch_start, batch_end)    # may raise
        counter += 1
        batch_record.checkpoint()                        # before the next batch

**Guarantees**:
  - The counter only counts batches whose call returned. It is incremented and
    persisted after the call, never before.
  - Batch n+1 is not issued before batch n's checkpoint write has completed.
  - Re-running with the persisted counter resumes at the first batch that did
    not complete; earlier batches are never replayed.

**Limitation**: If a call fails, the in-flight batch may or may not have
reached the ledger. The counter is left unchanged and the next run submits that
batch again. This relies on the batched ledger operation being safe to
resubmit.
"""

from typing import Callable, List, Tuple

import structlog

from giftflow.data.records import BatchRecord
from giftflow.errors import ConfigurationError

logger = structlog.get_logger(__name__)

# (batch_index, batch_start, batch_end) -> None, raises on failure
ApplyBatch = Callable[[int, int, int], None]


def batch_ranges(start: int, end: int, batch_size: int, first_batch: int = 0) -> List[Tuple[int, int, int]]:
    """
    List the remaining batches of [start, end) as (index, batch_start, batch_end).

    Example:
        >>> batch_ranges(0, 250, 100)
        [(0, 0, 100), (1, 100, 200), (2, 200, 250)]
        >>> batch_ranges(0, 250, 100, first_batch=2)
        [(2, 200, 250)]
    """
    if batch_size <= 0:
        raise ConfigurationError(f"The batch size must be positive, got: {batch_size}")
    ranges = []
    index = first_batch
    while start + index * batch_size < end:
        batch_start = start + index * batch_size
        ranges.append((index, batch_start, min(batch_start + batch_size, end)))
        index += 1
    return ranges


class BatchRunner:
    """
    Applies a batched operation over a row range with checkpointed progress.

    Args:
        record: BatchRecord holding the progress counters; checkpointed after
                every completed batch unless dry_run.
        batch_size: Rows per batch.
        dry_run: If True, counters advance in memory only.

    Example:
        >>> runner = BatchRunner(context.batch_record, batch_size=100)
        >>> runner.run("last_mint_batch", 0, 250, lambda i, s, e: ledger.submit_batch(...))
        3
    """

    def __init__(self, record: BatchRecord, batch_size: int, dry_run: bool = False):
        if batch_size <= 0:
            raise ConfigurationError(f"The batch size must be positive, got: {batch_size}")
        self.record = record
        self.batch_size = batch_size
        self.dry_run = dry_run

    def run(self, counter: str, start: int, end: int, apply_batch: ApplyBatch) -> int:
        """
        Run every batch of [start, end) not yet recorded as complete.

        Args:
            counter: Name of the BatchRecord attribute counting completed
                     batches (e.g. "last_mint_batch").
            start: First row index (inclusive).
            end: Last row index (exclusive).
            apply_batch: Called as apply_batch(batch_index, batch_start,
                         batch_end); must raise to signal failure.

        Returns:
            Number of batches applied by this call.

        Raises:
            Whatever apply_batch raises; the counter keeps its value.
        """
        applied = 0
        completed = getattr(self.record, counter)
        for index, batch_start, batch_end in batch_ranges(start, end, self.batch_size, completed):
            logger.info("batch_started", counter=counter, batch=index + 1, rows=f"[{batch_start}, {batch_end})")
            apply_batch(index, batch_start, batch_end)

            setattr(self.record, counter, index + 1)
            if not self.dry_run:
                self.record.checkpoint()
            applied += 1
            logger.info("batch_completed", counter=counter, batch=index + 1)

        return applied
