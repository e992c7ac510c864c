"""
Chunked batch writes with partial-failure reporting.

A large batch of record writes is split into ordered chunks no larger than
the record store's per-transaction ceiling. Each chunk is atomic; the batch
as a whole is not. A failing chunk stops the batch and the result says how
many writes had already been committed. Nothing is retried.

Usage:
    writer = BatchWriteCoordinator(store)
    result = await writer.commit(writes)
    if not result.succeeded:
        ...
    check = await writer.verify(series_id, expected=len(writes))
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from booking_engine.config import settings
from booking_engine.errors import PartialBatchFailure
from booking_engine.tools.record_store import RecordStore, RecordWrite

logger = logging.getLogger(__name__)


@dataclass
class BatchCommitResult:
    committed_count: int
    chunk_count: int
    total_count: int
    failed_chunk_index: Optional[int] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.failed_chunk_index is None


@dataclass
class VerificationResult:
    """Read-back count of a committed batch. A mismatch is a warning only."""

    expected: int
    actual: int

    @property
    def matched(self) -> bool:
        return self.expected == self.actual


def chunk_writes(writes: Sequence[RecordWrite], chunk_size: int) -> list[list[RecordWrite]]:
    """Split writes into ordered chunks of at most ``chunk_size``."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    return [list(writes[i:i + chunk_size]) for i in range(0, len(writes), chunk_size)]


class BatchWriteCoordinator:
    """Commits record writes in bounded, ordered chunks."""

    def __init__(
        self,
        store: RecordStore,
        chunk_size: Optional[int] = None,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.store = store
        self.chunk_size = settings.batch.chunk_size if chunk_size is None else chunk_size
        self.max_concurrency = max_concurrency or settings.batch.max_parallel_chunks

    def _resolve_chunk_size(self, chunk_size: Optional[int]) -> int:
        size = self.chunk_size if chunk_size is None else chunk_size
        if size > self.store.max_batch_size:
            raise ValueError(
                f"chunk_size {size} exceeds the store limit of {self.store.max_batch_size}"
            )
        return size

    async def commit(
        self,
        writes: Sequence[RecordWrite],
        chunk_size: Optional[int] = None,
        max_concurrency: Optional[int] = None,
    ) -> BatchCommitResult:
        """
        Commit writes chunk by chunk.

        Args:
            writes: Writes in the order they should be committed.
            chunk_size: Maximum writes per chunk; defaults to the configured size.
            max_concurrency: Chunks in flight at once. 1 commits strictly in order.

        Returns:
            How many writes committed and, on failure, which chunk failed.
        """
        chunks = chunk_writes(writes, self._resolve_chunk_size(chunk_size))
        concurrency = max_concurrency or self.max_concurrency

        if concurrency <= 1 or len(chunks) <= 1:
            result = await self._commit_sequential(chunks, len(writes))
        else:
            result = await self._commit_parallel(chunks, len(writes), concurrency)

        if result.succeeded:
            logger.info(
                "Committed %d writes in %d chunks", result.committed_count, result.chunk_count
            )
        else:
            logger.error(
                "Batch failed at chunk %d: %d of %d writes committed (%s)",
                result.failed_chunk_index, result.committed_count, result.total_count,
                result.error,
            )
        return result

    async def _commit_sequential(
        self, chunks: list[list[RecordWrite]], total: int
    ) -> BatchCommitResult:
        committed = 0
        for index, chunk in enumerate(chunks):
            try:
                await self.store.commit_batch(chunk)
            except Exception as exc:
                return BatchCommitResult(
                    committed_count=committed,
                    chunk_count=len(chunks),
                    total_count=total,
                    failed_chunk_index=index,
                    error=exc,
                )
            committed += len(chunk)
            logger.debug("Chunk %d/%d committed (%d writes)", index + 1, len(chunks), len(chunk))
        return BatchCommitResult(committed_count=committed, chunk_count=len(chunks), total_count=total)

    async def _commit_parallel(
        self, chunks: list[list[RecordWrite]], total: int, concurrency: int
    ) -> BatchCommitResult:
        semaphore = asyncio.Semaphore(concurrency)
        lock = asyncio.Lock()
        committed = 0
        failures: dict[int, BaseException] = {}

        async def commit_chunk(index: int, chunk: list[RecordWrite]) -> None:
            nonlocal committed
            async with semaphore:
                # No new chunk starts once any chunk has failed.
                if failures:
                    return
                try:
                    await self.store.commit_batch(chunk)
                except Exception as exc:
                    async with lock:
                        failures[index] = exc
                    return
                async with lock:
                    committed += len(chunk)

        await asyncio.gather(*(commit_chunk(i, c) for i, c in enumerate(chunks)))

        if failures:
            first = min(failures)
            return BatchCommitResult(
                committed_count=committed,
                chunk_count=len(chunks),
                total_count=total,
                failed_chunk_index=first,
                error=failures[first],
            )
        return BatchCommitResult(committed_count=committed, chunk_count=len(chunks), total_count=total)

    async def commit_or_raise(
        self,
        writes: Sequence[RecordWrite],
        chunk_size: Optional[int] = None,
        max_concurrency: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> BatchCommitResult:
        """
        Like :meth:`commit`, but a failed chunk raises.

        Raises:
            PartialBatchFailure: With the committed count and failing chunk index.
        """
        result = await self.commit(writes, chunk_size, max_concurrency)
        if not result.succeeded:
            raise PartialBatchFailure(
                committed_count=result.committed_count,
                failed_chunk_index=result.failed_chunk_index,
                total_count=result.total_count,
                cause=result.error,
                correlation_id=correlation_id,
            ) from result.error
        return result

    async def verify(self, series_id: str, expected: int) -> VerificationResult:
        """Count persisted bookings for a series and compare with what was written."""
        actual = await self.store.count_bookings(series_id)
        result = VerificationResult(expected=expected, actual=actual)
        if not result.matched:
            logger.warning(
                "Verification mismatch for series %s: expected %d bookings, found %d",
                series_id, expected, actual,
            )
        return result
