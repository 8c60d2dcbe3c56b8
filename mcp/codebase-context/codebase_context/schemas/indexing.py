"""Synchronization schemas.

Upload strategy selection and the result contract returned by a
synchronization pass.
"""

from __future__ import annotations

from typing import Literal, TypeAlias

from codebase_context.schemas.base import StrictModel
from codebase_context.schemas.config import ContextConfig

__all__ = [
    'IndexResult',
    'IndexStats',
    'IndexStatus',
    'UploadStrategy',
]

IndexStatus: TypeAlias = Literal['success', 'partial_success', 'error']

# (pending upper bound, batch size, concurrency, timeout seconds).
# Every column is non-decreasing down the table.
_STRATEGY_TIERS: tuple[tuple[int | None, int, int, float], ...] = (
    (100, 10, 1, 30.0),
    (500, 30, 2, 45.0),
    (2000, 50, 3, 60.0),
    (None, 100, 4, 90.0),
)


class UploadStrategy(StrictModel):
    """Batching parameters for one synchronization pass."""

    batch_size: int
    concurrency: int
    timeout_seconds: float

    @classmethod
    def for_pending(cls, pending: int, config: ContextConfig) -> UploadStrategy:
        """Pick parameters for the number of blobs waiting to upload.

        Small jobs get small single-threaded batches; large jobs get bigger
        batches and more parallelism. Configured batch size and concurrency
        cap the tier values and the configured timeout is a floor, which keeps
        every parameter monotonic in pending.
        """
        for upper, batch_size, concurrency, timeout in _STRATEGY_TIERS:
            if upper is None or pending < upper:
                break
        return cls(
            batch_size=min(batch_size, config.batch_size),
            concurrency=min(concurrency, config.upload_concurrency),
            timeout_seconds=max(timeout, config.upload_timeout_seconds),
        )


class IndexStats(StrictModel):
    """Blob counts for a pass. total_blobs == existing_blobs + new_blobs."""

    total_blobs: int
    existing_blobs: int
    new_blobs: int
    failed_blobs: int = 0


class IndexResult(StrictModel):
    """Outcome of one synchronization pass."""

    status: IndexStatus
    message: str
    stats: IndexStats | None = None

    @classmethod
    def error(cls, message: str) -> IndexResult:
        return cls(status='error', message=message)

    @classmethod
    def from_counts(
        cls,
        status: IndexStatus,
        *,
        existing: int,
        new: int,
        failed: int = 0,
        note: str | None = None,
    ) -> IndexResult:
        """Build a result whose message and stats agree by construction."""
        total = existing + new
        message = f'Indexed {total} blobs (existing: {existing}, new: {new})'
        if failed:
            message += f', {failed} blobs failed to upload'
        if note:
            message += f'. {note}'
        return cls(
            status=status,
            message=message,
            stats=IndexStats(total_blobs=total, existing_blobs=existing, new_blobs=new, failed_blobs=failed),
        )
