"""Synchronization service - keeps the retrieval service's blob set in step with disk.

Coordinates: discover → diff against manifest → upload in rounds → persist.

Architecture:
- Only blobs whose name is missing from the manifest are uploaded
- Manifest persisted after every confirmed batch, so a crash mid-pass keeps progress
- Failed batches are requeued into the next round with a halved batch size
- Auth, forbidden and TLS failures stop new batches; in-flight batches finish
- At most `concurrency` upload requests in flight (fixed worker count)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from codebase_context.clients import ContextEngineClient
from codebase_context.clients._retry import with_retry
from codebase_context.errors import CodebaseContextError, ServiceError
from codebase_context.repositories.manifest import ManifestStore
from codebase_context.schemas.blobs import Blob
from codebase_context.schemas.config import ContextConfig
from codebase_context.schemas.indexing import IndexResult, UploadStrategy
from codebase_context.services.discovery import discover_blobs

__all__ = [
    'MAX_UPLOAD_ROUNDS',
    'MIN_BATCH_SIZE',
    'SyncEngine',
]

logger = logging.getLogger(__name__)

MAX_UPLOAD_ROUNDS = 3

# Batch size never halves below this between rounds
MIN_BATCH_SIZE = 5


@dataclass
class _PassState:
    """Mutable bookkeeping for one synchronization pass.

    Only touched from the event loop thread, so workers need no lock.
    """

    project_root: Path
    existing: list[str]
    accepted: list[str] = field(default_factory=list)
    known: set[str] = field(default_factory=set)
    fatal: ServiceError | None = None

    def __post_init__(self) -> None:
        self.known.update(self.existing)

    def accept(self, blob_names: Sequence[str]) -> int:
        """Record names confirmed by the service. Returns how many were new."""
        added = 0
        for name in blob_names:
            if name not in self.known:
                self.known.add(name)
                self.accepted.append(name)
                added += 1
        return added

    @property
    def manifest(self) -> list[str]:
        return [*self.existing, *self.accepted]


class SyncEngine:
    """Incremental, content-addressed upload of a project tree.

    Owns the manifest for the duration of a pass and is its only writer.
    Callers must not run two passes for the same project concurrently.
    """

    def __init__(
        self,
        config: ContextConfig,
        client: ContextEngineClient,
        manifest_store: ManifestStore,
    ) -> None:
        self._config = config
        self._client = client
        self._store = manifest_store

    def manifest_path(self, project_root: Path) -> Path:
        """Where this engine persists the manifest for a project."""
        return self._store.manifest_path(project_root)

    def load_manifest(self, project_root: Path) -> list[str]:
        """Blob names from the last persisted pass."""
        return self._store.load(project_root)

    async def synchronize(self, project_root: Path) -> IndexResult:
        """Run one synchronization pass.

        Never raises: every failure is reported through the returned
        IndexResult, with partial progress preserved and counted.
        """
        logger.info(f'[SYNC] Indexing project: {project_root}')
        start = time.perf_counter()
        try:
            result = await self._synchronize(project_root)
        except CodebaseContextError as e:
            logger.error(f'[SYNC] Indexing {project_root} failed: {e}')
            return IndexResult.error(str(e))
        except Exception as e:
            logger.exception(f'[SYNC] Unexpected error indexing {project_root}')
            return IndexResult.error(f'{type(e).__name__}: {e}')

        logger.info(f'[SYNC] {result.status} in {time.perf_counter() - start:.1f}s: {result.message}')
        return result

    async def _synchronize(self, project_root: Path) -> IndexResult:
        discovery = discover_blobs(project_root, self._config)
        if not discovery.blobs:
            logger.warning(f'[SYNC] No indexable text files found in {project_root}')
            return IndexResult.error('No indexable text files found in project')

        # Identical path + content collapses to one blob
        blobs_by_name: dict[str, Blob] = {}
        for blob in discovery.blobs:
            blobs_by_name.setdefault(blob.blob_name, blob)

        previous = set(self._store.load(project_root))
        existing = [name for name in blobs_by_name if name in previous]
        pending = [blob for name, blob in blobs_by_name.items() if name not in previous]
        logger.info(f'[SYNC] Incremental index: {len(existing)} existing, {len(pending)} new')

        if not pending:
            # Rewriting drops names for blobs no longer on disk
            self._store.save(project_root, existing)
            logger.info('[SYNC] Nothing to upload, using cached index')
            return IndexResult.from_counts('success', existing=len(existing), new=0)

        state = _PassState(project_root=project_root, existing=existing)
        pending = await self._upload(state, pending)
        self._store.save(project_root, state.manifest)
        return _classify(state, pending)

    async def _upload(self, state: _PassState, pending: list[Blob]) -> list[Blob]:
        """Upload in rounds. Returns the blobs still not accepted."""
        strategy = UploadStrategy.for_pending(len(pending), self._config)
        batch_size = strategy.batch_size
        logger.info(
            f'[UPLOAD] Uploading {len(pending)} new blobs: batch_size={strategy.batch_size}, '
            f'concurrency={strategy.concurrency}, timeout={strategy.timeout_seconds:.0f}s'
        )

        for round_number in range(1, MAX_UPLOAD_ROUNDS + 1):
            if round_number > 1:
                batch_size = max(MIN_BATCH_SIZE, batch_size // 2) if batch_size > MIN_BATCH_SIZE else batch_size
            batches = [pending[i : i + batch_size] for i in range(0, len(pending), batch_size)]
            logger.info(
                f'[UPLOAD] Round {round_number}/{MAX_UPLOAD_ROUNDS}: '
                f'{len(pending)} blobs in {len(batches)} batches of up to {batch_size}'
            )

            pending = await self._upload_round(state, batches, strategy, round_number)

            if state.fatal is not None:
                logger.error(f'[UPLOAD] Halted after round {round_number}: {state.fatal}')
                break
            if not pending:
                break
            logger.warning(f'[UPLOAD] Round {round_number} left {len(pending)} blobs pending')

        return pending

    async def _upload_round(
        self,
        state: _PassState,
        batches: Sequence[Sequence[Blob]],
        strategy: UploadStrategy,
        round_number: int,
    ) -> list[Blob]:
        """Dispatch one round through a fixed pool of workers sharing a queue.

        Returns blobs to retry: failed batches plus batches never started
        because a fatal error halted dispatch.
        """
        queue: asyncio.Queue[tuple[int, Sequence[Blob]]] = asyncio.Queue()
        for index, batch in enumerate(batches, start=1):
            queue.put_nowait((index, batch))

        failed: list[Blob] = []
        total = len(batches)

        async def worker() -> None:
            while state.fatal is None:
                try:
                    index, batch = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                description = f'Upload batch {index}/{total} (round {round_number})'
                if not await self._upload_batch(state, batch, strategy, description):
                    failed.extend(batch)

        workers = [asyncio.create_task(worker()) for _ in range(min(strategy.concurrency, total))]

        # FAIL-FAST: a worker raising (e.g. manifest write failure) ends the round
        try:
            done, _ = await asyncio.wait(workers, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                exc = task.exception()
                if exc is not None:
                    raise exc
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        while not queue.empty():
            _, batch = queue.get_nowait()
            failed.extend(batch)
        return failed

    async def _upload_batch(
        self,
        state: _PassState,
        batch: Sequence[Blob],
        strategy: UploadStrategy,
        description: str,
    ) -> bool:
        """Upload one batch. Returns True if the service confirmed it.

        Raises:
            PersistenceError: If the manifest could not be saved after success.
        """
        try:
            blob_names = await with_retry(
                lambda: self._client.batch_upload(batch, timeout=strategy.timeout_seconds),
                max_attempts=self._config.max_retry_attempts,
                base_delay=self._config.upload_retry_delay_seconds,
                description=description,
            )
        except ServiceError as e:
            if e.is_fatal:
                if state.fatal is None:
                    state.fatal = e
                logger.error(f'[UPLOAD] {description} failed [{e.kind}], no new batches will start: {e}')
            else:
                logger.warning(f'[UPLOAD] {description} failed [{e.kind}], requeued: {e}')
            return False

        if not blob_names:
            logger.warning(f'[UPLOAD] {description} returned no blob names, requeued')
            return False

        added = state.accept(blob_names)
        # Durable before this worker takes more work
        self._store.save(state.project_root, state.manifest)
        logger.info(f'[UPLOAD] {description}: {len(batch)} blobs sent, {added} new names confirmed')
        return True


def _classify(state: _PassState, pending: Sequence[Blob]) -> IndexResult:
    existing = len(state.existing)
    accepted = len(state.accepted)
    failed = len(pending)
    progress = existing + accepted > 0

    if state.fatal is not None:
        if not progress:
            return IndexResult.error(f'Upload halted: {state.fatal}')
        return IndexResult.from_counts(
            'partial_success',
            existing=existing,
            new=accepted,
            failed=failed,
            note=f'Upload halted: {state.fatal}',
        )

    if pending:
        if not progress:
            return IndexResult.error(f'All uploads failed after {MAX_UPLOAD_ROUNDS} rounds ({failed} blobs)')
        return IndexResult.from_counts('partial_success', existing=existing, new=accepted, failed=failed)

    return IndexResult.from_counts('success', existing=existing, new=accepted)
