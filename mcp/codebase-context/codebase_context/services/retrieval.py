"""Retrieval service - answers codebase queries against a freshly synchronized manifest."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from codebase_context.clients import ContextEngineClient
from codebase_context.clients._retry import with_retry
from codebase_context.errors import ServiceError
from codebase_context.schemas.config import ContextConfig
from codebase_context.services.sync import SyncEngine

__all__ = [
    'NO_CONTEXT_MESSAGE',
    'RetrievalService',
]

logger = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = 'No relevant code context found for your query.'


class RetrievalService:
    """Runs a synchronization pass, then queries the retrieval service.

    The query itself is stateless given the manifest: the full manifest is
    sent as added blobs and nothing is ever reported deleted.
    """

    def __init__(
        self,
        config: ContextConfig,
        client: ContextEngineClient,
        sync_engine: SyncEngine,
    ) -> None:
        self._config = config
        self._client = client
        self._sync = sync_engine

    async def search(self, query: str, blob_names: Sequence[str]) -> str:
        """Query the retrieval service over blob_names.

        Raises:
            ServiceError: Classified failure after retries.
        """
        logger.info(f'[SEARCH] Searching {len(blob_names)} blobs')
        formatted = await with_retry(
            lambda: self._client.codebase_retrieval(
                query,
                blob_names,
                timeout=self._config.retrieval_timeout_seconds,
            ),
            max_attempts=self._config.max_retry_attempts,
            base_delay=self._config.retrieval_retry_delay_seconds,
            description='Codebase retrieval',
        )
        if not formatted:
            logger.info('[SEARCH] No relevant code found')
            return NO_CONTEXT_MESSAGE
        logger.info(f'[SEARCH] Retrieved {len(formatted):,} characters of context')
        return formatted

    async def search_context(self, project_root: Path | str | None, query: str | None) -> str:
        """Synchronize the project, then search it.

        Returns the retrieved context, or text starting with 'Error:' on any
        failure. Invalid arguments are reported without touching the network.
        """
        if not query:
            return 'Error: query is required'
        if not project_root:
            return 'Error: project_root_path is required'

        root = Path(project_root)
        if not root.exists():
            return f'Error: Project path does not exist: {root}'
        if not root.is_dir():
            return f'Error: Project path is not a directory: {root}'

        logger.info(f'[SEARCH] Query for {root}: {query[:100]}')

        index_result = await self._sync.synchronize(root)
        if index_result.status == 'error':
            logger.error(f'[SEARCH] Indexing failed: {index_result.message}')
            return f'Error: Failed to index project. {index_result.message}'

        blob_names = self._sync.load_manifest(root)
        if not blob_names:
            logger.error('[SEARCH] Manifest is empty after indexing')
            return 'Error: No blobs found after indexing.'

        try:
            return await self.search(query, blob_names)
        except ServiceError as e:
            logger.error(f'[SEARCH] Search failed [{e.kind}]: {e}')
            return f'Error: {e}'
