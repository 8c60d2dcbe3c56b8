"""Retrieval service HTTP client.

Thin wrapper around the batch upload and codebase retrieval endpoints. Handles
API calls only - retries, batching and manifest bookkeeping live in the
service layer.

Uses native async httpx so upload batches can run concurrently.
"""

from __future__ import annotations

from collections.abc import Sequence

import httpx
import pydantic

from codebase_context.schemas.base import StrictModel
from codebase_context.schemas.blobs import Blob
from codebase_context.schemas.config import ContextConfig

__all__ = [
    'ContextEngineClient',
]


class _BatchUploadResponse(pydantic.BaseModel):
    blob_names: list[str] = []


class _RetrievalResponse(pydantic.BaseModel):
    formatted_retrieval: str | None = None


class _RetrievalBlobs(StrictModel):
    checkpoint_id: None = None
    added_blobs: Sequence[str]
    deleted_blobs: Sequence[str] = ()


class _RetrievalRequest(StrictModel):
    information_request: str
    blobs: _RetrievalBlobs
    dialog: Sequence[str] = ()
    max_output_length: int = 0
    disable_codebase_retrieval: bool = False
    enable_commit_retrieval: bool = False


class ContextEngineClient:
    """Low-level client for the retrieval service.

    One instance per server lifetime; the connection pool is sized for the
    largest upload concurrency the config allows.

    Endpoints:
    - POST /batch-upload: {"blobs": [{"path", "content"}]} -> {"blob_names": [...]}
    - POST /agents/codebase-retrieval: retrieval request -> {"formatted_retrieval": str}
    """

    UPLOAD_PATH = '/batch-upload'
    RETRIEVAL_PATH = '/agents/codebase-retrieval'

    DEFAULT_KEEPALIVE_EXPIRY = 30  # Seconds before idle close

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        max_connections: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Service root, without trailing slash.
            token: Bearer token sent on every request.
            max_connections: Max simultaneous HTTP connections.
            transport: Optional transport override (tests use httpx.MockTransport).
        """
        limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections,
            keepalive_expiry=self.DEFAULT_KEEPALIVE_EXPIRY,
        )
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                'Authorization': f'Bearer {token}',
                'Content-Type': 'application/json',
            },
            limits=limits,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: ContextConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ContextEngineClient:
        """Create client sized for the configured upload concurrency (plus one retrieval)."""
        return cls(
            config.base_url,
            config.token,
            max_connections=config.upload_concurrency + 1,
            transport=transport,
        )

    async def batch_upload(self, blobs: Sequence[Blob], *, timeout: float) -> Sequence[str]:
        """Upload blobs and return the names the service accepted.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            httpx.HTTPError: On transport failures.
            pydantic.ValidationError: On a malformed response body.
        """
        body = {'blobs': [blob.model_dump(mode='json') for blob in blobs]}
        response = await self._client.post(self.UPLOAD_PATH, json=body, timeout=timeout)
        response.raise_for_status()
        return _BatchUploadResponse.model_validate(response.json()).blob_names

    async def codebase_retrieval(
        self,
        query: str,
        blob_names: Sequence[str],
        *,
        timeout: float,
    ) -> str:
        """Run a retrieval query over the given blob set.

        Returns an empty string when the service found nothing.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            httpx.HTTPError: On transport failures.
            pydantic.ValidationError: On a malformed response body.
        """
        request = _RetrievalRequest(
            information_request=query,
            blobs=_RetrievalBlobs(added_blobs=list(blob_names)),
        )
        response = await self._client.post(
            self.RETRIEVAL_PATH,
            json=request.model_dump(mode='json'),
            timeout=timeout,
        )
        response.raise_for_status()
        return _RetrievalResponse.model_validate(response.json()).formatted_retrieval or ''

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> ContextEngineClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        await self.close()
