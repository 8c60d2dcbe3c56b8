"""Pydantic schemas for codebase context."""

from __future__ import annotations

from codebase_context.schemas.base import StrictModel
from codebase_context.schemas.blobs import Blob, blob_name
from codebase_context.schemas.config import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_TEXT_EXTENSIONS,
    ContextConfig,
    load_config,
)
from codebase_context.schemas.indexing import IndexResult, IndexStats, IndexStatus, UploadStrategy

__all__ = [
    'DEFAULT_EXCLUDE_PATTERNS',
    'DEFAULT_TEXT_EXTENSIONS',
    'Blob',
    'ContextConfig',
    'IndexResult',
    'IndexStats',
    'IndexStatus',
    'StrictModel',
    'UploadStrategy',
    'blob_name',
    'load_config',
]
