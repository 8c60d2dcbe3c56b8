"""Domain services for codebase context."""

from __future__ import annotations

from codebase_context.services.discovery import DiscoveryResult, PathClassifier, discover_blobs
from codebase_context.services.retrieval import RetrievalService
from codebase_context.services.sync import SyncEngine

__all__ = [
    'DiscoveryResult',
    'PathClassifier',
    'RetrievalService',
    'SyncEngine',
    'discover_blobs',
]
