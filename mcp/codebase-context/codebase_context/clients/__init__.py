"""API clients for external services."""

from __future__ import annotations

from codebase_context.clients.context_engine import ContextEngineClient

__all__ = [
    'ContextEngineClient',
]
