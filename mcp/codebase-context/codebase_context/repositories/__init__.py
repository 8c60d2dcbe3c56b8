"""Repositories for data persistence."""

from __future__ import annotations

from codebase_context.repositories.manifest import ManifestStore

__all__ = ['ManifestStore']
