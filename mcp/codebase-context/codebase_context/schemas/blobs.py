"""Blob schema - the content-addressed unit sent to the retrieval service."""

from __future__ import annotations

import hashlib

from codebase_context.schemas.base import StrictModel

__all__ = [
    'Blob',
    'blob_name',
]


class Blob(StrictModel):
    """A whole file, or one line-bounded chunk of a large file.

    path is project-relative with forward slashes, suffixed with
    #chunk{i}of{n} for chunks.
    """

    path: str
    content: str

    @property
    def blob_name(self) -> str:
        """Content address of this blob."""
        return blob_name(self.path, self.content)


def blob_name(path: str, content: str) -> str:
    """SHA-256 over the path bytes followed by the content bytes.

    Must match the digest the retrieval service computes, otherwise the
    names it returns would never line up with the local manifest.
    """
    hasher = hashlib.sha256()
    hasher.update(path.encode('utf-8'))
    hasher.update(content.encode('utf-8'))
    return hasher.hexdigest()
