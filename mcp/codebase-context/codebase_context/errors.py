"""Exception hierarchy for codebase context.

Transport exceptions never cross a component boundary: the retry layer turns
them into ServiceError tagged with an ErrorKind, and callers match on the
kind rather than on httpx internals.
"""

from __future__ import annotations

import enum

__all__ = [
    'FATAL_ERROR_KINDS',
    'CodebaseContextError',
    'ErrorKind',
    'PersistenceError',
    'ServiceError',
]


class ErrorKind(enum.StrEnum):
    """Failure classes produced by the retry layer."""

    AUTH = 'auth'  # HTTP 401
    FORBIDDEN = 'forbidden'  # HTTP 403
    TLS = 'tls'  # Certificate verification failed
    TRANSIENT = 'transient'  # Timeout, refused, DNS, HTTP >= 500
    UNCLASSIFIED = 'unclassified'


# Kinds that are never retried and halt the remaining upload rounds
FATAL_ERROR_KINDS = frozenset({ErrorKind.AUTH, ErrorKind.FORBIDDEN, ErrorKind.TLS})


class CodebaseContextError(Exception):
    """Base exception for codebase context operations."""

    pass


class ServiceError(CodebaseContextError):
    """Remote service call failed after classification (and retries, if any)."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind

    @property
    def is_fatal(self) -> bool:
        return self.kind in FATAL_ERROR_KINDS


class PersistenceError(CodebaseContextError):
    """Manifest could not be written."""

    pass
