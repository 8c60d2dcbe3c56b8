"""Retry and error classification for retrieval service calls.

Private submodule - not exported by the package.

HTTPX Exception Classification
==============================

Reference for how each failure maps to an ErrorKind::

    httpx.HTTPStatusError
    ├── 401                      ← AUTH (never retried)
    ├── 403                      ← FORBIDDEN (never retried)
    ├── >= 500                   ← TRANSIENT (retried)
    └── other 4xx                ← UNCLASSIFIED (never retried)
    httpx.ConnectError
    ├── certificate verify fail  ← TLS (never retried)
    ├── DNS lookup failure       ← TRANSIENT
    └── connection refused       ← TRANSIENT
    httpx.TimeoutException       ← TRANSIENT (all 4 subclasses)
    httpx.NetworkError           ← TRANSIENT
    httpx.RemoteProtocolError    ← TRANSIENT (server sent invalid HTTP)
    anything else                ← UNCLASSIFIED (original message kept)

Retry Policy
------------
Only TRANSIENT failures are retried, with exponential backoff
(base_delay * 2**n). Everything else surfaces on the first failure.
"""

from __future__ import annotations

from codebase_context.clients._retry.httpx_errors import classify_error, describe_error
from codebase_context.clients._retry.policy import with_retry

__all__ = [
    'classify_error',
    'describe_error',
    'with_retry',
]
