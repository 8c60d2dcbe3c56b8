"""Classification of httpx failures into error kinds.

Private module - import from _retry package.
"""

from __future__ import annotations

import socket
import ssl

import httpx

from codebase_context.errors import ErrorKind

__all__ = [
    'classify_error',
    'describe_error',
]

_UNAUTHORIZED = 401
_FORBIDDEN = 403
_SERVER_ERROR_MIN = 500


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to its ErrorKind.

    Priority: 401, 403, certificate failures, transient network conditions,
    then everything else as unclassified.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == _UNAUTHORIZED:
            return ErrorKind.AUTH
        if status == _FORBIDDEN:
            return ErrorKind.FORBIDDEN
        if status >= _SERVER_ERROR_MIN:
            return ErrorKind.TRANSIENT
        return ErrorKind.UNCLASSIFIED

    # Checked before the network branch: a failed handshake surfaces as ConnectError
    if _is_certificate_error(exc):
        return ErrorKind.TLS

    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return ErrorKind.TRANSIENT

    return ErrorKind.UNCLASSIFIED


def describe_error(kind: ErrorKind, exc: BaseException) -> str:
    """Human-readable message for a classified failure."""
    match kind:
        case ErrorKind.AUTH:
            return 'Token is invalid or expired, please update the configured token'
        case ErrorKind.FORBIDDEN:
            return 'Access denied, the token may have been disabled by the service provider'
        case ErrorKind.TLS:
            return 'SSL certificate verification failed, please check the configured base URL'
        case ErrorKind.TRANSIENT:
            if isinstance(exc, httpx.TimeoutException):
                return 'Connection timed out, please check your network'
            if _is_dns_error(exc):
                return 'Could not resolve the server address, please check the configured base URL'
            if isinstance(exc, httpx.ConnectError):
                return 'Could not connect to the server, please check your network or the service address'
            if isinstance(exc, httpx.HTTPStatusError):
                return f'Server error: HTTP {exc.response.status_code}'
            return f'Network error: {exc}'
        case ErrorKind.UNCLASSIFIED:
            if isinstance(exc, httpx.HTTPStatusError):
                return f'HTTP {exc.response.status_code}: {exc}'
            return str(exc) or type(exc).__name__


def _exception_chain(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def _is_certificate_error(exc: BaseException) -> bool:
    for link in _exception_chain(exc):
        if isinstance(link, ssl.SSLCertVerificationError):
            return True
        message = str(link).lower()
        if isinstance(link, (ssl.SSLError, httpx.TransportError)) and (
            'certificate' in message or 'altname' in message
        ):
            return True
    return False


def _is_dns_error(exc: BaseException) -> bool:
    return any(isinstance(link, socket.gaierror) for link in _exception_chain(exc))
