"""Tests for error classification and the retry policy."""

from __future__ import annotations

import socket
import ssl

import httpx
import pytest

from codebase_context.clients._retry import classify_error, describe_error, with_retry
from codebase_context.errors import ErrorKind, ServiceError

_REQUEST = httpx.Request('POST', 'https://context.example.test/batch-upload')


def _status_error(status: int) -> httpx.HTTPStatusError:
    response = httpx.Response(status, request=_REQUEST)
    return httpx.HTTPStatusError(f'HTTP {status}', request=_REQUEST, response=response)


def _chained(outer: Exception, cause: BaseException) -> Exception:
    outer.__cause__ = cause
    return outer


class TestClassifyError:
    @pytest.mark.parametrize(
        'exc, kind',
        [
            (_status_error(401), ErrorKind.AUTH),
            (_status_error(403), ErrorKind.FORBIDDEN),
            (_status_error(500), ErrorKind.TRANSIENT),
            (_status_error(503), ErrorKind.TRANSIENT),
            (_status_error(400), ErrorKind.UNCLASSIFIED),
            (_status_error(404), ErrorKind.UNCLASSIFIED),
            (httpx.ConnectError('Connection refused', request=_REQUEST), ErrorKind.TRANSIENT),
            (httpx.ReadTimeout('timed out', request=_REQUEST), ErrorKind.TRANSIENT),
            (httpx.ConnectTimeout('timed out', request=_REQUEST), ErrorKind.TRANSIENT),
            (httpx.RemoteProtocolError('peer closed', request=_REQUEST), ErrorKind.TRANSIENT),
            (
                _chained(httpx.ConnectError('name resolution', request=_REQUEST), socket.gaierror(-2, 'unknown')),
                ErrorKind.TRANSIENT,
            ),
            (
                httpx.ConnectError('[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed', request=_REQUEST),
                ErrorKind.TLS,
            ),
            (
                _chained(httpx.ConnectError('handshake failed', request=_REQUEST), ssl.SSLCertVerificationError()),
                ErrorKind.TLS,
            ),
            (ValueError('bad json'), ErrorKind.UNCLASSIFIED),
        ],
    )
    def test_classify(self, exc: Exception, kind: ErrorKind) -> None:
        assert classify_error(exc) is kind

    def test_fatal_kinds(self) -> None:
        assert ServiceError(ErrorKind.AUTH, 'x').is_fatal
        assert ServiceError(ErrorKind.FORBIDDEN, 'x').is_fatal
        assert ServiceError(ErrorKind.TLS, 'x').is_fatal
        assert not ServiceError(ErrorKind.TRANSIENT, 'x').is_fatal
        assert not ServiceError(ErrorKind.UNCLASSIFIED, 'x').is_fatal


class TestDescribeError:
    def test_auth_message_mentions_token(self) -> None:
        assert 'Token' in describe_error(ErrorKind.AUTH, _status_error(401))

    def test_dns_message(self) -> None:
        exc = _chained(httpx.ConnectError('lookup failed', request=_REQUEST), socket.gaierror(-2, 'unknown'))
        assert 'resolve' in describe_error(ErrorKind.TRANSIENT, exc)

    def test_server_error_includes_status(self) -> None:
        assert '502' in describe_error(ErrorKind.TRANSIENT, _status_error(502))

    def test_unclassified_keeps_original_message(self) -> None:
        assert describe_error(ErrorKind.UNCLASSIFIED, ValueError('bad json')) == 'bad json'


class FlakyOperation:
    """Raises the queued exceptions in order, then returns 'ok'."""

    def __init__(self, *failures: Exception) -> None:
        self._failures = list(failures)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self._failures:
            raise self._failures.pop(0)
        return 'ok'


class TestWithRetry:
    async def test_success_first_try(self) -> None:
        operation = FlakyOperation()
        assert await with_retry(operation, max_attempts=3, base_delay=0, description='test') == 'ok'
        assert operation.calls == 1

    async def test_transient_then_success(self) -> None:
        operation = FlakyOperation(_status_error(502), httpx.ReadTimeout('slow', request=_REQUEST))
        assert await with_retry(operation, max_attempts=3, base_delay=0, description='test') == 'ok'
        assert operation.calls == 3

    async def test_transient_exhausts_attempts(self) -> None:
        operation = FlakyOperation(*(_status_error(500) for _ in range(5)))
        with pytest.raises(ServiceError) as exc_info:
            await with_retry(operation, max_attempts=3, base_delay=0, description='test')
        assert exc_info.value.kind is ErrorKind.TRANSIENT
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
        assert operation.calls == 3

    @pytest.mark.parametrize(
        'status, kind',
        [(401, ErrorKind.AUTH), (403, ErrorKind.FORBIDDEN), (422, ErrorKind.UNCLASSIFIED)],
    )
    async def test_non_transient_not_retried(self, status: int, kind: ErrorKind) -> None:
        operation = FlakyOperation(_status_error(status))
        with pytest.raises(ServiceError) as exc_info:
            await with_retry(operation, max_attempts=3, base_delay=0, description='test')
        assert exc_info.value.kind is kind
        assert operation.calls == 1

    async def test_lambda_returning_coroutine(self) -> None:
        """Call sites pass lambdas that return coroutines, not coroutine functions."""
        operation = FlakyOperation(_status_error(503))
        result = await with_retry(lambda: operation(), max_attempts=3, base_delay=0, description='test')
        assert result == 'ok'
        assert operation.calls == 2

    async def test_lambda_failure_is_classified(self) -> None:
        operation = FlakyOperation(_status_error(401))
        with pytest.raises(ServiceError) as exc_info:
            await with_retry(lambda: operation(), max_attempts=3, base_delay=0, description='test')
        assert exc_info.value.kind is ErrorKind.AUTH
        assert operation.calls == 1

    async def test_retries_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        operation = FlakyOperation(_status_error(503))
        with caplog.at_level('WARNING', logger='codebase_context'):
            await with_retry(operation, max_attempts=2, base_delay=0, description='upload batch 2/5')
        assert any('upload batch 2/5' in record.getMessage() for record in caplog.records)
