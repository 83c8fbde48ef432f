"""Tests for retryable error classification and retry logic."""

import asyncio

import pytest
from botocore.exceptions import ClientError, ConnectTimeoutError

from efsbroker.core.errors import FileSystemNotFoundError, RemoteError
from efsbroker.core.retryable import (
    classify_error,
    is_efs_retryable,
    is_retryable,
    with_retry,
)


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "test error"}}, "TestOperation")


class TestEfsRetryable:
    """Tests for EFS (botocore) error classification."""

    @pytest.mark.parametrize(
        "code",
        ["ThrottlingException", "ServiceUnavailable", "InternalServerError", "DependencyTimeout"],
    )
    def test_transient_codes_are_retryable(self, code: str) -> None:
        exc = _client_error(code)
        assert is_efs_retryable(exc) is True
        assert classify_error(exc) == "retryable"

    @pytest.mark.parametrize(
        "code",
        ["AccessDeniedException", "FileSystemNotFound", "IncorrectMountTargetState", "BadRequest"],
    )
    def test_permanent_codes(self, code: str) -> None:
        exc = _client_error(code)
        assert is_efs_retryable(exc) is False
        assert classify_error(exc) == "permanent"

    def test_unknown_code_is_unknown(self) -> None:
        assert classify_error(_client_error("SomethingNew")) == "unknown"


class TestClassifyError:
    def test_asyncio_timeout_is_retryable(self) -> None:
        assert classify_error(asyncio.TimeoutError()) == "retryable"

    def test_connect_timeout_is_retryable(self) -> None:
        exc = ConnectTimeoutError(endpoint_url="http://efs")
        assert is_retryable(exc) is True

    def test_remote_error_flags(self) -> None:
        assert classify_error(RemoteError("x", remote_code="Throttling", retryable=True)) == "retryable"
        assert classify_error(RemoteError("x", remote_code="AccessDenied")) == "permanent"
        assert classify_error(RemoteError("x")) == "unknown"

    def test_not_found_is_permanent(self) -> None:
        assert classify_error(FileSystemNotFoundError("fs-1")) == "permanent"

    def test_plain_exception_is_unknown(self) -> None:
        assert classify_error(ValueError("nope")) == "unknown"


class TestWithRetry:
    """Tests for with_retry function."""

    @pytest.fixture
    def sleeps(self) -> list[float]:
        return []

    @pytest.fixture
    def sleep(self, sleeps: list[float]):
        async def _sleep(seconds: float) -> None:
            sleeps.append(seconds)

        return _sleep

    async def test_success_on_first_attempt(self, sleep, sleeps) -> None:
        async def ok() -> str:
            return "fs-1"

        assert await with_retry(ok, sleep=sleep) == "fs-1"
        assert sleeps == []

    async def test_retry_on_retryable_error(self, sleep, sleeps) -> None:
        attempts = {"n": 0}

        async def flaky() -> str:
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise RemoteError("throttled", remote_code="Throttling", retryable=True)
            return "fs-1"

        assert await with_retry(flaky, max_retries=3, base_delay=0.1, sleep=sleep) == "fs-1"
        assert attempts["n"] == 3
        assert len(sleeps) == 2

    async def test_no_retry_on_permanent_error(self, sleep, sleeps) -> None:
        attempts = {"n": 0}

        async def denied() -> None:
            attempts["n"] += 1
            raise RemoteError("denied", remote_code="AccessDenied")

        with pytest.raises(RemoteError):
            await with_retry(denied, max_retries=3, sleep=sleep)

        assert attempts["n"] == 1
        assert sleeps == []

    async def test_max_retries_exceeded(self, sleep, sleeps) -> None:
        async def always() -> None:
            raise RemoteError("throttled", remote_code="Throttling", retryable=True)

        with pytest.raises(RemoteError):
            await with_retry(always, max_retries=2, sleep=sleep)

        assert len(sleeps) == 2

    async def test_backoff_is_capped_with_jitter(self, sleep, sleeps) -> None:
        async def always() -> None:
            raise RemoteError("throttled", remote_code="Throttling", retryable=True)

        with pytest.raises(RemoteError):
            await with_retry(always, max_retries=4, base_delay=1.0, max_delay=2.0, sleep=sleep)

        # base delays 1, 2, 2, 2 with 50%-150% jitter
        assert 0.5 <= sleeps[0] <= 1.5
        assert all(1.0 <= s <= 3.0 for s in sleeps[1:])
