"""Retryable error classification with exponential backoff retry.

Classifies errors as retryable (transient) or non-retryable (permanent).
Used by the lifecycle controller for remote create/delete calls.

Usage:
    from efsbroker.core.retryable import classify_error, with_retry

    # Classify a botocore ClientError or RemoteError
    if classify_error(exc) == "retryable":
        ...

    # Execute with automatic retry
    result = await with_retry(lambda: provider.delete_mount_target(mt_id))
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from efsbroker.core.errors import RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# EFS (botocore) error classification
# =============================================================================

EFS_RETRYABLE_CODES = frozenset({
    "RequestTimeout",
    "RequestTimeoutException",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "Throttling",
    "ThrottlingException",
    "TooManyRequestsException",
    "InternalError",
    "InternalServerError",
    "DependencyTimeout",
})

EFS_NON_RETRYABLE_CODES = frozenset({
    "AccessDenied",
    "AccessDeniedException",
    "BadRequest",
    "FileSystemNotFound",
    "FileSystemAlreadyExists",
    "FileSystemInUse",
    "FileSystemLimitExceeded",
    "IncorrectFileSystemLifeCycleState",
    "IncorrectMountTargetState",
    "MountTargetConflict",
    "MountTargetNotFound",
    "SubnetNotFound",
    "NoFreeAddressesInSubnet",
    "SecurityGroupNotFound",
    "UnsupportedAvailabilityZone",
    "UnrecognizedClientException",
    "InvalidClientTokenId",
})

BOTOCORE_RETRYABLE = (
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)


def client_error_code(exc: ClientError) -> str:
    """Extract the remote error code from a botocore ClientError."""
    return exc.response.get("Error", {}).get("Code", "")


def is_efs_retryable(exc: ClientError) -> bool:
    """Check if EFS ClientError is retryable."""
    return client_error_code(exc) in EFS_RETRYABLE_CODES


def classify_error(exc: Exception) -> str:
    """Classify error as 'retryable', 'permanent', or 'unknown'.

    Args:
        exc: Exception to classify

    Returns:
        'retryable': Transient error, can retry
        'permanent': Permanent error, should not retry
        'unknown': Cannot classify
    """
    if isinstance(exc, asyncio.TimeoutError):
        return "retryable"

    if isinstance(exc, RemoteError):
        if exc.retryable:
            return "retryable"
        if exc.remote_code is None:
            return "unknown"
        return "permanent"

    if isinstance(exc, BOTOCORE_RETRYABLE):
        return "retryable"

    if isinstance(exc, ClientError):
        code = client_error_code(exc)
        if code in EFS_RETRYABLE_CODES:
            return "retryable"
        if code in EFS_NON_RETRYABLE_CODES:
            return "permanent"
        return "unknown"

    return "unknown"


def is_retryable(exc: Exception) -> bool:
    """Check if error is retryable (transient)."""
    return classify_error(exc) == "retryable"


# =============================================================================
# Retry utility
# =============================================================================


async def with_retry(
    coro_factory: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Execute async operation with exponential backoff retry.

    Only retries for retryable errors (transient failures).
    Permanent and unclassified errors are raised immediately.

    Args:
        coro_factory: Factory function that creates new coroutine for each attempt
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 30.0)
        sleep: Sleep function (inject Clock.sleep for deterministic tests)

    Returns:
        Result of successful operation

    Raises:
        Exception: The last exception if all retries fail, or immediately
                   for non-retryable errors
    """
    last_exc: Exception | None = None

    for attempt in range(max_retries + 1):
        try:
            return await coro_factory()
        except Exception as exc:
            last_exc = exc
            error_class = classify_error(exc)

            if error_class != "retryable":
                logger.warning(
                    "Non-retryable error (not retrying): %s",
                    exc,
                    extra={"error_class": error_class, "attempt": attempt + 1},
                )
                raise

            if attempt == max_retries:
                logger.error(
                    "Max retries exceeded (%d attempts): %s",
                    max_retries + 1,
                    exc,
                    extra={"error_class": error_class, "attempt": attempt + 1},
                )
                raise

            delay = min(base_delay * (2**attempt), max_delay)
            # Jitter: 50% ~ 150% of delay
            jittered_delay = delay * (0.5 + random.random())
            logger.warning(
                "Retryable error (attempt %d/%d, retry in %.1fs): %s",
                attempt + 1,
                max_retries + 1,
                jittered_delay,
                exc,
                extra={
                    "error_class": error_class,
                    "attempt": attempt + 1,
                    "delay": jittered_delay,
                },
            )
            await sleep(jittered_delay)

    if last_exc:
        raise last_exc
    raise RuntimeError("Unexpected state in with_retry")
