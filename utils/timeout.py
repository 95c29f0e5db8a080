"""
Timeout Utilities
=================
Timeout wrappers for awaitables run by the task scheduler.

Usage:
    from utils.timeout import TIMEOUTS, async_timeout_wrapper

    await async_timeout_wrapper(task_coro, TIMEOUTS.ENTRY_SCAN, "entry-scanner")

Design Principles:
- Simple timeout + log + raise (the scheduler records the raise as a failed result)
- Consistent timeout values by task type
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Optional, TypeVar

from utils.errors import TimeoutError as TaskTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# TIMEOUT CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class TimeoutConfig:
    """Standard timeout values by task type (in seconds)."""

    # Exit checks over open positions
    POSITION_MONITOR: float = 120.0

    # Roll evaluation over open positions
    ROLL_MANAGER: float = 300.0

    # Screener fetch + risk/rules/sizing pipeline
    ENTRY_SCAN: float = 600.0


# Default instance for easy import
TIMEOUTS = TimeoutConfig()


# =============================================================================
# ASYNC TIMEOUT UTILITIES
# =============================================================================

async def async_timeout_wrapper(
    awaitable: Awaitable[T],
    timeout_seconds: Optional[float],
    operation_name: str = "async_operation"
) -> T:
    """
    Await with a timeout.

    Only an expired limit becomes a TimeoutError from utils.errors; any
    exception the awaitable raises itself (including the builtin
    TimeoutError) propagates unchanged.

    Args:
        awaitable: Coroutine or future to await
        timeout_seconds: Maximum time to wait (None waits forever)
        operation_name: Name for logging and the error message

    Returns:
        Result from the awaitable

    Raises:
        utils.errors.TimeoutError: If it doesn't complete within timeout
    """
    if timeout_seconds is None:
        return await awaitable

    future = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({future}, timeout=timeout_seconds)
    except asyncio.CancelledError:
        future.cancel()
        raise

    if future in done:
        return future.result()

    future.cancel()
    await asyncio.gather(future, return_exceptions=True)

    logger.error(
        f"Async timeout: {operation_name} did not complete within {timeout_seconds}s"
    )
    raise TaskTimeoutError(
        f"{operation_name} did not complete within {timeout_seconds}s",
        timeout_seconds=timeout_seconds,
    )
