"""
Trade Runner Errors
===================
Exception hierarchy and error-context helpers shared by the scheduler,
the orchestrator and configuration validation.

Usage:
    from utils.errors import ConfigurationError, error_context

    raise ConfigurationError("interval must be positive", config_key="interval_minutes")

    with error_context("closing position", symbol="SPY", task="position-monitor"):
        await broker.close_position(position, reason)

Every error renders as ``message | operation=... | symbol=... | details=...``
so one log line carries the whole context.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _with_details(kwargs: Dict[str, Any], **fields) -> Dict[str, Any]:
    """Fold subclass-specific fields into the ``details`` kwarg, skipping None."""
    present = {k: v for k, v in fields.items() if v is not None}
    if present:
        kwargs['details'] = {**(kwargs.get('details') or {}), **present}
    return kwargs


# =============================================================================
# EXCEPTION HIERARCHY
# =============================================================================

class TradingSystemError(Exception):
    """
    Base exception for the trade runner.

    Attributes:
        message: Human-readable summary
        operation: What was being attempted (task id, collaborator step)
        symbol: Underlying involved, if any
        details: Free-form context merged into the rendered message
        cause: Underlying exception, when wrapping a foreign error
    """

    default_message = "Trade runner error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        operation: Optional[str] = None,
        symbol: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message or self.default_message
        self.operation = operation
        self.symbol = symbol
        self.details = dict(details or {})
        self.cause = cause
        super().__init__(self._render())

    def _render(self) -> str:
        segments = [self.message]
        for label, value in (("operation", self.operation), ("symbol", self.symbol)):
            if value:
                segments.append(f"{label}={value}")
        if self.details:
            segments.append(f"details={self.details}")
        return " | ".join(segments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "operation": self.operation,
            "symbol": self.symbol,
            "details": self.details,
            "cause": None if self.cause is None else str(self.cause),
        }


class ConfigurationError(TradingSystemError):
    """A config value failed validation; ``config_key`` names it."""

    default_message = "Invalid configuration"

    def __init__(self, message: Optional[str] = None, config_key: Optional[str] = None, **kwargs):
        self.config_key = config_key
        super().__init__(message, **_with_details(kwargs, config_key=config_key))


class ValidationError(TradingSystemError):
    """A caller passed an unusable argument."""

    default_message = "Invalid argument"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None,
                 value: Any = None, **kwargs):
        self.field = field
        self.value = value
        shown = None if value is None else str(value)[:100]
        super().__init__(message, **_with_details(kwargs, field=field, value=shown))


class SchedulerError(TradingSystemError):
    """The scheduler was driven outside its lifecycle (e.g. started without an event loop)."""

    default_message = "Scheduler misuse"

    def __init__(self, message: Optional[str] = None, scheduler_running: Optional[bool] = None,
                 **kwargs):
        self.scheduler_running = scheduler_running
        super().__init__(message, **_with_details(kwargs, scheduler_running=scheduler_running))


class TimeoutError(TradingSystemError):
    """A scheduled task ran past its ``timeout_seconds``."""

    default_message = "Task timed out"

    def __init__(self, message: Optional[str] = None, timeout_seconds: Optional[float] = None,
                 **kwargs):
        self.timeout_seconds = timeout_seconds
        super().__init__(message, **_with_details(kwargs, timeout_seconds=timeout_seconds))


class CollaboratorError(TradingSystemError):
    """A broker, data, risk, rule or sizing call raised."""

    default_message = "Collaborator call failed"


# =============================================================================
# ERROR CONTEXT
# =============================================================================

def _context_line(operation: str, symbol: Optional[str], extra: Dict[str, Any], error: str) -> str:
    line = f"Failed while {operation}"
    if symbol:
        line += f" | symbol={symbol}"
    if extra:
        line += f" | {extra}"
    return f"{line} | {error}"


@contextmanager
def error_context(
    operation: str,
    *,
    symbol: Optional[str] = None,
    reraise: bool = True,
    log_level: int = logging.ERROR,
    **extra_context
):
    """
    Log and annotate any exception raised inside the block.

    Project errors are enriched in place (operation/symbol filled when
    missing, extra context merged into details) and re-raised. Anything
    else is re-raised as CollaboratorError chained to the original.

    Args:
        operation: What the block does, phrased for "Failed while <operation>"
        symbol: Underlying involved
        reraise: Set False to log and continue
        log_level: Level of the failure log line
        **extra_context: Merged into the error details (e.g. task="entry-scanner")

    Example:
        with error_context("evaluating exit rules", symbol="SPY", task="position-monitor"):
            decision = await rules.evaluate_exit(position)
    """
    try:
        yield
    except TradingSystemError as e:
        e.operation = e.operation or operation
        e.symbol = e.symbol or symbol
        e.details.update(extra_context)
        e.args = (e._render(),)
        logger.log(log_level, _context_line(operation, symbol, extra_context, str(e)))
        if reraise:
            raise
    except Exception as e:
        logger.log(log_level, _context_line(operation, symbol, extra_context, describe_error(e)),
                   exc_info=True)
        if reraise:
            raise CollaboratorError(
                f"Failed while {operation}: {e}",
                operation=operation,
                symbol=symbol,
                details=extra_context,
                cause=e,
            ) from e


# =============================================================================
# FORMATTING
# =============================================================================

def describe_error(error: BaseException) -> str:
    """Render an exception as ``"<Type>: <message>"`` for task results."""
    name = type(error).__name__
    message = str(error)
    return f"{name}: {message}" if message else name


def format_exception_chain(error: BaseException) -> str:
    """One line per exception in the cause chain, outermost first."""
    chain = []
    seen = set()
    current = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(describe_error(current))
        current = current.__cause__ or getattr(current, 'cause', None)
    return "\n  Caused by: ".join(chain)
