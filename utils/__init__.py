# Utils package

# Timezone utilities
from utils.timezone import (
    is_valid_timezone,
    now_market_local,
    strip_tz,
    DEFAULT_MARKET_TZ,
)

# Timeout utilities
from utils.timeout import (
    TimeoutConfig,
    TIMEOUTS,
    async_timeout_wrapper,
)

# Error handling utilities
from utils.errors import (
    TradingSystemError,
    TimeoutError,
    ConfigurationError,
    ValidationError,
    SchedulerError,
    CollaboratorError,
    error_context,
    describe_error,
    format_exception_chain,
)

__all__ = [
    # Timezone
    'is_valid_timezone',
    'now_market_local',
    'strip_tz',
    'DEFAULT_MARKET_TZ',
    # Timeout
    'TimeoutConfig',
    'TIMEOUTS',
    'async_timeout_wrapper',
    # Errors
    'TradingSystemError',
    'TimeoutError',
    'ConfigurationError',
    'ValidationError',
    'SchedulerError',
    'CollaboratorError',
    'error_context',
    'describe_error',
    'format_exception_chain',
]
