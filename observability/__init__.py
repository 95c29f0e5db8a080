"""
Observability Module
====================
Logging setup and trade audit log.
"""

from observability.logger import (
    get_logger,
    init,
    log_trade_action,
    setup_logging,
    setup_scheduler_logger,
    setup_trade_logger,
    LogContext,
)

__all__ = [
    'get_logger',
    'init',
    'log_trade_action',
    'setup_logging',
    'setup_scheduler_logger',
    'setup_trade_logger',
    'LogContext',
]
