"""
Logging Configuration
=====================
Logging setup for the trade runner.

Everything lives under the ``trade_runner`` logger namespace:
- trade_runner            console + rotating main log + rotating errors log
- trade_runner.scheduler  additionally writes scheduler.log
- trade_runner.trades     daily-rotated audit log of live closes/rolls/opens

Nothing is attached on import; the CLI entry point calls init().
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from config import (
    DIRS, LOG_LEVEL, LOG_FORMAT, LOG_DATE_FORMAT, LOG_MAX_BYTES, LOG_BACKUP_COUNT,
    SCHEDULER_LOG_MAX_BYTES, SCHEDULER_LOG_BACKUP_COUNT,
)

ROOT_LOGGER_NAME = "trade_runner"

TRADE_LOG_FORMAT = "%(asctime)s | %(message)s"
TRADE_LOG_RETENTION_DAYS = 30


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def _log_dir() -> Optional[Path]:
    log_dir = DIRS.get("logs")
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _writes_to(logger: logging.Logger, path: Path) -> bool:
    target = os.path.abspath(path)
    return any(getattr(h, "baseFilename", None) == target for h in logger.handlers)


def _rotating(path: Path, level: int, max_bytes: int, backups: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups)
    handler.setLevel(level)
    handler.setFormatter(_formatter())
    return handler


def setup_logging(
    name: str = ROOT_LOGGER_NAME,
    level: str = None,
    log_to_file: bool = True,
    log_to_console: bool = True
) -> logging.Logger:
    """
    Configure a logger with console and rotating file output.

    Calling it again replaces the handlers rather than stacking them.

    Args:
        name: Logger name; file names are derived from it
        level: DEBUG, INFO, WARNING or ERROR (defaults to LOG_LEVEL)
        log_to_file: Write <name>.log and <name>_errors.log under DIRS['logs']
        log_to_console: Echo to stdout

    Returns:
        Configured logger
    """
    numeric_level = getattr(logging, (level or LOG_LEVEL).upper())

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(numeric_level)
        console.setFormatter(_formatter())
        logger.addHandler(console)

    log_dir = _log_dir() if log_to_file else None
    if log_dir:
        logger.addHandler(_rotating(log_dir / f"{name}.log", numeric_level,
                                    LOG_MAX_BYTES, LOG_BACKUP_COUNT))
        # Errors also go to their own file
        logger.addHandler(_rotating(log_dir / f"{name}_errors.log", logging.ERROR,
                                    LOG_MAX_BYTES, LOG_BACKUP_COUNT))

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child of the trade_runner logger, e.g. get_logger('orchestrator')."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_scheduler_logger() -> logging.Logger:
    """
    Attach the dedicated scheduler.log.

    Records still propagate to the main trade_runner handlers; the extra
    file keeps cycle-level DEBUG output out of the main log.
    """
    logger = get_logger("scheduler")
    logger.setLevel(logging.DEBUG)

    log_dir = _log_dir()
    if log_dir and not _writes_to(logger, log_dir / "scheduler.log"):
        logger.addHandler(_rotating(log_dir / "scheduler.log", logging.DEBUG,
                                    SCHEDULER_LOG_MAX_BYTES, SCHEDULER_LOG_BACKUP_COUNT))

    return logger


def setup_trade_logger() -> logging.Logger:
    """Attach trades.log, rotated at midnight, for the live trade audit trail."""
    logger = get_logger("trades")
    logger.setLevel(logging.INFO)

    log_dir = _log_dir()
    if log_dir and not _writes_to(logger, log_dir / "trades.log"):
        handler = TimedRotatingFileHandler(
            log_dir / "trades.log",
            when='midnight',
            interval=1,
            backupCount=TRADE_LOG_RETENTION_DAYS
        )
        handler.setFormatter(logging.Formatter(TRADE_LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(handler)

    return logger


def log_trade_action(action: str, symbol: str = None, quantity: int = None,
                     reason: str = "", task: str = ""):
    """
    Record a live trade action as ``ACTION | SYMBOL | qty=N | task | reason``.

    Args:
        action: CLOSE, ROLL or OPEN
        symbol: Underlying or contract symbol, if known
        quantity: Contracts, for opens
        reason: Rule reason that triggered the action
        task: Scheduler task that issued it
    """
    fields = [action, symbol or "?"]
    if quantity is not None:
        fields.append(f"qty={quantity}")
    fields.extend(f for f in (task, reason) if f)

    get_logger("trades").info(" | ".join(fields))


class LogContext:
    """
    Temporarily change a logger's level.

    Usage:
        with LogContext(logging.DEBUG):
            orchestrator.run_now()
    """

    def __init__(self, level: int, name: str = ROOT_LOGGER_NAME):
        self.logger = logging.getLogger(name)
        self.level = level
        self.previous_level = None

    def __enter__(self):
        self.previous_level = self.logger.level
        self.logger.setLevel(self.level)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.logger.setLevel(self.previous_level)
        return False


_root_logger = None


def init(level: str = None, log_to_file: bool = True) -> logging.Logger:
    """Initialize the logging system once."""
    global _root_logger
    if _root_logger is None:
        _root_logger = setup_logging(level=level, log_to_file=log_to_file)
        if log_to_file:
            setup_scheduler_logger()
            setup_trade_logger()
    return _root_logger
