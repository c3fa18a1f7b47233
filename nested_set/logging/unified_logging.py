"""
Unified logging format with importance (0-10) for all project log output.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Union

# Default importance (0-10) per standard level when not set explicitly
LEVEL_TO_IMPORTANCE = {
    "DEBUG": 2,
    "INFO": 4,
    "WARNING": 6,
    "ERROR": 8,
    "CRITICAL": 10,
}

UNIFIED_DATE_FMT = "%Y-%m-%d %H:%M:%S"
UNIFIED_FORMAT_STR = (
    "%(asctime)s | %(levelname)-8s | %(importance)s | %(name)s | %(message)s"
)

# Handlers installed by setup_logging(), replaced on the next call
_installed_handlers: List[logging.Handler] = []


def importance_from_level(level_name: str) -> int:
    """Return importance 0-10 for a standard log level name. Returns 4 for unknown."""
    return LEVEL_TO_IMPORTANCE.get((level_name or "").strip().upper(), 4)


def _set_importance_if_missing(record: logging.LogRecord) -> None:
    """Set record.importance from level if not already set (by extra or factory)."""
    if getattr(record, "importance", None) is None:
        record.importance = importance_from_level(record.levelname)


def install_unified_record_factory() -> None:
    """
    Install a LogRecord factory that sets 'importance' on every record.
    Importance is taken from record.extra['importance'] or derived from level.
    """
    old_factory = logging.getLogRecordFactory()

    def _factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = old_factory(*args, **kwargs)
        _set_importance_if_missing(record)
        return record

    logging.setLogRecordFactory(_factory)


class UnifiedFormatter(logging.Formatter):
    """
    Formatter that outputs: timestamp | level | importance | logger | message.
    Importance is taken from record.importance (set by extra or by record factory).
    Fallback: sets importance from level when factory was not installed.
    """

    def format(self, record: logging.LogRecord) -> str:
        _set_importance_if_missing(record)
        return super().format(record)


def create_unified_formatter(
    fmt: str = UNIFIED_FORMAT_STR,
    datefmt: str = UNIFIED_DATE_FMT,
) -> UnifiedFormatter:
    """Create a UnifiedFormatter with project default format and date format."""
    return UnifiedFormatter(fmt=fmt, datefmt=datefmt)


def setup_logging(
    level: Union[str, int] = "WARNING",
    log_file: Optional[str] = None,
    logger_name: str = "nested_set",
) -> logging.Logger:
    """
    Attach unified-format handlers to the package logger.

    Calling it again replaces the handlers from the previous call.

    Args:
        level: Level name or number
        log_file: Optional file that receives the same records
        logger_name: Logger to configure

    Returns:
        The configured logger

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.strip().upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level}")
        level = numeric

    target = logging.getLogger(logger_name)
    for handler in _installed_handlers:
        target.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    formatter = create_unified_formatter()
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        target.addHandler(handler)
        _installed_handlers.append(handler)
    target.setLevel(level)
    return target
