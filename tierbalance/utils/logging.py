"""Logging configuration for TierBalance.

This module provides structured logging setup with configurable output format.
The pure engine modules never log; the API layer and scripts do.
"""

import logging
import sys
from decimal import Decimal
from enum import Enum
from typing import Any


def setup_logging(
    level: str = "INFO",
    log_format: str | None = None,
) -> None:
    """Configure logging for the application.

    Sets up the root logger with specified level and format.
    Logs are written to stdout for easy redirection and debugging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom format string. If None, uses default format.

    Example:
        >>> from tierbalance.utils.logging import setup_logging
        >>> setup_logging(level="DEBUG")
    """
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        stream=sys.stdout,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: Any,
) -> None:
    """Log a message with structured context.

    Context is appended to the message in key=value format. Enum members
    (asset classes, trade sides) render as their value and Decimals in plain
    notation, so ``Decimal("1E+3")`` logs as ``1000``.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        **context: Additional context fields

    Example:
        >>> logger = get_logger(__name__)
        >>> log_with_context(
        ...     logger, "info", "Rebalance planned",
        ...     risk_level=5, actions=3, turnover="1250.00"
        ... )
        # Logs: "Rebalance planned | risk_level=5 actions=3 turnover=1250.00"
    """
    log_func = getattr(logger, level.lower())

    if context:
        context_str = " ".join(f"{k}={_format_value(v)}" for k, v in context.items())
        full_message = f"{message} | {context_str}"
    else:
        full_message = message

    log_func(full_message)


def _format_value(value: Any) -> str:
    """Render a context value: enums by value, Decimals without exponent."""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)
