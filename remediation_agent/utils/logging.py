"""Logging utilities.

Every module logs under the `remediation_agent` logger (see `get_logger`);
the CLI installs one handler on it through `setup_logging`.
"""

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "remediation_agent"
DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s - %(message)s"


class _AgentHandler(logging.StreamHandler):
    """Marker type so a later setup call can find and replace the handler."""


def setup_logging(
    level: int = logging.INFO,
    format_str: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Setup logging for the remediation agent.

    Calling it again replaces the handler from the previous call, so
    repeated CLI invocations in one process never duplicate lines.

    Args:
        level: Logging level (default: INFO)
        format_str: Custom format string
        stream: Output stream (default: stdout; the CLI uses stderr for --json)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in [h for h in logger.handlers if isinstance(h, _AgentHandler)]:
        logger.removeHandler(handler)

    handler = _AgentHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(format_str or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Get a logger instance. Child names are nested under the package logger."""
    if name != LOGGER_NAME and not name.startswith(LOGGER_NAME + "."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)
