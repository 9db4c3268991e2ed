"""
Logging setup for hosts embedding wallet analytics.

Library modules only create `logging.getLogger(__name__)` loggers and
prefix messages with their component tag (`[portfolio]`, `[Ethereum]`).
`setup_logging` attaches one handler to the `wallet_analytics` logger;
the host's root logger is left alone.
"""

import json
import logging
import re
import sys
from typing import IO, Optional


PACKAGE_LOGGER = "wallet_analytics"

_COMPONENT_PREFIX = re.compile(r"^\[([^\]]+)\]\s*")


def split_component(message: str) -> tuple[Optional[str], str]:
    """Split a leading `[component]` tag off a log message."""
    match = _COMPONENT_PREFIX.match(message)
    if not match:
        return None, message
    return match.group(1), message[match.end():]


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with the component tag as its own field."""

    def format(self, record: logging.LogRecord) -> str:
        component, message = split_component(record.getMessage())
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "component": component,
            "message": message,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


class _PackageHandler(logging.StreamHandler):
    """Marker type so repeated setup replaces its own handler only."""


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Route wallet analytics logs to a stream.

    Args:
        level: Log level name
        log_format: "json" or "text"
        stream: Destination (stdout by default)

    Returns:
        The package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    handler = _PackageHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    logger.handlers = [h for h in logger.handlers if not isinstance(h, _PackageHandler)]
    logger.addHandler(handler)
    logger.propagate = False

    return logger
