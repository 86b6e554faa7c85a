"""Logging setup for the ``mathlang`` logger tree.

Module loggers are children of ``mathlang`` (``mathlang.parser``,
``mathlang.worker``, ...). Records may carry interpreter context through
``extra``: an ``error_code`` and the ``line``/``column`` of the offending
source position, which the formatter appends to the message.
"""

import logging
import sys
from datetime import datetime
from typing import Optional

# Record attributes appended as key=value when present
CONTEXT_FIELDS = ("error_code", "line", "column")


class StructuredFormatter(logging.Formatter):
    """Format records as ``timestamp [LEVEL] logger: message key=value ...``."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).isoformat()
        message = f"{timestamp} [{record.levelname}] {record.name}: {record.getMessage()}"
        context = [
            f"{field}={getattr(record, field)}"
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        ]
        if context:
            message += " " + " ".join(context)
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(level: str = "WARNING", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the ``mathlang`` logger.

    Args:
        level: Logging level name; unknown names fall back to WARNING
        log_file: Also write records to this file (stderr is always used)

    Returns:
        The configured ``mathlang`` logger
    """
    logger = logging.getLogger("mathlang")
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    logger.handlers.clear()

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"mathlang.{name}")
