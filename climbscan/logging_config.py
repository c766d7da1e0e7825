"""Structured JSON logging configuration.

Production output is one JSON object per line so analysis failures and
camera faults can be searched by their ``extra`` fields. Debug mode uses a
compact human-readable format instead.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

# Chatty third-party loggers capped at WARNING
_NOISY_LOGGERS: tuple[str, ...] = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "google_genai",
    "google_genai.models",
)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level, logger and service fields.

    Records at WARNING and above also carry their source location.
    """

    def __init__(self, *args: Any, service: str = "climbscan", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Stamp every JSON line with time, level, logger name and service."""
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self.service

        if record.levelno >= logging.WARNING:
            log_record["location"] = f"{record.pathname}:{record.lineno}"
            log_record["function"] = record.funcName


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True,
    service: str = "climbscan",
) -> None:
    """Configure root logging for the service or the CLI.

    Replaces any handlers already on the root logger with a single stdout
    handler.

    Args:
        log_level: Minimum log level to capture (DEBUG, INFO, WARNING,
            ERROR, CRITICAL). Unknown names fall back to INFO.
        json_output: If True, emit JSON lines; otherwise a plain format
            suited to a terminal.
        service: Value of the ``service`` field in JSON output.

    Example:
        >>> configure_logging("DEBUG", json_output=False)
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    formatter: logging.Formatter
    if json_output:
        formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
            service=service,
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; records pick up whatever ``configure_logging`` set up.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Capture encoded", extra={"width": 1920, "height": 1080})
    """
    return logging.getLogger(name)
