"""Logging setup for the reply service.

Every record carries the id of the HTTP request being served (``-`` outside
a request), so the primary attempt, the fallback attempt and the market
lookup of one reply can be grepped together.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path

# Set by RequestLoggerMiddleware for the duration of a request
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Third-party loggers that are too chatty at INFO
NOISY_LIBRARIES = ("httpx", "httpcore", "openai", "uvicorn.access")


class RequestIdFilter(logging.Filter):
    """Stamp records with the current request id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed with extra={"extra_fields": {...}}
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        # Vietnamese messages stay readable
        return json.dumps(log_data, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Colored ``[LEVEL] logger [request]: message`` lines."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        request_id = getattr(record, "request_id", "-")
        formatted = (
            f"{color}[{record.levelname}]{self.RESET} {record.name} "
            f"[{request_id}]: {record.getMessage()}"
        )

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def setup_logging(
    log_level: str = "INFO",
    log_file: str | None = None,
    structured: bool = False,
) -> None:
    """Configure the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of an additional JSON log file
        structured: JSON lines on the console instead of colored text
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(RequestIdFilter())
    console_handler.setFormatter(StructuredFormatter() if structured else ConsoleFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.addFilter(RequestIdFilter())
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized at {log_level} level")
