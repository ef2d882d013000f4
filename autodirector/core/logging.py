"""Structured logging for AutoDirector.

File logs are JSON lines; run_id and job_id from the context are lifted to
top-level keys so one run or job can be followed with a line filter:

    {"timestamp": "...", "level": "INFO", "module": "autodirector.engine.executor",
     "message": "Run ab12 done", "run_id": "ab12", "context": {...}}

Console lines are short: "10:02:11 INFO engine.executor: Run ab12 done [run_id=ab12]".

Usage:
    from autodirector.core.logging import get_logger, setup_logging

    setup_logging(log_dir=config.log_path)  # once, from the launcher
    logger = get_logger(__name__)

    logger.info("Step dispatched", extra={"context": {"run_id": "ab12", "step": 1}})
"""

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER = "autodirector"
LOG_FILE_NAME = "autodirector.log"

# Context keys promoted to top-level JSON fields
CORRELATION_KEYS = ("run_id", "job_id")

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "anthropic", "openai", "asyncio")


def _context(record: logging.LogRecord) -> dict[str, Any]:
    context = getattr(record, "context", None)
    return context if isinstance(context, dict) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for the rotating log file."""

    def format(self, record: logging.LogRecord) -> str:
        context = _context(record)
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for key in CORRELATION_KEYS:
            if key in context:
                log_data[key] = context[key]
        if context:
            log_data["context"] = context
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Paths and datetimes in context go through str()
        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Compact console lines with the package prefix dropped."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%H:%M:%S")
        name = record.name
        if name.startswith(ROOT_LOGGER + "."):
            name = name[len(ROOT_LOGGER) + 1 :]

        message = record.getMessage()
        context = _context(record)
        if context:
            message += " [" + ", ".join(f"{k}={v}" for k, v in context.items()) + "]"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return f"{timestamp} {record.levelname[:4]:4s} {name}: {message}"


_logging_initialized = False


def setup_logging(
    log_dir: Optional[Path] = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """Attach console and rotating JSON file handlers to the root logger.

    Safe to call more than once; only the first call configures anything.

    Args:
        log_dir: Directory for log files. Defaults to ~/.autodirector/logs
        console_level: Minimum level for console output
        file_level: Minimum level for file output

    Returns:
        Path of the log file
    """
    global _logging_initialized

    if log_dir is None:
        log_dir = Path.home() / ".autodirector" / "logs"
    log_file = log_dir / LOG_FILE_NAME
    if _logging_initialized:
        return log_file

    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_initialized = True
    root_logger.info("Logging initialized", extra={"context": {"log_file": str(log_file)}})
    return log_file


def get_logger(name: str) -> logging.Logger:
    """Logger under the autodirector root, given a module __name__ or bare name."""
    if name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
