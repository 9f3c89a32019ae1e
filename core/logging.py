"""
Logging Module for CarHub.

Every component asks for a named logger through get_logger() and gets:
- a coloured console handler in development, JSON lines in production
- a rotating file handler under LOGS_DIR (one file per component)
- every `extra=` field carried into the structured output

Usage:
    logger = get_logger("fanout")
    logger.info("Published event", extra={"topic": "make:toyota", "delivered": 3})
"""

import functools
import inspect
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional


PROJECT_ROOT = Path(__file__).parent.parent
LOGS_DIR = Path(os.getenv("LOGS_DIR", PROJECT_ROOT / "logs"))

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    One JSON object per line, ready for a log aggregator.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = _extra_fields(record)
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Colored console formatter for development.
    Appends `extra=` fields as key=value pairs after the message.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        levelname = record.levelname
        record.levelname = f"{color}{levelname:8}{self.RESET}"
        try:
            line = super().format(record)
        finally:
            record.levelname = levelname

        extra = _extra_fields(record)
        if extra:
            pairs = " ".join(f"{key}={value}" for key, value in extra.items())
            line = f"{line} | {pairs}"
        return line


def get_logger(
    service_name: str,
    log_level: Optional[str] = None,
    enable_console: bool = True,
    enable_file: Optional[bool] = None,
    enable_json: Optional[bool] = None,
) -> logging.Logger:
    """
    Get a configured logger for a component.

    Args:
        service_name: Name of the component (e.g., 'fanout', 'analytics', 'api')
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Enable console output
        enable_file: Enable rotating file output (defaults to LOG_TO_FILE env, on)
        enable_json: Use JSON format (defaults to on in production)

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level.upper(), logging.INFO)

    environment = os.getenv("ENVIRONMENT", "development").lower()
    is_production = environment == "production"

    if enable_json is None:
        enable_json = is_production
    if enable_file is None:
        enable_file = os.getenv("LOG_TO_FILE", "1").strip().lower() in {"1", "true", "yes", "on"}

    logger = logging.getLogger(service_name)
    logger.setLevel(level)
    logger.handlers.clear()  # get_logger may be called again for the same name

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        if enable_json:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(ColoredConsoleFormatter(
                fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
        logger.addHandler(console_handler)

    if enable_file:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOGS_DIR / f"{service_name}.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        if enable_json:
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
        logger.addHandler(file_handler)

    # Keep pytest's caplog working: it listens on the root logger
    logger.propagate = not is_production

    return logger


def log_execution_time(logger: logging.Logger):
    """
    Decorator to log how long a function (sync or async) took.

    Usage:
        @log_execution_time(logger)
        async def build_report(...):
            ...
    """

    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception:
                    logger.error(
                        f"{func.__name__} failed after {time.perf_counter() - start_time:.2f}s",
                        exc_info=True,
                    )
                    raise
                logger.debug(
                    f"{func.__name__} executed successfully",
                    extra={"execution_time_seconds": round(time.perf_counter() - start_time, 4)},
                )
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.error(
                    f"{func.__name__} failed after {time.perf_counter() - start_time:.2f}s",
                    exc_info=True,
                )
                raise
            logger.debug(
                f"{func.__name__} executed successfully",
                extra={"execution_time_seconds": round(time.perf_counter() - start_time, 4)},
            )
            return result

        return wrapper

    return decorator
