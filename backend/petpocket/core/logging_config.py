"""
Centralized logging configuration for PetPocket.

This module provides structured logging with:
- JSON formatting for production and log files
- Console formatting for development
- Request/response logging with a per-request id
- Log rotation

Usage:
    from petpocket.core.logging_config import setup_logging, get_logger

    # In main.py
    setup_logging(app, log_level="INFO")

    # In any module
    logger = get_logger(__name__)
    logger.info("Owner created", extra={"context": {"owner_id": 12}})
"""

import json
import logging
import logging.handlers
import sys
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from flask import Flask, g, request

# Context keys whose values are personal data stored encrypted at rest
REDACTED_CONTEXT_KEYS = frozenset({"name", "email", "phone", "password", "token"})
REDACTED = "***"


def redact_context(context: Any) -> Any:
    """Mask personal data in a log context dict, recursing into nested dicts."""
    if not isinstance(context, dict):
        return context
    return {
        key: REDACTED if key in REDACTED_CONTEXT_KEYS else redact_context(value)
        for key, value in context.items()
    }


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.
    Outputs logs as JSON with timestamp, level, message, and extra context.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "context"):
            log_data["context"] = redact_context(getattr(record, "context", {}))

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with colors for development.
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
        original = record.levelname
        record.levelname = f"{color}{record.levelname:8}{self.RESET}"
        try:
            message = super().format(record)
        finally:
            record.levelname = original
        context = getattr(record, "context", None)
        if context:
            message = f"{message} | {json.dumps(redact_context(context), default=str)}"
        return message


def _add_file_handlers(
    root_logger: logging.Logger, log_dir: Path, level: int
) -> None:
    file_formatter = JSONFormatter()  # Always JSON for files
    for filename, handler_level in (
        ("app.log", level),
        ("petpocket_errors.log", logging.ERROR),
    ):
        try:
            handler = logging.handlers.RotatingFileHandler(
                log_dir / filename,
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=5,
                encoding="utf-8",
            )
        except OSError as e:
            root_logger.warning(
                f"Failed to create file handler for {filename}: {e}. "
                "Falling back to console-only logging.",
                extra={"context": {"component": "logging_setup"}},
            )
            continue
        handler.setLevel(handler_level)
        handler.setFormatter(file_formatter)
        root_logger.addHandler(handler)


def setup_logging(
    app: Optional[Flask] = None,
    log_level: Union[int, str] = "INFO",
    log_to_file: bool = True,
    use_json_format: bool = False,
) -> None:
    """
    Configure logging for the Flask application.

    Args:
        app: Flask application instance (required for request/response hooks)
        log_level: Logging level (can be int like logging.INFO or string "INFO")
        log_to_file: Write logs to rotating files under backend/logs
        use_json_format: Use JSON format instead of console format
    """
    if isinstance(log_level, int):
        level = log_level
    else:
        level = getattr(logging, str(log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if use_json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            ConsoleFormatter(
                "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    root_logger.addHandler(console_handler)

    if log_to_file:
        log_dir = Path(__file__).parent.parent.parent / "logs"
        try:
            log_dir.mkdir(exist_ok=True)
            _add_file_handlers(root_logger, log_dir, level)
        except OSError as e:
            root_logger.warning(
                f"Failed to create logs directory: {e}. Logging will only go to console.",
                extra={"context": {"component": "logging_setup"}},
            )

    if app is not None:

        @app.before_request
        def log_request():
            g.request_start_time = time.time()
            g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
            g.route = (
                request.url_rule.rule if request.url_rule is not None else request.path
            )
            g.user_id = None

            logging.getLogger("flask.request").info(
                f"{request.method} {request.path}",
                extra={
                    "context": {
                        "request_id": g.request_id,
                        "method": request.method,
                        "route": g.route,
                        "remote_addr": request.remote_addr,
                    }
                },
            )

        @app.after_request
        def log_response(response):
            if hasattr(g, "request_start_time"):
                duration_ms = (time.time() - g.request_start_time) * 1000
                logging.getLogger("flask.response").info(
                    f"{request.method} {request.path} {response.status_code} in {duration_ms:.2f}ms",
                    extra={
                        "context": {
                            "request_id": g.get("request_id"),
                            "user_id": g.get("user_id"),
                            "status_code": response.status_code,
                            "duration_ms": round(duration_ms, 2),
                        }
                    },
                )
                response.headers["X-Request-ID"] = g.get("request_id", "")
            return response

    # Suppress noisy third-party loggers
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)

    logging.getLogger("petpocket").info(
        f"Logging configured: level={logging.getLevelName(level)}, "
        f"log_to_file={log_to_file}, json_format={use_json_format}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the specified module.

    Example:
        logger = get_logger(__name__)
        logger.info("Pet deleted", extra={"context": {"pet_id": 3}})
    """
    return logging.getLogger(name)


def log_performance(func_name: str, duration_ms: float, **kwargs) -> None:
    """
    Log performance metrics for a function or operation.

    Args:
        func_name: Name of the function or operation
        duration_ms: Execution duration in milliseconds
        **kwargs: Additional context (user_id, record_count, etc.)
    """
    perf_logger = get_logger("petpocket.performance")
    context = {"function": func_name, "duration_ms": round(duration_ms, 2)}
    context.update(kwargs)
    perf_logger.info(
        f"{func_name} completed in {duration_ms:.2f}ms",
        extra={"context": context},
    )
