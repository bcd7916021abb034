"""
Structured logging for the rewrite service.

Provides:
- JSON structured logging for production environments
- Human-readable colored logging for development
- Request context (request_id, user_id) propagation through ContextVars
- Redaction of Stripe keys, webhook secrets and session tokens
- A small timer for measuring upstream calls
"""

import json
import logging
import os
import re
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

SENSITIVE_PATTERNS: list[re.Pattern] = [
    re.compile(r'api[_-]?key["\']?\s*[:=]\s*["\']?[\w-]+', re.IGNORECASE),
    re.compile(r'secret["\']?\s*[:=]\s*["\']?[\w-]+', re.IGNORECASE),
    re.compile(r'bearer\s+[\w.-]+', re.IGNORECASE),
    re.compile(r'authorization["\']?\s*[:=]\s*["\']?[^\s,}]+', re.IGNORECASE),
    re.compile(r'sk-ant-[\w-]+'),  # Anthropic keys
    re.compile(r'(?:sk|rk|pk)_(?:test|live)_[\w]+'),  # Stripe keys
    re.compile(r'whsec_[\w]+'),  # Stripe webhook secrets
    re.compile(r'eyJ[\w-]+\.eyJ[\w-]+\.[\w-]+'),  # JWTs
]

REDACTED = "[REDACTED]"

# LogRecord attributes that are not user-supplied `extra` fields
EXCLUDED_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "request_id", "user_id", "message", "taskName",
})


def redact_sensitive_data(message: str) -> str:
    """Replace secrets found in ``message`` with ``[REDACTED]``."""
    if not message:
        return message

    result = message
    for pattern in SENSITIVE_PATTERNS:
        result = pattern.sub(REDACTED, result)
    return result


def short_id(value: Optional[str], length: int = 8) -> str:
    """Truncate an identifier for log output."""
    if not value:
        return "-"
    return value[:length] + "..." if len(value) > length else value


class RequestContextFilter(logging.Filter):
    """Stamp request_id and user_id from the current context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.user_id = user_id_var.get() or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact secrets from the message and its string arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_sensitive_data(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_sensitive_data(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


class JSONFormatter(logging.Formatter):
    """
    Single-line JSON formatter for production.

    {
        "timestamp": "2024-01-15T10:30:00.123456+00:00",
        "level": "INFO",
        "logger": "src.usage.ledger",
        "message": "Usage recorded",
        "service": "rewrite-message-api",
        "request_id": "abc-123",
        "user_id": "user-456",
        "extra": {...}
    }
    """

    def __init__(self, service_name: str = "rewrite-message-api"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
        }

        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in EXCLUDED_RECORD_ATTRS and not k.startswith("_")
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """
    Colored formatter for local development.

    Format: [timestamp] LEVEL    [req_id] [user_id] logger - message
    """

    COLORS: Dict[str, str] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        request_id = getattr(record, "request_id", "-")
        user_id = getattr(record, "user_id", "-")
        req_display = request_id[:8] if request_id != "-" else "-"
        user_display = user_id[:8] if user_id != "-" else "-"

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        formatted = (
            f"{self.DIM}[{timestamp}]{self.RESET} "
            f"{color}{self.BOLD}{record.levelname:8}{reset} "
            f"{self.DIM}[{req_display:>8}] [{user_display:>8}]{self.RESET} "
            f"{record.name} - {record.getMessage()}"
        )

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in EXCLUDED_RECORD_ATTRS and not k.startswith("_")
        }
        if extra_fields:
            formatted += f" {self.DIM}{extra_fields}{self.RESET}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def get_log_level() -> int:
    """Read LOG_LEVEL from the environment, falling back to INFO."""
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        return logging.INFO
    return level


def is_production() -> bool:
    env = os.environ.get(
        "ENVIRONMENT",
        os.environ.get("SENTRY_ENVIRONMENT", "development")
    )
    return env.lower() in ("production", "prod")


def should_use_json_format() -> bool:
    """JSON in production, or anywhere LOG_FORMAT_JSON is truthy."""
    force_json = os.environ.get("LOG_FORMAT_JSON", "").lower() in ("true", "1", "yes")
    if force_json:
        return True
    return is_production()


def setup_logging(
    service_name: str = "rewrite-message-api",
    log_level: Optional[int] = None,
    force_json: bool = False,
) -> logging.Logger:
    """
    Configure the root logger for the application.

    Call once at startup, before modules that log are imported.

    Args:
        service_name: Name of the service for log identification
        log_level: Override log level (defaults to LOG_LEVEL env var)
        force_json: Force JSON output even in development

    Returns:
        Configured root logger
    """
    level = log_level if log_level is not None else get_log_level()
    use_json = force_json or should_use_json_format()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())

    if use_json:
        handler.setFormatter(JSONFormatter(service_name))
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger.addHandler(handler)

    # Third-party noise
    for noisy in ("uvicorn.access", "httpx", "httpcore", "anthropic", "stripe", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.info(
        "Logging configured",
        extra={
            "log_level": logging.getLevelName(level),
            "format": "json" if use_json else "development",
            "service": service_name,
        },
    )

    return root_logger


def set_request_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> None:
    """Set request context for every log line emitted in this async context."""
    if request_id is not None:
        request_id_var.set(request_id)
    if user_id is not None:
        user_id_var.set(user_id)


def clear_request_context() -> None:
    request_id_var.set(None)
    user_id_var.set(None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def get_user_id() -> Optional[str]:
    return user_id_var.get()


class Timer:
    """
    Context manager for timing an operation.

        with Timer("anthropic.rewrite", logger) as timer:
            ...
        timer.elapsed_ms
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.DEBUG,
    ):
        self.name = name
        self.logger = logger
        self.log_level = log_level
        self.start_time: Optional[float] = None
        self.elapsed_ms: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        if self.logger:
            self.logger.log(
                self.log_level,
                f"{self.name} completed in {self.elapsed_ms:.2f}ms",
                extra={
                    "operation": self.name,
                    "duration_ms": round(self.elapsed_ms, 2),
                    "success": exc_type is None,
                },
            )
