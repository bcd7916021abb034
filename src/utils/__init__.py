"""Utility modules for the rewrite service."""

from .logging import (
    DevelopmentFormatter,
    JSONFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    Timer,
    clear_request_context,
    get_request_id,
    get_user_id,
    redact_sensitive_data,
    set_request_context,
    setup_logging,
    short_id,
)

__all__ = [
    "setup_logging",
    "set_request_context",
    "clear_request_context",
    "get_request_id",
    "get_user_id",
    "short_id",
    "Timer",
    "JSONFormatter",
    "DevelopmentFormatter",
    "RequestContextFilter",
    "SensitiveDataFilter",
    "redact_sensitive_data",
]
