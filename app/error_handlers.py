"""
FastAPI exception handlers for the rewrite API.

This module provides centralized exception handling that:
- Maps custom exceptions to appropriate HTTP responses
- Handles request validation errors with clean messages
- Reports unexpected exceptions to Sentry
- Ensures consistent error response format
- Prevents sensitive information leakage

All error responses follow the format:
{
    "success": false,
    "error": "Human-readable message",
    "error_code": "MACHINE_READABLE_CODE",
    "details": {}  # Optional additional context
}
"""

import logging
import re
import uuid
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.utils.logging import is_production

from .exceptions import ErrorCode, QuotaExceededError, RewriteAppException

logger = logging.getLogger(__name__)

# Fragments that mark a message as unsafe to echo back
SENSITIVE_PATTERNS = [
    r"api[_-]?key",
    r"secret",
    r"password",
    r"bearer",
    r"credential",
    r"private",
    r"sk-ant-",
    r"(?:sk|rk)_(?:test|live)_",
    r"whsec_",
    # Database connection strings
    r"postgres(?:ql)?://",
    # File paths
    r"/home/",
    r"/Users/",
    r"/var/",
    r"/etc/",
]

SENSITIVE_REGEX = re.compile("|".join(SENSITIVE_PATTERNS), re.IGNORECASE)

SAFE_DETAIL_KEYS = frozenset({
    "field", "resource_type", "limit", "usage", "upgrade", "reset_time",
    "retry_after", "service", "stripe_code", "reason", "errors",
    "error_reference", "sentry_event_id",
})


def sanitize_error_message(message: str) -> str:
    """
    Remove potentially sensitive information from error messages.

    Messages that mention secrets are replaced outright; file paths, IP
    addresses and UUIDs are masked.
    """
    if not message:
        return message

    if SENSITIVE_REGEX.search(message):
        return "An error occurred while processing your request"

    message = re.sub(r'[/\\][\w./\\-]+\.\w+', '[path]', message)
    message = re.sub(r'\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b', '[ip]', message)
    message = re.sub(
        r'\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b',
        '[id]',
        message,
        flags=re.IGNORECASE,
    )

    if len(message) > 500:
        message = message[:500] + "..."

    return message


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_error_message(value)
    if isinstance(value, (bool, int, float)) or value is None:
        return value
    return None


def sanitize_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep only whitelisted detail keys with primitive values.

    Lists keep up to ten primitives or flat dicts of primitives.
    """
    if not details:
        return {}

    sanitized: Dict[str, Any] = {}
    for key, value in details.items():
        if key not in SAFE_DETAIL_KEYS:
            continue

        if isinstance(value, list):
            items = []
            for item in value[:10]:
                if isinstance(item, dict):
                    items.append({
                        str(k): _sanitize_value(v)
                        for k, v in item.items()
                        if _sanitize_value(v) is not None
                    })
                elif _sanitize_value(item) is not None:
                    items.append(_sanitize_value(item))
            sanitized[key] = items
        elif _sanitize_value(value) is not None:
            sanitized[key] = _sanitize_value(value)

    return sanitized


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Format pydantic validation errors as ``[{"field", "message"}]``.
    """
    formatted = []
    for error in errors:
        loc = error.get("loc", [])
        field_parts = [str(p) for p in loc if p != "body"]
        field = ".".join(field_parts) if field_parts else "request"

        error_type = error.get("type", "")
        msg = error.get("msg", "Invalid value")

        if error_type == "missing":
            msg = f"Field '{field}' is required"
        elif error_type == "string_type":
            msg = f"Field '{field}' must be a string"
        elif error_type in ("int_type", "int_parsing"):
            msg = f"Field '{field}' must be an integer"
        elif error_type in ("date_type", "date_parsing", "date_from_datetime_parsing"):
            msg = f"Field '{field}' must be a date (YYYY-MM-DD)"
        elif error_type == "json_invalid":
            msg = "Request body is not valid JSON"
        else:
            msg = sanitize_error_message(msg)

        formatted.append({"field": field, "message": msg})

    return formatted[:10]


def create_error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create a response in the standard error envelope."""
    content: Dict[str, Any] = {
        "success": False,
        "error": sanitize_error_message(error),
        "error_code": error_code,
    }

    if details:
        sanitized_details = sanitize_details(details)
        if sanitized_details:
            content["details"] = sanitized_details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=headers,
    )


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Report an exception to Sentry with request context.

    Returns:
        Sentry event ID if reported, None otherwise.
    """
    try:
        client = sentry_sdk.get_client()
        if not client.is_active():
            return None

        with sentry_sdk.new_scope() as scope:
            if request:
                scope.set_context("request", {
                    "method": request.method,
                    "path": request.url.path,
                })

                user_id = getattr(request.state, "user_id", None)
                if user_id:
                    scope.set_user({"id": user_id})

                request_id = getattr(request.state, "request_id", None)
                if request_id:
                    scope.set_tag("request_id", request_id)

            if extra_context:
                scope.set_context("extra", extra_context)

            return sentry_sdk.capture_exception(exc)

    except Exception as e:
        logger.warning(f"Failed to report exception to Sentry: {e}")
        return None


# =============================================================================
# Exception Handlers
# =============================================================================

async def app_exception_handler(
    request: Request,
    exc: RewriteAppException,
) -> JSONResponse:
    """
    Handle RewriteAppException and subclasses.

    5xx errors are logged with traceback and reported to Sentry; 4xx are
    logged as warnings.
    """
    log_message = f"{exc.__class__.__name__}: {exc.message}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message, exc_info=exc)
        report_to_sentry(exc, request)
    else:
        logger.warning(log_message)

    headers = {}
    if isinstance(exc, QuotaExceededError) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)

    return create_error_response(
        status_code=exc.status_code,
        error=exc.message,
        error_code=exc.error_code.value,
        details=exc.details,
        headers=headers or None,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle FastAPI request validation errors (422)."""
    errors = format_validation_errors(exc.errors())

    logger.warning(
        f"Validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error_message = errors[0]["message"]
    else:
        error_message = f"Validation failed with {len(errors)} error(s)"

    return create_error_response(
        status_code=422,
        error=error_message,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Convert HTTPException (404 routes, 405 methods, ...) to the standard envelope."""
    status_code_mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.AUTHENTICATION_REQUIRED,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        405: ErrorCode.VALIDATION_ERROR,
        422: ErrorCode.VALIDATION_ERROR,
        429: ErrorCode.QUOTA_EXCEEDED,
        500: ErrorCode.INTERNAL_ERROR,
        502: ErrorCode.EXTERNAL_SERVICE_ERROR,
        503: ErrorCode.SERVICE_NOT_CONFIGURED,
    }
    error_code = status_code_mapping.get(exc.status_code, ErrorCode.UNKNOWN_ERROR)

    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {detail}")

    headers = {}
    if exc.headers:
        safe_headers = {"Retry-After", "Allow"}
        headers = {k: v for k, v in exc.headers.items() if k in safe_headers}

    return create_error_response(
        status_code=exc.status_code,
        error=detail,
        error_code=error_code.value,
        headers=headers or None,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all for unexpected errors.

    Logs the traceback, reports to Sentry, and returns a generic message
    with a short reference for support.
    """
    error_reference = str(uuid.uuid4())[:8]

    logger.error(
        f"Unhandled exception [ref:{error_reference}] on "
        f"{request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )

    event_id = report_to_sentry(
        exc,
        request,
        extra_context={"error_reference": error_reference},
    )

    details: Dict[str, Any] = {"error_reference": error_reference}
    if is_production():
        error = "An unexpected error occurred. Please try again later."
    else:
        error = f"Internal server error: {type(exc).__name__}"
        if event_id:
            details["sentry_event_id"] = event_id

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error=error,
        error_code=ErrorCode.INTERNAL_ERROR.value,
        details=details,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on ``app``."""
    app.add_exception_handler(RewriteAppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.debug("Exception handlers registered")
