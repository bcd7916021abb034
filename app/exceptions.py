"""
Custom exception classes for the rewrite API.

Every exception maps to one HTTP status code and a machine-readable error
code. Domain errors raised under ``src`` carry no HTTP knowledge; routes
translate them into these.

Exception Hierarchy:
    RewriteAppException (base, 500)
    ├── ValidationError (400)
    ├── AuthenticationError (401)
    ├── ResourceNotFoundError (404)
    ├── QuotaExceededError (429)
    ├── ExternalServiceError (502)
    │   ├── StripeServiceError
    │   └── AnthropicServiceError
    ├── ServiceNotConfiguredError (503)
    └── DatabaseError (500)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable identifiers for error conditions."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"
    INVALID_TONE = "INVALID_TONE"
    MISSING_REFERRAL_CODE = "MISSING_REFERRAL_CODE"
    SELF_REFERRAL = "SELF_REFERRAL"
    ALREADY_REFERRED = "ALREADY_REFERRED"
    NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
    INVALID_WEBHOOK = "INVALID_WEBHOOK"

    # Authentication errors (401)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"

    # Resource errors (404)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    UNKNOWN_REFERRAL_CODE = "UNKNOWN_REFERRAL_CODE"

    # Quota errors (429)
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"

    # External service errors (502)
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    STRIPE_ERROR = "STRIPE_ERROR"
    ANTHROPIC_ERROR = "ANTHROPIC_ERROR"

    # Configuration errors (503)
    SERVICE_NOT_CONFIGURED = "SERVICE_NOT_CONFIGURED"

    # Database errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    WEBHOOK_PROCESSING_FAILED = "WEBHOOK_PROCESSING_FAILED"


class RewriteAppException(Exception):
    """
    Base exception class for all API errors.

    Attributes:
        message: Human-readable error message (safe for clients).
        error_code: Machine-readable error code from ErrorCode enum.
        status_code: HTTP status code to return.
        details: Additional context about the error (optional).
        internal_message: Detailed message for logging (not exposed to clients).
    """

    status_code: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.internal_message = internal_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for API response."""
        response = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.details:
            response["details"] = self.details
        return response

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value!r}, "
            f"status_code={self.status_code})"
        )


# =============================================================================
# Validation Errors (400 Bad Request)
# =============================================================================

class ValidationError(RewriteAppException):
    """
    Raised when a request is well-formed JSON but not acceptable.

    Covers missing or oversized messages, unknown tones, and refused
    referral applications other than an unknown code.
    """

    status_code = 400
    default_error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request data"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message,
        )


# =============================================================================
# Authentication Errors (401 Unauthorized)
# =============================================================================

class AuthenticationError(RewriteAppException):
    """Missing, malformed, expired or otherwise invalid bearer token."""

    status_code = 401
    default_error_code = ErrorCode.AUTHENTICATION_REQUIRED
    default_message = "Sign in required"


# =============================================================================
# Resource Not Found Errors (404 Not Found)
# =============================================================================

class ResourceNotFoundError(RewriteAppException):
    status_code = 404
    default_error_code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "Resource not found"

    def __init__(
        self,
        message: Optional[str] = None,
        resource_type: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if resource_type:
            details["resource_type"] = resource_type

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message,
        )


# =============================================================================
# Quota Errors (429 Too Many Requests)
# =============================================================================

class QuotaExceededError(RewriteAppException):
    """
    Raised when the daily rewrite allowance is used up.

    Carries the current usage, the limit, whether upgrading would help and
    when the allowance resets, so clients can render upgrade messaging.
    """

    status_code = 429
    default_error_code = ErrorCode.QUOTA_EXCEEDED
    default_message = "Daily limit reached"

    def __init__(
        self,
        message: Optional[str] = None,
        limit: Optional[int] = None,
        current_usage: Optional[int] = None,
        upgrade: Optional[bool] = None,
        reset_time: Optional[datetime] = None,
        retry_after: Optional[int] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if limit is not None:
            details["limit"] = limit
        if current_usage is not None:
            details["usage"] = current_usage
        if upgrade is not None:
            details["upgrade"] = upgrade
        if reset_time is not None:
            details["reset_time"] = reset_time.isoformat()

        self.retry_after = retry_after

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message,
        )

    def to_dict(self) -> Dict[str, Any]:
        response = super().to_dict()
        if self.retry_after:
            response["retry_after"] = self.retry_after
        return response


# =============================================================================
# External Service Errors (502 Bad Gateway)
# =============================================================================

class ExternalServiceError(RewriteAppException):
    """Base class for failures of third-party services."""

    status_code = 502
    default_error_code = ErrorCode.EXTERNAL_SERVICE_ERROR
    default_message = "External service error"

    def __init__(
        self,
        message: Optional[str] = None,
        service_name: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = details or {}
        if service_name:
            details["service"] = service_name

        self.original_error = original_error

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message or (str(original_error) if original_error else None),
        )


class StripeServiceError(ExternalServiceError):
    """Raised when Stripe API calls fail."""

    default_error_code = ErrorCode.STRIPE_ERROR
    default_message = "Payment service temporarily unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        stripe_error_code: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        # Only the Stripe error code is safe to surface
        if stripe_error_code:
            details["stripe_code"] = stripe_error_code

        super().__init__(
            message=message,
            service_name="stripe",
            details=details,
            original_error=original_error,
        )


class AnthropicServiceError(ExternalServiceError):
    """Raised when the rewrite model is unavailable."""

    default_error_code = ErrorCode.ANTHROPIC_ERROR
    default_message = "AI service temporarily unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            service_name="anthropic",
            original_error=original_error,
        )


# =============================================================================
# Configuration Errors (503 Service Unavailable)
# =============================================================================

class ServiceNotConfiguredError(RewriteAppException):
    """A collaborator needed for this endpoint has no credentials configured."""

    status_code = 503
    default_error_code = ErrorCode.SERVICE_NOT_CONFIGURED
    default_message = "This feature is not available right now"

    def __init__(
        self,
        message: Optional[str] = None,
        service_name: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            details={"service": service_name} if service_name else None,
            internal_message=internal_message,
        )


# =============================================================================
# Database Errors (500 Internal Server Error)
# =============================================================================

class DatabaseError(RewriteAppException):
    """Account store failure on the request path."""

    status_code = 500
    default_error_code = ErrorCode.DATABASE_ERROR
    default_message = "A database error occurred"
