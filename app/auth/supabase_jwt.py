"""
Supabase JWT verification helpers.

The frontend authenticates users with Supabase and sends the session
token as `Authorization: Bearer <jwt>`. The backend verifies the token
with the project's HS256 JWT secret.

Configuration:
- SUPABASE_JWT_SECRET (required): JWT secret from the Supabase project settings.
- SUPABASE_JWT_AUDIENCE (optional): expected `aud` claim, "authenticated" by default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt

from src.config import AuthSettings

from ..exceptions import AuthenticationError, ErrorCode

logger = logging.getLogger(__name__)

ALGORITHMS = ["HS256"]


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None


class SupabaseTokenVerifier:
    """Decodes Supabase session tokens into an authenticated user."""

    def __init__(self, secret: str, audience: Optional[str] = "authenticated"):
        self._secret = secret
        self._audience = audience or None

    @classmethod
    def from_settings(cls, settings: AuthSettings) -> Optional["SupabaseTokenVerifier"]:
        if not settings.supabase_jwt_secret:
            return None
        return cls(
            secret=settings.supabase_jwt_secret.get_secret_value(),
            audience=settings.supabase_jwt_audience,
        )

    def decode(self, token: str) -> Dict[str, Any]:
        """
        Verify a session token and return decoded claims.

        Raises jwt.PyJWTError subclasses on invalid tokens.
        """
        kwargs: Dict[str, Any] = {
            "options": {
                "require": ["exp", "sub"],
                "verify_aud": self._audience is not None,
            },
        }
        if self._audience is not None:
            kwargs["audience"] = self._audience

        return jwt.decode(token, self._secret, algorithms=ALGORITHMS, **kwargs)

    def verify(self, token: str) -> AuthenticatedUser:
        """
        Raises:
            AuthenticationError: for an expired, tampered or malformed token
        """
        try:
            claims = self.decode(token)
        except jwt.ExpiredSignatureError:
            raise AuthenticationError(
                "Your sign-in has expired",
                error_code=ErrorCode.EXPIRED_TOKEN,
            )
        except jwt.PyJWTError as e:
            logger.warning(f"Rejected session token: {type(e).__name__}")
            raise AuthenticationError(
                "Invalid sign-in",
                error_code=ErrorCode.INVALID_TOKEN,
                internal_message=str(e),
            )

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("Invalid sign-in", error_code=ErrorCode.INVALID_TOKEN)

        email = claims.get("email")
        return AuthenticatedUser(id=subject, email=email if isinstance(email, str) else None)
