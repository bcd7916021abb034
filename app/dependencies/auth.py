"""
Request authentication dependencies.

Usage:
    @router.get("/api/me")
    async def me(account: Account = Depends(current_account)):
        ...
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.accounts import STORE_ERRORS, ensure_account
from src.types.accounts import Account
from src.utils.logging import set_request_context

from ..auth import AuthenticatedUser
from ..exceptions import AuthenticationError, DatabaseError, ServiceNotConfiguredError
from .services import Services, get_services

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _authenticate(
    request: Request,
    services: Services,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[AuthenticatedUser]:
    if credentials is None or not credentials.credentials:
        return None

    user = services.token_verifier.verify(credentials.credentials)
    request.state.user_id = user.id
    set_request_context(user_id=user.id)
    return user


async def optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: Services = Depends(get_services),
) -> Optional[AuthenticatedUser]:
    """
    Resolve the caller if a bearer token was sent.

    Without auth configured every caller is anonymous. A token that is sent
    but does not verify is rejected rather than treated as anonymous.
    """
    if services.token_verifier is None:
        return None
    return _authenticate(request, services, credentials)


async def require_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: Services = Depends(get_services),
) -> AuthenticatedUser:
    if services.token_verifier is None:
        raise ServiceNotConfiguredError(
            "Sign-in is not available right now",
            service_name="auth",
            internal_message="SUPABASE_JWT_SECRET not configured",
        )

    user = _authenticate(request, services, credentials)
    if user is None:
        raise AuthenticationError()
    return user


async def _provision(services: Services, user: AuthenticatedUser) -> Account:
    try:
        return await ensure_account(services.store, user.id, email=user.email)
    except STORE_ERRORS as e:
        raise DatabaseError(internal_message=f"Account lookup failed: {e}")


async def current_account(
    user: AuthenticatedUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> Account:
    """The signed-in caller's account, provisioned on first use."""
    return await _provision(services, user)


async def optional_account(
    user: Optional[AuthenticatedUser] = Depends(optional_user),
    services: Services = Depends(get_services),
) -> Optional[Account]:
    if user is None:
        return None
    return await _provision(services, user)
