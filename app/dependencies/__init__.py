"""
FastAPI dependencies for the rewrite API.

This module provides reusable dependencies for:
- Reaching the service container
- Resolving the signed-in user and their account

Usage:
    from app.dependencies import current_account, get_services
"""

from app.dependencies.auth import (
    bearer_scheme,
    current_account,
    optional_account,
    optional_user,
    require_user,
)
from app.dependencies.services import Services, build_services, get_services

__all__ = [
    # Service container
    "Services",
    "build_services",
    "get_services",
    # Authentication
    "bearer_scheme",
    "optional_user",
    "require_user",
    "current_account",
    "optional_account",
]
