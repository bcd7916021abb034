"""Authentication components for the rewrite API."""

from .supabase_jwt import AuthenticatedUser, SupabaseTokenVerifier

__all__ = [
    "AuthenticatedUser",
    "SupabaseTokenVerifier",
]
