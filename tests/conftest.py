"""
Pytest configuration and shared fixtures for rewrite API tests.

This module provides common fixtures used across all test files:
- A frozen clock and an in-memory account store
- A scripted rewriter in place of the Anthropic client
- Signed session tokens and Stripe webhook payloads
- An application wired to all of the above
"""

import hashlib
import hmac
import json
import os
import sys
import time
from datetime import datetime, timezone
from typing import List, Optional

import pytest

# Environment setup before any imports
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("SENTRY_DSN", None)
os.environ.pop("DATABASE_URL", None)
os.environ.pop("DATABASE_URL_DIRECT", None)

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import jwt

from src.accounts import InMemoryAccountStore
from src.config import AuthSettings, Settings, StripeSettings
from src.rewrite import Rewriter, RewriteUnavailable

JWT_SECRET = "test-supabase-jwt-secret-with-enough-length"
WEBHOOK_SECRET = "whsec_test_secret"
NOW = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeRewriter(Rewriter):
    """Returns a canned rewrite, or fails when told to."""

    def __init__(self, reply: str = "Rewritten message", fail: bool = False):
        self.reply = reply
        self.fail = fail
        self.calls: List[dict] = []

    async def rewrite(self, text: str, tone_label: str, tone_description: str) -> str:
        self.calls.append({"text": text, "tone": tone_label, "description": tone_description})
        if self.fail:
            raise RewriteUnavailable("model down")
        return self.reply


def make_token(
    user_id: str,
    email: Optional[str] = None,
    expires_in: int = 3600,
    secret: str = JWT_SECRET,
    audience: str = "authenticated",
) -> str:
    claims = {"sub": user_id, "aud": audience, "exp": int(time.time()) + expires_in}
    if email:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_header(user_id: str, email: Optional[str] = None) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> dict:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs deliveries."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def signed_event(event_type: str, obj: dict, event_id: str = "evt_test_1"):
    payload = json.dumps(stripe_event(event_type, obj, event_id))
    return payload, sign_payload(payload)


def make_settings(auth: bool = True, stripe: bool = True) -> Settings:
    return Settings(
        auth=AuthSettings(supabase_jwt_secret=JWT_SECRET if auth else None),
        stripe=StripeSettings(
            stripe_secret_key="sk_test_123" if stripe else None,
            stripe_webhook_secret=WEBHOOK_SECRET if stripe else None,
            stripe_price_id="price_pro_monthly" if stripe else None,
        ),
    )


def make_services(store=None, rewriter=None, clock=None, settings=None):
    from app.auth import SupabaseTokenVerifier
    from app.dependencies import Services
    from src.payments import StripeService

    settings = settings or make_settings()
    store = store if store is not None else InMemoryAccountStore()
    return Services(
        settings=settings,
        store=store,
        rewriter=rewriter or FakeRewriter(),
        stripe=StripeService(settings.stripe, store),
        token_verifier=SupabaseTokenVerifier.from_settings(settings.auth),
        clock=clock or FrozenClock(),
    )


def make_client(services):
    from fastapi.testclient import TestClient
    from server import create_app

    return TestClient(create_app(services=services), raise_server_exceptions=False)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store():
    return InMemoryAccountStore()


@pytest.fixture
def rewriter():
    return FakeRewriter()


@pytest.fixture
def services(store, rewriter, clock):
    return make_services(store=store, rewriter=rewriter, clock=clock)


@pytest.fixture
def client(services):
    return make_client(services)
