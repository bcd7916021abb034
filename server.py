"""
Backend server for the rewrite API.

This is the main entry point that assembles the modular components
from the app package.
"""

import logging
import re
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# Configure structured logging FIRST, before other imports that use logging
from src.utils.logging import setup_logging

logger = setup_logging(service_name="rewrite-message-api")

from src.config import Settings, get_settings

from app.dependencies import Services, build_services
from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import (
    account_router,
    health_router,
    payments_router,
    referral_router,
    rewrite_router,
)

SENSITIVE_KEYS = [
    "password", "api_key", "apikey", "api-key", "secret", "token",
    "authorization", "bearer", "credential", "private", "stripe-signature",
]


def filter_sensitive_breadcrumbs(crumb, hint):
    """
    Filter sensitive data from Sentry breadcrumbs.

    Masks authorization and signature headers, sensitive query parameters
    and log messages that mention credentials.
    """
    if crumb.get("category") == "http":
        data = crumb.get("data")
        if isinstance(data, dict):
            headers = data.get("headers")
            if isinstance(headers, dict):
                for key in list(headers.keys()):
                    if any(s in key.lower() for s in SENSITIVE_KEYS):
                        headers[key] = "[FILTERED]"
            if "url" in data:
                for key in SENSITIVE_KEYS:
                    if f"{key}=" in data["url"].lower():
                        pattern = re.compile(f"({re.escape(key)}=)[^&]*", re.IGNORECASE)
                        data["url"] = pattern.sub(r"\1[FILTERED]", data["url"])

    if crumb.get("category") in ("console", "log") and "message" in crumb:
        message = str(crumb["message"]).lower()
        if any(key in message for key in SENSITIVE_KEYS):
            crumb["message"] = "[FILTERED - may contain sensitive data]"

    return crumb


def init_sentry(settings: Settings) -> None:
    if not settings.is_sentry_configured:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return

    sentry_settings = settings.sentry
    sentry_sdk.init(
        dsn=sentry_settings.sentry_dsn,
        environment=sentry_settings.sentry_environment,
        sample_rate=1.0,
        traces_sample_rate=sentry_settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=filter_sensitive_breadcrumbs,
        send_default_pii=False,
        attach_stacktrace=True,
        server_name=sentry_settings.server_name,
        release=sentry_settings.sentry_release,
    )
    logger.info(f"Sentry initialized for environment: {sentry_settings.sentry_environment}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services
    await services.startup()
    logger.info("Rewrite API started", extra={"config": services.settings.get_config_summary()})
    try:
        yield
    finally:
        await services.close()
        logger.info("Rewrite API stopped")


def create_app(
    services: Optional[Services] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Assemble the application.

    Args:
        services: Prebuilt service container; built from settings when omitted
        settings: Configuration; loaded from the environment when omitted
    """
    if services is not None:
        settings = services.settings
    else:
        settings = settings or get_settings()
        init_sentry(settings)
        services = build_services(settings)

    app = FastAPI(
        title="Rewrite Message API",
        description="Rewrite a message in a chosen tone, with daily quotas, referrals and a Pro plan.",
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Liveness and configuration status"},
            {"name": "rewrite", "description": "Tone rewrites"},
            {"name": "account", "description": "The signed-in account"},
            {"name": "referral", "description": "Referral bonuses"},
            {"name": "payments", "description": "Pro subscription checkout, portal and webhooks"},
        ],
    )
    app.state.services = services

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Stripe-Signature"],
    )
    if settings.logging.request_logging_enabled:
        app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router)
    app.include_router(rewrite_router)
    app.include_router(account_router)
    app.include_router(referral_router)
    app.include_router(payments_router)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
