"""
Health check and root endpoints.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import sentry_sdk
from fastapi import APIRouter, Depends

from src.db import Database

from ..dependencies import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _status(configured: bool, up: bool) -> str:
    if not configured:
        return "unconfigured"
    return "up" if up else "down"


async def get_database_status(db: Optional[Database]) -> Dict[str, Any]:
    """Run a trivial query against Postgres when one is configured."""
    if db is None:
        return {"configured": False, "connected": False}

    try:
        start_time = datetime.now()
        await db.fetchval("SELECT 1")
        latency_ms = (datetime.now() - start_time).total_seconds() * 1000
        return {"configured": True, "connected": True, "latency_ms": round(latency_ms, 2)}
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return {"configured": True, "connected": False, "error": str(e)[:100]}


def get_sentry_status() -> Dict[str, Any]:
    client = sentry_sdk.get_client()
    return {"active": client.is_active()}


@router.get("/")
async def root() -> Dict[str, str]:
    return {"service": "rewrite-message-api", "status": "ok"}


@router.get(
    "/health",
    summary="System health check",
    responses={
        200: {
            "description": "Health status retrieved",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2024-01-24T12:00:00+00:00",
                        "version": "rewrite-message@1.0.0",
                        "environment": "production",
                        "services": {
                            "database": {"status": "up", "latency_ms": 5.2},
                            "anthropic": {"status": "up"},
                            "stripe": {"status": "up", "webhook": "up"},
                            "auth": {"status": "up"},
                            "sentry": {"status": "up"},
                        },
                    }
                }
            },
        }
    },
)
async def health_check(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """
    Liveness plus the configuration state of each collaborator.

    **Authentication**: Not required. This endpoint is public for load balancer health checks.
    """
    settings = services.settings
    db_status = await get_database_status(services.db)
    sentry_status = get_sentry_status()

    is_healthy = db_status["connected"] or not db_status["configured"]

    return {
        "status": "healthy" if is_healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.sentry.sentry_release,
        "environment": settings.security.environment,
        "services": {
            "database": {
                "status": _status(db_status["configured"], db_status["connected"]),
                "latency_ms": db_status.get("latency_ms"),
            },
            "anthropic": {"status": _status(settings.llm.is_configured, True)},
            "stripe": {
                "status": _status(settings.stripe.is_configured, True),
                "webhook": _status(settings.stripe.has_webhook_secret, True),
            },
            "auth": {"status": _status(settings.auth.is_configured, True)},
            "sentry": {
                "status": _status(settings.sentry.is_configured, sentry_status["active"]),
            },
        },
    }
