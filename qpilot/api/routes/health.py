"""
Health check endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from qpilot import __version__
from qpilot.config import settings

router = APIRouter()


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.app_env,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - reports which optional collaborators are configured.
    """
    checks = {
        "api": True,
        "base_url_configured": bool(settings.base_url),
        "openai_configured": bool(settings.openai_api_key),
        "llm_resolver": settings.llm_enabled,
    }

    return {
        "ready": checks["api"] and checks["base_url_configured"],
        "resolver": settings.q_resolver,
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
