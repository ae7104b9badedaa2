"""FastAPI application entry point for the Digger policy and lock API."""

import structlog
from fastapi import FastAPI
from sqlalchemy import text

from src.api.locks import router as locks_router
from src.api.policies import router as policies_router
from src.config.logging import configure_logging
from src.config.settings import get_settings

APP_VERSION = "0.1.0"

settings = get_settings()

# --- Structured logging ---
configure_logging(settings)

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

# --- FastAPI app ---
app = FastAPI(
    title="Digger API",
    description="Access policies and project locks for Digger pipelines.",
    version=APP_VERSION,
)

# --- Routers ---
app.include_router(policies_router)
app.include_router(locks_router)


# --- Infrastructure Endpoints (global) ---


@app.get("/health")
async def health_check() -> dict:
    """Liveness probe with component health checks.

    Returns 200 always (degraded status if components are down).
    """
    checks: dict[str, bool] = {"api": True}

    # Database connectivity check
    try:
        from src.db.session import async_session_factory
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception:
        logger.warning("health_check_database_unreachable")
        checks["database"] = False

    all_ok = all(checks.values())

    return {
        "status": "ok" if all_ok else "degraded",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
        "checks": checks,
    }


@app.get("/api/version")
async def get_version() -> dict[str, str]:
    """Return application name, version, and environment."""
    return {
        "name": "Digger",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
    }
