"""Health & Readiness Probes: liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the session backend is unreachable (readiness)

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from rotation
    - Readiness asks the configured backend; the memory backend is always ready
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from backlog_bot.api.dependencies import get_runtime
from backlog_bot.services.runtime import BotRuntime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "backlog-bot",
        "version": "0.1.0",
    }


@router.get("/ready")
async def readiness_check(runtime: BotRuntime = Depends(get_runtime)):
    """Readiness probe: includes session backend connectivity."""
    backend = runtime.settings.session_backend
    probe = getattr(runtime.backend, "health_check", None)
    backend_ok = await probe() if probe else True
    if not backend_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "session_backend_unavailable",
                "checks": {"session_backend": backend},
            },
        )
    return {
        "status": "ready",
        "checks": {"session_backend": backend},
        "polling": runtime.poller is not None,
    }
