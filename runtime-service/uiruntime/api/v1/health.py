"""
Health check endpoints: liveness and readiness of the runtime service.
"""
from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel
from datetime import datetime, timezone
import time

from uiruntime.config import settings
from uiruntime.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)

# Track service start time
SERVICE_START_TIME = time.time()


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class LivenessResponse(BaseModel):
    """Liveness probe response"""
    status: str
    timestamp: str


class ReadinessResponse(BaseModel):
    """Readiness probe response"""
    status: str  # "ready", "not_ready"
    ready: bool
    service: str
    version: str
    environment: str
    uptime_seconds: float
    open_instances: int
    persistence_backend: str
    timestamp: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.get("/health/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    return LivenessResponse(status="alive", timestamp=_now())


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(request: Request, response: Response) -> ReadinessResponse:
    registry = getattr(request.app.state, "registry", None)
    ready = registry is not None

    if not ready:
        logger.warning("health.readiness.not_ready")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        ready=ready,
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        uptime_seconds=round(time.time() - SERVICE_START_TIME, 3),
        open_instances=len(registry.open_instances) if registry else 0,
        persistence_backend=settings.persistence_backend,
        timestamp=_now(),
    )
