# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Liveness for the process, readiness for Firestore and Cloud Storage.
# =============================================================================

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings

router = APIRouter()

API_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    environment: str
    version: str


class ChecksResponse(BaseModel):
    firestore: str
    storage: str


class ReadinessResponse(BaseModel):
    status: str
    checks: ChecksResponse
    timestamp: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _failure(e: Exception) -> str:
    return f"unhealthy: {str(e)[:50]}"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Basic health status for load balancers."""
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        environment=settings.ENVIRONMENT,
        version=API_VERSION,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check():
    """
    Whether the backing services are reachable.

    Reads one document and lists one object; "degraded" when either fails.
    """
    from lib.firebase_client import FirebaseClient

    checks = ChecksResponse(firestore="unknown", storage="unknown")

    try:
        list(FirebaseClient.get_db().collection("courses").limit(1).stream())
        checks.firestore = "healthy"
    except Exception as e:
        checks.firestore = _failure(e)

    try:
        list(FirebaseClient.get_bucket().list_blobs(max_results=1))
        checks.storage = "healthy"
    except Exception as e:
        checks.storage = _failure(e)

    ready = checks.firestore == "healthy" and checks.storage == "healthy"
    return ReadinessResponse(status="ready" if ready else "degraded", checks=checks, timestamp=_now())


@router.get("/health/live")
async def liveness_check():
    """Process is up; used for restart decisions."""
    return {"status": "alive", "timestamp": _now()}
