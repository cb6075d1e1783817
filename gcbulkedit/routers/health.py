"""Health check endpoint."""

from fastapi import APIRouter, Request

from gcbulkedit import __version__
from gcbulkedit.dependencies import CustomerStore
from gcbulkedit.errors import UpstreamUnavailable
from gcbulkedit.models import HealthCheck

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthCheck,
    summary="Health check",
    description="Check the health of the API and its document store.",
)
async def health_check(request: Request, store: CustomerStore) -> HealthCheck:
    """Check health of all services."""
    settings = request.app.state.settings

    try:
        await store.ping()
        redis_status = "healthy"
    except UpstreamUnavailable:
        redis_status = "unhealthy"

    return HealthCheck(
        status="healthy" if redis_status == "healthy" else "degraded",
        version=__version__,
        environment=settings.environment.value,
        redis=redis_status,
    )
