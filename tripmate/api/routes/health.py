"""Health check endpoints."""

from fastapi import APIRouter, Request

from ... import __version__
from ..schemas import HealthResponse

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the API server is running and whether the model is configured.",
)
def health_check(request: Request) -> HealthResponse:
    """Return health status of the API server."""
    app_config = request.app.state.app_config
    configured = request.app.state.chat_service is not None
    return HealthResponse(
        status="healthy" if configured else "degraded",
        version=__version__,
        model=app_config.model.name,
        model_configured=configured,
    )
