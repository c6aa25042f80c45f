"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from learnpath.config.app_config import check_ai_credentials
from learnpath.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API health status and whether the AI key is present."""
    return HealthResponse(
        status="ok",
        version="0.1.0",
        ai_configured=check_ai_credentials(),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
