"""Health check endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from loginvault.api.dependencies import get_settings
from loginvault.config import Settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    mail_enabled: bool


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Return API health status and whether mail recovery is switched on."""
    return HealthResponse(status="ok", version="0.1.0", mail_enabled=settings.mail.enabled)
