"""Health check endpoints."""

from fastapi import APIRouter, Request

from lzswap.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "lzswap"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with configuration info."""
    settings = get_settings()
    gateway = getattr(request.app.state, "gateway", None)
    return {
        "status": "healthy",
        "service": "lzswap",
        "version": "0.1.0",
        "quote_backend": gateway.name if gateway else None,
        "config": settings.get_safe_dict(),
    }
