"""Liveness endpoint with a configuration summary."""

from fastapi import APIRouter

from config.settings import get_settings

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    """Report service status and which upstreams are configured."""
    settings = get_settings()
    return {
        "status": "healthy",
        "supabase": settings.supabase_configured,
        "gemini": bool(settings.google_api_key),
    }
