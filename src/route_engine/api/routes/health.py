"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_provider_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.google_client import check_health as provider_health_check
    return provider_health_check


@router.get("/health/maps", status_code=status.HTTP_200_OK)
async def health_maps() -> dict:
    """Check mapping provider configuration and reachability."""
    if not settings.provider_configured:
        return {"service": "maps", "configured": False, "healthy": False}
    try:
        provider_health_check = _get_provider_health_check()
        healthy = await provider_health_check()
        return {"service": "maps", "configured": True, "healthy": healthy}
    except Exception as e:
        return {"service": "maps", "configured": True, "healthy": False, "error": str(e)}
