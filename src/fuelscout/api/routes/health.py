"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check that the station registry table is reachable."""
    from ...db.supabase import get_supabase_client

    supabase = get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set FUELSCOUT_SUPABASE_URL and FUELSCOUT_SUPABASE_KEY; "
            "the registry falls back to process memory.",
            "stations_count": 0,
        }

    try:
        response = supabase.table(settings.registry_table).select("id", count="exact").limit(1).execute()
        count = response.count or 0
        return {
            "configured": True,
            "connected": True,
            "stations_count": count,
            "message": f"Database connected. Registry holds {count} stations.",
        }
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }


@router.get("/health/services", status_code=status.HTTP_200_OK)
def check_services() -> dict:
    """Report which upstream integrations are configured."""
    return {
        "google_maps": bool(settings.google_api_key),
        "station_source": settings.station_source_base_url,
        "block_threshold": settings.block_threshold,
        "block_cooldown_seconds": settings.block_cooldown_seconds,
        "cache_ttl_seconds": settings.cache_ttl_seconds,
    }
