"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FUELSCOUT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Fuel Scout API"
    api_prefix: str = "/api"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:8081",
            "http://127.0.0.1:8081",
            "http://localhost:19006",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Google Maps platform (geocoding, places, distance matrix)
    google_api_key: Optional[str] = Field(
        default=None,
        description="API key for Google Geocoding, Places and Distance Matrix.",
    )
    google_maps_base_url: str = Field(default="https://maps.googleapis.com/maps/api")
    geocoding_timeout_seconds: float = Field(default=10.0, gt=0.0)
    distance_matrix_batch_size: int = Field(
        default=25,
        ge=1,
        le=25,
        description="Destinations per Distance Matrix request (API limit is 25).",
    )
    distance_matrix_timeout_seconds: float = Field(default=20.0, gt=0.0)
    distance_max_retries: int = Field(default=2, ge=0)
    distance_backoff_seconds: float = Field(default=1.0, ge=0.0)

    # Harvesting source and browser session
    station_source_base_url: str = Field(default="https://www.gasbuddy.com")
    station_source_fuel_type: int = Field(default=1, ge=1, description="Fuel grade passed to the source search.")
    browser_headless: bool = True
    browser_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
    )
    search_timeout_seconds: float = Field(default=30.0, gt=0.0)
    listing_wait_seconds: float = Field(default=10.0, ge=0.0)
    detail_timeout_seconds: float = Field(default=15.0, gt=0.0)

    # Pacing and block detection
    area_delay_seconds: float = Field(default=3.0, ge=0.0)
    area_jitter_seconds: float = Field(default=3.0, ge=0.0)
    detail_delay_seconds: float = Field(default=2.0, ge=0.0)
    detail_jitter_seconds: float = Field(default=3.0, ge=0.0)
    block_threshold: int = Field(
        default=3,
        ge=1,
        description="Consecutive empty area searches treated as a suspected block.",
    )
    block_cooldown_seconds: float = Field(default=120.0, ge=0.0)

    # Query shaping
    max_per_area: int = Field(default=10, ge=1)
    max_area_terms: int = Field(default=8, ge=1)
    default_search_radius_km: float = Field(default=15.0, gt=0.0)
    nearby_max_stations: int = Field(default=50, ge=1, description="Nearest registry stations returned and enriched.")
    cache_ttl_seconds: float = Field(default=30 * 60, ge=0.0)
    query_timeout_seconds: float = Field(default=60.0, gt=0.0)

    # Station registry (Supabase)
    registry_table: str = "stations"
    registry_batch_size: int = Field(default=100, ge=1)
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("google_api_key", "supabase_url", "supabase_key", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


settings = Settings()
