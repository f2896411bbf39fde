"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTE_ENGINE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Field Route Engine API"
    api_prefix: str = "/api"
    log_level: str = "INFO"
    data_root: Path = Field(default=Path("data"), description="Root directory for client-local state.")
    active_route_key: str = Field(
        default="activeRoute",
        description="Well-known storage key of the persisted active route record.",
    )

    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key for the distance matrix and directions endpoints.",
    )
    google_maps_base_url: str = Field(
        default="https://maps.googleapis.com/maps/api",
        description="Base URL of the mapping provider web services.",
    )
    travel_mode: Literal["driving", "walking", "bicycling"] = Field(default="driving")
    traffic_model: Literal["best_guess", "pessimistic", "optimistic"] = Field(default="best_guess")
    request_timeout_seconds: float = Field(default=20.0, gt=0.0)

    # Provider capacity limits
    distance_matrix_batch_size: int = Field(default=25, ge=1, le=25)
    max_optimization_candidates: int = Field(default=25, ge=1)
    max_waypoints: int = Field(default=23, ge=1, le=23)

    # Composite scoring
    priority_weight: float = Field(default=0.4, ge=0.0)
    proximity_weight: float = Field(default=0.6, ge=0.0)
    proximity_scale: float = Field(default=1000.0, gt=0.0)
    default_priority_score: float = Field(default=50.0, ge=0.0, le=100.0)

    # Local time heuristics
    minutes_per_mile: float = Field(default=2.0, ge=0.0)
    service_minutes_per_stop: float = Field(default=15.0, ge=0.0)
    fallback_miles_per_stop: float = Field(default=5.0, ge=0.0)
    fallback_minutes_per_stop: float = Field(default=20.0, ge=0.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

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

    @property
    def provider_configured(self) -> bool:
        return bool(self.google_maps_api_key)


settings = Settings()
