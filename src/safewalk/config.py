"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SAFEWALK_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "SafeWalk Navigation API"
    api_prefix: str = "/api"
    risk_regions_file: Path = Field(
        default=Path("data/risk_regions.json"),
        description="JSON export of aggregated risk regions (centroid, radius, risk index).",
    )
    risk_regions_cache_ttl_seconds: float = Field(default=300.0, ge=0.0)

    # Path provider
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: str = Field(default="foot", description="OSRM profile for the fastest route.")
    osrm_safe_profile: Optional[str] = Field(
        default=None,
        description="OSRM profile requested for risk-averse routes; falls back to osrm_profile.",
    )
    osrm_timeout_seconds: float = Field(default=15.0, gt=0.0)
    osrm_max_retries: int = Field(default=2, ge=0)
    osrm_backoff_seconds: float = Field(default=0.5, ge=0.0)
    osrm_max_alternatives: int = Field(default=3, ge=1)
    walking_speed_kmh: float = Field(default=5.0, gt=0.0)

    # Risk scoring
    risk_warning_threshold: float = Field(default=30.0, ge=0.0, le=100.0)
    risk_high_threshold: float = Field(default=70.0, ge=0.0, le=100.0)
    risk_region_padding_meters: float = Field(default=250.0, ge=0.0)
    safe_route_max_distance_increase: float = Field(default=1.20, ge=1.0)

    # Instruction synthesis
    turn_threshold_degrees: float = Field(default=15.0, ge=0.0)
    min_instruction_spacing_meters: float = Field(default=100.0, ge=0.0)
    max_straight_segment_meters: float = Field(default=2000.0, gt=0.0)
    min_trailing_segment_meters: float = Field(default=50.0, ge=0.0)

    # Navigation session
    deviation_threshold_meters: float = Field(default=30.0, gt=0.0)
    recalculation_cooldown_seconds: float = Field(default=5.0, ge=0.0)
    traffic_time_improvement_ratio: float = Field(default=0.10, ge=0.0)
    traffic_risk_improvement_points: float = Field(default=5.0, ge=0.0)
    session_idle_timeout_seconds: float = Field(default=1800.0, gt=0.0)
    max_session_events: int = Field(default=500, ge=1)

    # Proximity alerts
    min_alert_distance_meters: float = Field(default=100.0, gt=0.0)
    default_alert_distance_meters: float = Field(default=500.0, gt=0.0)
    high_speed_alert_distance_meters: float = Field(default=500.0, gt=0.0)
    alert_speed_threshold_kmh: float = Field(default=40.0, gt=0.0)
    alert_risk_threshold: float = Field(default=70.0, ge=0.0, le=100.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:8081",
            "http://127.0.0.1:8081",
            "http://localhost:19006",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("risk_regions_file", mode="before")
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


settings = Settings()
