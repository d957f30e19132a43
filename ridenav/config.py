"""RideNav Application Configuration.

Centralized configuration management for the RideNav navigation engine using
Pydantic settings. Handles environment variables, the routing API key, and all
tunable thresholds of the navigation, arrival and rerouting logic.

Environment variables are loaded from .env file in development and from the
system environment in production.
"""

from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# GraphHopper custom models per route preference.
# "fastest" uses the plain vehicle profile and needs no custom model.
ROUTE_CUSTOM_MODELS: Dict[str, Dict] = {
    "safest": {
        "priority": [
            {"if": "road_class == CYCLEWAY", "multiply_by": 1.5},
            {"if": "road_class == PATH", "multiply_by": 1.3},
            {"if": "road_class == RESIDENTIAL", "multiply_by": 1.2},
            {"if": "road_class == TERTIARY", "multiply_by": 1.1},
            {"if": "road_class == PRIMARY", "multiply_by": 0.5},
            {"if": "road_class == TRUNK", "multiply_by": 0.3},
            {"if": "road_class == MOTORWAY", "multiply_by": 0.1},
            {"if": "bike_network != MISSING", "multiply_by": 1.3},
            {"if": "road_gradient > 10", "multiply_by": 0.8},
        ],
        "speed": [
            {"if": "road_class == PRIMARY", "limit_to": 12},
            {"if": "road_class == SECONDARY", "limit_to": 15},
        ],
    },
    "shortest": {"distance_influence": 200},
}


class Settings(BaseSettings):
    """Application settings - single source of truth for configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8080"

    # Routing (GraphHopper)
    GRAPHHOPPER_API_URL: str = "https://graphhopper.com/api/1"
    GRAPHHOPPER_API_KEY: str = Field(default="")
    ROUTING_PROFILE: str = "bike"
    ROUTING_TIMEOUT_S: float = 10.0
    ROUTING_MAX_RETRIES: int = 2
    ROUTE_PREFERENCES: str = "fastest,safest"

    # Position stream
    POSITION_UPDATE_INTERVAL_S: float = 3.0

    # Off-route detection
    OFF_ROUTE_BASE_THRESHOLD_M: float = 20.0
    OFF_ROUTE_MIN_THRESHOLD_M: float = 10.0  # GPS jitter is ~5m, never go below this
    OFF_ROUTE_MAX_THRESHOLD_M: float = 40.0
    OFF_ROUTE_LOOSEN_FROM_KMH: float = 20.0
    OFF_ROUTE_LOOSEN_M_PER_KMH: float = 0.5

    # Arrival detection (dwell-confirmed)
    ARRIVAL_DISTANCE_M: float = 10.0
    ARRIVAL_ACCURACY_M: float = 10.0
    ARRIVAL_SPEED_KMH: float = 5.0
    ARRIVAL_DWELL_S: float = 3.0

    # Trip statistics / ETA
    MOVING_SPEED_MPS: float = 0.5
    MIN_ETA_SPEED_MPS: float = 0.5
    DEFAULT_CYCLING_SPEED_MPS: float = 4.17  # 15 km/h
    ETA_RANGE_MIN_ELAPSED_S: float = 30.0

    # Rerouting
    REROUTE_COOLDOWN_S: float = 10.0
    REROUTE_POSITION_THRESHOLD_M: float = 10.0
    REROUTE_REQUEST_TIMEOUT_S: float = 20.0
    REROUTE_SETTLE_DELAY_S: float = 0.1

    # Warnings
    HAZARD_BUFFER_M: float = 75.0
    UPCOMING_WARNINGS_LIMIT: int = 5
    SIGNAL_BUFFER_SIZE: int = 100

    # Maneuver detection
    MANEUVER_SLIGHT_ANGLE_DEG: float = 20.0
    MANEUVER_MEDIUM_ANGLE_DEG: float = 45.0
    MANEUVER_SHARP_ANGLE_DEG: float = 120.0
    MANEUVER_UTURN_ANGLE_DEG: float = 150.0
    MANEUVER_MIN_SEGMENT_M: float = 10.0

    @field_validator("ROUTE_PREFERENCES")
    @classmethod
    def validate_route_preferences(cls, v: str) -> str:
        """Reject unknown route preference names early."""
        allowed = {"fastest", "safest", "shortest"}
        names = [name.strip() for name in v.split(",") if name.strip()]
        unknown = [name for name in names if name not in allowed]
        if unknown:
            raise ValueError(f"Unknown route preferences: {', '.join(unknown)}")
        if not names:
            raise ValueError("At least one route preference is required")
        return ",".join(names)

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def route_preferences_list(self) -> List[str]:
        """Get configured route preferences as a list."""
        return [name.strip() for name in self.ROUTE_PREFERENCES.split(",") if name.strip()]


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
