"""
Storefront Location Configuration Settings
Manages environment variables and application configuration using Pydantic BaseSettings
"""
from typing import Optional, Tuple
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    Uses .env file when available, with sensible defaults for development
    """

    # =============================================================================
    # PLACE SEARCH PROVIDER
    # =============================================================================

    # Photon (OpenStreetMap) place search
    photon_api_url: str = Field(
        default="https://photon.komoot.io/api/",
        description="Place-search endpoint used for free-text suggestions"
    )

    geocoder_result_limit: int = Field(
        default=6,
        description="Maximum number of suggestions requested from the provider",
        ge=1, le=20
    )

    geocoder_language: str = Field(default="en", description="Language for provider results")

    service_country: str = Field(
        default="Uganda",
        description="Only provider results in this country are kept"
    )

    geocoder_timeout_seconds: float = Field(
        default=8.0,
        description="Safety timeout for a single provider request",
        gt=0, le=60
    )

    # Bias centre sent with every search, also the metro-area centre
    city_center_lat: float = Field(default=0.3476, description="City centre latitude", ge=-90, le=90)
    city_center_lon: float = Field(default=32.5825, description="City centre longitude", ge=-180, le=180)

    # =============================================================================
    # ZONE CLASSIFICATION
    # =============================================================================

    zones_file: Optional[str] = Field(
        None,
        description="Path to a zone/alias JSON file - leave empty for the packaged dataset"
    )

    metro_radius_km: float = Field(
        default=25.0,
        description="Radius around the city centre worth mentioning as nearby",
        gt=0, le=200
    )

    auto_assign_radius_km: float = Field(
        default=15.0,
        description="Device positions closer than this to a zone centroid are assigned automatically",
        gt=0, le=100
    )

    min_query_length: int = Field(
        default=2,
        description="Shortest trimmed query that reaches the place-search provider",
        ge=1, le=10
    )

    # =============================================================================
    # SEARCH SESSION TIMING
    # =============================================================================

    intent_debounce_ms: int = Field(
        default=150,
        description="Quiet period after a keystroke before the query is considered intended",
        ge=0, le=2000
    )

    network_debounce_ms: int = Field(
        default=150,
        description="Additional delay before dispatching the provider request",
        ge=0, le=2000
    )

    # =============================================================================
    # DEVICE GEOLOCATION
    # =============================================================================

    geolocation_high_accuracy_timeout_s: float = Field(
        default=10.0,
        description="Timeout for the first, high-accuracy position request",
        gt=0, le=120
    )

    geolocation_low_accuracy_timeout_s: float = Field(
        default=15.0,
        description="Timeout for the reduced-accuracy retry",
        gt=0, le=120
    )

    # =============================================================================
    # ETA ADJUSTMENT
    # =============================================================================

    peak_windows: Tuple[Tuple[int, int], ...] = Field(
        default=((12, 14), (18, 20)),
        description="Half-open [start, end) hour windows treated as peak hours"
    )

    peak_padding_minutes: int = Field(
        default=15,
        description="Minutes added to both ETA bounds during peak hours",
        ge=0, le=120
    )

    # =============================================================================
    # PERSISTENCE
    # =============================================================================

    # Redis configuration for recent selections
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for recent-selection storage"
    )

    recent_selections_backend: str = Field(
        default="redis",
        description="Where recent selections are kept: 'redis' or 'memory'"
    )

    recent_selections_max: int = Field(
        default=3,
        description="Number of previously selected zones remembered per client",
        ge=1, le=20
    )

    recent_selections_memory_clients: int = Field(
        default=10000,
        description="Clients kept by the in-memory backend before the least recently used is evicted",
        ge=1
    )

    # =============================================================================
    # SERVER CONFIGURATION
    # =============================================================================

    # Server host and port
    host: str = Field(default="0.0.0.0", description="FastAPI server host")
    port: int = Field(default=8000, description="FastAPI server port", ge=1000, le=65535)

    # Environment settings
    environment: str = Field(default="development", description="Environment mode")
    debug: bool = Field(default=True, description="Enable debug mode")

    # =============================================================================
    # LOGGING CONFIGURATION
    # =============================================================================

    # Logging settings
    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")

    # =============================================================================
    # COMPUTED PROPERTIES
    # =============================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"

    @property
    def intent_debounce_seconds(self) -> float:
        return self.intent_debounce_ms / 1000.0

    @property
    def network_debounce_seconds(self) -> float:
        return self.network_debounce_ms / 1000.0

    # =============================================================================
    # CONFIGURATION
    # =============================================================================

    model_config = {
        "env_file": ".env",  # Load from .env file if present
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # Allow case-insensitive environment variables
        "extra": "ignore",  # Ignore extra environment variables
        "validate_assignment": True,  # Validate on assignment
    }


# Create global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Dependency function to get settings instance
    Useful for FastAPI dependency injection
    """
    return settings


# Development helper functions
def print_settings_summary():
    """
    Print a summary of current settings (for debugging)
    """
    print("=" * 60)
    print("STOREFRONT LOCATION SETTINGS SUMMARY")
    print("=" * 60)
    print(f"Environment: {settings.environment}")
    print(f"Debug Mode: {settings.debug}")
    print(f"Server: {settings.host}:{settings.port}")
    print(f"Redis: {settings.redis_url}")
    print(f"Place search: {settings.photon_api_url} ({settings.service_country})")
    print(f"City centre: {settings.city_center_lat}, {settings.city_center_lon}")
    print(f"Metro radius: {settings.metro_radius_km} km")
    print(f"Auto-assign radius: {settings.auto_assign_radius_km} km")
    print(f"Zones file: {settings.zones_file or 'packaged dataset'}")
    print(f"Log Level: {settings.log_level}")
    print("=" * 60)


if __name__ == "__main__":
    """
    Print settings summary when run directly
    Useful for debugging configuration
    """
    print_settings_summary()
