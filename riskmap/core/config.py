"""
Application configuration loaded from environment variables.

Uses pydantic-settings for type-safe env var parsing with automatic
.env file loading. Every timeout, default region and endpoint used by the
location / heatmap pipeline lives here so a deployment can retune them
without touching code.

To extend: add new fields here and document them in .env.example.
See https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ─── Core ──────────────────────────────────────────────────────
    environment: str = "development"
    debug: bool = False

    # ─── CORS ──────────────────────────────────────────────────────
    # Comma-separated allowed origins for the mobile web build / dev tools.
    cors_origins_str: str = "http://localhost:8081,http://localhost:19006"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins_str.split(",") if o.strip()]

    # ─── Remote map configuration service ─────────────────────────
    # The service answering GET {base}/map/config[?lat=..&lng=..].
    map_config_base_url: str = "http://localhost:8000"
    config_timeout_seconds: float = 5.0
    # Shorter timeout for the resolver's "name only" lookup.
    name_lookup_timeout_seconds: float = 3.0
    config_rate_limit: str = "60/minute"

    # ─── Fallback map region ───────────────────────────────────────
    # Public tiles + NYC, ~10 km viewport.
    default_tile_server: str = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
    default_latitude: float = 40.7128
    default_longitude: float = -74.0060
    default_latitude_delta: float = 0.0922
    default_longitude_delta: float = 0.0421

    # ─── Device location ───────────────────────────────────────────
    # Root initializer waits less than a screen so app start is never blocked.
    root_position_timeout_seconds: float = 3.0
    screen_position_timeout_seconds: float = 5.0
    position_max_age_seconds: float = 10.0

    # ─── Reverse geocoding ─────────────────────────────────────────
    # OpenStreetMap Nominatim (free, no key, 1 req/s fair use).
    geocoder_url: str = "https://nominatim.openstreetmap.org/reverse"
    geocoder_user_agent: str = "RiskMap/0.1"
    geocode_timeout_seconds: float = 5.0

    # ─── Feeds ─────────────────────────────────────────────────────
    # Empty string disables remote refresh; the stores then only hold
    # whatever was pushed into them.
    signal_feed_url: str = ""
    report_feed_url: str = ""
    feed_timeout_seconds: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Don't fail on unknown env vars
    )


# Module-level singleton — import this everywhere instead of instantiating Settings()
settings = Settings()
