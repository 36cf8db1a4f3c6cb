from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Paths
    cache_db_path: str = Field(default="app/data/easytrip_cache.db", alias="CACHE_DB_PATH")

    # ──────────────────────────────────────────────────────────────
    # Upstream EasyTrip API (place list source)
    # ──────────────────────────────────────────────────────────────

    easytrip_api_url: str = Field(default="http://localhost:5000/api", alias="EASYTRIP_API_URL")
    # Identity forwarded as X-User / X-User-Name. Empty means anonymous.
    easytrip_api_user: str = Field(default="", alias="EASYTRIP_API_USER")
    easytrip_api_user_name: str = Field(default="", alias="EASYTRIP_API_USER_NAME")
    easytrip_api_timeout_s: float = Field(default=15.0, alias="EASYTRIP_API_TIMEOUT_S")

    places_cache_ttl_s: int = Field(default=60 * 60, alias="PLACES_CACHE_TTL_S")  # 1h

    # ──────────────────────────────────────────────────────────────
    # Explorer
    # ──────────────────────────────────────────────────────────────

    explorer_radius_km: float = Field(default=300.0, alias="EXPLORER_RADIUS_KM")
    explorer_radius_policy: Literal["best_effort", "strict"] = Field(
        default="best_effort",
        alias="EXPLORER_RADIUS_POLICY",
    )

    # Default view (centre of India)
    explorer_default_center_lat: float = Field(default=20.5937, alias="EXPLORER_DEFAULT_CENTER_LAT")
    explorer_default_center_lng: float = Field(default=78.9629, alias="EXPLORER_DEFAULT_CENTER_LNG")
    explorer_default_zoom: float = Field(default=5, alias="EXPLORER_DEFAULT_ZOOM")
    explorer_located_zoom: float = Field(default=10, alias="EXPLORER_LOCATED_ZOOM")

    explorer_min_zoom: float = Field(default=6, alias="EXPLORER_MIN_ZOOM")
    explorer_max_zoom: float = Field(default=18, alias="EXPLORER_MAX_ZOOM")
    explorer_select_min_zoom: float = Field(default=14, alias="EXPLORER_SELECT_MIN_ZOOM")

    explorer_cluster_radius_px: int = Field(default=50, alias="EXPLORER_CLUSTER_RADIUS_PX")
    explorer_cluster_disable_zoom: float = Field(default=16, alias="EXPLORER_CLUSTER_DISABLE_ZOOM")

    explorer_viewport_width_px: int = Field(default=1024, alias="EXPLORER_VIEWPORT_WIDTH_PX")
    explorer_viewport_height_px: int = Field(default=768, alias="EXPLORER_VIEWPORT_HEIGHT_PX")

    explorer_max_sessions: int = Field(default=256, alias="EXPLORER_MAX_SESSIONS")

    # ──────────────────────────────────────────────────────────────
    # Map rendering
    # ──────────────────────────────────────────────────────────────

    map_tiles_url: str = Field(
        default="https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        alias="MAP_TILES_URL",
    )
    map_tiles_attribution: str = Field(
        default='&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors',
        alias="MAP_TILES_ATTRIBUTION",
    )
    # Free text shown before the tile attribution (e.g. operator name).
    map_attribution_prefix: str = Field(default="EasyTrip", alias="MAP_ATTRIBUTION_PREFIX")


settings = Settings()
