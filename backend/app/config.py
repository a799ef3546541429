# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Application Configuration
All settings are loaded from environment variables with print-shop
defaults (300 DPI, 0.02–20 MB JPEG envelope). Override via backend/.env
or environment.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

_MB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ─── Tile Source ─────────────────────────────────────────────────────────
    tile_provider: Literal["osm", "mapbox", "custom"] = "osm"
    tile_url_template: str = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
    tile_scheme: Literal["xyz", "tms"] = "xyz"
    tile_size_px: int = 256
    tile_min_zoom: int = 1
    tile_max_zoom: int = 19
    tile_user_agent: str = "EngraveMap/1.0 (print export)"
    mapbox_access_token: str = ""
    mapbox_style: str = "mapbox/streets-v12"

    # Network policy for tile fetches, the only retried stage
    tile_timeout_s: float = 10.0
    tile_retry_budget: int = 3
    tile_backoff_base_s: float = 0.25
    tile_concurrency: int = 8
    max_tiles_per_export: int = 400

    # ─── Reverse Geocoding ───────────────────────────────────────────────────
    geocoder_provider: Literal["nominatim", "none"] = "nominatim"
    nominatim_url: str = "https://nominatim.openstreetmap.org/reverse"
    geocoder_timeout_s: float = 5.0

    # ─── Viewport Geometry ───────────────────────────────────────────────────
    # Half-span of the viewport in degrees at the reference zoom
    reference_zoom: int = 10
    reference_span_deg: float = 0.1

    # ─── Print Resolution ────────────────────────────────────────────────────
    # Working canvas is rendered at base_dpi, then upscaled to target_dpi
    base_dpi: int = 100
    target_dpi: int = 300

    # ─── Size Envelope (Bounded Encoder) ─────────────────────────────────────
    # Two-level prints at 300 DPI encode to roughly 0.05–15 MB across the tiers
    export_min_mb: float = 0.02
    export_target_mb: Optional[float] = 1.0
    export_max_mb: float = 20.0
    jpeg_quality_min: int = 5
    jpeg_quality_max: int = 100
    encoder_max_iterations: int = 10
    # Fraction of the envelope width considered "close enough" to target
    encoder_target_tolerance: float = 0.05

    # ─── Commerce (Shopify Storefront) ───────────────────────────────────────
    shopify_api_version: str = "2024-10"
    shopify_timeout_s: float = 15.0
    variant_id_compact: str = "gid://shopify/ProductVariant/41068385009711"
    variant_id_standard: str = "gid://shopify/ProductVariant/41068385042479"
    variant_id_large: str = "gid://shopify/ProductVariant/41068385075247"

    # ─── Logging ─────────────────────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ─── Server ──────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    # ─── Derived helpers ─────────────────────────────────────────────────────
    @property
    def export_min_bytes(self) -> int:
        return int(self.export_min_mb * _MB)

    @property
    def export_max_bytes(self) -> int:
        return int(self.export_max_mb * _MB)

    @property
    def export_target_bytes(self) -> Optional[int]:
        if self.export_target_mb is None:
            return None
        return int(self.export_target_mb * _MB)

    @property
    def variant_ids(self) -> dict[str, str]:
        return {
            "compact": self.variant_id_compact,
            "standard": self.variant_id_standard,
            "large": self.variant_id_large,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached singleton Settings instance."""
    return Settings()
