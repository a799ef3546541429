# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Tile Sources
Clean interface over raster tile providers.
Swap OpenStreetMap for Mapbox (or any URL template) with zero
compositor changes: the compositor always speaks XYZ coordinates and
each source translates to its own scheme.

UrlTemplateTileSource — any {z}/{x}/{y} server (OSM preset, custom, TMS)
MapboxTileSource      — Mapbox Styles API raster tiles (@2x, 512px)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import httpx

from app.api.middleware.error_handler import InvalidConfigError
from app.config import Settings
from app.utils.logger import get_logger

log = get_logger(__name__)

OSM_URL_TEMPLATE = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
MAPBOX_TILE_URL = (
    "https://api.mapbox.com/styles/v1/{style}/tiles/256/{z}/{x}/{y}@2x"
    "?access_token={token}"
)


class TileScheme(str, Enum):
    XYZ = "xyz"   # y = 0 at the north edge (Google / OSM)
    TMS = "tms"   # y = 0 at the south edge


class TileUnavailableError(Exception):
    """A provider answered but returned no usable tile."""


# ─── Abstract Interface ──────────────────────────────────────────────────────

class TileSource(ABC):
    """
    Abstract base class for all tile providers.
    fetch_tile() always receives XYZ coordinates.
    """

    name: str = "tile-source"
    scheme: TileScheme = TileScheme.XYZ
    tile_size: int = 256
    min_zoom: int = 0
    max_zoom: int = 19

    @abstractmethod
    async def fetch_tile(self, z: int, x: int, y: int) -> bytes:
        """Return encoded tile bytes for XYZ tile (z, x, y)."""

    async def aclose(self) -> None:
        """Release network resources. No-op by default."""


# ─── HTTP Implementations ────────────────────────────────────────────────────

class HttpTileSource(TileSource):
    """Shared HTTP plumbing: one pooled AsyncClient per source."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        name: str,
        scheme: TileScheme = TileScheme.XYZ,
        tile_size: int = 256,
        min_zoom: int = 0,
        max_zoom: int = 19,
    ) -> None:
        self._client = client
        self.name = name
        self.scheme = scheme
        self.tile_size = tile_size
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom

    @abstractmethod
    def tile_url(self, z: int, x: int, y: int) -> str:
        """Provider URL for tile (z, x, y) in the provider's own scheme."""

    def provider_y(self, z: int, y: int) -> int:
        if self.scheme == TileScheme.TMS:
            return (2 ** z) - 1 - y
        return y

    async def fetch_tile(self, z: int, x: int, y: int) -> bytes:
        url = self.tile_url(z, x, self.provider_y(z, y))
        resp = await self._client.get(url)
        resp.raise_for_status()
        if not resp.content:
            raise TileUnavailableError(f"Empty tile body for {z}/{x}/{y} from {self.name}")
        return resp.content

    async def aclose(self) -> None:
        await self._client.aclose()


class UrlTemplateTileSource(HttpTileSource):
    """Tile server addressed by a '{z}/{x}/{y}' URL template."""

    def __init__(self, client: httpx.AsyncClient, url_template: str, **kwargs) -> None:
        for field in ("{z}", "{x}", "{y}"):
            if field not in url_template:
                raise InvalidConfigError(
                    f"Tile URL template must contain {field}: {url_template}"
                )
        kwargs.setdefault("name", "url-template")
        super().__init__(client, **kwargs)
        self.url_template = url_template

    def tile_url(self, z: int, x: int, y: int) -> str:
        return self.url_template.format(z=z, x=x, y=y)


class MapboxTileSource(HttpTileSource):
    """Mapbox Styles API raster tiles, requested at @2x (512px per XYZ cell)."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        style: str = "mapbox/streets-v12",
        **kwargs,
    ) -> None:
        if not access_token:
            raise InvalidConfigError("Mapbox tile provider requires MAPBOX_ACCESS_TOKEN.")
        kwargs.setdefault("name", "mapbox")
        kwargs.setdefault("tile_size", 512)
        kwargs.setdefault("max_zoom", 22)
        super().__init__(client, **kwargs)
        self.access_token = access_token
        self.style = style

    def tile_url(self, z: int, x: int, y: int) -> str:
        return MAPBOX_TILE_URL.format(
            style=self.style, z=z, x=x, y=y, token=self.access_token
        )


# ─── Factory ─────────────────────────────────────────────────────────────────

def make_tile_source(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> TileSource:
    """
    Build the configured tile source.
    Called once during application lifespan startup.
    """
    if client is None:
        client = httpx.AsyncClient(
            headers={"User-Agent": settings.tile_user_agent},
            timeout=httpx.Timeout(settings.tile_timeout_s),
            limits=httpx.Limits(max_connections=max(1, settings.tile_concurrency)),
            follow_redirects=True,
        )

    if settings.tile_provider == "mapbox":
        source: TileSource = MapboxTileSource(
            client,
            settings.mapbox_access_token,
            style=settings.mapbox_style,
            min_zoom=settings.tile_min_zoom,
        )
    elif settings.tile_provider == "custom":
        source = UrlTemplateTileSource(
            client,
            settings.tile_url_template,
            name="custom",
            scheme=TileScheme(settings.tile_scheme),
            tile_size=settings.tile_size_px,
            min_zoom=settings.tile_min_zoom,
            max_zoom=settings.tile_max_zoom,
        )
    else:
        source = UrlTemplateTileSource(
            client,
            OSM_URL_TEMPLATE,
            name="osm",
            min_zoom=settings.tile_min_zoom,
            max_zoom=min(settings.tile_max_zoom, 19),
        )

    log.info(
        "tile_source_ready",
        provider=source.name,
        scheme=source.scheme.value,
        tile_size=source.tile_size,
        zoom_range=(source.min_zoom, source.max_zoom),
    )
    return source
