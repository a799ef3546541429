# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Geo Module
Public API for coordinate mapping and the external geo collaborators.
"""

from app.modules.geo.coordinate_mapper import (
    BoundingBox,
    CoordinateMapper,
    format_coordinates,
    lonlat_to_tile_fraction,
    viewport_bbox,
)
from app.modules.geo.geocoder import (
    Geocoder,
    NominatimGeocoder,
    NullGeocoder,
    make_geocoder,
    resolve_location,
)
from app.modules.geo.tile_source import (
    MapboxTileSource,
    TileScheme,
    TileSource,
    TileUnavailableError,
    UrlTemplateTileSource,
    make_tile_source,
)

__all__ = [
    # Coordinate mapper
    "BoundingBox",
    "CoordinateMapper",
    "format_coordinates",
    "lonlat_to_tile_fraction",
    "viewport_bbox",
    # Geocoder
    "Geocoder",
    "NominatimGeocoder",
    "NullGeocoder",
    "make_geocoder",
    "resolve_location",
    # Tile sources
    "TileSource",
    "TileScheme",
    "TileUnavailableError",
    "UrlTemplateTileSource",
    "MapboxTileSource",
    "make_tile_source",
]
