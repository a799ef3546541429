# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Coordinate Mapper
Single source of truth for the pixel space of one export.

  viewport (lat, lng, zoom) ──► geographic bounding box
  bounding box ──────────────► Web-Mercator tile fractions (compositor)
  (x%, y%) anchors ──────────► integer canvas pixels (overlay renderer)

Longitude span halves with every zoom step:
    half_span_lng = reference_span / 2^(zoom − reference_zoom)
    half_span_y   = half_span_lng / 360 · height / width   (Mercator units)
The compositor requests and crops tiles from this same box, so overlays
stay pinned to the map at every zoom.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from app.api.middleware.error_handler import InvalidConfigError, UnsupportedZoomError
from app.models.order import ViewportSpec

# Web-Mercator latitude limit (square world at zoom 0)
MAX_MERCATOR_LAT = 85.05112878


@dataclass(frozen=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    @property
    def lng_span(self) -> float:
        return self.east - self.west

    @property
    def lat_span(self) -> float:
        return self.north - self.south

    @property
    def center(self) -> tuple[float, float]:
        """(lat, lng) of the box centre."""
        return ((self.north + self.south) / 2, (self.east + self.west) / 2)


# ─── Web-Mercator helpers ────────────────────────────────────────────────────

def lng_to_unit_x(lng: float) -> float:
    """Longitude → normalised Mercator x in [0, 1) (unwrapped outside ±180)."""
    return (lng + 180.0) / 360.0


def lat_to_unit_y(lat: float) -> float:
    """Latitude → normalised Mercator y, 0 at the north edge of the world."""
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    rad = math.radians(lat)
    return (1.0 - math.log(math.tan(rad) + 1.0 / math.cos(rad)) / math.pi) / 2.0


def unit_x_to_lng(x: float) -> float:
    return x * 360.0 - 180.0


def unit_y_to_lat(y: float) -> float:
    return math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * y))))


def lonlat_to_tile_fraction(lng: float, lat: float, zoom: int) -> tuple[float, float]:
    """Fractional XYZ tile coordinates of a point at the given tile zoom."""
    n = 2 ** zoom
    return lng_to_unit_x(lng) * n, lat_to_unit_y(lat) * n


def viewport_bbox(
    viewport: ViewportSpec,
    width: int,
    height: int,
    reference_zoom: int = 10,
    reference_span_deg: float = 0.1,
) -> BoundingBox:
    half_lng = reference_span_deg / (2 ** (viewport.zoom - reference_zoom))
    west = viewport.longitude - half_lng
    east = viewport.longitude + half_lng
    # Vertical half-span in Mercator units so the tile crop keeps the canvas aspect
    half_uy = (lng_to_unit_x(east) - lng_to_unit_x(west)) / 2 * height / width
    cy = lat_to_unit_y(viewport.latitude)
    return BoundingBox(
        north=min(unit_y_to_lat(cy - half_uy), MAX_MERCATOR_LAT),
        south=max(unit_y_to_lat(cy + half_uy), -MAX_MERCATOR_LAT),
        east=east,
        west=west,
    )


def format_coordinates(lat: float, lng: float) -> str:
    """Human-readable label, e.g. '48.8566°N, 2.3522°E'."""
    ns = "N" if lat >= 0 else "S"
    ew = "E" if lng >= 0 else "W"
    return f"{abs(lat):.4f}°{ns}, {abs(lng):.4f}°{ew}"


# ─── Mapper ──────────────────────────────────────────────────────────────────

class CoordinateMapper:
    """
    Maps one viewport onto a width×height canvas.

    Args:
        viewport:           Finalised map placement.
        width, height:      Canvas size in pixels (working resolution).
        min_zoom, max_zoom: Zoom range supported by the tile source.
        reference_zoom:     Zoom at which the half-span equals reference_span_deg.
        reference_span_deg: Half-span in degrees at reference_zoom.

    Raises:
        UnsupportedZoomError: viewport.zoom outside [min_zoom, max_zoom].
        InvalidConfigError:   non-positive canvas size.
    """

    def __init__(
        self,
        viewport: ViewportSpec,
        width: int,
        height: int,
        *,
        min_zoom: int,
        max_zoom: int,
        reference_zoom: int = 10,
        reference_span_deg: float = 0.1,
    ) -> None:
        if width <= 0 or height <= 0:
            raise InvalidConfigError(f"Canvas size must be positive, got {width}×{height}.")
        if not (min_zoom <= viewport.zoom <= max_zoom):
            raise UnsupportedZoomError(
                f"Zoom {viewport.zoom} is outside the supported range "
                f"{min_zoom}–{max_zoom}."
            )
        self.viewport = viewport
        self.width = width
        self.height = height
        self.bbox = viewport_bbox(
            viewport, width, height, reference_zoom, reference_span_deg
        )
        self._x0 = lng_to_unit_x(self.bbox.west)
        self._x1 = lng_to_unit_x(self.bbox.east)
        self._y0 = lat_to_unit_y(self.bbox.north)
        self._y1 = lat_to_unit_y(self.bbox.south)

    # ── Percentage anchors ──

    def percent_to_pixel(self, x_pct: float, y_pct: float) -> tuple[int, int]:
        px = int(round(x_pct / 100.0 * (self.width - 1)))
        py = int(round(y_pct / 100.0 * (self.height - 1)))
        return (
            min(max(px, 0), self.width - 1),
            min(max(py, 0), self.height - 1),
        )

    def pixel_to_percent(self, px: float, py: float) -> tuple[float, float]:
        x = px / (self.width - 1) * 100.0 if self.width > 1 else 0.0
        y = py / (self.height - 1) * 100.0 if self.height > 1 else 0.0
        return x, y

    @property
    def percent_epsilon(self) -> float:
        """Worst-case percent error of a percent → pixel → percent round trip."""
        return 50.0 / max(1, min(self.width, self.height) - 1)

    # ── Geographic diagnostics ──

    def pixel_to_lonlat(self, px: float, py: float) -> tuple[float, float]:
        ux = self._x0 + (px / self.width) * (self._x1 - self._x0)
        uy = self._y0 + (py / self.height) * (self._y1 - self._y0)
        return unit_x_to_lng(ux), unit_y_to_lat(uy)

    def lonlat_to_pixel(self, lng: float, lat: float) -> tuple[float, float]:
        px = (lng_to_unit_x(lng) - self._x0) / (self._x1 - self._x0) * self.width
        py = (lat_to_unit_y(lat) - self._y0) / (self._y1 - self._y0) * self.height
        return px, py
