# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Reverse Geocoding
City/country labels for a viewport, used only for human-readable cart
attributes. Failures never fail an export: resolve_location() degrades
to empty labels and logs a warning.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from app.api.middleware.error_handler import GeocodeUnavailableError
from app.config import Settings
from app.models.cart import LocationLabel
from app.modules.geo.coordinate_mapper import format_coordinates
from app.utils.logger import get_logger

log = get_logger(__name__)

# Nominatim address fields, most to least specific
_CITY_FIELDS = ("city", "town", "village", "municipality", "county")


class Geocoder(ABC):
    @abstractmethod
    async def reverse_geocode(self, lat: float, lng: float) -> LocationLabel:
        """Return upper-cased city / country for a coordinate."""

    async def aclose(self) -> None:
        """Release network resources. No-op by default."""


class NullGeocoder(Geocoder):
    """Used when geocoding is disabled: always empty labels."""

    async def reverse_geocode(self, lat: float, lng: float) -> LocationLabel:
        return LocationLabel(coordinates=format_coordinates(lat, lng))


class NominatimGeocoder(Geocoder):
    """OpenStreetMap Nominatim /reverse endpoint."""

    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    async def reverse_geocode(self, lat: float, lng: float) -> LocationLabel:
        params = {
            "format": "json",
            "lat": f"{lat}",
            "lon": f"{lng}",
            "zoom": "10",
            "addressdetails": "1",
        }
        try:
            resp = await self._client.get(self._url, params=params)
            resp.raise_for_status()
            return parse_nominatim(resp.json(), lat, lng)
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as exc:
            raise GeocodeUnavailableError(
                "Reverse geocoding failed.", detail=f"{type(exc).__name__}: {exc}"
            ) from exc

    async def aclose(self) -> None:
        await self._client.aclose()


def parse_nominatim(data: dict, lat: float, lng: float) -> LocationLabel:
    """
    Extract city/country from a Nominatim response.
    Falls back to the first/last display_name parts when address is sparse.
    Raises TypeError when the payload is not a JSON object.
    """
    if not isinstance(data, dict):
        raise TypeError(f"expected a JSON object, got {type(data).__name__}")
    address = data.get("address") or {}
    city = next((address[f] for f in _CITY_FIELDS if address.get(f)), "")
    country = address.get("country", "")

    if not city and data.get("display_name"):
        parts = data["display_name"].split(", ")
        city = parts[0]
        country = country or parts[-1]

    return LocationLabel(
        city=city.upper(),
        country=country.upper(),
        coordinates=format_coordinates(lat, lng),
    )


async def resolve_location(geocoder: Geocoder, lat: float, lng: float) -> LocationLabel:
    """Reverse-geocode, degrading to coordinate-only labels on failure."""
    try:
        return await geocoder.reverse_geocode(lat, lng)
    except GeocodeUnavailableError as exc:
        log.warning("geocode_degraded", lat=lat, lng=lng, error=exc.message, detail=exc.detail)
        return LocationLabel(coordinates=format_coordinates(lat, lng))


def make_geocoder(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> Geocoder:
    if settings.geocoder_provider == "none":
        return NullGeocoder()
    if client is None:
        client = httpx.AsyncClient(
            headers={"User-Agent": settings.tile_user_agent},
            timeout=httpx.Timeout(settings.geocoder_timeout_s),
        )
    return NominatimGeocoder(client, settings.nominatim_url)
