# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — GET /geocode/reverse
City / country label for a coordinate. Unlike the export path, a
geocoder failure here is reported to the caller (503).
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from app.dependencies import GeocoderDep
from app.models.cart import LocationLabel

router = APIRouter(tags=["geocode"])


@router.get("/geocode/reverse", response_model=LocationLabel, summary="Reverse geocode")
async def reverse_geocode(
    geocoder: GeocoderDep,
    lat: float = Query(..., ge=-90.0, le=90.0),
    lng: float = Query(..., ge=-180.0, le=180.0),
) -> LocationLabel:
    return await geocoder.reverse_geocode(lat, lng)
