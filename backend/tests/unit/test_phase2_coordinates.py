# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
Phase 2 — Coordinate mapping, tile source and geocoder tests.
HTTP collaborators are exercised through httpx.MockTransport; no network.
"""

import json

import httpx
import numpy as np
import pytest

from app.models.order import ViewportSpec


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _paris(zoom: int = 13) -> ViewportSpec:
    return ViewportSpec(latitude=48.8566, longitude=2.3522, zoom=zoom)


def _make_mapper(width=1200, height=800, zoom=13, min_zoom=1, max_zoom=19):
    from app.modules.geo.coordinate_mapper import CoordinateMapper
    return CoordinateMapper(
        _paris(zoom), width, height, min_zoom=min_zoom, max_zoom=max_zoom
    )


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ─── Bounding Box ────────────────────────────────────────────────────────────

def test_bbox_at_reference_zoom():
    from app.modules.geo.coordinate_mapper import lat_to_unit_y, lng_to_unit_x, viewport_bbox
    bbox = viewport_bbox(_paris(10), 1200, 800)
    assert bbox.lng_span == pytest.approx(0.2)
    unit_w = lng_to_unit_x(bbox.east) - lng_to_unit_x(bbox.west)
    unit_h = lat_to_unit_y(bbox.south) - lat_to_unit_y(bbox.north)
    assert unit_h == pytest.approx(unit_w * 800 / 1200)
    lat, lng = bbox.center
    assert lat == pytest.approx(48.8566, abs=1e-3)
    assert lng == pytest.approx(2.3522)


def test_bbox_span_halves_per_zoom_step():
    from app.modules.geo.coordinate_mapper import viewport_bbox
    spans = [viewport_bbox(_paris(z), 1200, 800).lng_span for z in range(8, 15)]
    for wide, narrow in zip(spans, spans[1:]):
        assert narrow == pytest.approx(wide / 2)


@pytest.mark.parametrize("latitude", [0.0, 48.8566, 60.0, -64.1])
@pytest.mark.parametrize("width, height", [(1200, 800), (500, 500), (400, 900)])
def test_tile_crop_keeps_canvas_aspect(latitude, width, height):
    from app.modules.compositing.tile_compositor import _plan_at
    from app.modules.geo.coordinate_mapper import viewport_bbox
    vp = ViewportSpec(latitude=latitude, longitude=2.3522, zoom=12)
    plan = _plan_at(viewport_bbox(vp, width, height), 15, 256)
    crop_aspect = (plan.fx1 - plan.fx0) / (plan.fy1 - plan.fy0)
    assert crop_aspect == pytest.approx(width / height, rel=1e-6)


def test_bbox_stretches_in_degrees_away_from_equator():
    from app.modules.geo.coordinate_mapper import viewport_bbox
    equator = viewport_bbox(ViewportSpec(latitude=0.0, longitude=0.0, zoom=12), 500, 500)
    north = viewport_bbox(ViewportSpec(latitude=60.0, longitude=0.0, zoom=12), 500, 500)
    assert equator.lat_span == pytest.approx(equator.lng_span, rel=1e-4)
    assert north.lat_span == pytest.approx(north.lng_span * 0.5, rel=1e-3)


def test_bbox_clamped_to_mercator_limit():
    from app.modules.geo.coordinate_mapper import MAX_MERCATOR_LAT, viewport_bbox
    vp = ViewportSpec(latitude=85.0, longitude=0.0, zoom=3)
    bbox = viewport_bbox(vp, 1200, 800)
    assert bbox.north == MAX_MERCATOR_LAT


def test_lonlat_to_tile_fraction_origin():
    from app.modules.geo.coordinate_mapper import lonlat_to_tile_fraction
    fx, fy = lonlat_to_tile_fraction(0.0, 0.0, 1)
    assert fx == pytest.approx(1.0)
    assert fy == pytest.approx(1.0)


def test_format_coordinates():
    from app.modules.geo.coordinate_mapper import format_coordinates
    assert format_coordinates(48.8566, 2.3522) == "48.8566°N, 2.3522°E"
    assert format_coordinates(-33.8688, -70.5) == "33.8688°S, 70.5000°W"


# ─── Mapper ──────────────────────────────────────────────────────────────────

def test_mapper_rejects_zoom_outside_source_range():
    from app.api.middleware.error_handler import UnsupportedZoomError
    with pytest.raises(UnsupportedZoomError):
        _make_mapper(zoom=20, max_zoom=19)
    with pytest.raises(UnsupportedZoomError):
        _make_mapper(zoom=2, min_zoom=3)


def test_mapper_rejects_empty_canvas():
    from app.api.middleware.error_handler import InvalidConfigError
    with pytest.raises(InvalidConfigError):
        _make_mapper(width=0)


def test_percent_to_pixel_corners():
    m = _make_mapper(width=1200, height=800)
    assert m.percent_to_pixel(0, 0) == (0, 0)
    assert m.percent_to_pixel(100, 100) == (1199, 799)
    assert m.percent_to_pixel(100, 0) == (1199, 0)


def test_percent_pixel_round_trip_within_epsilon():
    for width, height in [(1200, 800), (240, 160), (37, 53)]:
        m = _make_mapper(width=width, height=height)
        for x in np.linspace(0, 100, 41):
            for y in np.linspace(0, 100, 41):
                px, py = m.percent_to_pixel(x, y)
                bx, by = m.pixel_to_percent(px, py)
                assert abs(bx - x) <= m.percent_epsilon + 1e-9
                assert abs(by - y) <= m.percent_epsilon + 1e-9


def test_centre_maps_to_canvas_centre():
    m = _make_mapper(width=1200, height=800)
    px, py = m.lonlat_to_pixel(2.3522, 48.8566)
    assert px == pytest.approx(600.0)
    assert py == pytest.approx(400.0, abs=1.0)


def test_pixel_lonlat_round_trip():
    m = _make_mapper()
    lng, lat = m.pixel_to_lonlat(123.0, 456.0)
    px, py = m.lonlat_to_pixel(lng, lat)
    assert px == pytest.approx(123.0, abs=1e-6)
    assert py == pytest.approx(456.0, abs=1e-6)


# ─── Tile Sources ────────────────────────────────────────────────────────────

def test_url_template_requires_placeholders():
    from app.api.middleware.error_handler import InvalidConfigError
    from app.modules.geo.tile_source import UrlTemplateTileSource
    with pytest.raises(InvalidConfigError):
        UrlTemplateTileSource(_mock_client(lambda r: httpx.Response(200)), "https://t/{z}/{x}.png")


def test_tms_scheme_flips_y():
    from app.modules.geo.tile_source import TileScheme, UrlTemplateTileSource
    src = UrlTemplateTileSource(
        _mock_client(lambda r: httpx.Response(200)),
        "https://t/{z}/{x}/{y}.png",
        scheme=TileScheme.TMS,
    )
    assert src.provider_y(2, 0) == 3
    assert src.provider_y(2, 3) == 0


def test_mapbox_requires_token():
    from app.api.middleware.error_handler import InvalidConfigError
    from app.modules.geo.tile_source import MapboxTileSource
    with pytest.raises(InvalidConfigError):
        MapboxTileSource(_mock_client(lambda r: httpx.Response(200)), "")


def test_mapbox_tile_url():
    from app.modules.geo.tile_source import MapboxTileSource
    src = MapboxTileSource(_mock_client(lambda r: httpx.Response(200)), "pk.abc")
    url = src.tile_url(5, 6, 7)
    assert "styles/v1/mapbox/streets-v12/tiles/256/5/6/7@2x" in url
    assert url.endswith("access_token=pk.abc")
    assert src.tile_size == 512


@pytest.mark.asyncio
async def test_url_template_fetch_tile():
    from app.modules.geo.tile_source import UrlTemplateTileSource
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=b"PNGDATA")

    src = UrlTemplateTileSource(_mock_client(handler), "https://tiles.test/{z}/{x}/{y}.png")
    data = await src.fetch_tile(3, 4, 5)
    await src.aclose()
    assert data == b"PNGDATA"
    assert seen == ["https://tiles.test/3/4/5.png"]


@pytest.mark.asyncio
async def test_empty_tile_body_is_unavailable():
    from app.modules.geo.tile_source import TileUnavailableError, UrlTemplateTileSource
    src = UrlTemplateTileSource(
        _mock_client(lambda r: httpx.Response(200, content=b"")),
        "https://tiles.test/{z}/{x}/{y}.png",
    )
    with pytest.raises(TileUnavailableError):
        await src.fetch_tile(1, 0, 0)


@pytest.mark.asyncio
async def test_tile_http_error_raises():
    from app.modules.geo.tile_source import UrlTemplateTileSource
    src = UrlTemplateTileSource(
        _mock_client(lambda r: httpx.Response(503)),
        "https://tiles.test/{z}/{x}/{y}.png",
    )
    with pytest.raises(httpx.HTTPStatusError):
        await src.fetch_tile(1, 0, 0)


def test_make_tile_source_presets():
    from app.config import Settings
    from app.modules.geo.tile_source import make_tile_source

    client = _mock_client(lambda r: httpx.Response(200))
    osm = make_tile_source(Settings(_env_file=None), client)
    assert osm.name == "osm"
    assert osm.max_zoom == 19

    custom = make_tile_source(
        Settings(
            _env_file=None,
            tile_provider="custom",
            tile_url_template="https://x/{z}/{x}/{y}.png",
            tile_scheme="tms",
            tile_max_zoom=16,
        ),
        client,
    )
    assert custom.name == "custom"
    assert custom.scheme.value == "tms"
    assert custom.max_zoom == 16


# ─── Geocoder ────────────────────────────────────────────────────────────────

def test_parse_nominatim_prefers_city_fields():
    from app.modules.geo.geocoder import parse_nominatim
    label = parse_nominatim(
        {"address": {"town": "Giverny", "county": "Eure", "country": "France"}},
        49.07, 1.53,
    )
    assert label.city == "GIVERNY"
    assert label.country == "FRANCE"
    assert label.coordinates == "49.0700°N, 1.5300°E"


def test_parse_nominatim_display_name_fallback():
    from app.modules.geo.geocoder import parse_nominatim
    label = parse_nominatim({"display_name": "Somewhere, Region, Chile"}, -33.0, -70.0)
    assert label.city == "SOMEWHERE"
    assert label.country == "CHILE"


@pytest.mark.asyncio
async def test_nominatim_reverse_geocode():
    from app.modules.geo.geocoder import NominatimGeocoder
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(dict(request.url.params))
        return httpx.Response(
            200,
            content=json.dumps({"address": {"city": "Paris", "country": "France"}}),
        )

    geo = NominatimGeocoder(_mock_client(handler), "https://nominatim.test/reverse")
    label = await geo.reverse_geocode(48.8566, 2.3522)
    await geo.aclose()
    assert (label.city, label.country) == ("PARIS", "FRANCE")
    assert seen["format"] == "json"
    assert seen["addressdetails"] == "1"
    assert seen["lat"] == "48.8566"


@pytest.mark.asyncio
async def test_nominatim_failure_raises_unavailable():
    from app.api.middleware.error_handler import GeocodeUnavailableError
    from app.modules.geo.geocoder import NominatimGeocoder
    geo = NominatimGeocoder(
        _mock_client(lambda r: httpx.Response(500)), "https://nominatim.test/reverse"
    )
    with pytest.raises(GeocodeUnavailableError):
        await geo.reverse_geocode(0.0, 0.0)


@pytest.mark.asyncio
async def test_resolve_location_degrades():
    from app.modules.geo.geocoder import NominatimGeocoder, resolve_location
    geo = NominatimGeocoder(
        _mock_client(lambda r: httpx.Response(500)), "https://nominatim.test/reverse"
    )
    label = await resolve_location(geo, 48.8566, 2.3522)
    assert label.city == ""
    assert label.country == ""
    assert label.coordinates == "48.8566°N, 2.3522°E"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        [{"address": {"city": "Paris"}}],
        "Paris",
        {"address": "Paris"},
        {"display_name": 42},
    ],
)
async def test_malformed_nominatim_payload_degrades(body):
    from app.api.middleware.error_handler import GeocodeUnavailableError
    from app.modules.geo.geocoder import NominatimGeocoder, resolve_location

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps(body))

    geo = NominatimGeocoder(_mock_client(handler), "https://nominatim.test/reverse")
    with pytest.raises(GeocodeUnavailableError):
        await geo.reverse_geocode(48.8566, 2.3522)
    label = await resolve_location(geo, 48.8566, 2.3522)
    assert (label.city, label.country) == ("", "")
    assert label.coordinates == "48.8566°N, 2.3522°E"


@pytest.mark.asyncio
async def test_null_geocoder():
    from app.config import Settings
    from app.modules.geo.geocoder import NullGeocoder, make_geocoder
    geo = make_geocoder(Settings(_env_file=None, geocoder_provider="none"))
    assert isinstance(geo, NullGeocoder)
    label = await geo.reverse_geocode(1.0, 1.0)
    assert label.city == ""
