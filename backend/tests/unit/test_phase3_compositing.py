# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
Phase 3 — Tile Compositor tests.
Tiles come from an in-memory TileSource so retry, timeout and
cancellation behaviour can be asserted without a network.
"""

import asyncio
from collections import Counter

import httpx
import numpy as np
import pytest

WATER = (170, 211, 223)
LAND = (242, 239, 233)


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _make_settings(**overrides):
    from app.config import Settings
    defaults = dict(
        _env_file=None,
        tile_timeout_s=5.0,
        tile_retry_budget=2,
        tile_backoff_base_s=0.0,
        tile_concurrency=4,
        max_tiles_per_export=400,
    )
    defaults.update(overrides)
    return Settings(**defaults)


def _make_tile(size=256, split=False) -> np.ndarray:
    tile = np.empty((size, size, 3), dtype=np.uint8)
    tile[:] = LAND
    if split:
        tile[:, : size // 2] = WATER
    return tile


def _make_source(**kwargs):
    from app.modules.geo.tile_source import TileSource, TileUnavailableError
    from app.utils.image_utils import rgb_to_png_bytes

    class FakeTileSource(TileSource):
        def __init__(self, fail_first=0, always_fail=(), hang=(), tile_px=256, split=False):
            self.name = "fake"
            self.tile_size = 256
            self.min_zoom = 1
            self.max_zoom = 19
            self.calls = []
            self.cancelled = 0
            self._fail_first = fail_first
            self._always_fail = set(always_fail)
            self._hang = set(hang)
            self._png = rgb_to_png_bytes(_make_tile(tile_px, split))

        async def fetch_tile(self, z, x, y):
            self.calls.append((z, x, y))
            if x in self._hang:
                try:
                    await asyncio.sleep(30)
                except asyncio.CancelledError:
                    self.cancelled += 1
                    raise
            if x in self._always_fail:
                raise TileUnavailableError(f"no tile {z}/{x}/{y}")
            attempts = sum(1 for c in self.calls if c == (z, x, y))
            if attempts <= self._fail_first:
                raise httpx.ConnectError("connection refused")
            return self._png

    return FakeTileSource(**kwargs)


def _two_tile_plan():
    from app.modules.compositing.tile_compositor import TilePlan
    return TilePlan(
        zoom=2, tile_size=256,
        x_min=0, x_max=1, y_min=0, y_max=0,
        fx0=0.0, fx1=2.0, fy0=0.0, fy1=1.0,
    )


def _paris_bbox(zoom=13, width=240, height=160):
    from app.models.order import ViewportSpec
    from app.modules.geo.coordinate_mapper import viewport_bbox
    vp = ViewportSpec(latitude=48.8566, longitude=2.3522, zoom=zoom)
    return viewport_bbox(vp, width, height)


# ─── Planning ────────────────────────────────────────────────────────────────

def test_plan_covers_bbox():
    from app.modules.compositing.tile_compositor import plan_tiles
    bbox = _paris_bbox()
    plan = plan_tiles(bbox, 240, _make_source(), max_tiles=400)
    assert plan.x_min <= plan.fx0 < plan.fx1 <= plan.x_max + 1
    assert plan.y_min <= plan.fy0 < plan.fy1 <= plan.y_max + 1
    assert plan.n_tiles == len(plan.coords())


def test_plan_zoom_gives_enough_source_pixels():
    from app.modules.compositing.tile_compositor import plan_tiles
    bbox = _paris_bbox()
    plan = plan_tiles(bbox, 240, _make_source(), max_tiles=400)
    across = (plan.fx1 - plan.fx0) * plan.tile_size
    assert across >= 240
    assert across / 2 < 240


def test_plan_lowers_zoom_to_respect_tile_limit():
    from app.modules.compositing.tile_compositor import plan_tiles
    bbox = _paris_bbox(width=1200, height=800)
    full = plan_tiles(bbox, 1200, _make_source(), max_tiles=400)
    limited = plan_tiles(bbox, 1200, _make_source(), max_tiles=4)
    assert limited.n_tiles <= 4
    assert limited.zoom < full.zoom


def test_plan_over_limit_raises():
    from app.api.middleware.error_handler import InvalidConfigError
    from app.modules.compositing.tile_compositor import plan_tiles
    with pytest.raises(InvalidConfigError):
        plan_tiles(_paris_bbox(), 240, _make_source(), max_tiles=0)


# ─── Assembly ────────────────────────────────────────────────────────────────

def test_assemble_single_tile_keeps_layout():
    from app.modules.compositing.tile_compositor import TilePlan, assemble_canvas
    plan = TilePlan(1, 256, 0, 0, 0, 0, 0.0, 1.0, 0.0, 1.0)
    canvas = assemble_canvas(plan, [_make_tile(split=True)], 128, 96)
    assert canvas.shape == (96, 128, 3)
    assert tuple(canvas[48, 10]) == WATER
    assert tuple(canvas[48, 120]) == LAND


def test_assemble_resizes_odd_tiles():
    from app.modules.compositing.tile_compositor import assemble_canvas
    tiles = [_make_tile(size=128), _make_tile(size=512)]
    canvas = assemble_canvas(_two_tile_plan(), tiles, 100, 50)
    assert canvas.shape == (50, 100, 3)
    assert (canvas == np.array(LAND, dtype=np.uint8)).all()


# ─── Fetching ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_compose_base_map_exact_size():
    from app.modules.compositing.tile_compositor import compose_base_map
    source = _make_source()
    canvas = await compose_base_map(_paris_bbox(), 240, 160, source, _make_settings())
    assert canvas.shape == (160, 240, 3)
    assert canvas.dtype == np.uint8
    assert (canvas == np.array(LAND, dtype=np.uint8)).all()
    assert len(source.calls) == len(set(source.calls))


@pytest.mark.asyncio
async def test_transient_failures_are_retried():
    from app.modules.compositing.tile_compositor import fetch_tiles
    source = _make_source(fail_first=2)
    tiles = await fetch_tiles(_two_tile_plan(), source, _make_settings(tile_retry_budget=2))
    assert len(tiles) == 2
    per_tile = Counter(source.calls)
    assert set(per_tile.values()) == {3}


@pytest.mark.asyncio
async def test_retry_budget_exhausted_fails_export():
    from app.api.middleware.error_handler import TileFetchFailedError
    from app.modules.compositing.tile_compositor import fetch_tiles
    source = _make_source(fail_first=5)
    with pytest.raises(TileFetchFailedError) as exc_info:
        await fetch_tiles(_two_tile_plan(), source, _make_settings(tile_retry_budget=1))
    assert "after 2 attempts" in exc_info.value.message
    assert "ConnectError" in exc_info.value.detail
    assert max(Counter(source.calls).values()) == 2


@pytest.mark.asyncio
async def test_timeout_counts_as_failed_attempt():
    from app.api.middleware.error_handler import TileFetchFailedError
    from app.modules.compositing.tile_compositor import fetch_tiles
    source = _make_source(hang={0, 1})
    settings = _make_settings(tile_timeout_s=0.01, tile_retry_budget=2)
    with pytest.raises(TileFetchFailedError):
        await fetch_tiles(_two_tile_plan(), source, settings)
    assert max(Counter(source.calls).values()) == 3


@pytest.mark.asyncio
async def test_failure_cancels_in_flight_fetches():
    from app.api.middleware.error_handler import TileFetchFailedError
    from app.modules.compositing.tile_compositor import fetch_tiles
    source = _make_source(always_fail={0}, hang={1})
    settings = _make_settings(tile_timeout_s=60.0, tile_retry_budget=0)
    with pytest.raises(TileFetchFailedError):
        await fetch_tiles(_two_tile_plan(), source, settings)
    assert source.cancelled == 1


@pytest.mark.asyncio
async def test_http_errors_fail_after_budget():
    from app.api.middleware.error_handler import TileFetchFailedError
    from app.modules.compositing.tile_compositor import fetch_tiles
    from app.modules.geo.tile_source import UrlTemplateTileSource
    hits = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(request.url.path)
        return httpx.Response(503)

    source = UrlTemplateTileSource(
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        "https://tiles.test/{z}/{x}/{y}.png",
    )
    with pytest.raises(TileFetchFailedError) as exc_info:
        await fetch_tiles(_two_tile_plan(), source, _make_settings(tile_retry_budget=1))
    await source.aclose()
    assert "HTTPStatusError" in exc_info.value.detail
    assert max(Counter(hits).values()) == 2


@pytest.mark.asyncio
async def test_antimeridian_tiles_wrap():
    from app.modules.compositing.tile_compositor import compose_base_map, plan_tiles
    from app.modules.geo.coordinate_mapper import BoundingBox
    bbox = BoundingBox(north=0.05, south=-0.05, east=180.05, west=179.95)
    source = _make_source()
    plan = plan_tiles(bbox, 64, source, max_tiles=400)
    n = 2 ** plan.zoom

    canvas = await compose_base_map(bbox, 64, 64, source, _make_settings())

    assert canvas.shape == (64, 64, 3)
    xs = {x for _, x, _ in source.calls}
    assert xs == {n - 1, 0}
