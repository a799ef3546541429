# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Tile Compositor
Assembles the base map canvas for one export from an external tile source.

  1. Plan     — pick the tile zoom giving ≥ canvas width pixels across the
                bounding box, then the minimal covering XYZ tile range
  2. Fetch    — all tiles concurrently (bounded by a semaphore), each with
                a per-attempt timeout and exponential-backoff retries
  3. Mosaic   — tiles pasted edge to edge into one RGB array
  4. Crop     — fractional bbox edges cut out and resampled to exactly
                width × height

Any tile still missing after its retry budget fails the whole export
with TileFetchFailedError and cancels the fetches still in flight.
A base map with holes would be engraved incorrectly, so none is returned.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass

import httpx
import numpy as np

from app.api.middleware.error_handler import InvalidConfigError, TileFetchFailedError
from app.config import Settings
from app.modules.geo.coordinate_mapper import (
    BoundingBox,
    lng_to_unit_x,
    lonlat_to_tile_fraction,
)
from app.modules.geo.tile_source import TileSource, TileUnavailableError
from app.utils.image_utils import bytes_to_rgb, crop_clamped, resize_exact
from app.utils.logger import get_logger

log = get_logger(__name__)

# Failures worth another attempt: transport errors, HTTP status errors,
# empty bodies, timeouts and undecodable payloads
_RETRYABLE = (
    httpx.HTTPError,
    TileUnavailableError,
    asyncio.TimeoutError,
    ValueError,
)


@dataclass(frozen=True)
class TilePlan:
    zoom: int
    tile_size: int
    x_min: int
    x_max: int
    y_min: int
    y_max: int
    # Fractional bbox edges in tile units at `zoom`
    fx0: float
    fx1: float
    fy0: float
    fy1: float

    @property
    def cols(self) -> int:
        return self.x_max - self.x_min + 1

    @property
    def rows(self) -> int:
        return self.y_max - self.y_min + 1

    @property
    def n_tiles(self) -> int:
        return self.cols * self.rows

    def coords(self) -> list[tuple[int, int]]:
        """Row-major (x, y) list of every covering tile."""
        return [
            (x, y)
            for y in range(self.y_min, self.y_max + 1)
            for x in range(self.x_min, self.x_max + 1)
        ]


# ─── Step 1: Plan ────────────────────────────────────────────────────────────

def _plan_at(bbox: BoundingBox, zoom: int, tile_size: int) -> TilePlan:
    fx0, fy0 = lonlat_to_tile_fraction(bbox.west, bbox.north, zoom)
    fx1, fy1 = lonlat_to_tile_fraction(bbox.east, bbox.south, zoom)
    n = 2 ** zoom
    x_min = math.floor(fx0)
    x_max = max(x_min, math.ceil(fx1) - 1)
    y_min = max(0, math.floor(fy0))
    y_max = min(n - 1, max(y_min, math.ceil(fy1) - 1))
    return TilePlan(zoom, tile_size, x_min, x_max, y_min, y_max, fx0, fx1, fy0, fy1)


def plan_tiles(
    bbox: BoundingBox,
    width: int,
    source: TileSource,
    max_tiles: int,
) -> TilePlan:
    """
    Choose the tile zoom and covering range for a bbox rendered at `width` px.
    Zoom is the smallest giving at least `width` source pixels across the box,
    clamped to the source range and lowered while the tile count exceeds
    max_tiles.
    """
    unit_width = lng_to_unit_x(bbox.east) - lng_to_unit_x(bbox.west)
    if unit_width <= 0:
        raise InvalidConfigError("Bounding box has no longitudinal extent.")

    zoom = math.ceil(math.log2(width / (source.tile_size * unit_width)))
    zoom = min(max(zoom, source.min_zoom), source.max_zoom)

    plan = _plan_at(bbox, zoom, source.tile_size)
    while plan.n_tiles > max_tiles and zoom > source.min_zoom:
        zoom -= 1
        plan = _plan_at(bbox, zoom, source.tile_size)

    if plan.n_tiles > max_tiles:
        raise InvalidConfigError(
            f"Viewport needs {plan.n_tiles} tiles, above the limit of {max_tiles}."
        )
    return plan


# ─── Step 2: Fetch ───────────────────────────────────────────────────────────

async def _fetch_tile_with_retry(
    source: TileSource,
    zoom: int,
    x: int,
    y: int,
    settings: Settings,
    semaphore: asyncio.Semaphore,
) -> np.ndarray:
    wrapped_x = x % (2 ** zoom)
    attempts = settings.tile_retry_budget + 1
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            async with semaphore:
                data = await asyncio.wait_for(
                    source.fetch_tile(zoom, wrapped_x, y),
                    timeout=settings.tile_timeout_s,
                )
            return bytes_to_rgb(data)
        except _RETRYABLE as exc:
            last_error = exc
            if attempt == attempts:
                break
            delay = settings.tile_backoff_base_s * (2 ** (attempt - 1))
            log.warning(
                "tile_fetch_retry",
                tile=f"{zoom}/{wrapped_x}/{y}",
                attempt=attempt,
                delay_s=delay,
                error=f"{type(exc).__name__}: {exc}",
            )
            await asyncio.sleep(delay)

    raise TileFetchFailedError(
        f"Tile {zoom}/{wrapped_x}/{y} from '{source.name}' unavailable "
        f"after {attempts} attempts.",
        detail=f"{type(last_error).__name__}: {last_error}",
    )


async def fetch_tiles(
    plan: TilePlan,
    source: TileSource,
    settings: Settings,
) -> list[np.ndarray]:
    """
    Fetch every tile of the plan concurrently, in plan.coords() order.
    The first failure cancels every fetch still in flight.
    """
    semaphore = asyncio.Semaphore(max(1, settings.tile_concurrency))
    tasks = [
        asyncio.create_task(
            _fetch_tile_with_retry(source, plan.zoom, x, y, settings, semaphore)
        )
        for x, y in plan.coords()
    ]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


# ─── Steps 3 + 4: Mosaic and Crop ────────────────────────────────────────────

def assemble_canvas(
    plan: TilePlan,
    tiles: list[np.ndarray],
    width: int,
    height: int,
) -> np.ndarray:
    """Paste tiles into a mosaic, cut out the bbox, resample to width×height."""
    ts = plan.tile_size
    mosaic = np.zeros((plan.rows * ts, plan.cols * ts, 3), dtype=np.uint8)

    for (x, y), tile in zip(plan.coords(), tiles):
        if tile.shape[:2] != (ts, ts):
            tile = resize_exact(tile, ts, ts)
        r, c = y - plan.y_min, x - plan.x_min
        mosaic[r * ts:(r + 1) * ts, c * ts:(c + 1) * ts] = tile

    left = (plan.fx0 - plan.x_min) * ts
    right = (plan.fx1 - plan.x_min) * ts
    top = (plan.fy0 - plan.y_min) * ts
    bottom = (plan.fy1 - plan.y_min) * ts
    crop = crop_clamped(
        mosaic,
        math.floor(left), math.floor(top),
        math.ceil(right), math.ceil(bottom),
    )
    if crop.size == 0:
        raise InvalidConfigError("Bounding box does not intersect the tile mosaic.")
    return resize_exact(crop, width, height)


async def compose_base_map(
    bbox: BoundingBox,
    width: int,
    height: int,
    source: TileSource,
    settings: Settings,
) -> np.ndarray:
    """
    Build the RGB base map for bbox at exactly width×height.

    Returns:
        RGB uint8 array (height × width × 3).

    Raises:
        TileFetchFailedError: a tile stayed unavailable after retries.
        InvalidConfigError:   the viewport needs more tiles than allowed.
    """
    plan = plan_tiles(bbox, width, source, settings.max_tiles_per_export)
    log.info(
        "tile_plan",
        provider=source.name,
        zoom=plan.zoom,
        cols=plan.cols,
        rows=plan.rows,
        n_tiles=plan.n_tiles,
    )

    tiles = await fetch_tiles(plan, source, settings)
    canvas = await asyncio.to_thread(assemble_canvas, plan, tiles, width, height)

    log.debug("base_map_composed", shape=canvas.shape)
    return canvas
