# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Pipeline Orchestrator
Wires all modules in the correct dependency order for one export.
Runs once per request, to completion, with no state kept afterwards.

Execution order:
  1. Validation          envelope and print geometry for the request
  2. Coordinate mapping  viewport → bbox + percent/pixel mapper
  3. Tile compositing    concurrent tile fetch → base map (async)
  4. Overlay rendering   text / icons / compass + overlay mask
  5. Monochrome          two-level bitmap
  6. Dimension scaling   nearest-neighbour to the print grid
  7. Bounded encoding    JPEG inside the size envelope

CPU-bound stages run in worker threads. A failure in any stage aborts
the export, is tagged with the stage name and never yields a partial image.

The checkout flow runs the export and the reverse geocode concurrently
and touches the cart only after the export has succeeded.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from app.api.middleware.error_handler import EngraveError, PipelineError
from app.config import Settings, get_settings
from app.models.cart import CartRequest, CommerceConfig
from app.models.export import (
    CheckoutResult,
    ExportMetadata,
    ExportRequest,
    ExportResult,
    ExportStage,
    SizeEnvelope,
    build_filename,
)
from app.models.order import parse_model
from app.modules.commerce.cart_reconciler import CartReconciler
from app.modules.commerce.pricing import quote_price
from app.modules.compositing.overlay_renderer import render_overlays
from app.modules.compositing.tile_compositor import compose_base_map
from app.modules.engraving.bounded_encoder import encode_within_envelope
from app.modules.engraving.dimension_scaler import resolve_dimensions, scale_to_print
from app.modules.engraving.monochrome import assert_two_level, to_monochrome
from app.modules.geo.coordinate_mapper import CoordinateMapper, format_coordinates
from app.modules.geo.geocoder import Geocoder, NullGeocoder, resolve_location
from app.modules.geo.tile_source import TileSource
from app.utils.logger import get_logger

log = get_logger(__name__)

# Editor sizes are CSS px on a canvas laid out at 100 px per printed inch
EDITOR_PX_PER_INCH = 100


@contextmanager
def _stage(stage: ExportStage) -> Iterator[None]:
    """Log stage start/complete and tag any failure with the stage name."""
    log.info("stage_start", stage=stage.value)
    started = time.perf_counter()
    try:
        yield
    except EngraveError as exc:
        if exc.stage is None:
            exc.stage = stage.value
        log.error("stage_failed", stage=exc.stage, code=exc.code, error=exc.message)
        raise
    except Exception as exc:
        log.error("stage_failed", stage=stage.value, error=f"{type(exc).__name__}: {exc}")
        raise PipelineError(
            f"Stage '{stage.value}' failed: {type(exc).__name__}: {exc}",
            stage=stage.value,
        ) from exc
    log.info(
        "stage_complete",
        stage=stage.value,
        elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
    )


def build_envelope(settings: Settings) -> SizeEnvelope:
    return parse_model(
        SizeEnvelope,
        {
            "min_bytes": settings.export_min_bytes,
            "max_bytes": settings.export_max_bytes,
            "target_bytes": settings.export_target_bytes,
        },
        label="size envelope",
    )


# ─── Export ──────────────────────────────────────────────────────────────────

async def run_export(
    request: ExportRequest,
    tile_source: TileSource,
    settings: Optional[Settings] = None,
) -> ExportResult:
    """
    Run the full export pipeline for one request.

    Returns:
        ExportResult with the encoded JPEG and its handoff filename.

    Raises:
        EngraveError subclasses, tagged with the failing stage.
    """
    settings = settings or get_settings()
    structlog.contextvars.bind_contextvars(export_id=request.export_id)
    try:
        return await _run(request, tile_source, settings)
    finally:
        structlog.contextvars.unbind_contextvars("export_id")


async def _run(
    request: ExportRequest,
    tile_source: TileSource,
    settings: Settings,
) -> ExportResult:
    log.info(
        "export_start",
        size=request.product.size,
        zoom=request.viewport.zoom,
        items=len(request.customizations.items),
        provider=tile_source.name,
    )

    # ── Stage 1: Validation ──────────────────────────────────────────────────
    with _stage(ExportStage.VALIDATION):
        envelope = build_envelope(settings)
        width, height = resolve_dimensions(request.product.size, settings.base_dpi)

    # ── Stage 2: Coordinate Mapping ──────────────────────────────────────────
    with _stage(ExportStage.COORDINATE_MAPPING):
        mapper = CoordinateMapper(
            request.viewport,
            width,
            height,
            min_zoom=tile_source.min_zoom,
            max_zoom=tile_source.max_zoom,
            reference_zoom=settings.reference_zoom,
            reference_span_deg=settings.reference_span_deg,
        )

    # ── Stage 3: Tile Compositing ────────────────────────────────────────────
    with _stage(ExportStage.TILE_COMPOSITING):
        base_map = await compose_base_map(mapper.bbox, width, height, tile_source, settings)

    # ── Stage 4: Overlay Rendering ───────────────────────────────────────────
    with _stage(ExportStage.OVERLAY_RENDERING):
        painted, overlay_mask = await asyncio.to_thread(
            render_overlays,
            base_map,
            request.customizations,
            mapper,
            settings.base_dpi / EDITOR_PX_PER_INCH,
        )

    # ── Stage 5: Monochrome ──────────────────────────────────────────────────
    with _stage(ExportStage.MONOCHROME):
        mono = await asyncio.to_thread(to_monochrome, painted, overlay_mask)
        assert_two_level(mono, stage=ExportStage.MONOCHROME.value)

    # ── Stage 6: Dimension Scaling ───────────────────────────────────────────
    with _stage(ExportStage.DIMENSION_SCALING):
        printed = await asyncio.to_thread(
            scale_to_print, mono, request.product.size, settings.target_dpi
        )

    # ── Stage 7: Bounded Encoding ────────────────────────────────────────────
    with _stage(ExportStage.BOUNDED_ENCODING):
        image = await asyncio.to_thread(
            lambda: encode_within_envelope(
                printed,
                envelope,
                dpi=settings.target_dpi,
                quality_min=settings.jpeg_quality_min,
                quality_max=settings.jpeg_quality_max,
                max_iterations=settings.encoder_max_iterations,
                target_tolerance=settings.encoder_target_tolerance,
            )
        )

    vp = request.viewport
    result = ExportResult(
        export_id=request.export_id,
        filename=build_filename(request.order_number, request.export_id),
        image=image,
        location_label=vp.search_label or format_coordinates(vp.latitude, vp.longitude),
    )
    log.info(
        "export_complete",
        stage=ExportStage.DONE.value,
        filename=result.filename,
        width=image.width,
        height=image.height,
        bytes=image.byte_length,
        quality=image.quality,
    )
    return result


def export_metadata(request: ExportRequest, settings: Optional[Settings] = None) -> ExportMetadata:
    """Expected output of an export, computed without fetching or rendering."""
    settings = settings or get_settings()
    envelope = build_envelope(settings)
    width, height = resolve_dimensions(request.product.size, settings.target_dpi)
    return ExportMetadata(
        export_id=request.export_id,
        filename=build_filename(request.order_number, request.export_id),
        width=width,
        height=height,
        dpi=settings.target_dpi,
        min_bytes=envelope.min_bytes,
        target_bytes=envelope.target,
        max_bytes=envelope.max_bytes,
        price=quote_price(request.product, request.customizations).display(),
    )


# ─── Checkout ────────────────────────────────────────────────────────────────

async def export_and_add_to_cart(
    request: ExportRequest,
    config: CommerceConfig,
    cart_id: Optional[str],
    *,
    tile_source: TileSource,
    reconciler: CartReconciler,
    geocoder: Optional[Geocoder] = None,
    quantity: int = 1,
    settings: Optional[Settings] = None,
) -> CheckoutResult:
    """
    Export the map, then create or merge its cart line.
    The cart is never touched if the export fails, and a pending reverse
    geocode is cancelled with it.
    """
    settings = settings or get_settings()
    geocoder = geocoder or NullGeocoder()
    vp = request.viewport

    quote = quote_price(request.product, request.customizations)
    geocode = asyncio.create_task(resolve_location(geocoder, vp.latitude, vp.longitude))
    try:
        export = await run_export(request, tile_source, settings)
    except BaseException:
        geocode.cancel()
        await asyncio.gather(geocode, return_exceptions=True)
        raise
    location = await geocode

    cart_request = CartRequest(
        export_id=request.export_id,
        viewport=vp,
        product=request.product,
        customizations=request.customizations,
        location=location,
        quantity=quantity,
    )
    structlog.contextvars.bind_contextvars(export_id=request.export_id)
    try:
        with _stage(ExportStage.CART):
            outcome = await reconciler.add_to_cart(config, cart_id, cart_request, quote)
    finally:
        structlog.contextvars.unbind_contextvars("export_id")

    return CheckoutResult(export=export, cart=outcome)
