# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Cart and storefront routes
  POST /cart/add          export, then create/merge the cart line
  POST /cart/get          fresh cart snapshot
  POST /shopify/products  catalogue listing for store setup
  POST /shopify/variant   variant lookup + availability check

The storefront identity and token travel with every request in the
body (CommerceConfig); nothing about a store is kept server-side.
"""

from __future__ import annotations

import base64

from fastapi import APIRouter, Query

from app.api.middleware.error_handler import CartOperationFailedError
from app.core.pipeline import export_and_add_to_cart
from app.dependencies import (
    CommerceDep,
    GeocoderDep,
    ReconcilerDep,
    SettingsDep,
    TileSourceDep,
)
from app.models.cart import CartLookupRequest, CommerceConfig
from app.models.export import CheckoutRequest
from app.utils.logger import get_logger

router = APIRouter(tags=["cart"])
log = get_logger(__name__)


@router.post(
    "/cart/add",
    summary="Export the map and add it to the cart",
    description=(
        "Runs the export first; the cart is only mutated when the export "
        "succeeds. An existing line for the same variant is merged "
        "(quantities summed). Cart totals in the response are authoritative; "
        "quoted_price is the local advisory quote."
    ),
)
async def add_to_cart(
    body: CheckoutRequest,
    tile_source: TileSourceDep,
    geocoder: GeocoderDep,
    reconciler: ReconcilerDep,
    settings: SettingsDep,
    include_image: bool = Query(False, description="Embed the JPEG as base64"),
) -> dict:
    result = await export_and_add_to_cart(
        body.export,
        body.config,
        body.cart_id,
        tile_source=tile_source,
        reconciler=reconciler,
        geocoder=geocoder,
        quantity=body.quantity,
        settings=settings,
    )
    outcome = result.cart
    response = {
        "success": True,
        "transition": outcome.transition.value,
        "cart": outcome.cart.model_dump(mode="json"),
        "line": outcome.line.model_dump(mode="json"),
        "checkout_url": outcome.checkout_url,
        "quoted_price": outcome.quoted_price,
        "export": {
            "export_id": result.export.export_id,
            "filename": result.export.filename,
            "width": result.export.image.width,
            "height": result.export.image.height,
            "dpi": result.export.image.dpi,
            "bytes": result.export.image.byte_length,
        },
    }
    if include_image:
        response["export"]["image_base64"] = base64.b64encode(
            result.export.image.data
        ).decode("ascii")
    return response


@router.post("/cart/get", summary="Fetch a cart snapshot")
async def get_cart(body: CartLookupRequest, backend: CommerceDep) -> dict:
    cart = await backend.get_cart(body.config, body.cart_id)
    return {
        "success": True,
        "cart": cart.model_dump(mode="json") if cart else None,
    }


@router.post("/shopify/products", summary="List storefront products and variants")
async def find_products(config: CommerceConfig, backend: CommerceDep) -> dict:
    products = await backend.find_products(config)
    return {
        "success": True,
        "products": [p.model_dump(mode="json") for p in products],
    }


@router.post("/shopify/variant", summary="Look up the configured variant")
async def get_variant(config: CommerceConfig, backend: CommerceDep) -> dict:
    variant = await backend.get_variant(config, config.product_variant_id)
    if not variant.available_for_sale:
        raise CartOperationFailedError(
            f"Variant '{variant.id}' is not available for sale.",
            detail=variant.title,
        )
    log.debug("variant_ok", variant_id=variant.id, product=variant.product_title)
    return {"success": True, "variant": variant.model_dump(mode="json")}
