# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Cart Reconciler
Adds one configured map to a storefront cart, idempotently per
(cart, merchandise):

  no cart id / unknown cart         → cartCreate with the line     (CREATED)
  cart has a line for the variant   → cartLinesUpdate, qty summed  (MERGED)
  cart without that variant         → cartLinesAdd                 (MERGED)

The line always carries the full set of human-readable attributes plus
the export id, so fulfillment can match the cart line to the exported
file. Cart state is read fresh on every call and never cached.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional

from app.api.middleware.error_handler import CartOperationFailedError
from app.models.cart import (
    CartAttribute,
    CartLineInput,
    CartOutcome,
    CartRequest,
    CartTransition,
    CommerceConfig,
)
from app.models.order import PriceQuote
from app.modules.commerce.pricing import quote_price
from app.modules.commerce.storefront_client import CommerceBackend
from app.modules.geo.coordinate_mapper import format_coordinates
from app.utils.logger import get_logger

log = get_logger(__name__)


def _num(value: float) -> str:
    """24.0 → '24', 12.5 → '12.5'."""
    return f"{value:g}"


def map_config_summary(request: CartRequest, quote: PriceQuote) -> str:
    """Compact JSON of everything needed to re-render this map."""
    vp = request.viewport
    summary = {
        "exportId": request.export_id,
        "location": {
            "lat": vp.latitude,
            "lng": vp.longitude,
            "zoom": vp.zoom,
            "searchQuery": vp.search_label,
            "city": request.location.city,
            "country": request.location.country,
        },
        "productSettings": request.product.model_dump(mode="json"),
        "customizations": [
            item.model_dump(mode="json") for item in request.customizations.items
        ],
        "price": str(quote.amount),
    }
    return json.dumps(summary, separators=(",", ":"))


def build_line_attributes(
    request: CartRequest,
    quote: PriceQuote,
    now: Optional[datetime] = None,
) -> list[CartAttribute]:
    """
    Human-readable line attributes for the order sheet.
    Attributes with empty values are dropped.
    """
    vp = request.viewport
    product = request.product
    custom = request.customizations
    now = now or datetime.now(timezone.utc)

    pairs: list[tuple[str, str]] = [
        ("Map Location", vp.search_label),
        (
            "Coordinates",
            request.location.coordinates or format_coordinates(vp.latitude, vp.longitude),
        ),
        ("City", request.location.city),
        ("Country", request.location.country),
        ("Zoom Level", str(vp.zoom)),
        ("Product Shape", product.shape),
        ("Product Size", product.size),
        ("Material", product.material),
        ("Price", quote.display()),
        ("Custom Text Count", str(len(custom.texts))),
    ]
    for n, text in enumerate(custom.texts, start=1):
        pairs.append(
            (
                f"Text {n}",
                f'"{text.content}" ({_num(text.font_size)}px {text.font_family}, {text.color})',
            )
        )
    pairs.append(("Custom Icon Count", str(len(custom.icons))))
    for n, icon in enumerate(custom.icons, start=1):
        pairs.append((f"Icon {n}", f"{icon.type} (size: {_num(icon.size)})"))
    if custom.compass is not None:
        pairs.append(
            ("Compass", f"{custom.compass.type} (size: {_num(custom.compass.size)})")
        )
    pairs += [
        ("_export_id", request.export_id),
        ("_map_config_json", map_config_summary(request, quote)),
        ("_generated_timestamp", now.isoformat()),
    ]

    return [
        CartAttribute(key=key, value=value)
        for key, value in pairs
        if value and value.strip()
    ]


class CartReconciler:
    """Turns a CartRequest into exactly one cart line mutation."""

    def __init__(self, backend: CommerceBackend) -> None:
        self._backend = backend

    async def add_to_cart(
        self,
        config: CommerceConfig,
        cart_id: Optional[str],
        request: CartRequest,
        quote: Optional[PriceQuote] = None,
    ) -> CartOutcome:
        """
        Create or merge the cart line for request.

        Raises:
            CartOperationFailedError: any remote failure, surfaced unretried.
        """
        quote = quote or quote_price(request.product, request.customizations)
        attributes = build_line_attributes(request, quote)
        merchandise_id = config.product_variant_id

        cart = await self._backend.get_cart(config, cart_id) if cart_id else None
        if cart_id and cart is None:
            log.info("cart_not_found", cart_id=cart_id, action="create")

        if cart is None:
            line_input = CartLineInput(
                merchandise_id=merchandise_id,
                quantity=request.quantity,
                attributes=attributes,
            )
            updated = await self._backend.mutate_cart(config, None, [line_input])
            transition = CartTransition.CREATED
        else:
            existing = cart.line_for(merchandise_id)
            line_input = CartLineInput(
                merchandise_id=merchandise_id,
                quantity=request.quantity + (existing.quantity if existing else 0),
                attributes=attributes,
                line_id=existing.id if existing else None,
            )
            updated = await self._backend.mutate_cart(config, cart.id, [line_input])
            transition = CartTransition.MERGED

        line = updated.line_for(merchandise_id)
        if line is None:
            raise CartOperationFailedError(
                "Cart response does not contain the requested line.",
                detail=f"cart={updated.id} merchandise={merchandise_id}",
            )

        log.info(
            "cart_reconciled",
            transition=transition.value,
            cart_id=updated.id,
            line_id=line.id,
            quantity=line.quantity,
            quoted_price=quote.display(),
        )
        return CartOutcome(
            transition=transition,
            cart=updated,
            line=line,
            quoted_price=quote.display(),
        )
