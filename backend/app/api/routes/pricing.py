# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — POST /price
Local, advisory price quote for a product + customization set.
"""

from __future__ import annotations

from fastapi import APIRouter

from app.dependencies import SettingsDep
from app.models.order import PriceRequest
from app.modules.commerce.pricing import quote_price, variant_id_for_size

router = APIRouter(tags=["pricing"])


@router.post("/price", summary="Quote the price of a configured map")
async def get_price(request: PriceRequest, settings: SettingsDep) -> dict:
    quote = quote_price(request.product, request.customizations)
    return {
        "amount": str(quote.amount),
        "display": quote.display(),
        "currency": quote.currency,
        "breakdown": {k: str(v) for k, v in quote.breakdown.items()},
        "variant_id": variant_id_for_size(request.product.size, settings),
    }
