# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Pricing Engine
Deterministic local price for one order configuration:

    base(size) + material premium + 5.00 × texts + 3.00 × icons + 7.00 × compass

Rounded half-up to cents. Shape and aspect ratio never affect price.
The quote is advisory: the commerce backend's cart totals are authoritative.
"""

from decimal import ROUND_HALF_UP, Decimal

from app.config import Settings
from app.models.order import Customizations, PriceQuote, ProductConfig
from app.utils.logger import get_logger

log = get_logger(__name__)

CENT = Decimal("0.01")
DEFAULT_SIZE = "standard"

BASE_PRICES: dict[str, Decimal] = {
    "compact": Decimal("49.99"),
    "standard": Decimal("64.99"),
    "large": Decimal("89.99"),
}

MATERIAL_PREMIUMS: dict[str, Decimal] = {
    "metal": Decimal("15.00"),
}

TEXT_PRICE = Decimal("5.00")
ICON_PRICE = Decimal("3.00")
COMPASS_PRICE = Decimal("7.00")


def base_price(size: str) -> Decimal:
    """Base price for a size tier; unknown tiers price as standard."""
    key = (size or "").strip().lower()
    if key not in BASE_PRICES:
        log.warning("unknown_size_tier", size=size, fallback=DEFAULT_SIZE)
        key = DEFAULT_SIZE
    return BASE_PRICES[key]


def quote_price(product: ProductConfig, customizations: Customizations) -> PriceQuote:
    breakdown = {
        "base": base_price(product.size),
        "material": MATERIAL_PREMIUMS.get(product.material, Decimal("0.00")),
        "texts": TEXT_PRICE * len(customizations.texts),
        "icons": ICON_PRICE * len(customizations.icons),
        "compass": COMPASS_PRICE if customizations.compass is not None else Decimal("0.00"),
    }
    total = sum(breakdown.values(), Decimal("0.00"))
    return PriceQuote(
        amount=total.quantize(CENT, rounding=ROUND_HALF_UP),
        breakdown={k: v.quantize(CENT, rounding=ROUND_HALF_UP) for k, v in breakdown.items()},
    )


def variant_id_for_size(size: str, settings: Settings) -> str:
    """Storefront variant id for a size tier, standard when unknown."""
    ids = settings.variant_ids
    return ids.get((size or "").strip().lower(), ids[DEFAULT_SIZE])
