# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Commerce Module
Public API for pricing, the storefront backend and cart reconciliation.
"""

from app.modules.commerce.cart_reconciler import CartReconciler, build_line_attributes
from app.modules.commerce.pricing import base_price, quote_price, variant_id_for_size
from app.modules.commerce.storefront_client import (
    CommerceBackend,
    ShopifyStorefrontClient,
    make_commerce_backend,
)

__all__ = [
    "base_price",
    "quote_price",
    "variant_id_for_size",
    "CommerceBackend",
    "ShopifyStorefrontClient",
    "make_commerce_backend",
    "CartReconciler",
    "build_line_attributes",
]
