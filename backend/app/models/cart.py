# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Commerce Models
Shapes exchanged with the storefront backend: the caller-supplied
store bundle, products/variants, carts, lines and line attributes.
Cart state is never cached; these are snapshots of remote documents.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.models.order import Customizations, ProductConfig, ViewportSpec


class CommerceConfig(BaseModel):
    """Store identity + access token + target variant id."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    store_name: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("store_name", "storeName")
    )
    storefront_access_token: str = Field(
        ...,
        min_length=1,
        repr=False,
        validation_alias=AliasChoices(
            "storefront_access_token", "storefrontAccessToken"
        ),
    )
    product_variant_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("product_variant_id", "productVariantId"),
    )

    @field_validator("store_name", "storefront_access_token", "product_variant_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class Money(BaseModel):
    amount: str
    currency_code: str = Field(
        "USD", validation_alias=AliasChoices("currency_code", "currencyCode")
    )


class Variant(BaseModel):
    id: str
    title: str = ""
    price: Optional[Money] = None
    available_for_sale: bool = Field(
        True, validation_alias=AliasChoices("available_for_sale", "availableForSale")
    )
    product_title: str = ""


class Product(BaseModel):
    id: str
    title: str = ""
    handle: str = ""
    variants: list[Variant] = Field(default_factory=list)


class CartAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class CartLine(BaseModel):
    id: str
    merchandise_id: str
    quantity: int = Field(..., ge=0)
    title: str = ""
    price: Optional[Money] = None
    attributes: list[CartAttribute] = Field(default_factory=list)

    def attribute(self, key: str) -> Optional[str]:
        for attr in self.attributes:
            if attr.key == key:
                return attr.value
        return None


class Cart(BaseModel):
    id: str
    checkout_url: str = ""
    total_quantity: int = 0
    lines: list[CartLine] = Field(default_factory=list)

    def line_for(self, merchandise_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.merchandise_id == merchandise_id:
                return line
        return None


class CartLineInput(BaseModel):
    """
    One requested line change.
    line_id set → update that existing line; unset → add a new line.
    """
    merchandise_id: str
    quantity: int = Field(1, ge=1)
    attributes: list[CartAttribute] = Field(default_factory=list)
    line_id: Optional[str] = None


class CartTransition(str, Enum):
    CREATED = "created"
    MERGED = "merged"


class LocationLabel(BaseModel):
    """Human-readable label for a viewport, from reverse geocoding."""
    city: str = ""
    country: str = ""
    coordinates: str = ""


class CartRequest(BaseModel):
    """Export identity + order content the reconciler turns into a line."""
    model_config = ConfigDict(populate_by_name=True)

    export_id: str
    viewport: ViewportSpec
    product: ProductConfig
    customizations: Customizations = Field(default_factory=Customizations)
    location: LocationLabel = Field(default_factory=LocationLabel)
    quantity: int = Field(1, ge=1)


class CartOutcome(BaseModel):
    transition: CartTransition
    cart: Cart
    line: CartLine
    # Local and advisory; the cart's own totals are authoritative
    quoted_price: str

    @property
    def checkout_url(self) -> str:
        return self.cart.checkout_url


class CartLookupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    config: CommerceConfig
    cart_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("cart_id", "cartId")
    )
