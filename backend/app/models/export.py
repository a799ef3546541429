# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Export Models
Request, stage and artifact models for one print export.
An export is request-scoped: nothing here is persisted.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.models.cart import CartOutcome, CommerceConfig
from app.models.order import Customizations, ProductConfig, ViewportSpec

EXPORT_FORMAT = "jpeg"
EXPORT_MEDIA_TYPE = "image/jpeg"


class ExportStage(str, Enum):
    """Pipeline stage labels, attached to errors and log entries."""
    VALIDATION = "validation"
    COORDINATE_MAPPING = "coordinate_mapping"
    TILE_COMPOSITING = "tile_compositing"
    OVERLAY_RENDERING = "overlay_rendering"
    MONOCHROME = "monochrome"
    DIMENSION_SCALING = "dimension_scaling"
    BOUNDED_ENCODING = "bounded_encoding"
    CART = "cart"
    DONE = "done"


class ExportRequest(BaseModel):
    """Everything one export needs. Field aliases follow the storefront payload."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    viewport: ViewportSpec = Field(
        ..., validation_alias=AliasChoices("viewport", "location")
    )
    product: ProductConfig = Field(
        ..., validation_alias=AliasChoices("product", "productSettings")
    )
    customizations: Customizations = Field(default_factory=Customizations)
    # Supplied by the commerce backend at fulfillment time
    order_number: Optional[str] = Field(
        None, validation_alias=AliasChoices("order_number", "orderNumber", "orderId")
    )
    # Correlation id stamped into the cart line and logs
    export_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        validation_alias=AliasChoices("export_id", "exportId"),
    )

    @field_validator("order_number")
    @classmethod
    def _strip_order_number(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lstrip("#")
        if value.lower().startswith("order"):
            value = value[len("order"):]
        return value or None


class SizeEnvelope(BaseModel):
    """Closed byte-length interval an encoded file must fall within."""
    model_config = ConfigDict(frozen=True)

    min_bytes: int = Field(..., ge=0)
    max_bytes: int = Field(..., gt=0)
    target_bytes: Optional[int] = None

    @field_validator("max_bytes")
    @classmethod
    def _ordered(cls, value: int, info) -> int:
        lo = info.data.get("min_bytes")
        if lo is not None and value < lo:
            raise ValueError("max_bytes must be >= min_bytes")
        return value

    @property
    def target(self) -> int:
        if self.target_bytes is not None:
            return min(max(self.target_bytes, self.min_bytes), self.max_bytes)
        return (self.min_bytes + self.max_bytes) // 2

    def contains(self, n_bytes: int) -> bool:
        return self.min_bytes <= n_bytes <= self.max_bytes


class ExportImage(BaseModel):
    """
    Terminal artifact of the pipeline.
    pixels is the two-level bitmap (uint8, 0 or 255 only) that was encoded.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    pixels: Any = Field(..., description="np.ndarray uint8 H×W, values in {0, 255}")
    width: int
    height: int
    dpi: int
    data: bytes = Field(..., repr=False)
    quality: int = Field(..., ge=1, le=100)
    format: str = EXPORT_FORMAT

    @property
    def byte_length(self) -> int:
        return len(self.data)


class ExportResult(BaseModel):
    """Image plus the handoff filename and identity."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    export_id: str
    filename: str
    image: ExportImage
    location_label: str = ""


class ExportMetadata(BaseModel):
    """Expected output of an export, computed without rendering."""
    export_id: str
    filename: str
    width: int
    height: int
    dpi: int
    min_bytes: int
    target_bytes: int
    max_bytes: int
    price: str


def build_filename(order_number: Optional[str], export_id: str) -> str:
    """Handoff filename: Order<orderNumber>_Map.jpeg."""
    ident = order_number or export_id
    return f"Order{ident}_Map.{EXPORT_FORMAT}"


class CheckoutResult(BaseModel):
    """Export artifact plus the cart line that references it."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    export: ExportResult
    cart: CartOutcome


class CheckoutRequest(BaseModel):
    """Body of the export-then-cart checkout call."""
    model_config = ConfigDict(populate_by_name=True)

    config: CommerceConfig
    export: ExportRequest = Field(
        ..., validation_alias=AliasChoices("export", "mapData")
    )
    cart_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("cart_id", "cartId")
    )
    quantity: int = Field(1, ge=1)
