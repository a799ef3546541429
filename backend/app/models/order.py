# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Order Configuration Models
Viewport, product and customization models shared by the export
pipeline, the pricing engine and the cart reconciler.

Customizations are one ordered list: list position is paint order,
later entries paint over earlier ones. The storefront's legacy payload
({texts, icons, compass}) is accepted and normalised into that list.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from app.api.middleware.error_handler import InvalidConfigError


class ViewportSpec(BaseModel):
    """Finalised map placement. Immutable for a given export."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    latitude: float = Field(
        ..., ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat")
    )
    longitude: float = Field(
        ..., ge=-180.0, le=180.0, validation_alias=AliasChoices("longitude", "lng")
    )
    zoom: int = Field(..., gt=0)
    search_label: str = Field(
        "",
        validation_alias=AliasChoices("search_label", "searchLabel", "searchQuery"),
    )


class ProductConfig(BaseModel):
    """Physical product selection. Drives dimensions and price."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    shape: Literal["rectangle", "circle", "stick", "twig"] = "rectangle"
    size: str = "standard"
    material: str = Field(..., min_length=1)
    aspect_ratio: float = Field(
        1.5, gt=0.0, validation_alias=AliasChoices("aspect_ratio", "aspectRatio")
    )

    @field_validator("size", "material")
    @classmethod
    def _normalise(cls, value: str) -> str:
        return value.strip().lower()


# ─── Customization Items ─────────────────────────────────────────────────────

class _PlacedItem(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Percentages of the canvas (0–100), resolution independent
    x: float = Field(..., ge=0.0, le=100.0)
    y: float = Field(..., ge=0.0, le=100.0)


class TextItem(_PlacedItem):
    kind: Literal["text"] = "text"
    id: str = Field(..., min_length=1)
    content: str
    font_size: float = Field(
        24.0, gt=0.0, validation_alias=AliasChoices("font_size", "fontSize")
    )
    font_family: str = Field(
        "Arial", validation_alias=AliasChoices("font_family", "fontFamily")
    )
    color: str = "#000000"


class IconItem(_PlacedItem):
    kind: Literal["icon"] = "icon"
    id: str = Field(..., min_length=1)
    type: str
    size: float = Field(32.0, gt=0.0)


class CompassItem(_PlacedItem):
    kind: Literal["compass"] = "compass"
    id: str = "compass"
    type: str = "classic"
    size: float = Field(48.0, gt=0.0)


CustomizationItem = Annotated[
    Union[TextItem, IconItem, CompassItem], Field(discriminator="kind")
]


class Customizations(BaseModel):
    """Ordered customization list owned by one export request."""
    model_config = ConfigDict(frozen=True)

    items: list[CustomizationItem] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _from_legacy_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "items" in data:
            return data
        if not {"texts", "icons", "compass"} & data.keys():
            return data
        items: list[dict] = []
        items += [{**t, "kind": "text"} for t in data.get("texts") or []]
        items += [{**i, "kind": "icon"} for i in data.get("icons") or []]
        if data.get("compass"):
            items.append({**data["compass"], "kind": "compass"})
        return {"items": items}

    @model_validator(mode="after")
    def _check_ids(self) -> "Customizations":
        seen: set[str] = set()
        for item in self.items:
            if item.id in seen:
                raise ValueError(f"duplicate customization id '{item.id}'")
            seen.add(item.id)
        if sum(1 for item in self.items if item.kind == "compass") > 1:
            raise ValueError("at most one compass is allowed")
        return self

    @property
    def texts(self) -> list[TextItem]:
        return [i for i in self.items if isinstance(i, TextItem)]

    @property
    def icons(self) -> list[IconItem]:
        return [i for i in self.items if isinstance(i, IconItem)]

    @property
    def compass(self) -> Optional[CompassItem]:
        for item in self.items:
            if isinstance(item, CompassItem):
                return item
        return None


# ─── Price ───────────────────────────────────────────────────────────────────

class PriceQuote(BaseModel):
    """Advisory price computed locally; remote cart totals are authoritative."""
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(..., decimal_places=2)
    currency: str = "USD"
    breakdown: dict[str, Decimal] = Field(default_factory=dict)

    def display(self) -> str:
        return f"${self.amount:.2f}"


class PriceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product: ProductConfig = Field(
        ..., validation_alias=AliasChoices("product", "productSettings")
    )
    customizations: Customizations = Field(default_factory=Customizations)


# ─── Parsing ─────────────────────────────────────────────────────────────────

M = TypeVar("M", bound=BaseModel)


def parse_model(model_cls: type[M], data: Any, label: str | None = None) -> M:
    """
    Validate raw input into model_cls.
    Raises InvalidConfigError (never pydantic.ValidationError) so callers
    outside the HTTP layer see the same error kind as API clients.
    """
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        what = label or model_cls.__name__
        raise InvalidConfigError(
            f"Invalid {what}.",
            detail="; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            ),
        ) from exc
