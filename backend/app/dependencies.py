# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — FastAPI Dependencies
Singleton providers for the external collaborators: tile source,
reverse geocoder and commerce backend. Each owns one pooled
httpx.AsyncClient, created once during the lifespan startup in main.py
and closed on shutdown. Route handlers access them via Depends();
tests swap them with app.dependency_overrides.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from app.config import Settings, get_settings
from app.modules.commerce.cart_reconciler import CartReconciler
from app.modules.commerce.storefront_client import CommerceBackend, make_commerce_backend
from app.modules.geo.geocoder import Geocoder, make_geocoder
from app.modules.geo.tile_source import TileSource, make_tile_source
from app.utils.logger import get_logger

log = get_logger(__name__)

# ─── Collaborator Singletons ─────────────────────────────────────────────────

_tile_source: TileSource | None = None
_geocoder: Geocoder | None = None
_commerce_backend: CommerceBackend | None = None


def init_collaborators() -> None:
    """
    Build every collaborator from Settings.
    Called once during application lifespan startup.
    """
    global _tile_source, _geocoder, _commerce_backend
    settings = get_settings()

    _tile_source = make_tile_source(settings)
    _geocoder = make_geocoder(settings)
    _commerce_backend = make_commerce_backend(settings)
    log.info(
        "init_collaborators",
        tile_provider=_tile_source.name,
        geocoder=settings.geocoder_provider,
        shopify_api_version=settings.shopify_api_version,
    )


async def close_collaborators() -> None:
    """Close pooled HTTP clients. Called on lifespan shutdown."""
    global _tile_source, _geocoder, _commerce_backend
    for collaborator in (_tile_source, _geocoder, _commerce_backend):
        if collaborator is not None:
            await collaborator.aclose()
    _tile_source = _geocoder = _commerce_backend = None


def _require(value, name: str):
    if value is None:
        raise RuntimeError(
            f"{name} has not been initialised. "
            "Ensure init_collaborators() is called during app lifespan startup."
        )
    return value


def get_tile_source() -> TileSource:
    return _require(_tile_source, "TileSource")


def get_geocoder() -> Geocoder:
    return _require(_geocoder, "Geocoder")


def get_commerce_backend() -> CommerceBackend:
    return _require(_commerce_backend, "CommerceBackend")


def get_reconciler(
    backend: Annotated[CommerceBackend, Depends(get_commerce_backend)],
) -> CartReconciler:
    """
    FastAPI dependency: a reconciler over the injected commerce backend.
    Stateless, so one per request is fine.
    """
    return CartReconciler(backend)


# Annotated type aliases for clean route signatures
SettingsDep = Annotated[Settings, Depends(get_settings)]
TileSourceDep = Annotated[TileSource, Depends(get_tile_source)]
GeocoderDep = Annotated[Geocoder, Depends(get_geocoder)]
CommerceDep = Annotated[CommerceBackend, Depends(get_commerce_backend)]
ReconcilerDep = Annotated[CartReconciler, Depends(get_reconciler)]
