# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — FastAPI Application Entry Point
Creates the app, registers lifespan events, CORS, routers,
and global error handlers.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.middleware.error_handler import register_error_handlers
from app.api.routes import cart, export, geocode, pricing
from app.config import get_settings
from app.dependencies import close_collaborators, init_collaborators
from app.utils.logger import configure_logging, get_logger

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Startup: configure logging, build tile source / geocoder / commerce clients.
    Shutdown: close their HTTP connection pools.
    """
    # ── Startup ──────────────────────────────────────────────────────────────
    configure_logging()
    settings = get_settings()

    log.info(
        "engravemap_startup",
        version="1.0.0",
        tile_provider=settings.tile_provider,
        base_dpi=settings.base_dpi,
        target_dpi=settings.target_dpi,
        envelope_mb=(settings.export_min_mb, settings.export_target_mb, settings.export_max_mb),
    )

    init_collaborators()

    log.info("engravemap_ready")
    yield

    # ── Shutdown ─────────────────────────────────────────────────────────────
    await close_collaborators()
    log.info("engravemap_shutdown")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="EngraveMap",
        summary="Print-ready laser engraving exports for custom map products.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",   # Vite dev server
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Export-Id"],
    )

    # ── Error Handlers ───────────────────────────────────────────────────────
    register_error_handlers(app)

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(export.router)
    app.include_router(pricing.router)
    app.include_router(cart.router)
    app.include_router(geocode.router)

    # ── Health Check ─────────────────────────────────────────────────────────
    @app.get("/health", tags=["health"], summary="Health check")
    async def health() -> dict:
        return {
            "status": "ok",
            "service": "engravemap",
            "version": "1.0.0",
            "tile_provider": settings.tile_provider,
            "target_dpi": settings.target_dpi,
        }

    return app


# Module-level app instance for uvicorn
app = create_app()
