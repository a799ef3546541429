# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Error Taxonomy and Global Error Handler
Every failure the export, pricing and cart paths can raise is an
EngraveError subclass carrying a stable code, the pipeline stage that
failed (when there is one) and optional remote/technical detail.
Handlers convert them into structured JSON error responses.
Registered on the FastAPI app in main.py.
"""

from __future__ import annotations

import traceback
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.utils.logger import get_logger

log = get_logger(__name__)


class EngraveError(Exception):
    """Base class for all domain failures."""

    code = "ENGRAVE_ERROR"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.detail = detail


class InvalidConfigError(EngraveError, ValueError):
    """Malformed viewport / product / customization / commerce input."""

    code = "INVALID_CONFIG"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class UnsupportedZoomError(EngraveError, ValueError):
    """Viewport zoom outside the tile source's supported range."""

    code = "UNSUPPORTED_ZOOM"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class TileFetchFailedError(EngraveError):
    """A required tile stayed unavailable after the retry budget."""

    code = "TILE_FETCH_FAILED"
    http_status = status.HTTP_502_BAD_GATEWAY


class SizeEnvelopeUnreachableError(EngraveError):
    """No encoder quality produced a byte length inside the envelope."""

    code = "SIZE_ENVELOPE_UNREACHABLE"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        closest_bytes: Optional[int] = None,
        stage: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message, stage=stage, detail=detail)
        self.closest_bytes = closest_bytes


class PipelineError(EngraveError, RuntimeError):
    """An internal invariant was violated between pipeline stages."""

    code = "PIPELINE_ERROR"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR


class CartOperationFailedError(EngraveError):
    """The commerce backend rejected or failed a cart lookup/mutation."""

    code = "CART_OPERATION_FAILED"
    http_status = status.HTTP_502_BAD_GATEWAY


class VariantNotFoundError(CartOperationFailedError):
    code = "VARIANT_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, variant_id: str) -> None:
        super().__init__(f"Product variant '{variant_id}' not found.")
        self.variant_id = variant_id


class GeocodeUnavailableError(EngraveError):
    """Reverse geocoding failed. Non-fatal inside exports."""

    code = "GEOCODE_UNAVAILABLE"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


def _error_body(
    code: str,
    message: str,
    detail: str | None = None,
    stage: str | None = None,
) -> dict:
    body = {"error": {"code": code, "message": message}}
    if stage:
        body["error"]["stage"] = stage
    if detail:
        body["error"]["detail"] = detail
    return body


def error_response(exc: EngraveError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=_error_body(
            code=exc.code,
            message=exc.message,
            detail=exc.detail,
            stage=exc.stage,
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    """
    Register all global exception handlers on the FastAPI application.
    Call this in main.py after creating the app instance.
    """

    @app.exception_handler(EngraveError)
    async def engrave_error_handler(
        req: Request, exc: EngraveError
    ) -> JSONResponse:
        level = log.error if exc.http_status >= 500 else log.warning
        level(
            "engrave_error",
            path=str(req.url),
            code=exc.code,
            stage=exc.stage,
            error=exc.message,
            detail=exc.detail,
        )
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        req: Request, exc: RequestValidationError
    ) -> JSONResponse:
        log.warning("invalid_config", path=str(req.url), errors=exc.errors())
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(
                code=InvalidConfigError.code,
                message="Request body failed validation.",
                detail="; ".join(
                    f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
                    for err in exc.errors()
                ),
            ),
        )

    @app.exception_handler(Exception)
    async def generic_handler(req: Request, exc: Exception) -> JSONResponse:
        tb = traceback.format_exc()
        log.error(
            "unhandled_exception",
            path=str(req.url),
            error=str(exc),
            exc_type=type(exc).__name__,
            traceback=tb,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                code="INTERNAL_SERVER_ERROR",
                message="An unexpected error occurred.",
            ),
        )
