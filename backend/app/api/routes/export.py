# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — POST /export + POST /export/metadata
Runs the export pipeline synchronously within the request and streams
the print-ready JPEG back as an attachment.
"""

from __future__ import annotations

from fastapi import APIRouter, Response

from app.core.pipeline import export_metadata, run_export
from app.dependencies import SettingsDep, TileSourceDep
from app.models.export import EXPORT_MEDIA_TYPE, ExportMetadata, ExportRequest, ExportResult
from app.utils.logger import get_logger

router = APIRouter(tags=["export"])
log = get_logger(__name__)


def export_headers(result: ExportResult) -> dict[str, str]:
    image = result.image
    return {
        "Content-Disposition": f'attachment; filename="{result.filename}"',
        "X-Export-Id": result.export_id,
        "X-Export-Width": str(image.width),
        "X-Export-Height": str(image.height),
        "X-Export-Dpi": str(image.dpi),
        "X-Export-Quality": str(image.quality),
        "X-Export-Bytes": str(image.byte_length),
    }


@router.post(
    "/export",
    response_class=Response,
    summary="Render the print-ready engraving file",
    description=(
        "Composites the map, paints customizations, converts to two-level "
        "monochrome, scales to 300 DPI and encodes a JPEG inside the size "
        "envelope. Returns the JPEG as Order<orderNumber>_Map.jpeg."
    ),
)
async def create_export(
    request: ExportRequest,
    tile_source: TileSourceDep,
    settings: SettingsDep,
) -> Response:
    result = await run_export(request, tile_source, settings)
    return Response(
        content=result.image.data,
        media_type=EXPORT_MEDIA_TYPE,
        headers=export_headers(result),
    )


@router.post(
    "/export/metadata",
    response_model=ExportMetadata,
    summary="Expected export dimensions, envelope and filename",
)
async def get_export_metadata(request: ExportRequest, settings: SettingsDep) -> ExportMetadata:
    return export_metadata(request, settings)
