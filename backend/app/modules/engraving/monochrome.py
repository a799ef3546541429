# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Monochrome Converter
Reduces the painted RGB canvas to the two-level bitmap the laser burns.

Per-pixel rules, first match wins:

  1. Overlay   pixel inside the overlay mask      → 255 (white, not engraved)
  2. Water     blue-dominant, blue ≥ threshold    → 0   (black, engraved)
  3. Anything else                                → 255

Blue-dominant means b > r + 20 and b ≥ g. This matches the light blue
water fill of the standard raster styles (OSM #aad3df, Mapbox #75cff0)
while rejecting land, parks, roads and buildings.
"""

import numpy as np

from app.api.middleware.error_handler import PipelineError
from app.utils.logger import get_logger

log = get_logger(__name__)

BLACK = 0
WHITE = 255

_WATER_BLUE_THRESHOLD = 128
_WATER_BLUE_MARGIN = 20   # b must exceed r by more than this


def water_mask(rgb: np.ndarray) -> np.ndarray:
    """Boolean H×W mask of pixels classified as water."""
    r = rgb[..., 0].astype(np.int16)
    g = rgb[..., 1].astype(np.int16)
    b = rgb[..., 2].astype(np.int16)
    return (b > r + _WATER_BLUE_MARGIN) & (b >= g) & (b >= _WATER_BLUE_THRESHOLD)


def to_monochrome(rgb: np.ndarray, overlay_mask: np.ndarray) -> np.ndarray:
    """
    Convert an RGB canvas to a uint8 bitmap with values in {0, 255}.

    Args:
        rgb:          RGB uint8 (H×W×3), the overlay-painted canvas
        overlay_mask: bool (H×W), True where an overlay was painted

    Returns:
        uint8 H×W array containing only 0 and 255.
    """
    if rgb.ndim != 3 or rgb.shape[2] != 3:
        raise PipelineError(f"Expected an RGB canvas, got shape {rgb.shape}.")
    if overlay_mask.shape != rgb.shape[:2]:
        raise PipelineError(
            f"Overlay mask {overlay_mask.shape} does not match canvas {rgb.shape[:2]}."
        )

    engrave = water_mask(rgb) & ~overlay_mask.astype(bool)
    mono = np.where(engrave, BLACK, WHITE).astype(np.uint8)

    log.debug(
        "monochrome_converted",
        black_px=int(engrave.sum()),
        total_px=int(engrave.size),
    )
    return mono


def assert_two_level(img: np.ndarray, stage: str = "monochrome") -> None:
    """Raise PipelineError if img holds any value other than 0 and 255."""
    if img.dtype != np.uint8:
        raise PipelineError(f"Bitmap must be uint8, got {img.dtype}.", stage=stage)
    stray = (img != BLACK) & (img != WHITE)
    if stray.any():
        raise PipelineError(
            f"Bitmap is not two-level: {int(stray.sum())} pixels outside {{0, 255}}.",
            stage=stage,
        )
