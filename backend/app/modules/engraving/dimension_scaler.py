# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Dimension Scaler
Physical product sizes and the exact pixel grids they print at.
The working canvas is rendered at base DPI and upsampled to the print
DPI with nearest-neighbour, which never creates grey levels.
"""

import numpy as np

from app.modules.engraving.monochrome import assert_two_level
from app.utils.image_utils import resize_exact
from app.utils.logger import get_logger

log = get_logger(__name__)

PRINT_DPI = 300
DEFAULT_SIZE = "standard"

# (width, height) in inches
PHYSICAL_SIZES_IN: dict[str, tuple[float, float]] = {
    "compact": (8.0, 6.0),
    "standard": (12.0, 8.0),
    "large": (16.0, 10.0),
}


def resolve_dimensions(size: str, dpi: int = PRINT_DPI) -> tuple[int, int]:
    """
    Pixel (width, height) for a size tier at the given DPI.
    Unknown tiers fall back to standard.
    """
    key = (size or "").strip().lower()
    if key not in PHYSICAL_SIZES_IN:
        log.warning("unknown_size_tier", size=size, fallback=DEFAULT_SIZE)
        key = DEFAULT_SIZE
    w_in, h_in = PHYSICAL_SIZES_IN[key]
    return int(round(w_in * dpi)), int(round(h_in * dpi))


def scale_to_print(mono: np.ndarray, size: str, dpi: int = PRINT_DPI) -> np.ndarray:
    """
    Upsample a two-level bitmap to the print grid of `size` at `dpi`.

    Returns:
        uint8 bitmap of exactly resolve_dimensions(size, dpi), still in {0, 255}.
    """
    width, height = resolve_dimensions(size, dpi)
    scaled = resize_exact(mono, width, height, nearest=True)
    assert_two_level(scaled, stage="dimension_scaling")

    log.debug(
        "scaled_to_print",
        size=size,
        dpi=dpi,
        src=f"{mono.shape[1]}x{mono.shape[0]}",
        dst=f"{width}x{height}",
    )
    return scaled
