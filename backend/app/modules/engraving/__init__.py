# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Engraving Module
Public API for the two-level conversion, print scaling and encoding stages.
"""

from app.modules.engraving.bounded_encoder import (
    encode_jpeg,
    encode_within_envelope,
)
from app.modules.engraving.dimension_scaler import (
    PHYSICAL_SIZES_IN,
    resolve_dimensions,
    scale_to_print,
)
from app.modules.engraving.monochrome import assert_two_level, to_monochrome, water_mask

__all__ = [
    "to_monochrome",
    "water_mask",
    "assert_two_level",
    "PHYSICAL_SIZES_IN",
    "resolve_dimensions",
    "scale_to_print",
    "encode_jpeg",
    "encode_within_envelope",
]
