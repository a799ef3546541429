# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Compositing Module
Public API for base map assembly and overlay painting.
"""

from app.modules.compositing.overlay_renderer import render_overlays, select_font
from app.modules.compositing.tile_compositor import (
    TilePlan,
    assemble_canvas,
    compose_base_map,
    fetch_tiles,
    plan_tiles,
)

__all__ = [
    "compose_base_map",
    "plan_tiles",
    "fetch_tiles",
    "assemble_canvas",
    "TilePlan",
    "render_overlays",
    "select_font",
]
