# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Overlay Renderer
Paints customizations onto the composited base map, in list order:
  - Text     Hershey font picked from the font family hint, centred on
             the anchor, size from font_size, colour from the item
  - Icons    filled / stroked glyph shapes of edge `size`
  - Compass  rose / needle / arrow glyph of edge `size`

Every primitive is drawn twice: once in colour on the canvas copy and
once at 255 on a single-channel overlay mask. The mask, not the colour,
tells the monochrome converter which pixels belong to overlays
(they are forced white, i.e. not engraved).

Sizes in the editor are CSS pixels; px_per_css_px converts them to
canvas pixels at the working resolution.
"""

from __future__ import annotations

import math
from typing import Sequence

import cv2
import numpy as np

from app.models.order import CompassItem, Customizations, IconItem, TextItem
from app.modules.geo.coordinate_mapper import CoordinateMapper
from app.utils.image_utils import parse_colour
from app.utils.logger import get_logger

log = get_logger(__name__)

_GLYPH_COLOUR = (0, 0, 0)   # icons and compass render black on the preview
_MASK_VALUE = 255

# Primitive in unit space: x, y ∈ [-0.5, 0.5] relative to the anchor,
# scaled by the item's pixel size. Kinds: poly, circle, ring, line, arc, text
Primitive = tuple

# ─── Glyph Library ───────────────────────────────────────────────────────────

def _star_points(n: int, outer: float, inner: float, rotation: float = -math.pi / 2):
    pts = []
    for i in range(n * 2):
        r = outer if i % 2 == 0 else inner
        a = rotation + i * math.pi / n
        pts.append((r * math.cos(a), r * math.sin(a)))
    return pts


_ICON_GLYPHS: dict[str, list[Primitive]] = {
    "home": [
        ("poly", [(-0.4, 0.45), (-0.4, -0.05), (0.0, -0.45), (0.4, -0.05), (0.4, 0.45)]),
    ],
    "heart": [
        ("circle", (-0.22, -0.15), 0.25),
        ("circle", (0.22, -0.15), 0.25),
        ("poly", [(-0.46, -0.08), (0.46, -0.08), (0.0, 0.45)]),
    ],
    "star": [
        ("poly", _star_points(5, 0.5, 0.2)),
    ],
    "pin": [
        ("circle", (0.0, -0.15), 0.3),
        ("poly", [(-0.26, 0.0), (0.26, 0.0), (0.0, 0.5)]),
    ],
    "tree": [
        ("poly", [(0.0, -0.5), (-0.38, 0.25), (0.38, 0.25)]),
        ("poly", [(-0.08, 0.25), (0.08, 0.25), (0.08, 0.5), (-0.08, 0.5)]),
    ],
    "mountain": [
        ("poly", [(-0.5, 0.4), (-0.15, -0.3), (0.05, 0.05), (0.2, -0.15), (0.5, 0.4)]),
    ],
    "anchor": [
        ("ring", (0.0, -0.38), 0.1),
        ("line", (0.0, -0.28), (0.0, 0.42)),
        ("line", (-0.2, -0.18), (0.2, -0.18)),
        ("arc", (0.0, 0.1), (0.35, 0.3), 0, 180),
    ],
    "plane": [
        ("poly", [(-0.05, -0.5), (0.05, -0.5), (0.07, 0.45), (-0.07, 0.45)]),
        ("poly", [(-0.5, 0.05), (0.5, 0.05), (0.5, 0.15), (-0.5, 0.15)]),
        ("poly", [(-0.2, 0.4), (0.2, 0.4), (0.2, 0.48), (-0.2, 0.48)]),
    ],
}
_DEFAULT_ICON: list[Primitive] = [("circle", (0.0, 0.0), 0.4)]

_COMPASS_GLYPHS: dict[str, list[Primitive]] = {
    "classic": [
        ("ring", (0.0, 0.0), 0.48),
        ("poly", _star_points(4, 0.45, 0.1)),
        ("text", "N", (0.0, -0.62), 0.22),
    ],
    "modern": [
        ("ring", (0.0, 0.0), 0.48),
        ("poly", [(0.0, -0.42), (0.14, 0.08), (-0.14, 0.08)]),
        ("line", (0.0, 0.08), (0.0, 0.42)),
        ("text", "N", (0.0, -0.62), 0.22),
    ],
    "arrow": [
        ("poly", [(0.0, -0.5), (0.22, -0.1), (-0.22, -0.1)]),
        ("line", (0.0, -0.1), (0.0, 0.5)),
        ("text", "N", (0.0, 0.2), 0.22),
    ],
}


# ─── Fonts ───────────────────────────────────────────────────────────────────

def select_font(font_family: str) -> int:
    """Map a CSS font family hint onto the closest Hershey face."""
    fam = (font_family or "").lower()
    if any(k in fam for k in ("script", "cursive", "dancing", "brush", "pacifico")):
        return cv2.FONT_HERSHEY_SCRIPT_SIMPLEX
    if any(k in fam for k in ("mono", "courier", "code")):
        return cv2.FONT_HERSHEY_PLAIN
    if any(k in fam for k in ("times", "georgia", "playfair", "garamond")):
        return cv2.FONT_HERSHEY_TRIPLEX
    if "serif" in fam and "sans" not in fam:
        return cv2.FONT_HERSHEY_COMPLEX
    return cv2.FONT_HERSHEY_SIMPLEX


def _draw_text_centred(
    img: np.ndarray,
    text: str,
    centre: tuple[int, int],
    font: int,
    pixel_height: float,
    colour,
) -> None:
    """Draw (multi-line) text centred on `centre`."""
    pixel_height = max(4, int(round(pixel_height)))
    thickness = max(1, int(round(pixel_height / 12)))
    scale = cv2.getFontScaleFromHeight(font, pixel_height, thickness)
    lines = [ln for ln in text.split("\n")] or [""]

    sizes = [cv2.getTextSize(ln, font, scale, thickness)[0] for ln in lines]
    line_gap = int(pixel_height * 0.35)
    block_h = sum(h for _, h in sizes) + line_gap * (len(lines) - 1)

    cx, cy = centre
    y = cy - block_h // 2
    for line, (tw, th) in zip(lines, sizes):
        y += th
        cv2.putText(
            img, line, (cx - tw // 2, y), font, scale, colour, thickness, cv2.LINE_AA
        )
        y += line_gap


def _draw_primitives(
    img: np.ndarray,
    prims: Sequence[Primitive],
    centre: tuple[int, int],
    size_px: float,
    colour,
) -> None:
    cx, cy = centre
    stroke = max(1, int(round(size_px * 0.08)))

    def to_px(p):
        return (int(round(cx + p[0] * size_px)), int(round(cy + p[1] * size_px)))

    for prim in prims:
        kind = prim[0]
        if kind == "poly":
            pts = np.array([to_px(p) for p in prim[1]], dtype=np.int32)
            cv2.fillPoly(img, [pts], colour, lineType=cv2.LINE_AA)
        elif kind == "circle":
            radius = max(1, int(round(prim[2] * size_px)))
            cv2.circle(img, to_px(prim[1]), radius, colour, -1, cv2.LINE_AA)
        elif kind == "ring":
            radius = max(1, int(round(prim[2] * size_px)))
            cv2.circle(img, to_px(prim[1]), radius, colour, stroke, cv2.LINE_AA)
        elif kind == "line":
            cv2.line(img, to_px(prim[1]), to_px(prim[2]), colour, stroke, cv2.LINE_AA)
        elif kind == "arc":
            axes = (
                max(1, int(round(prim[2][0] * size_px))),
                max(1, int(round(prim[2][1] * size_px))),
            )
            cv2.ellipse(
                img, to_px(prim[1]), axes, 0, prim[3], prim[4], colour, stroke, cv2.LINE_AA
            )
        elif kind == "text":
            _draw_text_centred(
                img, prim[1], to_px(prim[2]), cv2.FONT_HERSHEY_SIMPLEX,
                prim[3] * size_px, colour,
            )


# ─── Public API ──────────────────────────────────────────────────────────────

def render_overlays(
    canvas: np.ndarray,
    customizations: Customizations,
    mapper: CoordinateMapper,
    px_per_css_px: float = 1.0,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Paint every customization onto a copy of the canvas.

    Args:
        canvas:         RGB uint8 base map (H×W×3), not modified
        customizations: Ordered items, later entries paint over earlier
        mapper:         Coordinate mapper for this canvas
        px_per_css_px:  Canvas pixels per editor CSS pixel

    Returns:
        (painted RGB canvas, overlay mask bool H×W)
    """
    painted = canvas.copy()
    mask = np.zeros(canvas.shape[:2], dtype=np.uint8)

    for item in customizations.items:
        centre = mapper.percent_to_pixel(item.x, item.y)

        if isinstance(item, TextItem):
            font = select_font(item.font_family)
            height_px = item.font_size * px_per_css_px
            colour = parse_colour(item.color)
            _draw_text_centred(painted, item.content, centre, font, height_px, colour)
            _draw_text_centred(mask, item.content, centre, font, height_px, _MASK_VALUE)
        elif isinstance(item, IconItem):
            prims = _ICON_GLYPHS.get(item.type.lower(), _DEFAULT_ICON)
            size_px = item.size * px_per_css_px
            _draw_primitives(painted, prims, centre, size_px, _GLYPH_COLOUR)
            _draw_primitives(mask, prims, centre, size_px, _MASK_VALUE)
        elif isinstance(item, CompassItem):
            prims = _COMPASS_GLYPHS.get(item.type.lower(), _COMPASS_GLYPHS["classic"])
            size_px = item.size * px_per_css_px
            _draw_primitives(painted, prims, centre, size_px, _GLYPH_COLOUR)
            _draw_primitives(mask, prims, centre, size_px, _MASK_VALUE)

    overlay_mask = mask > 0
    log.debug(
        "overlays_rendered",
        items=len(customizations.items),
        overlay_px=int(overlay_mask.sum()),
    )
    return painted, overlay_mask
