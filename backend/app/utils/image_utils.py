# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Image I/O and Conversion Utilities
Shared helpers used across compositing, monochrome conversion and encoding.
All internal colour processing uses RGB numpy arrays; OpenCV's BGR
convention is confined to the decode/encode boundary in this module.
"""

import cv2
import numpy as np
from PIL import Image

# CSS named colours the editor offers, plus a few safe extras
_NAMED_COLOURS: dict[str, tuple[int, int, int]] = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
}


# ─── Decode / Encode ─────────────────────────────────────────────────────────

def bytes_to_rgb(data: bytes) -> np.ndarray:
    """
    Decode raw image bytes (PNG / JPEG / WebP tile) to an RGB uint8 array.
    Raises ValueError if the bytes cannot be decoded.
    """
    if not data:
        raise ValueError("Empty image payload.")
    arr = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if img is None:
        raise ValueError("Could not decode image bytes.")
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


def rgb_to_png_bytes(img: np.ndarray) -> bytes:
    """Encode an RGB numpy array to PNG bytes (lossless)."""
    success, buf = cv2.imencode(".png", cv2.cvtColor(img, cv2.COLOR_RGB2BGR))
    if not success:
        raise RuntimeError("Failed to encode image to PNG bytes.")
    return buf.tobytes()


# ─── Resize / Crop ───────────────────────────────────────────────────────────

def resize_exact(
    img: np.ndarray,
    width: int,
    height: int,
    *,
    nearest: bool = False,
) -> np.ndarray:
    """
    Resize to exactly width×height.
    nearest=True never introduces pixel values absent from the input,
    which keeps two-level images two-level.
    """
    h, w = img.shape[:2]
    if (w, h) == (width, height):
        return img.copy()
    if nearest:
        interp = cv2.INTER_NEAREST
    elif width < w or height < h:
        interp = cv2.INTER_AREA
    else:
        interp = cv2.INTER_LINEAR
    return cv2.resize(img, (width, height), interpolation=interp)


def crop_clamped(img: np.ndarray, x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
    """Crop [x0:x1, y0:y1], clamped to image bounds. Never raises."""
    h, w = img.shape[:2]
    x0, x1 = max(0, x0), min(w, x1)
    y0, y1 = max(0, y0), min(h, y1)
    return img[y0:y1, x0:x1].copy()


# ─── Colour ──────────────────────────────────────────────────────────────────

def parse_colour(value: str, default: tuple[int, int, int] = (0, 0, 0)) -> tuple[int, int, int]:
    """
    Parse '#rgb', '#rrggbb' or a basic colour name into an RGB tuple.
    Unknown values fall back to default; colours are rendering hints only.
    """
    v = (value or "").strip().lower()
    if v in _NAMED_COLOURS:
        return _NAMED_COLOURS[v]
    if v.startswith("#"):
        v = v[1:]
        if len(v) == 3:
            v = "".join(c * 2 for c in v)
        if len(v) == 6:
            try:
                return (int(v[0:2], 16), int(v[2:4], 16), int(v[4:6], 16))
            except ValueError:
                return default
    return default


# ─── PIL Bridge ──────────────────────────────────────────────────────────────

def mono_to_pil(img: np.ndarray) -> Image.Image:
    """Convert a single-channel uint8 array to a PIL 'L' image."""
    if img.ndim != 2:
        raise ValueError(f"Expected a single-channel image, got shape {img.shape}.")
    return Image.fromarray(np.ascontiguousarray(img, dtype=np.uint8))
