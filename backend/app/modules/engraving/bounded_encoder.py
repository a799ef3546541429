# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Bounded Encoder
Encodes the print bitmap as a greyscale JPEG whose byte length lands
inside a [min, max] size envelope (the print shop's upload limits).

JPEG size grows with quality, so quality is binary-searched toward the
envelope target. Every in-range candidate is kept and the one closest to
target wins; the search stops early once a candidate is within
target_tolerance × envelope width of target. If the iteration cap is
reached with no in-range candidate, SizeEnvelopeUnreachableError reports
the closest size that was produced.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Optional

import numpy as np

from app.api.middleware.error_handler import SizeEnvelopeUnreachableError
from app.models.export import EXPORT_FORMAT, ExportImage, SizeEnvelope
from app.utils.image_utils import mono_to_pil
from app.utils.logger import get_logger

log = get_logger(__name__)


@dataclass
class _Candidate:
    quality: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def encode_jpeg(mono: np.ndarray, quality: int, dpi: int) -> bytes:
    """Encode a single-channel bitmap as JPEG with the DPI in the JFIF header."""
    buf = io.BytesIO()
    mono_to_pil(mono).save(buf, format="JPEG", quality=quality, dpi=(dpi, dpi))
    return buf.getvalue()


def encode_within_envelope(
    mono: np.ndarray,
    envelope: SizeEnvelope,
    *,
    dpi: int = 300,
    quality_min: int = 5,
    quality_max: int = 100,
    max_iterations: int = 10,
    target_tolerance: float = 0.05,
) -> ExportImage:
    """
    Encode `mono` so len(data) falls inside the envelope.

    Returns:
        ExportImage with the chosen quality and encoded bytes.

    Raises:
        SizeEnvelopeUnreachableError: no quality tried produced an in-range size.
    """
    target = envelope.target
    tolerance = target_tolerance * max(1, envelope.max_bytes - envelope.min_bytes)

    lo, hi = quality_min, quality_max
    best: Optional[_Candidate] = None
    closest: Optional[_Candidate] = None
    tried: list[tuple[int, int]] = []

    for _ in range(max_iterations):
        if lo > hi:
            break
        quality = (lo + hi) // 2
        cand = _Candidate(quality, encode_jpeg(mono, quality, dpi))
        tried.append((quality, cand.size))

        if closest is None or _distance(cand.size, envelope) < _distance(
            closest.size, envelope
        ):
            closest = cand

        if envelope.contains(cand.size):
            if best is None or abs(cand.size - target) < abs(best.size - target):
                best = cand
            if abs(cand.size - target) <= tolerance:
                break

        if cand.size < target:
            lo = quality + 1
        else:
            hi = quality - 1

    log.debug("encoder_search", tried=tried, target_bytes=target)

    if best is None:
        closest_bytes = closest.size if closest else None
        raise SizeEnvelopeUnreachableError(
            f"No JPEG quality in {quality_min}–{quality_max} produced a file within "
            f"{envelope.min_bytes}–{envelope.max_bytes} bytes.",
            closest_bytes=closest_bytes,
            detail=f"closest={closest_bytes} bytes after {len(tried)} attempts",
        )

    height, width = mono.shape[:2]
    log.info(
        "encoded_within_envelope",
        quality=best.quality,
        bytes=best.size,
        attempts=len(tried),
    )
    return ExportImage(
        pixels=mono,
        width=width,
        height=height,
        dpi=dpi,
        data=best.data,
        quality=best.quality,
        format=EXPORT_FORMAT,
    )


def _distance(size: int, envelope: SizeEnvelope) -> int:
    """Bytes outside the envelope (0 when inside)."""
    if size < envelope.min_bytes:
        return envelope.min_bytes - size
    if size > envelope.max_bytes:
        return size - envelope.max_bytes
    return 0
