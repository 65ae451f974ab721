"""Coordinate spaces and small geometric helpers.

Two coordinate spaces exist and each has its own point type:
    - PixelPoint: rotated-canvas-local pixels (top-left origin, +Y down)
    - MMPoint: the same frame divided by the scan resolution (px/mm)

A value only crosses between them through PixelPoint.to_mm() or
MMPoint.to_pixel(); nothing else in the package multiplies or divides
coordinates by the resolution.

Rounding:
    Sizes derived from physical dimensions use round-half-up (0.5 → 1),
    not Python's banker's rounding, so a 2.5 px request becomes 3 px.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PixelPoint:
    """Point in rotated-canvas pixel space.

    Parameters
    ----------
    x, y : float
        Column and row; (0, 0) is the canvas top-left pixel.
    """

    x: float
    y: float

    def to_mm(self, px_per_mm: float) -> MMPoint:
        """Convert to millimeters (``x * mm_per_px``)."""
        mm_per_px = 1.0 / _check_resolution(px_per_mm)
        return MMPoint(self.x * mm_per_px, self.y * mm_per_px)


@dataclass(frozen=True, slots=True)
class MMPoint:
    """Point in millimeter space (top-left origin, +Y down)."""

    x: float
    y: float

    def to_pixel(self, px_per_mm: float) -> PixelPoint:
        """Convert back to pixel space (``x * px_per_mm``)."""
        px_per_mm = _check_resolution(px_per_mm)
        return PixelPoint(self.x * px_per_mm, self.y * px_per_mm)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


def _check_resolution(px_per_mm: float) -> float:
    if not px_per_mm > 0 or not math.isfinite(px_per_mm):
        raise ValueError(f"px_per_mm must be finite and > 0, got {px_per_mm}")
    return float(px_per_mm)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def rotated_size(width: int, height: int, angle_deg: float) -> tuple[int, int]:
    """Bounding box of a ``width x height`` rectangle rotated by ``angle_deg``.

    Parameters
    ----------
    width, height : int
        Unrotated size in pixels.
    angle_deg : float
        Rotation angle in degrees.

    Returns
    -------
    tuple[int, int]
        ``(rot_w, rot_h)`` with
        ``rot_w = ceil(W|cos| + H|sin|)`` and ``rot_h = ceil(W|sin| + H|cos|)``.
    """
    theta = math.radians(angle_deg)
    # snap float noise so 90, 180 and 270 do not grow the canvas by a pixel
    cos_a = round(abs(math.cos(theta)), 12)
    sin_a = round(abs(math.sin(theta)), 12)
    rot_w = math.ceil(width * cos_a + height * sin_a)
    rot_h = math.ceil(width * sin_a + height * cos_a)
    return rot_w, rot_h
