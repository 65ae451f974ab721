"""Segment, stroke, pass and job records plus stroke statistics.

Provides:
    - Segment: one dark run reduced to its two end pixels (pixel space)
    - Stroke: pen-down polyline in mm (always two points here)
    - Pass: one rotated raster sweep and the segments it produced
    - PlotJob: the merged, mm-space result of a conversion
    - segment_to_stroke(): the single pixel → mm conversion step
    - Statistics: draw length, travel length, mm bounds, summary dict

All records are frozen. A PlotJob is built once per conversion and then
only read (by the preview renderer and the G-code generator).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable

from .geometry import MMPoint, PixelPoint


@dataclass(frozen=True, slots=True)
class Segment:
    """Dark run collapsed to its extreme pixels.

    ``start.y == end.y`` always holds: a run never spans rows.
    """

    start: PixelPoint
    end: PixelPoint


@dataclass(frozen=True, slots=True)
class Stroke:
    """Polyline drawn without lifting the pen.

    Parameters
    ----------
    points : tuple[MMPoint, ...]
        Ordered vertices in mm.
    """

    points: tuple[MMPoint, ...]

    def __len__(self) -> int:
        return len(self.points)

    def as_tuples(self) -> list[tuple[float, float]]:
        return [p.as_tuple() for p in self.points]


@dataclass(frozen=True, slots=True)
class Pass:
    """One raster sweep of the image rotated to ``angle_deg``.

    Parameters
    ----------
    angle_deg : float
        Pass angle in degrees, in [0, 360).
    canvas_px : tuple[int, int]
        Rotated canvas size ``(rot_w, rot_h)`` the segments live in.
    segments : tuple[Segment, ...]
        Segments in scan order (row, then start column).
    """

    angle_deg: float
    canvas_px: tuple[int, int]
    segments: tuple[Segment, ...]


@dataclass(frozen=True, slots=True)
class PlotJob:
    """Result of converting one image.

    Parameters
    ----------
    target_px : tuple[int, int]
        Scaled (unrotated) image size ``(w, h)`` in pixels.
    px_per_mm : float
        Scan resolution; strictly positive.
    passes : tuple[Pass, ...]
        Passes in generation order.
    strokes : tuple[Stroke, ...]
        All passes' segments converted to mm, pass by pass.
    """

    target_px: tuple[int, int]
    px_per_mm: float
    passes: tuple[Pass, ...]
    strokes: tuple[Stroke, ...]

    @property
    def mm_per_px(self) -> float:
        return 1.0 / self.px_per_mm

    @property
    def angles(self) -> list[float]:
        return [p.angle_deg for p in self.passes]

    @property
    def size_mm(self) -> tuple[float, float]:
        """Scaled image size in mm (unrotated)."""
        w, h = self.target_px
        return (w * self.mm_per_px, h * self.mm_per_px)


def segment_to_stroke(segment: Segment, px_per_mm: float) -> Stroke:
    """Convert a pixel-space segment into a two-point mm stroke."""
    return Stroke(points=(segment.start.to_mm(px_per_mm), segment.end.to_mm(px_per_mm)))


def stroke_length_mm(stroke: Stroke) -> float:
    """Pen-down length of one stroke (0 for degenerate strokes)."""
    pts = stroke.points
    return sum(
        math.hypot(b.x - a.x, b.y - a.y) for a, b in zip(pts, pts[1:])
    )


def total_draw_length_mm(strokes: Iterable[Stroke]) -> float:
    return sum(stroke_length_mm(s) for s in strokes)


def total_travel_length_mm(strokes: Iterable[Stroke]) -> float:
    """Pen-up distance between consecutive strokes, starting at the origin."""
    length = 0.0
    cur_x, cur_y = 0.0, 0.0
    for stroke in strokes:
        if not stroke.points:
            continue
        first, last = stroke.points[0], stroke.points[-1]
        length += math.hypot(first.x - cur_x, first.y - cur_y)
        cur_x, cur_y = last.x, last.y
    return length


def bounds_mm(strokes: Iterable[Stroke]) -> tuple[float, float, float, float] | None:
    """Return ``(x_min, y_min, x_max, y_max)`` over all points, or None if empty."""
    xs: list[float] = []
    ys: list[float] = []
    for stroke in strokes:
        for p in stroke.points:
            xs.append(p.x)
            ys.append(p.y)
    if not xs:
        return None
    return (min(xs), min(ys), max(xs), max(ys))


def summarize(job: PlotJob) -> dict[str, Any]:
    """Plain-dict job statistics (YAML-safe), used for manifests and logs."""
    bbox = bounds_mm(job.strokes)
    return {
        'target_px': list(job.target_px),
        'px_per_mm': job.px_per_mm,
        'angles_deg': [round(a, 6) for a in job.angles],
        'canvas_px': [list(p.canvas_px) for p in job.passes],
        'stroke_count': len(job.strokes),
        'draw_length_mm': round(total_draw_length_mm(job.strokes), 3),
        'travel_length_mm': round(total_travel_length_mm(job.strokes), 3),
        'bounds_mm': [round(v, 3) for v in bbox] if bbox else None,
    }
