"""Preview rendering of a PlotJob.

Draws every stroke as a black polyline on a white canvas sized from the
job's scaled image, shrunk to fit ``max_size`` (never enlarged). Stroke
coordinates go back to pixels through MMPoint.to_pixel().

Strokes with fewer than two points or zero length have nothing to draw
and are skipped, so single dark pixels leave no mark.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from PIL import Image, ImageDraw

from ..utils import fs
from ..utils.strokes import PlotJob, stroke_length_mm

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = (1200, 800)


def preview_scale(target_px: tuple[int, int], max_size: tuple[int, int] = DEFAULT_MAX_SIZE) -> float:
    """Shrink factor that fits ``target_px`` inside ``max_size`` (<= 1)."""
    w, h = target_px
    return min(max_size[0] / w, max_size[1] / h, 1.0)


def render_preview(
    job: PlotJob,
    max_size: tuple[int, int] = DEFAULT_MAX_SIZE,
) -> Image.Image:
    """Render the job's strokes into an RGB image."""
    scale = preview_scale(job.target_px, max_size)
    width = max(1, round(job.target_px[0] * scale))
    height = max(1, round(job.target_px[1] * scale))

    img = Image.new("RGB", (width, height), "white")
    draw = ImageDraw.Draw(img)
    line_width = max(1, round(scale))

    drawn = 0
    for stroke in job.strokes:
        if len(stroke.points) < 2 or stroke_length_mm(stroke) == 0.0:
            continue
        xy = []
        for p in stroke.points:
            px = p.to_pixel(job.px_per_mm)
            xy.append((px.x * scale, px.y * scale))
        draw.line(xy, fill="black", width=line_width)
        drawn += 1

    logger.debug("Rendered preview %dx%d px with %d strokes", width, height, drawn)
    return img


def save_preview(
    job: PlotJob,
    path: Union[str, Path],
    max_size: tuple[int, int] = DEFAULT_MAX_SIZE,
) -> Path:
    """Render the preview and write it atomically as PNG; returns the path."""
    path = Path(path)
    fs.atomic_save_image(render_preview(job, max_size), path)
    logger.info("Saved preview to %s", path)
    return path
