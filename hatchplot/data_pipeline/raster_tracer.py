"""Multi-pass raster tracing: photo → ordered mm strokes.

This module runs the raster stages (see raster.py) once per pass and
merges the results into a PlotJob:
    1. Validate all parameters (before any buffer is allocated)
    2. Scale the photo once to the target pixel size
    3. For each pass angle: rotate, scan rows, collect segments
    4. Convert every segment to mm and concatenate, pass by pass

Pass angles are spread over a half turn, ``base + p * 180 / N``, so
successive passes cross-hatch instead of retracing each other.

Coordinate frame:
    Each pass's strokes are expressed in that pass's own rotated canvas
    (top-left origin, +Y down). Passes are not re-projected into a common
    frame.

All geometry in the returned PlotJob is in millimeters.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Union

import numpy as np
from pydantic import ValidationError

from ..utils import validators
from ..utils.geometry import round_half_up
from ..utils.logging_config import log_context
from ..utils.strokes import Pass, PlotJob, Segment, segment_to_stroke
from .raster import (
    ImageLike,
    InvalidInputError,
    load_image,
    rotate_buffer,
    scale_image,
    scan_runs,
    target_pixel_size,
)

logger = logging.getLogger(__name__)


def make_params(**values: Any) -> validators.RasterParamsV1:
    """Build validated raster parameters from keyword arguments.

    Raises
    ------
    InvalidInputError
        If any value is missing or out of range.
    """
    try:
        return validators.RasterParamsV1(**values)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid raster parameters: {e}") from e


def _coerce_params(
    params: Union[validators.RasterParamsV1, Mapping[str, Any]],
) -> validators.RasterParamsV1:
    if isinstance(params, validators.RasterParamsV1):
        return params
    return make_params(**dict(params))


def pass_angles(base_angle_deg: float, passes: int) -> list[float]:
    """Angles for ``passes`` sweeps, evenly spread over 180 degrees.

    Returns ``[(base + p * 180 / passes) % 360 for p in range(passes)]``,
    each in [0, 360).
    """
    if passes < 1:
        raise InvalidInputError(f"passes must be >= 1, got {passes}")
    return [(base_angle_deg + p * 180.0 / passes) % 360.0 for p in range(passes)]


def line_spacing_px(line_spacing_mm: float, px_per_mm: float) -> int:
    """Row spacing in pixels: ``round(line_spacing_mm * px_per_mm)``, at least 1."""
    return max(1, round_half_up(line_spacing_mm * px_per_mm))


def trace_pass(
    scaled: np.ndarray,
    angle_deg: float,
    spacing_px: int,
    threshold: int,
) -> Pass:
    """Rotate the scaled buffer to ``angle_deg`` and scan it."""
    rotated = rotate_buffer(scaled, angle_deg)
    rot_h, rot_w = rotated.shape[:2]
    segments: list[Segment] = scan_runs(rotated, spacing_px, threshold)
    return Pass(angle_deg=angle_deg, canvas_px=(rot_w, rot_h), segments=tuple(segments))


def trace_image(
    image: ImageLike,
    params: Union[validators.RasterParamsV1, Mapping[str, Any]],
) -> PlotJob:
    """Convert a decoded image into an ordered list of mm strokes.

    Parameters
    ----------
    image : PIL.Image.Image | np.ndarray
        Decoded source image (any mode; transparency counts as white).
    params : RasterParamsV1 | Mapping
        Raster parameters; mappings are validated via make_params().

    Returns
    -------
    PlotJob
        Target pixel size, resolution, per-pass segments and merged
        strokes. A blank image gives a job with zero strokes.

    Raises
    ------
    InvalidInputError
        Bad parameters or an image with zero width.
    ResourceExhaustionError
        A scaled or rotated buffer could not be allocated.
    """
    params = _coerce_params(params)
    natural_size = _natural_size(image)

    target_w, target_h = target_pixel_size(natural_size, params.width_mm, params.px_per_mm)
    spacing_px = line_spacing_px(params.line_spacing_mm, params.px_per_mm)
    angles = pass_angles(params.angle_deg, params.passes)

    logger.debug(
        "Scaling %dx%d px image to %dx%d px (row spacing %d px)",
        natural_size[0], natural_size[1], target_w, target_h, spacing_px,
    )
    scaled = scale_image(image, (target_w, target_h))

    passes: list[Pass] = []
    for idx, angle in enumerate(angles, start=1):
        with log_context(**{'pass': idx}):
            traced = trace_pass(scaled, angle, spacing_px, params.threshold)
            logger.debug(
                "Angle %.1f deg: canvas %dx%d px, %d segments",
                angle, traced.canvas_px[0], traced.canvas_px[1], len(traced.segments),
            )
        passes.append(traced)

    strokes = tuple(
        segment_to_stroke(seg, params.px_per_mm)
        for traced in passes
        for seg in traced.segments
    )

    logger.info(
        "Processed: width %gmm @ %g px/mm → %dx%dpx. Passes: %d angles: %s. Strokes: %d.",
        params.width_mm, params.px_per_mm, target_w, target_h, params.passes,
        ", ".join(f"{a:.1f}" for a in angles), len(strokes),
    )

    return PlotJob(
        target_px=(target_w, target_h),
        px_per_mm=params.px_per_mm,
        passes=tuple(passes),
        strokes=strokes,
    )


def trace_file(
    path: Union[str, Path],
    params: Union[validators.RasterParamsV1, Mapping[str, Any]],
) -> PlotJob:
    """Load an image file and run trace_image() on it.

    Parameters are validated before the file is decoded.
    """
    params = _coerce_params(params)
    image = load_image(path)
    logger.info("Loaded image %s (%dx%d px)", path, image.width, image.height)
    return trace_image(image, params)


def _natural_size(image: ImageLike) -> tuple[int, int]:
    if isinstance(image, np.ndarray):
        if image.ndim < 2:
            raise InvalidInputError(f"Pixel buffer must be 2-D or 3-D, got shape {image.shape}")
        return (int(image.shape[1]), int(image.shape[0]))
    return image.size
