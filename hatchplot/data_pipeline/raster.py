"""Raster stages of the stroke pipeline: scale, rotate, scan.

Pipeline for one pass:
    1. scale_image(): resample the photo to the target pixel size
    2. rotate_buffer(): rotate it into a white, loss-free bounding canvas
    3. scan_runs(): sample rows at a fixed spacing and reduce every dark
       run to a two-point Segment

Buffers are numpy ``(H, W, 3)`` uint8 RGB arrays. Every function here is
a pure function of its inputs: no drawing context, no module state.

Darkness:
    BT.709 luma ``g = 0.2126 R + 0.7152 G + 0.0722 B``; a pixel is dark
    iff ``g < threshold``. Anything outside the buffer counts as white.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Literal, Union

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from ..utils.geometry import PixelPoint, rotated_size, round_half_up
from ..utils.strokes import Segment

logger = logging.getLogger(__name__)

ImageLike = Union[Image.Image, np.ndarray]

WHITE = 255

# Pillow modes holding 16-bit (or wider) integer samples
_WIDE_INT_MODES = ("I", "I;16", "I;16L", "I;16B", "I;16N")

# BT.709 luma weights scaled by 10^4 so the dark test is exact integer math
_LUMA_WEIGHTS = np.array([2126, 7152, 722], dtype=np.int64)
_LUMA_SCALE = 10_000

__all__ = [
    "RasterError",
    "InvalidInputError",
    "ResourceExhaustionError",
    "load_image",
    "target_pixel_size",
    "scale_image",
    "rotated_size",
    "rotate_buffer",
    "luma",
    "dark_mask",
    "scan_runs",
]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RasterError(Exception):
    """Base class for stroke-extraction failures."""

    pass


class InvalidInputError(RasterError, ValueError):
    """Raised when an image or parameter cannot be converted."""

    pass


class ResourceExhaustionError(RasterError):
    """Raised when a pixel buffer is too large to allocate."""

    pass


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_image(path: Union[str, Path]) -> Image.Image:
    """Decode an image file.

    Parameters
    ----------
    path : str | Path
        Image file (PNG, JPEG, ...).

    Returns
    -------
    PIL.Image.Image
        Fully decoded image in its native mode, turned upright according
        to its EXIF orientation tag.

    Raises
    ------
    InvalidInputError
        If the file is missing or cannot be decoded.
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            img.load()
            return ImageOps.exif_transpose(img)
    except (FileNotFoundError, UnidentifiedImageError, OSError) as e:
        raise InvalidInputError(f"Failed to load image {path}: {e}") from e


def _to_uint8(arr: np.ndarray) -> np.ndarray:
    """Reduce samples to 8 bits.

    ``uint16`` data is rescaled (``v >> 8``) so 16-bit photos keep their
    tones; any other dtype is read as 0-255 and clipped.
    """
    if arr.dtype == np.uint8:
        return arr
    if arr.dtype == np.uint16:
        return (arr >> 8).astype(np.uint8)
    return np.clip(arr, 0, 255).astype(np.uint8)


def _narrow_wide_mode(image: Image.Image) -> Image.Image:
    """Turn a 16-bit integer or float single-band image into mode ``L``.

    Integer modes are taken as 0-65535. Float (``F``) images whose samples
    all lie in [0, 1] are taken as normalized; otherwise as 0-255.
    """
    if image.mode in _WIDE_INT_MODES:
        samples = np.asarray(image, dtype=np.int64)
        return Image.fromarray(_to_uint8(np.clip(samples, 0, 65535).astype(np.uint16)))
    samples = np.asarray(image, dtype=np.float64)
    if samples.size and samples.min() >= 0.0 and samples.max() <= 1.0:
        samples = samples * 255.0
    return Image.fromarray(_to_uint8(np.rint(samples)))


def _to_rgb_image(image: ImageLike) -> Image.Image:
    """Return an RGB PIL image; transparency is flattened onto white."""
    if isinstance(image, np.ndarray):
        arr = _to_uint8(image)
        if arr.ndim == 3 and arr.shape[2] == 1:
            arr = arr[:, :, 0]
        if arr.ndim not in (2, 3) or (arr.ndim == 3 and arr.shape[2] not in (3, 4)):
            raise InvalidInputError(f"Unsupported pixel buffer shape {image.shape}")
        image = Image.fromarray(arr)

    if image.mode in _WIDE_INT_MODES or image.mode == "F":
        image = _narrow_wide_mode(image)
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (WHITE, WHITE, WHITE, 255))
        return Image.alpha_composite(background, rgba).convert("RGB")
    return image.convert("RGB")


# ---------------------------------------------------------------------------
# Rasterizer
# ---------------------------------------------------------------------------


def target_pixel_size(
    natural_size: tuple[int, int],
    width_mm: float,
    px_per_mm: float,
) -> tuple[int, int]:
    """Pixel size of the scaled image.

    ``w = max(1, round(width_mm * px_per_mm))``, uniform scale ``w / W0``,
    ``h = round(H0 * scale)`` (kept at least 1 so very wide images still
    produce a scannable row).

    Raises
    ------
    InvalidInputError
        If the natural width is zero (image not loaded) or the physical
        parameters are not positive.
    """
    natural_w, natural_h = natural_size
    if natural_w <= 0:
        raise InvalidInputError("Image has zero natural width (not loaded?)")
    if not width_mm > 0 or not px_per_mm > 0:
        raise InvalidInputError(
            f"width_mm and px_per_mm must be > 0, got {width_mm} and {px_per_mm}"
        )
    target_w = max(1, round_half_up(width_mm * px_per_mm))
    scale = target_w / natural_w
    target_h = max(1, round_half_up(natural_h * scale))
    return target_w, target_h


def scale_image(image: ImageLike, size: tuple[int, int]) -> np.ndarray:
    """Resample ``image`` to ``size`` (w, h) and return an RGB buffer.

    Returns
    -------
    np.ndarray
        ``(h, w, 3)`` uint8 buffer.

    Raises
    ------
    InvalidInputError
        If the source has zero width or height.
    ResourceExhaustionError
        If the target buffer cannot be allocated.
    """
    rgb = _to_rgb_image(image)
    if rgb.width <= 0 or rgb.height <= 0:
        raise InvalidInputError(f"Image has empty size {rgb.size}")

    try:
        if rgb.size != tuple(size):
            rgb = rgb.resize(tuple(size), Image.Resampling.LANCZOS)
        return np.array(rgb, dtype=np.uint8)
    except (MemoryError, OverflowError, ValueError) as e:
        _reraise_unless_allocation_failure(e)
        raise ResourceExhaustionError(
            f"Cannot allocate scaled image of {size[0]}x{size[1]} px"
        ) from e


# ---------------------------------------------------------------------------
# Rotator
# ---------------------------------------------------------------------------


def rotate_buffer(
    buffer: np.ndarray,
    angle_deg: float,
    interpolation: Literal["bilinear", "nearest"] = "bilinear",
) -> np.ndarray:
    """Rotate an RGB buffer about its centre into its full bounding box.

    The destination is ``rotated_size(W, H, angle)`` large and starts white;
    the source is centred in it and rotated by ``angle_deg`` (clockwise on
    screen, since +Y points down). Each destination pixel centre is mapped
    back through the inverse rotation and sampled from the source; samples
    that land outside the source are white.

    Parameters
    ----------
    buffer : np.ndarray
        ``(H, W, 3)`` uint8 source.
    angle_deg : float
        Rotation in degrees.
    interpolation : "bilinear" | "nearest"
        Source sampling mode.

    Returns
    -------
    np.ndarray
        ``(rot_h, rot_w, 3)`` uint8 buffer. At 0 degrees this equals the
        source exactly.

    Raises
    ------
    ResourceExhaustionError
        If the rotated canvas or its sampling grid cannot be allocated.
    """
    if interpolation not in ("bilinear", "nearest"):
        raise ValueError(f"interpolation must be 'bilinear' or 'nearest', got {interpolation!r}")

    src_h, src_w = buffer.shape[:2]
    rot_w, rot_h = rotated_size(src_w, src_h, angle_deg)

    theta = math.radians(angle_deg)
    cos_a, sin_a = math.cos(theta), math.sin(theta)

    try:
        ys, xs = np.mgrid[0:rot_h, 0:rot_w].astype(np.float64)
        dx = xs + 0.5 - rot_w / 2.0
        dy = ys + 0.5 - rot_h / 2.0
        # Inverse rotation back into source pixel-index space
        sx = cos_a * dx + sin_a * dy + src_w / 2.0 - 0.5
        sy = -sin_a * dx + cos_a * dy + src_h / 2.0 - 0.5

        if interpolation == "nearest":
            out = _sample(buffer, np.rint(sx).astype(np.int64), np.rint(sy).astype(np.int64))
            return out.astype(np.uint8)

        x0 = np.floor(sx).astype(np.int64)
        y0 = np.floor(sy).astype(np.int64)
        fx = (sx - x0)[..., None]
        fy = (sy - y0)[..., None]

        top = _sample(buffer, x0, y0) * (1.0 - fx) + _sample(buffer, x0 + 1, y0) * fx
        bottom = _sample(buffer, x0, y0 + 1) * (1.0 - fx) + _sample(buffer, x0 + 1, y0 + 1) * fx
        out = top * (1.0 - fy) + bottom * fy
        return np.clip(np.rint(out), 0, WHITE).astype(np.uint8)
    except (MemoryError, OverflowError, ValueError) as e:
        _reraise_unless_allocation_failure(e)
        raise ResourceExhaustionError(
            f"Cannot allocate rotated canvas of {rot_w}x{rot_h} px"
        ) from e


def _reraise_unless_allocation_failure(exc: Exception) -> None:
    """Re-raise ``exc`` unless it reports a buffer too large to allocate.

    Besides MemoryError, Pillow raises OverflowError for sizes past the C
    int range and numpy raises ValueError("array is too big").
    """
    if isinstance(exc, ValueError) and "too big" not in str(exc):
        raise exc


def _sample(buffer: np.ndarray, xi: np.ndarray, yi: np.ndarray) -> np.ndarray:
    """Gather source pixels at integer indices; out-of-bounds reads are white."""
    h, w = buffer.shape[:2]
    inside = (xi >= 0) & (xi < w) & (yi >= 0) & (yi < h)
    out = np.full(xi.shape + (3,), float(WHITE))
    out[inside] = buffer[yi[inside], xi[inside]]
    return out


# ---------------------------------------------------------------------------
# Run scanner
# ---------------------------------------------------------------------------


def luma(buffer: np.ndarray) -> np.ndarray:
    """BT.709 luma of an RGB buffer as float64 in [0, 255]."""
    return (buffer[..., :3].astype(np.int64) @ _LUMA_WEIGHTS) / _LUMA_SCALE


def dark_mask(buffer: np.ndarray, threshold: int) -> np.ndarray:
    """Boolean mask of pixels whose luma is strictly below ``threshold``.

    Compared as ``2126 R + 7152 G + 722 B < threshold * 10000`` so pure
    white (luma exactly 255) is never dark, whatever the threshold.
    """
    if not 0 <= threshold <= 255:
        raise InvalidInputError(f"threshold must be in [0, 255], got {threshold}")
    weighted = buffer[..., :3].astype(np.int64) @ _LUMA_WEIGHTS
    return weighted < int(threshold) * _LUMA_SCALE


def scan_runs(
    buffer: np.ndarray,
    line_spacing_px: int,
    threshold: int,
) -> list[Segment]:
    """Reduce dark runs on every ``line_spacing_px``-th row to segments.

    Rows ``y = 0, s, 2s, ...`` below the buffer height are scanned left to
    right. Each maximal run of dark pixels becomes
    ``Segment((first_x, y), (last_x, y))``; interior pixels are dropped and
    a lone dark pixel gives a zero-length segment.

    Parameters
    ----------
    buffer : np.ndarray
        ``(rot_h, rot_w, 3)`` uint8 buffer.
    line_spacing_px : int
        Row spacing, >= 1.
    threshold : int
        Luma threshold in [0, 255].

    Returns
    -------
    list[Segment]
        Ordered by row, then by start column.
    """
    if int(line_spacing_px) != line_spacing_px or line_spacing_px < 1:
        raise InvalidInputError(f"line_spacing_px must be an integer >= 1, got {line_spacing_px}")

    rows = dark_mask(buffer[::int(line_spacing_px)], threshold)
    segments: list[Segment] = []
    for row_idx, dark in enumerate(rows):
        y = float(row_idx * int(line_spacing_px))
        # Pad with light pixels so every run has a rising and a falling edge
        padded = np.concatenate(([False], dark, [False]))
        edges = np.flatnonzero(padded[1:] != padded[:-1])
        for start, stop in zip(edges[0::2].tolist(), edges[1::2].tolist()):
            segments.append(Segment(PixelPoint(float(start), y), PixelPoint(float(stop - 1), y)))
    return segments
