"""Test multi-pass tracing from image to mm strokes.

Tests for hatchplot.data_pipeline.raster_tracer:
    - Parameter validation happens before any buffer work
    - Pass angles spread over a half turn and wrap into [0, 360)
    - All-black image at 0 deg: one full-width stroke per scanned row
    - Blank image: zero strokes
    - Stroke order: pass by pass, row by row
    - Same input, same output
    - Every segment lies inside its pass canvas
    - 16-bit files and buffers trace like their 8-bit equivalents

Run:
    pytest tests/test_raster_tracer.py -v
"""

import numpy as np
import pytest
from PIL import Image

from hatchplot.data_pipeline import raster_tracer
from hatchplot.data_pipeline.raster import InvalidInputError, ResourceExhaustionError
from hatchplot.data_pipeline.raster_tracer import (
    line_spacing_px,
    make_params,
    pass_angles,
    trace_file,
    trace_image,
)
from hatchplot.utils import validators


def _params(**overrides):
    values = dict(width_mm=10.0, px_per_mm=1.0, line_spacing_mm=2.0, threshold=128)
    values.update(overrides)
    return make_params(**values)


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


def test_make_params_defaults():
    params = make_params(width_mm=50, px_per_mm=2, line_spacing_mm=0.5)
    assert isinstance(params, validators.RasterParamsV1)
    assert params.threshold == 128
    assert params.angle_deg == 0.0
    assert params.passes == 1


@pytest.mark.parametrize("field, value", [
    ("width_mm", 0.0),
    ("width_mm", -5.0),
    ("px_per_mm", 0.0),
    ("line_spacing_mm", 0.0),
    ("threshold", 256),
    ("threshold", -1),
    ("passes", 0),
    ("width_mm", float("nan")),
    ("angle_deg", float("inf")),
])
def test_make_params_rejects(field, value):
    with pytest.raises(InvalidInputError):
        _params(**{field: value})


def test_invalid_params_also_value_error():
    with pytest.raises(ValueError):
        _params(passes=0)


def test_pass_angles_single():
    assert pass_angles(30.0, 1) == [30.0]


def test_pass_angles_spread():
    assert pass_angles(0.0, 4) == pytest.approx([0.0, 45.0, 90.0, 135.0])


def test_pass_angles_wrap():
    angles = pass_angles(350.0, 2)
    assert angles == pytest.approx([350.0, 80.0])
    assert all(0.0 <= a < 360.0 for a in angles)


def test_pass_angles_negative_base():
    assert pass_angles(-90.0, 1) == pytest.approx([270.0])


def test_line_spacing_px():
    assert line_spacing_px(0.5, 4.0) == 2
    assert line_spacing_px(0.625, 4.0) == 3  # 2.5 rounds up
    assert line_spacing_px(0.01, 1.0) == 1


# ---------------------------------------------------------------------------
# Tracing
# ---------------------------------------------------------------------------


def test_black_square_one_stroke_per_row():
    job = trace_image(Image.new("RGB", (10, 10), "black"), _params())
    assert job.target_px == (10, 10)
    assert len(job.passes) == 1
    assert len(job.strokes) == 5
    for stroke, y in zip(job.strokes, [0.0, 2.0, 4.0, 6.0, 8.0]):
        assert stroke.as_tuples() == [(0.0, y), (9.0, y)]


def test_mm_conversion_uses_resolution():
    job = trace_image(Image.new("RGB", (10, 10), "black"), _params(width_mm=5.0, px_per_mm=2.0, line_spacing_mm=1.0))
    first = job.strokes[0]
    assert first.as_tuples() == [(0.0, 0.0), (4.5, 0.0)]


def test_blank_image_gives_no_strokes():
    job = trace_image(Image.new("RGB", (10, 10), "white"), _params(passes=3, angle_deg=20.0))
    assert job.strokes == ()
    assert len(job.passes) == 3


def test_transparent_image_gives_no_strokes():
    job = trace_image(Image.new("RGBA", (10, 10), (0, 0, 0, 0)), _params())
    assert job.strokes == ()


def test_multi_pass_order_and_angles():
    job = trace_image(Image.new("RGB", (10, 10), "black"), _params(passes=2))
    assert job.angles == pytest.approx([0.0, 90.0])
    first_pass = len(job.passes[0].segments)
    assert first_pass == 5
    assert len(job.strokes) == first_pass + len(job.passes[1].segments)
    # strokes inside each pass are sorted by row
    ys = [s.points[0].y for s in job.strokes[:first_pass]]
    assert ys == sorted(ys)


def test_rotated_pass_canvas_size():
    job = trace_image(Image.new("RGB", (20, 10), "black"), _params(width_mm=20.0, angle_deg=90.0))
    assert job.passes[0].canvas_px == (10, 20)


def test_strokes_are_horizontal_in_canvas():
    rng = np.random.default_rng(3)
    img = rng.integers(0, 256, size=(30, 40, 3), dtype=np.uint8)
    job = trace_image(img, _params(width_mm=40.0, line_spacing_mm=3.0, passes=3, angle_deg=15.0))
    for stroke in job.strokes:
        assert len(stroke) == 2
        assert stroke.points[0].y == stroke.points[1].y
        assert stroke.points[0].x <= stroke.points[1].x


def test_deterministic():
    rng = np.random.default_rng(4)
    img = rng.integers(0, 256, size=(25, 25, 3), dtype=np.uint8)
    params = _params(width_mm=25.0, passes=2, angle_deg=30.0)
    assert trace_image(img, params) == trace_image(img, params)


def test_mapping_params_accepted():
    job = trace_image(
        Image.new("RGB", (10, 10), "black"),
        {'width_mm': 10.0, 'px_per_mm': 1.0, 'line_spacing_mm': 2.0},
    )
    assert len(job.strokes) == 5


def test_zero_width_buffer_rejected():
    with pytest.raises(InvalidInputError):
        trace_image(np.zeros((5, 0, 3), dtype=np.uint8), _params())


def test_params_validated_before_scaling(monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("scale_image must not run")

    monkeypatch.setattr(raster_tracer, "scale_image", _fail)
    with pytest.raises(InvalidInputError):
        trace_image(Image.new("RGB", (4, 4)), {'width_mm': -1, 'px_per_mm': 1, 'line_spacing_mm': 1})


def test_trace_file(tmp_path):
    path = tmp_path / "black.png"
    Image.new("RGB", (10, 10), "black").save(path)
    job = trace_file(path, _params())
    assert len(job.strokes) == 5


def test_trace_file_missing(tmp_path):
    with pytest.raises(InvalidInputError):
        trace_file(tmp_path / "missing.png", _params())


def test_pass_context_cleared_after_trace():
    from hatchplot.utils.logging_config import get_context

    trace_image(Image.new("RGB", (4, 4), "black"), _params(width_mm=4.0, passes=2))
    assert 'pass' not in get_context()


@pytest.mark.parametrize("image_fn", [
    lambda: np.zeros((30, 40, 3), dtype=np.uint8),
    lambda: np.random.default_rng(5).integers(0, 256, size=(30, 40, 3), dtype=np.uint8),
])
def test_multi_pass_segments_inside_their_canvas(image_fn):
    job = trace_image(image_fn(), _params(width_mm=40.0, line_spacing_mm=1.0, passes=3, angle_deg=20.0))
    assert job.strokes
    for p in job.passes:
        canvas_w, canvas_h = p.canvas_px
        assert p.segments
        for seg in p.segments:
            for point in (seg.start, seg.end):
                assert 0 <= point.x < canvas_w
                assert 0 <= point.y < canvas_h


def test_16bit_png_traced(tmp_path):
    path = tmp_path / "gray16.png"
    Image.fromarray(np.full((10, 10), 16000, dtype=np.uint16)).save(path)
    job = trace_file(path, _params())
    assert len(job.strokes) == 5


def test_uint16_buffer_traced():
    job = trace_image(np.full((10, 10, 3), 16000, dtype=np.uint16), _params())
    assert len(job.strokes) == 5


def test_huge_target_is_resource_exhaustion():
    with pytest.raises(ResourceExhaustionError):
        trace_image(
            Image.new("RGB", (10, 10)),
            _params(width_mm=1e6, px_per_mm=1e4, line_spacing_mm=1.0),
        )
