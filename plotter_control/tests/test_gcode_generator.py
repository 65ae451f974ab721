"""Tests for G-code generator.

Validates the exact program layout, number formatting, pen-state
checks, work-area rejection and relative-mode handling.
"""

from __future__ import annotations

import dataclasses
import logging

import pytest
from PIL import Image

from hatchplot.data_pipeline.raster_tracer import make_params, trace_image
from hatchplot.utils.geometry import MMPoint
from hatchplot.utils.strokes import PlotJob, Stroke
from plotter_control.configs.loader import MachineConfig, WorkAreaConfig, load_config
from plotter_control.gcode.generator import (
    HEADER_COMMENT,
    GCodeError,
    GCodeGenerator,
    plot_job_to_gcode,
)
from plotter_control.job_ir.operations import (
    Comment,
    LinearMove,
    Operation,
    RapidXY,
    ToolDown,
    ToolUp,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> MachineConfig:
    """Load the default machine config shipped with the package."""
    return load_config()


@pytest.fixture()
def gen(config: MachineConfig) -> GCodeGenerator:
    return GCodeGenerator(config)


def _job(*strokes: list[tuple[float, float]]) -> PlotJob:
    return PlotJob(
        target_px=(10, 10),
        px_per_mm=4.0,
        passes=(),
        strokes=tuple(Stroke(points=tuple(MMPoint(x, y) for x, y in pts)) for pts in strokes),
    )


# ---------------------------------------------------------------------------
# Full program layout
# ---------------------------------------------------------------------------


class TestProgramLayout:
    def test_exact_program(self, config: MachineConfig) -> None:
        job = _job([(0.0, 0.0), (2.25, 0.0)], [(0.5, 0.5), (1.0, 0.5)])
        expected = "\n".join([
            "; Generated by Pen Plotter Photo → G-code",
            "G21 ; units mm",
            "G90 ; absolute positioning",
            "G0 Z5.000 ; pen up",
            "F3000",
            "",
            "; stroke 1",
            "G0 X0.000 Y0.000 ; travel",
            "G0 Z0.000 ; pen down",
            "F1500",
            "G1 X2.250 Y0.000",
            "G0 Z5.000 ; pen up",
            "F3000",
            "; stroke 2",
            "G0 X0.500 Y0.500 ; travel",
            "G0 Z0.000 ; pen down",
            "F1500",
            "G1 X1.000 Y0.500",
            "G0 Z5.000 ; pen up",
            "F3000",
            "",
            "; EOF",
        ])
        assert plot_job_to_gcode(job, config) == expected

    def test_empty_job(self, config: MachineConfig) -> None:
        lines = plot_job_to_gcode(_job(), config).split("\n")
        assert lines[0] == HEADER_COMMENT
        assert lines[-2:] == ["", "; EOF"]
        assert len(lines) == 8

    def test_no_trailing_newline(self, config: MachineConfig) -> None:
        assert not plot_job_to_gcode(_job([(1.0, 1.0), (2.0, 1.0)]), config).endswith("\n")

    def test_empty_stroke_keeps_numbering(self, config: MachineConfig) -> None:
        gcode = plot_job_to_gcode(_job([(1.0, 1.0), (2.0, 1.0)], [], [(3.0, 3.0), (4.0, 3.0)]), config)
        assert "; stroke 1" in gcode
        assert "; stroke 2" not in gcode
        assert "; stroke 3" in gcode

    def test_zero_length_stroke_kept(self, config: MachineConfig) -> None:
        gcode = plot_job_to_gcode(_job([(1.0, 1.0), (1.0, 1.0)]), config)
        assert "G0 X1.000 Y1.000 ; travel" in gcode
        assert "G1 X1.000 Y1.000" in gcode


# ---------------------------------------------------------------------------
# Number formatting
# ---------------------------------------------------------------------------


class TestFormatting:
    def test_three_decimals(self, gen: GCodeGenerator) -> None:
        gcode = gen.generate([RapidXY(x=1.0 / 3.0, y=12.0)])
        assert "G0 X0.333 Y12.000 ; travel" in gcode

    def test_ties_round_away_from_zero(self, gen: GCodeGenerator) -> None:
        # 0.0625 and 0.1875 are exact binary fractions
        gcode = gen.generate([RapidXY(x=0.0625, y=0.1875)])
        assert "X0.063 Y0.188" in gcode

    def test_negative_zero(self, gen: GCodeGenerator) -> None:
        gcode = gen.generate([RapidXY(x=-0.0, y=0.0)])
        assert "X0.000 Y0.000" in gcode
        assert "-0.000" not in gcode

    def test_fractional_feed(self, config: MachineConfig) -> None:
        cfg = config.with_overrides(feed_travel=2500.5, feed_draw=1200)
        gcode = GCodeGenerator(cfg).generate([ToolUp(), RapidXY(x=1.0, y=1.0), ToolDown()])
        assert "F2500.5" in gcode
        assert "F1200" in gcode
        assert "F1200.0" not in gcode

    def test_pen_heights(self, config: MachineConfig) -> None:
        cfg = config.with_overrides(pen_up_z=3.25, pen_down_z=-0.2)
        gcode = GCodeGenerator(cfg).generate([RapidXY(x=1.0, y=1.0), ToolDown(), ToolUp()])
        assert "G0 Z3.250 ; pen up" in gcode
        assert "G0 Z-0.200 ; pen down" in gcode

    def test_comment_line(self, gen: GCodeGenerator) -> None:
        gcode = gen.generate([Comment(text="hello")])
        assert "\n; hello\n" in gcode


# ---------------------------------------------------------------------------
# Pen state
# ---------------------------------------------------------------------------


class TestPenState:
    def test_draw_with_pen_up_rejected(self, gen: GCodeGenerator) -> None:
        with pytest.raises(GCodeError, match="pen up"):
            gen.generate([LinearMove(x=1.0, y=1.0)])

    def test_travel_with_pen_down_rejected(self, gen: GCodeGenerator) -> None:
        with pytest.raises(GCodeError, match="pen down"):
            gen.generate([RapidXY(x=1.0, y=1.0), ToolDown(), RapidXY(x=2.0, y=2.0)])

    def test_state_reset_between_programs(self, gen: GCodeGenerator) -> None:
        gen.generate([RapidXY(x=1.0, y=1.0), ToolDown()])
        # a new program starts with the pen up again
        gcode = gen.generate([RapidXY(x=2.0, y=2.0)])
        assert "G0 X2.000 Y2.000 ; travel" in gcode

    def test_unsupported_operation(self, gen: GCodeGenerator) -> None:
        @dataclasses.dataclass(frozen=True)
        class Spray(Operation):
            pass

        with pytest.raises(GCodeError, match="Unsupported"):
            gen.generate([Spray()])


# ---------------------------------------------------------------------------
# Soft-limit validation
# ---------------------------------------------------------------------------


class TestWorkArea:
    @pytest.fixture()
    def limited(self, config: MachineConfig) -> GCodeGenerator:
        return GCodeGenerator(dataclasses.replace(config, work_area=WorkAreaConfig(x=420.0, y=297.0)))

    def test_default_profile_has_no_limit(self, config: MachineConfig) -> None:
        assert config.work_area is None

    def test_inside_accepted(self, limited: GCodeGenerator) -> None:
        limited.generate([RapidXY(x=420.0, y=297.0)])

    def test_negative_rejected(self, limited: GCodeGenerator) -> None:
        with pytest.raises(GCodeError, match="outside work area"):
            limited.generate([RapidXY(x=-1.0, y=0.0)])

    def test_beyond_rejected(self, limited: GCodeGenerator) -> None:
        with pytest.raises(GCodeError, match="Y="):
            limited.generate([RapidXY(x=0.0, y=298.0)])

    def test_no_work_area_no_limit(self, config: MachineConfig) -> None:
        cfg = dataclasses.replace(config, work_area=None)
        gcode = GCodeGenerator(cfg).generate([RapidXY(x=10_000.0, y=-5.0)])
        assert "X10000.000 Y-5.000" in gcode

    def test_rotated_job_fits_default_profile(self, config: MachineConfig) -> None:
        # 45 deg pass canvas is ~1.41x the 250 mm image width
        job = trace_image(
            Image.new("RGB", (10, 10), "black"),
            make_params(width_mm=250.0, px_per_mm=0.2, line_spacing_mm=5.0, angle_deg=45.0),
        )
        assert max(max(p.x, p.y) for s in job.strokes for p in s.points) > 250.0
        gcode = plot_job_to_gcode(job, config)
        assert gcode.endswith("; EOF")


# ---------------------------------------------------------------------------
# Positioning mode
# ---------------------------------------------------------------------------


class TestPositioning:
    def test_relative_changes_directive_only(
        self, config: MachineConfig, caplog: pytest.LogCaptureFixture,
    ) -> None:
        job = _job([(1.0, 2.0), (3.0, 2.0)])
        absolute = plot_job_to_gcode(job, config)
        with caplog.at_level(logging.WARNING, logger="plotter_control.gcode.generator"):
            relative = plot_job_to_gcode(job, config.with_overrides(positioning="relative"))

        assert "G91 ; relative positioning" in relative
        assert "G90" not in relative
        assert relative == absolute.replace("G90 ; absolute positioning", "G91 ; relative positioning")
        assert "Relative positioning" in caplog.text
