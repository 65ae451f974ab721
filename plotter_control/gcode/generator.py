"""G-code generator -- Job IR operations to G-code text.

Output format (one instruction per line, ``\\n`` separated, no trailing
newline)::

    ; Generated by Pen Plotter Photo → G-code
    G21 ; units mm
    G90 ; absolute positioning
    G0 Z5.000 ; pen up
    F3000

    ; stroke 1
    G0 X1.000 Y2.000 ; travel
    G0 Z0.000 ; pen down
    F1500
    G1 X4.000 Y2.000
    G0 Z5.000 ; pen up
    F3000

    ; EOF

This layout is consumed by existing plotter firmware tooling and is kept
stable byte for byte.

Number formatting:
    Coordinates and Z heights use 3 decimals, ties rounded away from zero
    on the exact binary value.  Feed rates are printed as plain numbers
    (``3000``, ``1500.5``) and are already in mm/min.

Positioning:
    ``G91`` only changes the mode directive; coordinates are the same
    canvas values as in ``G90`` mode.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Iterable

from plotter_control.configs.loader import MachineConfig
from plotter_control.job_ir.operations import (
    Comment,
    LinearMove,
    Operation,
    RapidXY,
    ToolDown,
    ToolUp,
    strokes_to_job,
)

if TYPE_CHECKING:
    from hatchplot.utils.strokes import PlotJob

logger = logging.getLogger(__name__)

HEADER_COMMENT = "; Generated by Pen Plotter Photo → G-code"


class GCodeError(Exception):
    """Raised when G-code generation fails due to invalid input."""

    pass


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_MILLI = Decimal("0.001")


def _fixed3(value: float) -> str:
    """Format with 3 decimals, ties away from zero; ``-0`` prints as ``0.000``."""
    if value == 0:
        value = 0.0
    return str(Decimal(value).quantize(_MILLI, rounding=ROUND_HALF_UP))


def _feed(value: float) -> str:
    """``F`` word with the feed printed as a plain number."""
    value = float(value)
    if value.is_integer():
        return f"F{int(value)}"
    return f"F{value!r}"


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class GCodeGenerator:
    """Convert Job IR operations to G-code.

    Parameters
    ----------
    config : MachineConfig
        Validated machine configuration (pen heights, feeds, positioning,
        optional work-area soft limits).
    """

    def __init__(self, config: MachineConfig) -> None:
        self._cfg = config
        self._tool_is_up: bool = True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(self, operations: Iterable[Operation]) -> str:
        """Generate a complete program for a flat list of operations.

        Parameters
        ----------
        operations : Iterable[Operation]
            Job IR operations (canvas-relative, mm).

        Returns
        -------
        str
            Program text including header and footer.

        Raises
        ------
        GCodeError
            If a position violates the work area or a move contradicts
            the pen state.
        """
        if not self._cfg.absolute:
            logger.warning(
                "Relative positioning selected: coordinates are still "
                "written as canvas positions"
            )

        lines: list[str] = []
        self._reset_state()
        self._write_header(lines)

        for op in operations:
            self._generate_op(op, lines)

        self._write_footer(lines)
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internal: per-operation dispatch
    # ------------------------------------------------------------------

    def _reset_state(self) -> None:
        self._tool_is_up = True

    def _generate_op(self, op: Operation, lines: list[str]) -> None:
        if isinstance(op, Comment):
            lines.append(f"; {op.text}")
        elif isinstance(op, ToolUp):
            self._gen_tool_up(lines)
        elif isinstance(op, ToolDown):
            self._gen_tool_down(lines)
        elif isinstance(op, RapidXY):
            self._gen_rapid(op, lines)
        elif isinstance(op, LinearMove):
            self._gen_linear(op, lines)
        else:
            raise GCodeError(f"Unsupported operation: {type(op).__name__}")

    # ------------------------------------------------------------------
    # Individual generators
    # ------------------------------------------------------------------

    def _gen_tool_up(self, lines: list[str]) -> None:
        lines.append(f"G0 Z{_fixed3(self._cfg.pen.up_z_mm)} ; pen up")
        lines.append(_feed(self._cfg.feeds.travel_mm_min))
        self._tool_is_up = True

    def _gen_tool_down(self, lines: list[str]) -> None:
        lines.append(f"G0 Z{_fixed3(self._cfg.pen.down_z_mm)} ; pen down")
        lines.append(_feed(self._cfg.feeds.draw_mm_min))
        self._tool_is_up = False

    def _gen_rapid(self, op: RapidXY, lines: list[str]) -> None:
        if not self._tool_is_up:
            raise GCodeError(
                f"Travel to X={op.x:.3f} Y={op.y:.3f} with the pen down"
            )
        self._validate_xy(op.x, op.y)
        lines.append(f"G0 X{_fixed3(op.x)} Y{_fixed3(op.y)} ; travel")

    def _gen_linear(self, op: LinearMove, lines: list[str]) -> None:
        if self._tool_is_up:
            raise GCodeError(
                f"Draw move to X={op.x:.3f} Y={op.y:.3f} with the pen up"
            )
        self._validate_xy(op.x, op.y)
        lines.append(f"G1 X{_fixed3(op.x)} Y{_fixed3(op.y)}")

    # ------------------------------------------------------------------
    # Header / footer
    # ------------------------------------------------------------------

    def _write_header(self, lines: list[str]) -> None:
        lines.append(HEADER_COMMENT)
        lines.append("G21 ; units mm")
        if self._cfg.absolute:
            lines.append("G90 ; absolute positioning")
        else:
            lines.append("G91 ; relative positioning")
        self._gen_tool_up(lines)
        lines.append("")

    def _write_footer(self, lines: list[str]) -> None:
        lines.append("")
        lines.append("; EOF")

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_xy(self, x: float, y: float) -> None:
        """Reject positions outside the configured work area.

        Raises
        ------
        GCodeError
            If either coordinate is out of bounds.
        """
        wa = self._cfg.work_area
        if wa is None:
            return
        if x < 0 or x > wa.x:
            raise GCodeError(f"X={x:.3f} mm outside work area [0, {wa.x:.1f}]")
        if y < 0 or y > wa.y:
            raise GCodeError(f"Y={y:.3f} mm outside work area [0, {wa.y:.1f}]")


def plot_job_to_gcode(job: PlotJob, config: MachineConfig) -> str:
    """Generate the program for every stroke of a PlotJob, in order."""
    ir_job = strokes_to_job(stroke.as_tuples() for stroke in job.strokes)
    ops = [op for stroke in ir_job for op in stroke]
    logger.info("Generating G-code for %d strokes (%d operations)", len(ir_job), len(ops))
    return GCodeGenerator(config).generate(ops)
