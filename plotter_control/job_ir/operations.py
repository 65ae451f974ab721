"""Job IR operations -- the vocabulary between strokes and G-code.

Every job action is an immutable, slotted dataclass.  Operations use
**semantic** names (``ToolDown``, not ``G0 Z0``), **millimetre** units,
and **canvas-relative** coordinates (top-left origin, +Y down).

Grouping
--------
A *Stroke* is the list of operations that draws one pen stroke: a label,
rapid to the first point, tool down, one linear move per following
point, tool up.  A *Job* is the list of strokes in drawing order.
"""

from __future__ import annotations

import logging
from abc import ABC
from dataclasses import dataclass
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

Stroke = list["Operation"]
"""Operations that draw one pen stroke."""

Job = list[Stroke]
"""A complete job is a sequence of strokes."""

Point = tuple[float, float]

# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Operation(ABC):
    """Base class for all job operations."""

    pass


@dataclass(frozen=True, slots=True)
class Comment(Operation):
    """Annotation carried into the program as a ``;`` comment line."""

    text: str

    def __post_init__(self) -> None:
        if "\n" in self.text or "\r" in self.text:
            raise ValueError("Comment text must be a single line")


# ---------------------------------------------------------------------------
# Motion operations  (all coordinates are canvas-relative mm)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RapidXY(Operation):
    """Travel move -- pen **must** be up.

    Parameters
    ----------
    x, y : float
        Target position in canvas mm (top-left origin, +Y down).
    """

    x: float
    y: float


@dataclass(frozen=True, slots=True)
class LinearMove(Operation):
    """Single line segment at draw feed (pen down).

    Parameters
    ----------
    x, y : float
        End-point in canvas mm.
    """

    x: float
    y: float


# ---------------------------------------------------------------------------
# Tool operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ToolUp(Operation):
    """Lift the pen and restore the travel feed."""

    pass


@dataclass(frozen=True, slots=True)
class ToolDown(Operation):
    """Lower the pen onto the paper and switch to the draw feed."""

    pass


# ---------------------------------------------------------------------------
# Stroke helpers
# ---------------------------------------------------------------------------


def create_stroke(points: Sequence[Point], index: int) -> Stroke:
    """Build a standard stroke: label -> rapid -> tool-down -> moves -> tool-up.

    Parameters
    ----------
    points : Sequence[tuple[float, float]]
        Ordered polyline vertices (canvas mm).  Must have >= 1 point; a
        single point gives a pen dab with no linear move.
    index : int
        1-based stroke number used in the ``; stroke N`` label.

    Returns
    -------
    Stroke
        ``[Comment, RapidXY, ToolDown, LinearMove..., ToolUp]``
    """
    if len(points) < 1:
        raise ValueError("Stroke requires at least 1 point")

    (x0, y0), rest = points[0], points[1:]
    return [
        Comment(text=f"stroke {index}"),
        RapidXY(x=x0, y=y0),
        ToolDown(),
        *(LinearMove(x=x, y=y) for x, y in rest),
        ToolUp(),
    ]


def strokes_to_job(strokes: Iterable[Sequence[Point]]) -> Job:
    """Turn point sequences into a Job, one Stroke per non-empty sequence.

    Empty sequences produce no motion but still consume their stroke
    number, so labels always match positions in the input list.
    """
    job: Job = []
    skipped = 0
    for idx, points in enumerate(strokes, start=1):
        if not points:
            skipped += 1
            continue
        job.append(create_stroke(points, idx))
    if skipped:
        logger.debug("Skipped %d empty strokes", skipped)
    return job
