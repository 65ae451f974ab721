"""
Job Intermediate Representation module.

Defines all job operations as immutable dataclasses. This vocabulary is
the contract between stroke data and G-code generation.

All coordinates are in millimeters, canvas-relative.
"""

from plotter_control.job_ir.operations import (
    Comment,
    Job,
    LinearMove,
    Operation,
    RapidXY,
    Stroke,
    ToolDown,
    ToolUp,
    create_stroke,
    strokes_to_job,
)

__all__ = [
    "Comment",
    "Job",
    "LinearMove",
    "Operation",
    "RapidXY",
    "Stroke",
    "ToolDown",
    "ToolUp",
    "create_stroke",
    "strokes_to_job",
]
