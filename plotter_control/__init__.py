"""
Plotter Control Package.

Machine side of the pipeline: turns the mm-space strokes of a PlotJob into
a G-code program for a two-axis pen plotter with a Z pen lift.

Subpackages:
    job_ir: Intermediate representation for job operations
    gcode: G-code generation from Job IR
    configs: Machine configuration loading and validation
"""

__all__ = ["job_ir", "gcode", "configs"]
