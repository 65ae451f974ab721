"""
G-code generation module.

Converts Job IR operations to G-code text with pen Z and feed-rate
mapping from the machine config.
"""

from plotter_control.gcode.generator import GCodeError, GCodeGenerator, plot_job_to_gcode

__all__ = ["GCodeError", "GCodeGenerator", "plot_job_to_gcode"]
