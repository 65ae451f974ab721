"""Image → stroke pipeline.

Modules:
    - raster: scaling, rotation and run scanning of pixel buffers
    - raster_tracer: multi-pass orchestration into a PlotJob
    - preview: PNG preview of a PlotJob
"""

from .raster import InvalidInputError, RasterError, ResourceExhaustionError
from .raster_tracer import make_params, pass_angles, trace_file, trace_image

__all__ = [
    "InvalidInputError",
    "RasterError",
    "ResourceExhaustionError",
    "make_params",
    "pass_angles",
    "trace_file",
    "trace_image",
]
