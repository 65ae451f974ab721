"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Pixel/mm point types and unit conversion (geometry)
    - Segment, stroke, pass and job records (strokes)
    - Config validation (validators)
    - Atomic I/O and YAML loading (fs)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (data_pipeline, scripts).

Convenience imports:
    from hatchplot.utils import fs, geometry, validators
    from hatchplot.utils.logging_config import setup_logging, get_logger
"""

from . import fs
from . import geometry
from . import logging_config
from . import strokes
from . import validators

from .logging_config import get_logger, log_context, push_context, reset_logging, setup_logging

__all__ = [
    # Modules
    'fs',
    'geometry',
    'logging_config',
    'strokes',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
    'log_context',
    'reset_logging',
]
