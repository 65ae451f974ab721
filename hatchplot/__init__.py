"""Hatchplot: photo to pen-plotter raster strokes.

This package turns a raster photo into straight pen strokes: the image is
scaled to a physical width, rotated once per pass, scanned row by row for
dark runs, and every run is collapsed to a two-point segment.

Architecture layers (strict one-way dependency):
    scripts/ → hatchplot/data_pipeline/ → hatchplot/utils/

Key invariants:
    - Geometry in millimeters once it leaves the scanner
    - Pixel and mm coordinates are distinct types (see utils.geometry)
    - Deterministic: identical inputs give identical stroke lists
    - YAML-only configs
"""

__version__ = "0.3.0"
