"""YAML schema validation and config loading.

Provides centralized validation using pydantic:
    - Raster parameters (RasterParamsV1): width, resolution, line spacing,
      threshold, base angle and pass count for one conversion
    - Job schema (raster_job.v1.yaml): image + raster parameters + outputs

Both the CLI (YAML files) and library callers (keyword arguments) build a
RasterParamsV1, so every entry point gets the same fail-fast checks.

Units:
    - Geometry: millimeters (mm)
    - Resolution: pixels per mm
    - Angles: degrees
    - Threshold: 0-255 luma

Usage:
    from hatchplot.utils import validators

    job = validators.load_job_config("configs/raster_job_v1.yaml")
    params = validators.RasterParamsV1(width_mm=120, px_per_mm=4, line_spacing_mm=0.6)
"""

from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# RASTER PARAMETERS
# ============================================================================

class RasterParamsV1(BaseModel):
    """Parameters of one photo → strokes conversion.

    Non-finite numbers are rejected so nothing downstream sizes a buffer
    from NaN or infinity.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    width_mm: float = Field(..., gt=0.0, allow_inf_nan=False,
                            description="Target drawing width (mm)")
    px_per_mm: float = Field(..., gt=0.0, allow_inf_nan=False,
                             description="Scan resolution (pixels per mm)")
    line_spacing_mm: float = Field(..., gt=0.0, allow_inf_nan=False,
                                   description="Distance between scan rows (mm)")
    threshold: int = Field(128, ge=0, le=255,
                           description="Pixels with luma below this are dark")
    angle_deg: float = Field(0.0, allow_inf_nan=False,
                             description="Base hatch angle (degrees)")
    passes: int = Field(1, ge=1, description="Number of cross-hatch passes")


# ============================================================================
# JOB SCHEMA V1
# ============================================================================

class JobOutputs(BaseModel):
    """Which artifacts a conversion writes next to the G-code."""
    model_config = ConfigDict(extra="forbid")

    preview: bool = Field(True, description="Write <stem>_preview.png")
    manifest: bool = Field(True, description="Write <stem>_manifest.yaml")


class JobV1(BaseModel):
    """Job schema v1 (raster_job.v1.yaml)."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    schema_version: str = Field("raster_job.v1", alias="schema", description="Schema version")
    image: Optional[str] = Field(None, description="Source image path")
    machine: Optional[str] = Field(None, description="Machine config path; None uses the default")
    raster: RasterParamsV1
    outputs: JobOutputs = Field(default_factory=JobOutputs)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "raster_job.v1":
            raise ValueError(f"Expected schema 'raster_job.v1', got '{v}'")
        return v


# ============================================================================
# PUBLIC API
# ============================================================================

def load_job_config(path: Union[str, Path]) -> JobV1:
    """Load and validate a job config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to a raster_job.v1 YAML file

    Returns
    -------
    JobV1
        Validated job configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (message names the file and offending fields)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Job config not found: {path}")

    data = fs.load_yaml(path)
    if not isinstance(data, dict):
        raise ValueError(f"Job config at {path} must be a mapping, got {type(data).__name__}")
    try:
        return JobV1(**data)
    except ValueError as e:
        raise ValueError(f"Job config validation failed at {path}: {e}") from e
