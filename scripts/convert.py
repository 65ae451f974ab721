"""Convert a photo into pen-plotter G-code.

Runs the full pipeline for one image:
    1. Resolve raster parameters (defaults ← job YAML ← CLI flags)
    2. Resolve machine config (machine.yaml ← CLI flags)
    3. Trace the image into mm strokes (hatchplot.data_pipeline)
    4. Write <stem>.gcode
    5. Write <stem>_preview.png and <stem>_manifest.yaml (optional)

Refactored architecture:
    - convert_main(image_path, output_dir, ...) → dict
        * Callable function (used by tests and batch scripts)
        * Returns: {plot_job, gcode_path, preview_path, manifest_path, stroke_count}
    - CLI entry point: if __name__ == "__main__"

Coordinate frames:
    - Strokes: each pass's rotated canvas, top-left origin, +Y down, mm
    - G-code: same values, no machine transform

CLI:
    python scripts/convert.py photo.jpg --output out/
    python scripts/convert.py photo.jpg --output out/ --job configs/raster_job_v1.yaml
    python scripts/convert.py photo.jpg --output out/ --width-mm 150 --passes 3 \\
                              --angle 45 --threshold 110 --pen-down-z -0.2

Output structure:
    <output_dir>/
        <stem>.gcode
        <stem>_preview.png
        <stem>_manifest.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

_PROJECT_ROOT = str(Path(__file__).resolve().parents[1])
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from hatchplot.data_pipeline import preview, raster_tracer
from hatchplot.data_pipeline.raster import RasterError
from hatchplot.utils import fs, strokes, validators
from hatchplot.utils.logging_config import install_excepthook, log_context, setup_logging
from plotter_control.configs.loader import ConfigError, load_config
from plotter_control.gcode.generator import GCodeError, plot_job_to_gcode

logger = logging.getLogger(__name__)

DEFAULT_RASTER: Dict[str, Any] = {
    'width_mm': 100.0,
    'px_per_mm': 4.0,
    'line_spacing_mm': 0.5,
    'threshold': 128,
    'angle_deg': 0.0,
    'passes': 1,
}


def convert_main(
    image_path: str,
    output_dir: str,
    job_cfg_path: Optional[str] = None,
    machine_cfg_path: Optional[str] = None,
    raster_overrides: Optional[Dict[str, Any]] = None,
    machine_overrides: Optional[Dict[str, Any]] = None,
    write_preview: Optional[bool] = None,
    write_manifest: Optional[bool] = None,
) -> Dict[str, Any]:
    """Convert one image to G-code and companion artifacts.

    Parameters
    ----------
    image_path : str
        Source photo (PNG/JPEG/...)
    output_dir : str
        Directory for artifacts (created if missing)
    job_cfg_path : str, optional
        raster_job.v1 YAML; its raster block overrides DEFAULT_RASTER
    machine_cfg_path : str, optional
        machine.yaml; falls back to the job's ``machine`` entry, then to
        the packaged default
    raster_overrides : dict, optional
        Raster fields that win over the job file (None values ignored)
    machine_overrides : dict, optional
        Keyword arguments for MachineConfig.with_overrides()
    write_preview, write_manifest : bool, optional
        None defers to the job file's ``outputs`` block (default True)

    Returns
    -------
    Dict[str, Any]
        plot_job, gcode_path, preview_path (or None), manifest_path (or
        None), stroke_count

    Raises
    ------
    InvalidInputError
        Bad raster parameters or unreadable image
    ConfigError
        Bad machine config
    GCodeError
        A stroke falls outside the machine work area
    """
    raster_values = dict(DEFAULT_RASTER)
    outputs = validators.JobOutputs()
    if job_cfg_path:
        job_cfg = validators.load_job_config(job_cfg_path)
        raster_values.update(job_cfg.raster.model_dump())
        outputs = job_cfg.outputs
        machine_cfg_path = machine_cfg_path or job_cfg.machine
    raster_values.update({k: v for k, v in (raster_overrides or {}).items() if v is not None})
    params = raster_tracer.make_params(**raster_values)

    machine_cfg = load_config(machine_cfg_path)
    if machine_overrides:
        machine_cfg = machine_cfg.with_overrides(**machine_overrides)

    write_preview = outputs.preview if write_preview is None else write_preview
    write_manifest = outputs.manifest if write_manifest is None else write_manifest

    image_path_p = Path(image_path)
    out_dir = fs.ensure_dir(output_dir)
    stem = image_path_p.stem
    with log_context(image=image_path_p.name):
        plot_job = raster_tracer.trace_file(image_path_p, params)

        gcode = plot_job_to_gcode(plot_job, machine_cfg)
        gcode_path = out_dir / f"{stem}.gcode"
        fs.atomic_write_text(gcode_path, gcode)
        logger.info("Saved G-code to %s", gcode_path)

        preview_path = None
        if write_preview:
            preview_path = preview.save_preview(plot_job, out_dir / f"{stem}_preview.png")

    manifest_path = None
    if write_manifest:
        manifest_path = out_dir / f"{stem}_manifest.yaml"
        fs.atomic_yaml_dump(
            {
                'schema': 'raster_manifest.v1',
                'image': str(image_path_p),
                'raster': params.model_dump(),
                'machine': {
                    'name': machine_cfg.name,
                    'positioning': machine_cfg.positioning,
                    'pen_up_z_mm': machine_cfg.pen.up_z_mm,
                    'pen_down_z_mm': machine_cfg.pen.down_z_mm,
                    'feed_travel_mm_min': machine_cfg.feeds.travel_mm_min,
                    'feed_draw_mm_min': machine_cfg.feeds.draw_mm_min,
                },
                'stats': strokes.summarize(plot_job),
                'artifacts': {
                    'gcode': gcode_path.name,
                    'preview': preview_path.name if preview_path else None,
                },
            },
            manifest_path,
        )
        logger.info("Saved manifest to %s", manifest_path)

    return {
        'plot_job': plot_job,
        'gcode_path': str(gcode_path),
        'preview_path': str(preview_path) if preview_path else None,
        'manifest_path': str(manifest_path) if manifest_path else None,
        'stroke_count': len(plot_job.strokes),
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert a photo into raster pen strokes and plotter G-code",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("image", type=str, help="Source image (PNG/JPEG)")
    parser.add_argument(
        "--output", type=str, required=True, help="Output directory for artifacts",
    )
    parser.add_argument("--job", type=str, default=None, help="raster_job.v1 YAML")
    parser.add_argument("--machine", type=str, default=None, help="machine.yaml path")

    raster_group = parser.add_argument_group("Raster parameters")
    raster_group.add_argument("--width-mm", type=float, help="Drawing width (mm)")
    raster_group.add_argument("--px-per-mm", type=float, help="Scan resolution (px/mm)")
    raster_group.add_argument("--line-spacing-mm", type=float, help="Row spacing (mm)")
    raster_group.add_argument("--threshold", type=int, help="Dark threshold (0-255)")
    raster_group.add_argument("--angle", type=float, help="Base hatch angle (degrees)")
    raster_group.add_argument("--passes", type=int, help="Cross-hatch passes (>= 1)")

    motion_group = parser.add_argument_group("Motion parameters")
    motion_group.add_argument("--pen-up-z", type=float, help="Pen up Z (mm)")
    motion_group.add_argument("--pen-down-z", type=float, help="Pen down Z (mm)")
    motion_group.add_argument("--feed-travel", type=float, help="Travel feed (mm/min)")
    motion_group.add_argument("--feed-draw", type=float, help="Draw feed (mm/min)")
    motion_group.add_argument(
        "--relative", action="store_true", help="Declare G91 relative positioning",
    )

    parser.add_argument("--no-preview", action="store_true", help="Skip the preview PNG")
    parser.add_argument("--no-manifest", action="store_true", help="Skip the manifest YAML")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level")
    parser.add_argument("--log-file", type=str, default=None, help="Optional log file")
    return parser


def main(argv: Optional[list] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(log_level=args.log_level, log_file=args.log_file, context={"app": "convert"})
    install_excepthook()

    raster_overrides = {
        'width_mm': args.width_mm,
        'px_per_mm': args.px_per_mm,
        'line_spacing_mm': args.line_spacing_mm,
        'threshold': args.threshold,
        'angle_deg': args.angle,
        'passes': args.passes,
    }
    machine_overrides = {
        'pen_up_z': args.pen_up_z,
        'pen_down_z': args.pen_down_z,
        'feed_travel': args.feed_travel,
        'feed_draw': args.feed_draw,
        'positioning': "relative" if args.relative else None,
    }

    try:
        result = convert_main(
            image_path=args.image,
            output_dir=args.output,
            job_cfg_path=args.job,
            machine_cfg_path=args.machine,
            raster_overrides=raster_overrides,
            machine_overrides=machine_overrides,
            write_preview=False if args.no_preview else None,
            write_manifest=False if args.no_manifest else None,
        )
    except (
        RasterError, ConfigError, GCodeError, ValueError, FileNotFoundError,
        yaml.YAMLError, RuntimeError,
    ) as e:
        logger.error("Conversion failed: %s", e)
        return 1

    print("\n=== Conversion Complete ===")
    print(f"Strokes: {result['stroke_count']}")
    print(f"G-code: {result['gcode_path']}")
    if result['preview_path']:
        print(f"Preview: {result['preview_path']}")
    if result['manifest_path']:
        print(f"Manifest: {result['manifest_path']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
