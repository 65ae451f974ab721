"""Atomic artifact writes and YAML I/O.

Every file the converter produces (G-code, preview PNG, manifest YAML) is
first written to a sibling tmp file and then moved over the target with
``os.replace``, so a plotter host polling the output directory sees either
the previous file or the complete new one.

Provides:
    - ensure_dir(): mkdir -p
    - atomic_write_bytes() / atomic_write_text()
    - atomic_save_image(): numpy arrays or PIL images
    - atomic_yaml_dump() / load_yaml(): PyYAML safe_dump / safe_load

Usage:
    from hatchplot.utils import fs
    fs.atomic_write_text(out_dir / "cat.gcode", gcode)
    fs.atomic_save_image(preview, out_dir / "cat_preview.png")
    job = fs.load_yaml("configs/raster_job_v1.yaml")
"""

import contextlib
import os
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

import numpy as np
import yaml
from PIL import Image

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """Create ``p`` and its parents if needed; return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


@contextlib.contextmanager
def _replacing(path: Path, tmp_path: Path, what: str) -> Iterator[Path]:
    """Yield ``tmp_path`` for writing, then move it over ``path``.

    Raises
    ------
    RuntimeError
        If writing or the final replace fails; the tmp file is removed.
    """
    ensure_dir(path.parent)
    try:
        yield tmp_path
        os.replace(tmp_path, path)
    except (OSError, ValueError) as e:
        tmp_path.unlink(missing_ok=True)
        raise RuntimeError(f"Failed to write {what} {path} atomically: {e}") from e


def atomic_write_bytes(path: PathLike, data: bytes, tmp_suffix: str = ".tmp") -> None:
    """Write ``data`` to ``path`` via ``<path><tmp_suffix>`` and fsync."""
    path = Path(path)
    with _replacing(path, path.with_name(path.name + tmp_suffix), "file") as tmp:
        with open(tmp, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())


def atomic_write_text(path: PathLike, text: str, encoding: str = "utf-8") -> None:
    """Text variant of atomic_write_bytes(); no newline is appended."""
    atomic_write_bytes(path, text.encode(encoding))


def atomic_save_image(
    img: Union[np.ndarray, Image.Image],
    path: PathLike,
    pil_kwargs: Optional[Dict[str, Any]] = None,
) -> None:
    """Save an image atomically; the format follows the target extension.

    Parameters
    ----------
    img : np.ndarray | PIL.Image.Image
        ``(H, W)``, ``(H, W, 1)`` or ``(H, W, 3)`` array (clipped to uint8),
        or a PIL image
    path : str | Path
        Target file
    pil_kwargs : dict, optional
        Extra ``Image.save`` options
    """
    path = Path(path)
    if isinstance(img, np.ndarray):
        arr = img if img.dtype == np.uint8 else np.clip(img, 0, 255).astype(np.uint8)
        if arr.ndim == 3 and arr.shape[2] == 1:
            arr = arr[:, :, 0]
        img = Image.fromarray(arr)

    # keep the real suffix last so PIL can pick the encoder
    tmp_name = f"{path.stem}.tmp{path.suffix}"
    with _replacing(path, path.with_name(tmp_name), "image") as tmp:
        img.save(tmp, **(pil_kwargs or {}))


def atomic_yaml_dump(obj: Any, path: PathLike) -> None:
    """Dump ``obj`` with yaml.safe_dump (key order kept) and write atomically."""
    text = yaml.safe_dump(obj, default_flow_style=False, sort_keys=False, allow_unicode=True)
    atomic_write_text(path, text)


def load_yaml(path: PathLike) -> Any:
    """Parse a YAML file with yaml.safe_load.

    Raises
    ------
    FileNotFoundError
        If the file is missing.
    yaml.YAMLError
        If the content is not valid YAML (message names the file).
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"YAML file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
