"""Configuration loader for plotter control.

Loads and validates ``machine.yaml`` into typed, frozen dataclasses.
Pen heights, feed rates, positioning mode and soft limits all come from
the config -- nothing is hardcoded in the G-code generator.

Feed rates are stored in **mm/min**, the unit of the G-code ``F``
parameter, and are emitted unchanged.

Usage::

    from plotter_control.configs.loader import load_config
    cfg = load_config()                       # default path
    cfg = load_config("/custom/machine.yaml") # explicit path
    cfg = cfg.with_overrides(pen_down_z=-0.5) # CLI tweaks
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from hatchplot.utils.fs import load_yaml

logger = logging.getLogger(__name__)

Positioning = Literal["absolute", "relative"]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkAreaConfig:
    """XY travel limits in mm; generated moves must stay in ``[0, x] x [0, y]``."""

    x: float
    y: float


@dataclass(frozen=True)
class PenConfig:
    """Pen-lift Z heights in mm."""

    up_z_mm: float
    down_z_mm: float


@dataclass(frozen=True)
class FeedsConfig:
    """Feed rates in mm/min."""

    travel_mm_min: float
    draw_mm_min: float


@dataclass(frozen=True)
class MachineConfig:
    """Complete machine configuration loaded from ``machine.yaml``."""

    name: str
    pen: PenConfig
    feeds: FeedsConfig
    positioning: Positioning = "absolute"
    work_area: WorkAreaConfig | None = None

    @property
    def absolute(self) -> bool:
        return self.positioning == "absolute"

    def with_overrides(
        self,
        *,
        pen_up_z: float | None = None,
        pen_down_z: float | None = None,
        feed_travel: float | None = None,
        feed_draw: float | None = None,
        positioning: Positioning | None = None,
    ) -> MachineConfig:
        """Return a validated copy with the given fields replaced.

        ``None`` keeps the current value.

        Raises
        ------
        ConfigError
            If the resulting configuration is invalid.
        """
        pen = dataclasses.replace(
            self.pen,
            up_z_mm=self.pen.up_z_mm if pen_up_z is None else float(pen_up_z),
            down_z_mm=self.pen.down_z_mm if pen_down_z is None else float(pen_down_z),
        )
        feeds = dataclasses.replace(
            self.feeds,
            travel_mm_min=self.feeds.travel_mm_min if feed_travel is None else float(feed_travel),
            draw_mm_min=self.feeds.draw_mm_min if feed_draw is None else float(feed_draw),
        )
        cfg = dataclasses.replace(
            self,
            pen=pen,
            feeds=feeds,
            positioning=self.positioning if positioning is None else positioning,
        )
        _validate_config(cfg)
        return cfg


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_config(cfg: MachineConfig) -> None:
    """Validate field ranges and cross-field consistency.

    Raises
    ------
    ConfigError
        On any invalid combination.
    """
    if cfg.positioning not in ("absolute", "relative"):
        raise ConfigError(
            f"gcode.positioning must be 'absolute' or 'relative', "
            f"got {cfg.positioning!r}"
        )

    for label, value in [
        ("pen.up_z_mm", cfg.pen.up_z_mm),
        ("pen.down_z_mm", cfg.pen.down_z_mm),
    ]:
        if not math.isfinite(value):
            raise ConfigError(f"{label} must be finite, got {value}")

    for label, value in [
        ("feeds.travel_mm_min", cfg.feeds.travel_mm_min),
        ("feeds.draw_mm_min", cfg.feeds.draw_mm_min),
    ]:
        if not math.isfinite(value) or value <= 0:
            raise ConfigError(f"{label} must be > 0, got {value}")

    if cfg.pen.up_z_mm <= cfg.pen.down_z_mm:
        logger.warning(
            "Pen up height (%.3f) is not above pen down height (%.3f); "
            "check the Z direction of this machine",
            cfg.pen.up_z_mm,
            cfg.pen.down_z_mm,
        )

    if cfg.work_area is not None:
        if cfg.work_area.x <= 0 or cfg.work_area.y <= 0:
            raise ConfigError(
                f"work_area_mm must be positive, got "
                f"{cfg.work_area.x} x {cfg.work_area.y}"
            )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> MachineConfig:
    """Load and validate machine configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``machine.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    MachineConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field is missing or fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    if path is None:
        path = Path(__file__).parent / "machine.yaml"
    else:
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    data: dict[str, Any] = load_yaml(path)
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")

    try:
        machine = data.get("machine", {}) or {}
        wa = machine.get("work_area_mm")
        work_area = (
            WorkAreaConfig(x=float(wa["x"]), y=float(wa["y"]))
            if wa else None
        )

        pd = data["pen"]
        pen = PenConfig(
            up_z_mm=float(pd["up_z_mm"]),
            down_z_mm=float(pd["down_z_mm"]),
        )

        fd = data["feeds"]
        feeds = FeedsConfig(
            travel_mm_min=float(fd["travel_mm_min"]),
            draw_mm_min=float(fd["draw_mm_min"]),
        )

        gd = data.get("gcode", {}) or {}
        config = MachineConfig(
            name=str(machine.get("name", path.stem)),
            pen=pen,
            feeds=feeds,
            positioning=gd.get("positioning", "absolute"),
            work_area=work_area,
        )

        _validate_config(config)
        logger.info("Configuration loaded successfully")
        return config

    except KeyError as exc:
        raise ConfigError(
            f"Missing required configuration key: {exc}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Invalid configuration value: {exc}"
        ) from exc
