"""Machine configuration loading and validation."""

from plotter_control.configs.loader import (
    ConfigError,
    FeedsConfig,
    MachineConfig,
    PenConfig,
    WorkAreaConfig,
    load_config,
)

__all__ = [
    "ConfigError",
    "FeedsConfig",
    "MachineConfig",
    "PenConfig",
    "WorkAreaConfig",
    "load_config",
]
