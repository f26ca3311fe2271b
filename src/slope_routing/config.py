"""Configuration loading for slope-routing."""

import json
from pathlib import Path
from typing import Any

CONFIG_DIR = Path.home() / ".config" / "slope-routing"
CONFIG_PATH = CONFIG_DIR / "slope-routing.json"
LOCAL_CONFIG_PATH = Path("slope-routing.json")
DATA_DIR = Path.home() / ".local" / "share" / "slope-routing"

# Default values for every tunable
DEFAULTS = {
    "heading_penalty": 300.0,  # seconds added for an unfavored heading at a route endpoint
    "filter_type": "kalman_combined",  # kalman_forward, kalman_backward, kalman_combined, mean
    "filter_distance": 60.0,  # meters; process noise scale (kalman) or window (mean)
    "measurement_noise": 6.0,  # meters; elevation noise, 6 works well for Europe
    "track_part_distance": 200.0,  # meters of planar distance per track part
    "profiles_dir": str(DATA_DIR / "profiles"),
    "elevation_api": "opentopodata",
}


def load_config() -> dict:
    """Load configuration from config files.

    Merges config from global and local files:
    1. ~/.config/slope-routing/slope-routing.json (global, loaded first)
    2. ./slope-routing.json (local, overrides global)

    Returns:
        Dict with merged config values, empty dict if no files exist.
    """
    config = {}
    for config_path in [CONFIG_PATH, LOCAL_CONFIG_PATH]:
        if config_path.exists():
            try:
                with config_path.open() as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, OSError):
                continue
    return config


def get_setting(config: dict | None, key: str) -> Any:
    """Return a config value, falling back to DEFAULTS."""
    if config is None:
        config = {}
    return config.get(key, DEFAULTS[key])
