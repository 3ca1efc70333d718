"""Tunable thresholds and defaults for the period-search pipeline.

The values are tuning choices, not derived physics. Every stage reads them
from a config dict built by resolve_config().
"""

import copy
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Scan grid and period bounds
SEARCH_DEFAULTS = {
    "min_period": 0.5,
    "max_period_cap": 50.0,
    "min_upper_period": 0.6,
    "baseline_fraction": 1.0 / 3.0,
    "steps_per_point": 5,
    "min_steps": 200,
    "max_steps": 2000,
    "n_candidates": 10,
}

# Detection decision and confidence mapping
DETECTION_DEFAULTS = {
    "power_threshold": 5.0,
    "snr_threshold": 5.0,
    "confidence_scale": 10.0,
    "confidence_min": 10,
    "confidence_max": 95,
    "low_data_points": 10,
}

# Placeholder transit model clamps
TRANSIT_DEFAULTS = {
    "depth_rms_fraction": 0.5,
    "depth_min": 0.0005,
    "depth_max": 0.05,
    "snr_scale": 10.0,
    "duration_period_fraction": 0.1,
    "duration_min": 0.5,
    "duration_max": 10.0,
}

# Host star assumed for physical parameters (Sun-like)
STELLAR_DEFAULTS = {
    "teff_K": 5778.0,
    "albedo": 0.0,
}

QUALITY_THRESHOLDS = {
    "min_snr": 5.0,
    "min_depth": 0.0005,
    "min_points": 100,
}

DEFAULT_CONFIG = {
    "search": SEARCH_DEFAULTS,
    "detection": DETECTION_DEFAULTS,
    "transit": TRANSIT_DEFAULTS,
    "stellar": STELLAR_DEFAULTS,
    "quality": QUALITY_THRESHOLDS,
}


def resolve_config(overrides=None):
    """Return a fresh config dict with section-level overrides merged in.

    Parameters
    ----------
    overrides : dict, optional
        Mapping of section name -> {key: value}. Unknown sections or keys
        raise ValueError so typos do not silently fall back to defaults.

    Returns
    -------
    dict
        Deep copy of DEFAULT_CONFIG with overrides applied.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not overrides:
        return config

    for section, values in overrides.items():
        if section not in config:
            raise ValueError(f"Unknown config section '{section}'")
        for key, value in values.items():
            if key not in config[section]:
                raise ValueError(f"Unknown config key '{section}.{key}'")
            config[section][key] = value
    return config


def load_config(path):
    """Load a JSON override file and merge it over the defaults."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        overrides = json.load(f)
    logger.info("Loaded config overrides from %s (%d section(s))", path, len(overrides))
    return resolve_config(overrides)
