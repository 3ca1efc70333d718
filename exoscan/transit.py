"""Module 4: Transit statistics, planet properties and detection quality.

4a: Placeholder transit model (depth, SNR, duration) for the best period.
4b: Planet property derivation assuming a Sun-like host star.
4c: False-alarm probability and rule-based quality flags.

These are coarse estimates that stand in for a full transit fit. Every
function returns 0.0 instead of NaN/inf so downstream formatting never sees a
non-finite number.

References:
    - Winn (2010), Exoplanet Transits and Occultations (depth ~ (Rp/R*)^2,
      equilibrium temperature)
"""

import logging
import math

import numpy as np

from exoscan.config import QUALITY_THRESHOLDS, TRANSIT_DEFAULTS
from exoscan.lightcurve import compute_rms

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Physical constants (rounded values, kept for output compatibility)
# ---------------------------------------------------------------------------
R_SUN_REARTH = 109.0        # R_sun in Earth radii
R_SUN_AU = 0.00465          # R_sun in AU
DAYS_PER_YEAR = 365.25


def _finite_or_zero(value):
    value = float(value)
    return value if math.isfinite(value) else 0.0


def _clamp(value, lo, hi):
    return max(lo, min(value, hi))


# ---------------------------------------------------------------------------
# 4a: Transit statistics
# ---------------------------------------------------------------------------

def compute_transit_stats(flux, period, config=None):
    """Estimate depth, SNR and duration for a trial period.

    depth    = clamp(rms * 0.5, 0.0005, 0.05)
    snr      = depth / max(rms, 1e-6) * 10
    duration = clamp(period * 0.1, 0.5, 10)

    Parameters
    ----------
    flux : array-like
        Detrended flux values.
    period : float
        Trial period (days).
    config : dict, optional
        Transit section of the pipeline config. Defaults to TRANSIT_DEFAULTS.

    Returns
    -------
    dict
        snr, depth, duration.
    """
    cfg = TRANSIT_DEFAULTS if config is None else config
    rms = compute_rms(flux)

    depth = _clamp(rms * cfg["depth_rms_fraction"], cfg["depth_min"], cfg["depth_max"])
    snr = max(0.0, depth / max(rms, 1e-6) * cfg["snr_scale"])
    duration = _clamp(period * cfg["duration_period_fraction"],
                      cfg["duration_min"], cfg["duration_max"])

    result = {
        "snr": _finite_or_zero(snr),
        "depth": _finite_or_zero(depth),
        "duration": _finite_or_zero(duration),
    }
    logger.info("Transit stats at P=%.4f: depth=%.5f, snr=%.2f, duration=%.2f",
                period, result["depth"], result["snr"], result["duration"])
    return result


# ---------------------------------------------------------------------------
# 4b: Planet properties
# ---------------------------------------------------------------------------

def compute_planet_radius(depth):
    """Planet radius in Earth radii for a 1 R_sun host: sqrt(depth) * 109."""
    radius = math.sqrt(max(0.0, depth)) * R_SUN_REARTH
    return _finite_or_zero(radius)


def compute_semi_major_axis(period_days):
    """Orbital semi-major axis (AU) from Kepler's third law for a 1 M_sun host.

    a_AU = ((P_days / 365.25)^2)^(1/3)
    """
    p_years = max(1e-6, period_days) / DAYS_PER_YEAR
    a_au = (p_years * p_years) ** (1.0 / 3.0)
    return _finite_or_zero(a_au)


def compute_equilibrium_temp(teff_K, albedo, a_AU):
    """Planetary equilibrium temperature for a 1 R_sun host.

    T_eq = T_star * sqrt(R_sun / (2 * a)) * (1 - A_bond)^(1/4)

    Parameters
    ----------
    teff_K : float
        Stellar effective temperature (K).
    albedo : float
        Bond albedo.
    a_AU : float
        Orbital semi-major axis in AU.

    Returns
    -------
    float
        Equilibrium temperature in Kelvin.
    """
    factor = math.sqrt(R_SUN_AU / max(1e-6, 2.0 * a_AU))
    t_eq = teff_K * factor * max(0.0, 1.0 - albedo) ** 0.25
    return _finite_or_zero(t_eq)


def compute_planet_properties(period_days, depth, teff_K, albedo):
    """Derive radius, orbit and temperature for one candidate.

    Returns
    -------
    dict
        planet_radius_Rearth, semi_major_axis_AU, equilibrium_temp_K.
    """
    radius = compute_planet_radius(depth)
    a_au = compute_semi_major_axis(period_days)
    t_eq = compute_equilibrium_temp(teff_K, albedo, a_au)

    logger.info("Planet: R=%.3f R_earth, a=%.4f AU, T_eq=%.0f K (P=%.4f d)",
                radius, a_au, t_eq, period_days)
    return {
        "planet_radius_Rearth": radius,
        "semi_major_axis_AU": a_au,
        "equilibrium_temp_K": t_eq,
    }


# ---------------------------------------------------------------------------
# 4c: Significance and quality
# ---------------------------------------------------------------------------

def compute_false_alarm_probability(power, steps):
    """Rough false-alarm probability, decreasing with power and grid density.

    FAP = exp(-power) * min(1, 2000 / steps), clamped to [0, 1].
    """
    s = max(1, steps or 1000)
    p = max(0.0, power)
    fap = np.exp(-p) * min(1.0, 2000.0 / s)
    return _finite_or_zero(_clamp(float(fap), 0.0, 1.0))


def validate_detection(snr, depth, period, n_points, duration, thresholds=None):
    """Apply threshold rules and return the quality flags for a detection.

    Parameters
    ----------
    snr, depth, period, duration : float
        Best-candidate transit observables.
    n_points : int
        Number of light curve samples.
    thresholds : dict, optional
        Quality section of the pipeline config. Defaults to QUALITY_THRESHOLDS.

    Returns
    -------
    list of str
        One flag per violated rule, or ["passes_basic_checks"].
    """
    cfg = QUALITY_THRESHOLDS if thresholds is None else thresholds

    flags = []
    if snr < cfg["min_snr"]:
        flags.append("low_snr")
    if depth < cfg["min_depth"]:
        flags.append("shallow_depth")
    if period <= 0:
        flags.append("invalid_period")
    if n_points < cfg["min_points"]:
        flags.append("insufficient_points")
    if duration <= 0:
        flags.append("invalid_duration")

    if not flags:
        return ["passes_basic_checks"]

    logger.info("Quality flags: %s", ", ".join(flags))
    return flags
