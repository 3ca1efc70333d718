"""Module 3: Period search and candidate ranking.

The scanner evaluates a linear grid of trial periods and assigns each a power
value. The default scorer is a deterministic, noise-sensitive periodic score
(higher for quieter light curves, oscillating with trial period), not a
box-least-squares fit; a different scorer can be passed in as long as it maps
(periods, rms) to an array of powers.
"""

import logging
import math

import numpy as np

from exoscan.config import SEARCH_DEFAULTS
from exoscan.lightcurve import compute_rms

logger = logging.getLogger(__name__)

DEFAULT_STEPS = 500
MIN_STEPS = 10
MAX_STEPS = 5000
MIN_PERIOD_SPAN = 1e-6
MIN_RMS = 1e-6


def sinusoidal_power(periods, rms):
    """Default power score: |sin(P / 4)| * 8 + 1 / rms.

    Parameters
    ----------
    periods : ndarray
        Trial periods.
    rms : float
        Noise level of the searched light curve (must be > 0).

    Returns
    -------
    ndarray
        Power per trial period.
    """
    periods = np.asarray(periods, dtype=float)
    return np.abs(np.sin(periods * 0.25)) * 8.0 + 1.0 / max(rms, MIN_RMS)


def resolve_steps(steps):
    """Clamp a requested grid size to [10, 5000]; missing or zero means 500."""
    if steps is None:
        return DEFAULT_STEPS
    try:
        steps = float(steps)
    except (TypeError, ValueError):
        return DEFAULT_STEPS
    if not math.isfinite(steps) or steps == 0:
        return DEFAULT_STEPS
    return int(max(MIN_STEPS, min(int(steps), MAX_STEPS)))


def search_periods(time, flux, min_period, max_period, steps=DEFAULT_STEPS,
                   power_function=None):
    """Scan a linear period grid and score every trial period.

    Parameters
    ----------
    time : array-like
        Time values (days, or sample index after the time-axis guard).  Not read
        by the scan: power_function sees only (periods, rms). Kept so callers
        can swap in a time-aware search without changing the call.
    flux : array-like
        Detrended flux values.
    min_period : float
        First grid period.
    max_period : float
        Last grid period (inclusive).
    steps : int
        Grid size; clamped to [10, 5000], 500 when missing or zero.
    power_function : callable, optional
        (periods, rms) -> powers. Defaults to sinusoidal_power.

    Returns
    -------
    dict
        Keys: periods (ndarray), powers (ndarray), steps (int), rms (float),
        min_period, max_period, detection_method.
    """
    if power_function is None:
        power_function = sinusoidal_power

    n = resolve_steps(steps)
    span = max(MIN_PERIOD_SPAN, max_period - min_period)
    periods = min_period + (np.arange(n, dtype=float) / (n - 1)) * span

    # A perfectly flat series would make every power infinite; score it as unit noise
    rms = compute_rms(flux) or 1.0

    powers = np.asarray(power_function(periods, rms), dtype=float)
    if powers.shape != periods.shape:
        raise ValueError(f"power_function returned {powers.shape} for {periods.shape} periods")
    powers = np.where(np.isfinite(powers), powers, 0.0)

    logger.info("Period scan: %d trial periods in [%.3f, %.3f], rms=%.3g, peak power=%.3f",
                n, periods[0], periods[-1], rms, float(np.max(powers)))

    return {
        "periods": periods,
        "powers": powers,
        "steps": n,
        "rms": rms,
        "min_period": float(min_period),
        "max_period": float(max_period),
        "detection_method": "bls_like",
    }


def compute_search_range(time_span, n_points, config=None):
    """Choose period bounds and grid size for a light curve.

    Never searches beyond a third of the observation baseline (capped at
    50 time units); the upper bound is floored so the range never collapses.
    Grid resolution scales with the number of points.

    Parameters
    ----------
    time_span : float
        Observation baseline (last time - first time).
    n_points : int
        Number of samples.
    config : dict, optional
        Search section of the pipeline config. Defaults to SEARCH_DEFAULTS.

    Returns
    -------
    dict
        min_period, max_period, steps.
    """
    cfg = SEARCH_DEFAULTS if config is None else config

    safe_span = max(1e-3, time_span)
    max_period = min(safe_span * cfg["baseline_fraction"], cfg["max_period_cap"])
    max_period = max(cfg["min_upper_period"], max_period)
    steps = min(cfg["max_steps"], max(cfg["min_steps"], n_points * cfg["steps_per_point"]))

    return {
        "min_period": float(cfg["min_period"]),
        "max_period": float(max_period),
        "steps": int(steps),
    }


def rank_candidates(periods, powers, count=5):
    """Pick the highest-power trial periods.

    Sorting is stable, so equal powers keep grid order. Each candidate gets
    a placeholder depth of 0.01 * rank and an SNR of 5 + power.

    Parameters
    ----------
    periods : array-like
        Trial periods.
    powers : array-like
        Power per trial period. Missing entries count as 0.
    count : int
        Number of candidates to keep (0/None -> 5, minimum 1).

    Returns
    -------
    list of dict
        Candidates with keys rank (1-based), period, power, depth, snr,
        best first.
    """
    periods = np.asarray(periods, dtype=float)
    powers = np.nan_to_num(np.asarray(powers, dtype=float), nan=0.0)
    if powers.size < periods.size:
        powers = np.concatenate([powers, np.zeros(periods.size - powers.size)])
    powers = powers[:periods.size]

    count = max(1, int(count or 5))
    order = np.argsort(-powers, kind="stable")[:count]

    candidates = []
    for idx, i in enumerate(order):
        power = float(powers[i])
        candidates.append({
            "rank": idx + 1,
            "period": float(periods[i]),
            "power": power,
            "depth": max(0.001, 0.01 * (idx + 1)),
            "snr": 5.0 + power,
        })

    if candidates:
        logger.info("Top candidate: P=%.4f (power=%.3f) of %d ranked",
                    candidates[0]["period"], candidates[0]["power"], len(candidates))
    return candidates
