"""Module 2: Light curve preparation.

Noise statistics, the time-axis guard applied to freshly parsed data, and the
median detrend that normalises flux around 1.0 before the period search.
Detrending removes a constant offset only; there is no smoothing window.
"""

import logging
import numpy as np

logger = logging.getLogger(__name__)


def compute_rms(flux):
    """Sample standard deviation of a flux series (Bessel-corrected).

    Parameters
    ----------
    flux : array-like
        Flux values.

    Returns
    -------
    float
        RMS noise, 0.0 for fewer than two points or non-finite input.
    """
    flux = np.asarray(flux, dtype=float)
    if flux.size < 2:
        return 0.0
    rms = float(np.std(flux, ddof=1))
    if not np.isfinite(rms):
        return 0.0
    return rms


def median_flux(flux):
    """Standard median (mean of the two middle values for even length), 0.0 if empty."""
    flux = np.asarray(flux, dtype=float)
    if flux.size == 0:
        return 0.0
    return float(np.median(flux))


def detrend_median(lc_data):
    """Recentre flux on 1.0 by removing the median offset.

    Parameters
    ----------
    lc_data : dict
        Light curve with 'time' and 'flux' arrays.

    Returns
    -------
    dict
        New light curve dict (same keys) with flux replaced by
        flux - median + 1 and the removed median under 'median_flux'.
    """
    flux = np.asarray(lc_data["flux"], dtype=float)
    out = dict(lc_data)
    if flux.size == 0:
        out["flux"] = flux.copy()
        out["median_flux"] = 0.0
        return out

    median = median_flux(flux)
    out["time"] = np.asarray(lc_data["time"], dtype=float).copy()
    out["flux"] = flux - median + 1.0
    out["median_flux"] = median

    logger.info("Detrended %d points: removed median offset %.6g", flux.size, median)
    return out


def ensure_monotonic_time(time, flux):
    """Replace an unusable time axis with the sample index.

    Parsed files can carry constant, shuffled or duplicated time stamps. The
    period search needs strictly increasing time with a positive span, so
    anything else is swapped for 0, 1, 2, ... with flux order kept.

    Returns
    -------
    tuple of (ndarray, ndarray, bool)
        (time, flux, replaced).
    """
    time = np.asarray(time, dtype=float)
    flux = np.asarray(flux, dtype=float)

    if time.size == 0:
        return time, flux, False

    increasing = bool(np.all(np.diff(time) > 0))
    span = float(time[-1] - time[0])
    if increasing and span > 0:
        return time, flux, False

    logger.warning("Time axis not strictly increasing (span=%.4g); using sample index as time",
                   span)
    return np.arange(flux.size, dtype=float), flux, True


def prepare_lightcurve(time, flux):
    """Build the light curve dict used by the downstream stages.

    Applies the time-axis guard and records basic metadata.

    Returns
    -------
    dict
        Keys: time, flux, n_points, time_baseline_days, time_axis_replaced.
    """
    time, flux, replaced = ensure_monotonic_time(time, flux)
    baseline = float(time[-1] - time[0]) if time.size > 1 else 0.0
    return {
        "time": time,
        "flux": flux,
        "n_points": int(flux.size),
        "time_baseline_days": baseline,
        "time_axis_replaced": replaced,
    }


def to_samples(time, flux):
    """Convert parallel arrays to a list of {'time', 'flux'} dicts for JSON output."""
    return [{"time": float(t), "flux": float(f)} for t, f in zip(time, flux)]
