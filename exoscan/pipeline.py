"""Pipeline orchestration: parse -> prepare -> period search -> transit -> planet -> quality.

One call analyses one light curve file and returns a JSON-serialisable result
dict. Runs share no state, so separate files can be analysed from separate
threads or tasks at the same time.
"""

import argparse
import asyncio
import json
import logging
import math
import sys
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

import numpy as np

from exoscan.config import load_config, resolve_config
from exoscan.errors import AnalysisError, ExoScanError, InsufficientDataError
from exoscan.lightcurve import compute_rms, detrend_median, prepare_lightcurve, to_samples
from exoscan.parser import decode_bytes, parse_lightcurve_text
from exoscan.periodogram import compute_search_range, rank_candidates, search_periods
from exoscan.transit import (
    compute_false_alarm_probability,
    compute_planet_properties,
    compute_transit_stats,
    validate_detection,
)

LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

logger = logging.getLogger(__name__)

# Advisory progress milestones reported to the caller, in run order
PROGRESS_STAGES = {
    "parsing": 10,
    "validation": 20,
    "preprocessing": 30,
    "periodogram": 50,
    "transit_search": 70,
    "validation_checks": 85,
    "statistics": 95,
    "complete": 100,
}


def setup_logging(log_name="pipeline.log", level=logging.INFO):
    """Log to logs/<log_name> and stderr, the same layout as the batch runner."""
    LOG_DIR.mkdir(exist_ok=True)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(LOG_DIR / log_name),
            logging.StreamHandler(),
        ],
    )


class _ProgressReporter:
    """Forwards stage milestones to an optional callback and remembers the current stage."""

    def __init__(self, callback=None):
        self.callback = callback
        self.stage = None

    def __call__(self, stage):
        self.stage = stage
        if self.callback is None:
            return
        try:
            self.callback(stage, PROGRESS_STAGES[stage])
        except Exception as e:
            # Listener errors never fail the run
            logger.warning("Progress callback failed at stage '%s': %s", stage, e)


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def _to_fixed(value, digits):
    """Fixed-point string of the exact float value, ties rounded away from zero."""
    quantum = Decimal(1).scaleb(-digits)
    return format(Decimal(float(value)).quantize(quantum, rounding=ROUND_HALF_UP), "f")


def analyze_lightcurve(time, flux, config=None, rng=None, progress=None,
                       power_function=None, parse_method=None, warnings=None):
    """Run the analysis on an already-parsed (time, flux) series.

    Parameters
    ----------
    time, flux : array-like
        Parsed samples, at least two.
    config : dict, optional
        Full pipeline config from resolve_config(). Defaults used if None.
    rng : numpy.random.Generator, optional
        Source for the chi2 placeholder. Pass a seeded generator for
        reproducible output.
    progress : callable, optional
        progress(stage, percent) milestone callback.
    power_function : callable, optional
        Alternative period scorer, see periodogram.search_periods.
    parse_method : str, optional
        Column resolution method reported by the parser, echoed in the result.
    warnings : list of str, optional
        Warning tokens collected so far (e.g. "low_data_count").

    Returns
    -------
    dict
        Camel-case result keys (planetDetected, confidence, period, ...)
        ready for json.dumps.
    """
    cfg = resolve_config() if config is None else config
    rng = np.random.default_rng() if rng is None else rng
    report = progress if isinstance(progress, _ProgressReporter) else _ProgressReporter(progress)
    warnings = list(warnings or [])

    time = np.asarray(time, dtype=float)
    flux = np.asarray(flux, dtype=float)
    if flux.size < 2:
        raise InsufficientDataError(int(flux.size))

    # Time-axis guard, noise level and detrend
    report("validation")
    lc_data = prepare_lightcurve(time, flux)
    rms = compute_rms(lc_data["flux"])
    detrended = detrend_median(lc_data)

    report("preprocessing")
    time_span = lc_data["time_baseline_days"]
    n_points = lc_data["n_points"]

    # Period search
    report("periodogram")
    search_range = compute_search_range(time_span, n_points, cfg["search"])
    scan = search_periods(detrended["time"], detrended["flux"],
                          search_range["min_period"], search_range["max_period"],
                          search_range["steps"], power_function=power_function)

    report("transit_search")
    candidates = rank_candidates(scan["periods"], scan["powers"], cfg["search"]["n_candidates"])

    # Detailed look at the best candidate
    report("validation_checks")
    best = candidates[0]
    transit_stats = compute_transit_stats(detrended["flux"], best["period"], cfg["transit"])

    report("statistics")
    det = cfg["detection"]
    planet_detected = bool(best["power"] > det["power_threshold"]
                           and transit_stats["snr"] > det["snr_threshold"])
    confidence = min(det["confidence_max"],
                     max(det["confidence_min"], _round_half_up(best["power"] * det["confidence_scale"])))

    planet = compute_planet_properties(best["period"], transit_stats["depth"],
                                       cfg["stellar"]["teff_K"], cfg["stellar"]["albedo"])
    fap = compute_false_alarm_probability(best["power"], search_range["steps"])
    quality_flags = validate_detection(
        snr=transit_stats["snr"],
        depth=transit_stats["depth"],
        period=best["period"],
        n_points=n_points,
        duration=transit_stats["duration"],
        thresholds=cfg["quality"],
    )

    # Placeholder goodness-of-fit figure; carries no statistical meaning
    chi2 = 1.2 + float(rng.random()) * 0.8

    logger.info("Detection=%s (power=%.3f, snr=%.2f), confidence=%d%%, FAP=%.3g",
                planet_detected, best["power"], transit_stats["snr"], confidence, fap)

    result = {
        "planetDetected": planet_detected,
        "confidence": int(confidence),
        "transitDepth": _to_fixed(transit_stats["depth"], 3),
        "period": _to_fixed(best["period"], 2),
        "duration": _to_fixed(transit_stats["duration"], 1),
        "signalToNoise": transit_stats["snr"],
        "chi2": chi2,
        "falseAlarmProbability": fap,
        "dataPoints": n_points,
        "observationTime": _to_fixed(time_span, 1),
        "rmsNoise": rms,
        "semiMajorAxis": _to_fixed(planet["semi_major_axis_AU"], 3),
        "planetRadius": _to_fixed(planet["planet_radius_Rearth"], 3),
        "equilibriumTemp": _to_fixed(planet["equilibrium_temp_K"], 0),
        "bestPeriods": [
            {
                "period": float(_to_fixed(c["period"], 2)),
                "power": float(_to_fixed(c["power"], 2)),
                "depth": float(_to_fixed(c["power"] * 0.1, 3)),
                "snr": float(_to_fixed(c["snr"], 1)),
            }
            for c in candidates
        ],
        "qualityFlags": quality_flags,
        "lightCurveData": to_samples(lc_data["time"], lc_data["flux"]),
        "detrendedData": to_samples(detrended["time"], detrended["flux"]),
        "warnings": warnings,
        "timeAxisReplaced": lc_data["time_axis_replaced"],
        "parseMethod": parse_method,
        "searchRange": {
            "minPeriod": search_range["min_period"],
            "maxPeriod": search_range["max_period"],
            "steps": scan["steps"],
        },
    }

    report("complete")
    return result


def analyze_text(text, config=None, rng=None, progress=None, power_function=None):
    """Parse light curve text and analyse it.

    Raises
    ------
    InsufficientDataError
        Fewer than two usable rows.
    AnalysisError
        Any other failure, with the underlying message.
    """
    report = _ProgressReporter(progress)
    try:
        report("parsing")
        parsed = parse_lightcurve_text(text)
        n_rows = parsed["n_rows"]
        if n_rows < 2:
            raise InsufficientDataError(n_rows)

        cfg = resolve_config() if config is None else config
        warnings = []
        if n_rows < cfg["detection"]["low_data_points"]:
            logger.warning("Only %d points found. Results may be unreliable "
                           "but analysis will proceed.", n_rows)
            warnings.append("low_data_count")

        return analyze_lightcurve(parsed["time"], parsed["flux"], config=cfg, rng=rng,
                                  progress=report, power_function=power_function,
                                  parse_method=parsed["method"], warnings=warnings)
    except ExoScanError:
        raise
    except Exception as e:
        logger.error("Analysis failed during '%s': %s", report.stage, e)
        raise AnalysisError(str(e), stage=report.stage) from e


def analyze_file(path, **kwargs):
    """Read a light curve file and analyse it. Keyword arguments go to analyze_text."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise AnalysisError(f"Could not read {path}: {e}", stage="parsing") from e
    logger.info("Analysing %s (%d bytes)", path.name, len(raw))
    return analyze_text(decode_bytes(raw), **kwargs)


async def analyze_file_async(path, **kwargs):
    """Await the file read in a worker thread, then analyse synchronously."""
    path = Path(path)
    try:
        raw = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        raise AnalysisError(f"Could not read {path}: {e}", stage="parsing") from e
    return analyze_text(decode_bytes(raw), **kwargs)


def summarize_result(result):
    """Result without the per-sample arrays, for logs and batch summaries."""
    return {k: v for k, v in result.items() if k not in ("lightCurveData", "detrendedData")}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Light curve transit period search")
    parser.add_argument("file", type=str, help="Light curve file (.csv, .txt, .dat)")
    parser.add_argument("--output", type=str, default=None, help="Output file path (default: stdout)")
    parser.add_argument("--config", type=str, default=None, help="JSON file with threshold overrides")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the chi2 placeholder")
    parser.add_argument("--no-curves", action="store_true",
                        help="Omit raw and detrended samples from the output")
    args = parser.parse_args(argv)

    setup_logging()

    config = load_config(args.config) if args.config else resolve_config()
    rng = np.random.default_rng(args.seed)

    try:
        result = analyze_file(args.file, config=config, rng=rng)
    except ExoScanError as e:
        logger.error("Analysis of %s failed: %s", args.file, e)
        return 1

    if args.no_curves:
        result = summarize_result(result)

    output_json = json.dumps(result, indent=2)
    if args.output:
        with open(args.output, "w") as f:
            f.write(output_json)
        logger.info("Results written to %s", args.output)
    else:
        sys.stdout.write(output_json + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
