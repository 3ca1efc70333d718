"""Batch-analyse light curve files and summarise the detections.

Runs the pipeline on every file in parallel threads (one independent run per
file), prints a summary table and writes the summary as JSON.

Usage:
    python run_batch.py data/                      # every .csv/.txt/.dat in data/
    python run_batch.py a.csv b.txt --workers 8
    python run_batch.py data/ --seed 42 --save-results
"""

import argparse
import json
import logging
import re
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

import numpy as np

from exoscan.config import load_config, resolve_config
from exoscan.errors import ExoScanError, InsufficientDataError
from exoscan.pipeline import analyze_file, setup_logging, summarize_result

OUTPUT_DIR = Path(__file__).resolve().parent / "output"
LIGHTCURVE_SUFFIXES = (".csv", ".txt", ".dat")

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _file_to_slug(path):
    """Convert a file name to an output file slug."""
    return re.sub(r"[^\w]+", "_", Path(path).stem).strip("_").lower()


def collect_files(inputs):
    """Expand directories into their light curve files; keep explicit files as given."""
    files = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            files.extend(sorted(p for p in path.iterdir()
                                if p.is_file() and p.suffix.lower() in LIGHTCURVE_SUFFIXES))
        else:
            files.append(path)
    return files


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------

def run_single_file(path, config, seed=None):
    """Analyse one file.

    Returns (path, summary dict, full result or None). Analysis failures are
    recorded in the summary and do not stop the batch.
    """
    rng = np.random.default_rng(seed)
    t0 = time.time()
    entry = {"file": str(path)}

    try:
        result = analyze_file(path, config=config, rng=rng)
    except InsufficientDataError as e:
        entry.update(status="insufficient_data", error=str(e), n_rows=e.n_rows)
        logger.warning("Skipped %s: %s", path, e)
        return path, entry, None
    except ExoScanError as e:
        entry.update(status="failed", error=str(e))
        logger.error("Error processing %s: %s", path, e)
        return path, entry, None

    entry["status"] = "ok"
    entry["duration_s"] = round(time.time() - t0, 3)
    entry.update(summarize_result(result))
    return path, entry, result


def run_batch(files, config, workers=4, seed=None, save_results=False):
    """Analyse files concurrently. Returns summaries in input order."""
    summaries = {}
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(run_single_file, path, config,
                            None if seed is None else seed + i): path
            for i, path in enumerate(files)
        }
        for future in as_completed(futures):
            path, entry, result = future.result()
            summaries[path] = entry
            logger.info("  %s: %s", path.name, entry["status"])

            if save_results and result is not None:
                OUTPUT_DIR.mkdir(exist_ok=True)
                out_path = OUTPUT_DIR / f"results_{_file_to_slug(path)}.json"
                with open(out_path, "w") as f:
                    json.dump(result, f, indent=2)

    return [summaries[path] for path in files]


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

def print_summary(summaries):
    """Print a formatted table of the batch results."""
    print("\n" + "=" * 96)
    print("LIGHT CURVE BATCH SUMMARY")
    print("=" * 96)

    hdr = (f"{'File':<32} {'Status':<18} {'Det':>3} {'Conf':>4} "
           f"{'P(d)':>8} {'SNR':>6} {'N':>6}  Flags")
    print(hdr)
    print("-" * 96)

    n_ok = 0
    n_detected = 0
    for s in summaries:
        name = Path(s["file"]).name[:32]
        if s["status"] != "ok":
            print(f"{name:<32} {s['status']:<18}")
            continue
        n_ok += 1
        if s["planetDetected"]:
            n_detected += 1
        det = "Y" if s["planetDetected"] else "N"
        flags = ",".join(s["qualityFlags"])
        print(f"{name:<32} {'ok':<18} {det:>3} {s['confidence']:>4} "
              f"{s['period']:>8} {s['signalToNoise']:>6.1f} {s['dataPoints']:>6}  {flags}")

    print("\n--- Summary ---")
    print(f"Total files:         {len(summaries)}")
    print(f"Successfully run:    {n_ok}")
    print(f"Planet detected:     {n_detected} / {n_ok}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv=None):
    parser = argparse.ArgumentParser(description="Batch light curve transit search")
    parser.add_argument("inputs", nargs="+", help="Light curve files or directories")
    parser.add_argument("--workers", type=int, default=4,
                        help="Number of parallel workers (default: 4)")
    parser.add_argument("--output", type=str, default=None,
                        help="Summary JSON path (default: output/batch_summary.json)")
    parser.add_argument("--config", type=str, default=None,
                        help="JSON file with threshold overrides")
    parser.add_argument("--seed", type=int, default=None,
                        help="Base seed for the chi2 placeholder (file i uses seed + i)")
    parser.add_argument("--save-results", action="store_true",
                        help="Also write each full result to output/results_<file>.json")
    args = parser.parse_args(argv)

    setup_logging("batch.log")

    config = load_config(args.config) if args.config else resolve_config()
    files = collect_files(args.inputs)
    if not files:
        logger.error("No light curve files found in %s", ", ".join(args.inputs))
        return 1

    logger.info("Processing %d files with %d workers", len(files), args.workers)
    t0 = time.time()
    summaries = run_batch(files, config, workers=args.workers, seed=args.seed,
                          save_results=args.save_results)
    logger.info("All files processed in %.1fs", time.time() - t0)

    print_summary(summaries)

    summary_path = Path(args.output) if args.output else OUTPUT_DIR / "batch_summary.json"
    summary_path.parent.mkdir(parents=True, exist_ok=True)
    with open(summary_path, "w") as f:
        json.dump(summaries, f, indent=2)
    logger.info("Summary saved to %s", summary_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
