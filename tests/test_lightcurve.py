"""Unit tests for Module 2: noise statistics, detrending and the time-axis guard."""

import numpy as np
import pytest

from exoscan.lightcurve import (
    compute_rms,
    detrend_median,
    ensure_monotonic_time,
    median_flux,
    prepare_lightcurve,
    to_samples,
)


def make_noise(n_points=200, noise_level=0.01, offset=1.0, seed=42):
    """Flat light curve with Gaussian noise."""
    time = np.arange(n_points, dtype=float)
    flux = offset + np.random.default_rng(seed).normal(0, noise_level, n_points)
    return time, flux


class TestComputeRms:

    def test_degenerate_inputs(self):
        assert compute_rms([]) == 0.0
        assert compute_rms([1.5]) == 0.0

    def test_bessel_corrected(self):
        assert compute_rms([1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_constant_series(self):
        assert compute_rms([2.0] * 10) == 0.0

    def test_non_negative(self):
        for seed in range(5):
            _, flux = make_noise(seed=seed)
            assert compute_rms(flux) >= 0.0

    def test_non_finite_is_zero(self):
        assert compute_rms([1.0, np.nan, 2.0]) == 0.0


class TestDetrendMedian:

    @pytest.mark.parametrize("n_points", [1, 2, 7, 200])
    def test_median_is_one(self, n_points):
        time, flux = make_noise(n_points=n_points, offset=1234.5)
        out = detrend_median({"time": time, "flux": flux})
        assert np.median(out["flux"]) == pytest.approx(1.0)

    def test_shape_preserved(self):
        time, flux = make_noise(n_points=50)
        out = detrend_median({"time": time, "flux": flux})
        # Pure offset: differences between points are unchanged
        np.testing.assert_allclose(np.diff(out["flux"]), np.diff(flux))
        np.testing.assert_array_equal(out["time"], time)

    def test_records_median(self):
        out = detrend_median({"time": np.arange(4.0), "flux": np.array([1.0, 3.0, 5.0, 7.0])})
        assert out["median_flux"] == 4.0

    def test_input_not_mutated(self):
        time, flux = make_noise(n_points=10)
        original = flux.copy()
        detrend_median({"time": time, "flux": flux})
        np.testing.assert_array_equal(flux, original)

    def test_empty(self):
        out = detrend_median({"time": np.array([]), "flux": np.array([])})
        assert out["flux"].size == 0
        assert out["median_flux"] == 0.0

    def test_median_helper(self):
        assert median_flux([3.0, 1.0, 2.0]) == 2.0
        assert median_flux([]) == 0.0


class TestEnsureMonotonicTime:

    def test_increasing_kept(self):
        time, flux = make_noise(n_points=20)
        new_time, new_flux, replaced = ensure_monotonic_time(time, flux)
        assert not replaced
        np.testing.assert_array_equal(new_time, time)

    def test_constant_time_replaced(self):
        flux = np.array([1.0, 0.9, 1.1, 1.0])
        new_time, new_flux, replaced = ensure_monotonic_time(np.zeros(4), flux)
        assert replaced
        np.testing.assert_array_equal(new_time, [0.0, 1.0, 2.0, 3.0])
        np.testing.assert_array_equal(new_flux, flux)

    def test_shuffled_time_replaced(self):
        _, _, replaced = ensure_monotonic_time([3.0, 1.0, 2.0], [1.0, 1.0, 1.0])
        assert replaced

    def test_repeated_time_replaced(self):
        _, _, replaced = ensure_monotonic_time([0.0, 1.0, 1.0, 2.0], [1.0] * 4)
        assert replaced


class TestPrepareLightcurve:

    def test_metadata(self):
        time, flux = make_noise(n_points=30)
        lc = prepare_lightcurve(time + 100.0, flux)
        assert lc["n_points"] == 30
        assert lc["time_baseline_days"] == pytest.approx(29.0)
        assert lc["time_axis_replaced"] is False

    def test_replaced_axis_baseline(self):
        lc = prepare_lightcurve(np.full(5, 7.0), np.ones(5))
        assert lc["time_axis_replaced"] is True
        assert lc["time_baseline_days"] == 4.0

    def test_to_samples(self):
        samples = to_samples(np.array([0.0, 1.0]), np.array([1.0, 0.99]))
        assert samples == [{"time": 0.0, "flux": 1.0}, {"time": 1.0, "flux": 0.99}]
        assert all(type(s["time"]) is float for s in samples)
