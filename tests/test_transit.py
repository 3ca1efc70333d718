"""Unit tests for Module 4: transit statistics, planet properties and quality flags."""

import itertools
import math

import numpy as np
import pytest

from exoscan.transit import (
    R_SUN_AU,
    R_SUN_REARTH,
    compute_equilibrium_temp,
    compute_false_alarm_probability,
    compute_planet_properties,
    compute_planet_radius,
    compute_semi_major_axis,
    compute_transit_stats,
    validate_detection,
)


class TestComputeTransitStats:

    def test_flat_flux_uses_depth_floor(self):
        stats = compute_transit_stats(np.ones(50), period=3.0)
        assert stats["depth"] == 0.0005
        assert stats["snr"] == pytest.approx(0.0005 / 1e-6 * 10)

    def test_noisy_flux_depth_half_rms(self):
        flux = 1.0 + np.random.default_rng(42).normal(0, 0.01, 500)
        rms = np.std(flux, ddof=1)
        stats = compute_transit_stats(flux, period=3.0)
        assert stats["depth"] == pytest.approx(rms * 0.5)
        assert stats["snr"] == pytest.approx(5.0)

    def test_depth_ceiling(self):
        flux = np.array([0.0, 1.0, 2.0, 3.0])
        stats = compute_transit_stats(flux, period=3.0)
        assert stats["depth"] == 0.05

    @pytest.mark.parametrize("period, expected", [(2.0, 0.5), (50.0, 5.0), (200.0, 10.0)])
    def test_duration_clamp(self, period, expected):
        assert compute_transit_stats(np.ones(10), period)["duration"] == pytest.approx(expected)

    def test_config_override(self):
        cfg = {
            "depth_rms_fraction": 0.5, "depth_min": 0.01, "depth_max": 0.05,
            "snr_scale": 10.0, "duration_period_fraction": 0.1,
            "duration_min": 0.5, "duration_max": 10.0,
        }
        assert compute_transit_stats(np.ones(10), 3.0, cfg)["depth"] == 0.01


class TestPlanetProperties:

    def test_radius(self):
        assert compute_planet_radius(0.01) == pytest.approx(0.1 * R_SUN_REARTH)
        assert compute_planet_radius(-1.0) == 0.0

    def test_semi_major_axis_one_year(self):
        assert compute_semi_major_axis(365.25) == pytest.approx(1.0)

    def test_semi_major_axis_guard(self):
        a = compute_semi_major_axis(0.0)
        assert a > 0
        assert math.isfinite(a)

    def test_equilibrium_temp_earth_like(self):
        t_eq = compute_equilibrium_temp(5778.0, 0.0, 1.0)
        assert t_eq == pytest.approx(5778.0 * math.sqrt(R_SUN_AU / 2.0))
        assert 270 < t_eq < 290

    def test_equilibrium_temp_albedo(self):
        assert compute_equilibrium_temp(5778.0, 1.0, 1.0) == 0.0
        assert compute_equilibrium_temp(5778.0, 0.3, 1.0) < compute_equilibrium_temp(5778.0, 0.0, 1.0)

    def test_equilibrium_temp_zero_distance(self):
        assert math.isfinite(compute_equilibrium_temp(5778.0, 0.0, 0.0))

    def test_combined(self):
        props = compute_planet_properties(365.25, 0.0001, 5778.0, 0.0)
        assert props["planet_radius_Rearth"] == pytest.approx(1.09)
        assert props["semi_major_axis_AU"] == pytest.approx(1.0)
        assert props["equilibrium_temp_K"] == pytest.approx(compute_equilibrium_temp(5778.0, 0.0, 1.0))


class TestFalseAlarmProbability:

    def test_strictly_decreasing_in_power(self):
        faps = [compute_false_alarm_probability(p, 1000) for p in np.linspace(0, 20, 41)]
        assert all(a > b for a, b in zip(faps[:-1], faps[1:]))

    def test_non_increasing_in_steps(self):
        faps = [compute_false_alarm_probability(2.0, s) for s in (10, 200, 1000, 2000, 4000, 8000)]
        assert all(a >= b for a, b in zip(faps[:-1], faps[1:]))
        assert faps[-1] < faps[-2] < faps[-3]

    def test_bounds(self):
        for power in (-5.0, 0.0, 3.0, 100.0):
            for steps in (None, 0, 1, 500, 10000):
                assert 0.0 <= compute_false_alarm_probability(power, steps) <= 1.0

    def test_zero_power(self):
        assert compute_false_alarm_probability(0.0, 500) == 1.0

    def test_missing_steps(self):
        assert compute_false_alarm_probability(1.0, None) == pytest.approx(math.exp(-1.0))


class TestValidateDetection:

    def test_passes(self):
        flags = validate_detection(snr=10, depth=0.01, period=3.0, n_points=500, duration=0.5)
        assert flags == ["passes_basic_checks"]

    def test_all_failures(self):
        flags = validate_detection(snr=1, depth=0.0001, period=0, n_points=10, duration=0)
        assert flags == ["low_snr", "shallow_depth", "invalid_period",
                         "insufficient_points", "invalid_duration"]

    def test_completeness(self):
        """Never empty; passes_basic_checks appears alone or not at all."""
        for snr, depth, period, n, duration in itertools.product(
                (1.0, 10.0), (0.0001, 0.01), (-1.0, 3.0), (10, 500), (0.0, 1.0)):
            flags = validate_detection(snr, depth, period, n, duration)
            assert flags
            if "passes_basic_checks" in flags:
                assert flags == ["passes_basic_checks"]
            else:
                assert len(flags) >= 1

    def test_custom_thresholds(self):
        flags = validate_detection(snr=10, depth=0.01, period=3.0, n_points=500, duration=0.5,
                                   thresholds={"min_snr": 20, "min_depth": 0.0005, "min_points": 100})
        assert flags == ["low_snr"]
