"""Unit tests for configuration defaults and overrides."""

import json

import pytest

from exoscan.config import DEFAULT_CONFIG, load_config, resolve_config


class TestResolveConfig:

    def test_literal_defaults(self):
        cfg = resolve_config()
        assert cfg["detection"]["power_threshold"] == 5.0
        assert cfg["detection"]["snr_threshold"] == 5.0
        assert cfg["transit"]["depth_min"] == 0.0005
        assert cfg["transit"]["depth_max"] == 0.05
        assert cfg["stellar"]["teff_K"] == 5778.0
        assert cfg["stellar"]["albedo"] == 0.0
        assert cfg["search"]["n_candidates"] == 10

    def test_returns_fresh_copy(self):
        cfg = resolve_config()
        cfg["detection"]["power_threshold"] = 99.0
        assert DEFAULT_CONFIG["detection"]["power_threshold"] == 5.0
        assert resolve_config()["detection"]["power_threshold"] == 5.0

    def test_override_merged(self):
        cfg = resolve_config({"stellar": {"albedo": 0.3}})
        assert cfg["stellar"]["albedo"] == 0.3
        assert cfg["stellar"]["teff_K"] == 5778.0

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="section"):
            resolve_config({"plotting": {}})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="detection.power"):
            resolve_config({"detection": {"power": 1.0}})


class TestLoadConfig:

    def test_json_file(self, tmp_path):
        path = tmp_path / "overrides.json"
        path.write_text(json.dumps({"quality": {"min_points": 50}}))
        cfg = load_config(path)
        assert cfg["quality"]["min_points"] == 50
        assert cfg["quality"]["min_snr"] == 5.0
