from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from packages.shared.config import AppConfig, Resolution
from packages.shared.paths import HOME_ENV
from packages.shared.store import ConfigStore


def test_resolution_parse():
    assert Resolution.parse("1440x1080") == Resolution(width=1440, height=1080)
    assert Resolution.parse(" 1920X1080 ") == Resolution(width=1920, height=1080)
    assert str(Resolution(width=1280, height=960)) == "1280x960"


@pytest.mark.parametrize("text", ["1440", "1440x", "axb", "1x2x3", "0x1080", "-1x1080"])
def test_resolution_parse_rejects(text):
    with pytest.raises(ValueError):
        Resolution.parse(text)


def test_resolution_is_immutable():
    r = Resolution(width=1440, height=1080)
    with pytest.raises(ValidationError):
        r.width = 800


def test_defaults():
    cfg = AppConfig()
    assert cfg.game_resolution == Resolution(width=1440, height=1080)
    assert cfg.desktop_resolution == Resolution(width=1920, height=1080)
    assert cfg.to_monitor_config() == {
        "sample_interval_ms": 3000,
        "baseline_readings": 3,
        "stability_checks": 3,
        "start_delay_ms": 5000,
        "end_delay_ms": 5000,
        "end_check_count": 3,
        "end_check_interval_ms": 2000,
        "end_check_tolerance": 1.1,
    }


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        AppConfig(sample_interval_ms=0)
    with pytest.raises(ValidationError):
        AppConfig(stability_checks=-1)


def test_store_creates_defaults(tmp_path):
    path = tmp_path / "nested" / "config.json"
    cfg = ConfigStore(path).load()

    assert cfg == AppConfig()
    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8"))["game_resolution"] == {"width": 1440, "height": 1080}


def test_store_round_trip(tmp_path):
    store = ConfigStore(tmp_path / "config.json")
    cfg = AppConfig(game_resolution=Resolution(width=1280, height=960), nircmd_path="C:/tools/nircmd.exe")
    store.save(cfg)
    assert store.load() == cfg


def test_store_fills_missing_fields(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"desktop_resolution": {"width": 2560, "height": 1440}}), encoding="utf-8")

    cfg = ConfigStore(path).load()
    assert cfg.desktop_resolution == Resolution(width=2560, height=1440)
    assert cfg.game_resolution == Resolution(width=1440, height=1080)


@pytest.mark.parametrize("content", ["{not json", json.dumps({"sample_interval_ms": 0})])
def test_store_resets_broken_file(tmp_path, caplog, content):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")

    cfg = ConfigStore(path).load()

    assert cfg == AppConfig()
    assert "resetting to defaults" in caplog.text
    assert AppConfig.model_validate_json(path.read_text(encoding="utf-8")) == AppConfig()


def test_default_store_location_follows_home_override(tmp_path, monkeypatch):
    monkeypatch.setenv(HOME_ENV, str(tmp_path / "home"))
    store = ConfigStore()
    store.load()
    assert store.path() == str(tmp_path / "home" / "config.json")
    assert (tmp_path / "home" / "logs").is_dir()
