from pathlib import Path

import pytest

from deskwatch.core.config import settings as cfg


def test_load_settings_reads_updated_file(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "config.yml"
    conf_path.write_text("status_window: 12\nhead_confidence: 0.5\n", encoding="utf-8")
    monkeypatch.setenv("DW_CONFIG", str(conf_path))

    first = cfg.load_settings()
    assert first.status_window == 12
    assert first.head_confidence == 0.5

    conf_path.write_text("status_window: 40\nhead_confidence: 0.2\n", encoding="utf-8")

    second = cfg.load_settings()
    assert second.status_window == 40
    assert second.head_confidence == 0.2


def test_env_overrides_yaml(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "config.yml"
    conf_path.write_text("status_window: 12\nvideo_source: file\n", encoding="utf-8")
    monkeypatch.setenv("DW_CONFIG", str(conf_path))
    monkeypatch.setenv("DW_STATUS_WINDOW", "20")

    settings = cfg.load_settings()
    assert settings.status_window == 20
    assert settings.video_source == "file"


def test_missing_config_file_uses_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("DW_CONFIG", str(tmp_path / "missing.yml"))
    settings = cfg.load_settings()
    assert settings.person_confidence == 0.40
    assert settings.status_window == 30


def test_tunables_are_clamped_not_rejected():
    settings = cfg.MonitorSettings(
        person_confidence=1.4, head_confidence=-1, head_match_iou=2, status_window=0
    )
    assert settings.person_confidence == 1.0
    assert settings.head_confidence == 0.0
    assert settings.head_match_iou == 1.0
    assert settings.status_window == 1
    assert cfg.MonitorSettings(status_window=5000).status_window == 300


def test_assignment_is_clamped():
    settings = cfg.MonitorSettings()
    settings.status_window = 999
    assert settings.status_window == 300


def test_structural_settings_are_validated():
    with pytest.raises(ValueError):
        cfg.MonitorSettings(video_source="usb")
    with pytest.raises(ValueError):
        cfg.MonitorSettings(detector_confidence=0)
    with pytest.raises(ValueError):
        cfg.MonitorSettings(target_fps=-1)
    with pytest.raises(ValueError):
        cfg.MonitorSettings(autosave_interval_s=0)
    with pytest.raises(ValueError):
        cfg.MonitorSettings(log_level="LOUD")
    assert cfg.MonitorSettings(log_level="debug").log_level == "DEBUG"


def test_tunables_from_settings():
    tunables = cfg.tunables_from_settings(cfg.MonitorSettings(enable_alerts=True))
    assert set(tunables) == set(cfg.TUNABLE_FIELDS)
    assert tunables["enable_alerts"] is True
