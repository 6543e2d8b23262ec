import pytest

from deskwatch.core.config.presets import list_presets, preset_patch
from deskwatch.core.config.settings import TUNABLE_FIELDS, MonitorSettings


def test_list_presets_shape():
    presets = list_presets()
    assert [p["id"] for p in presets] == ["strict", "balanced", "responsive"]
    assert all(p["label"] and p["settings"] for p in presets)


def test_presets_only_touch_live_tunables():
    for preset in list_presets():
        assert set(preset["settings"]) <= set(TUNABLE_FIELDS)
        MonitorSettings(**preset_patch(preset["id"]))


def test_balanced_matches_defaults():
    defaults = MonitorSettings()
    for key, value in preset_patch("balanced").items():
        assert getattr(defaults, key) == value


def test_unknown_preset():
    with pytest.raises(KeyError):
        preset_patch("turbo")


def test_preset_patch_is_a_copy():
    patch = preset_patch("strict")
    patch["status_window"] = 1
    assert preset_patch("strict")["status_window"] == 45
