from __future__ import annotations

from typing import Any


# Sensitivity presets. They only touch live tunables, so applying one never
# restarts capture or reloads the model.
#
# Notes:
# - higher confidences ignore weak detections (fewer false WORKING frames)
# - status_window trades reaction time for stability (frames, not seconds)


PRESETS: dict[str, dict[str, Any]] = {
    # Fewer false positives; slow to change status.
    "strict": {
        "person_confidence": 0.55,
        "head_confidence": 0.45,
        "head_match_iou": 0.15,
        "status_window": 45,
    },
    # Defaults.
    "balanced": {
        "person_confidence": 0.40,
        "head_confidence": 0.30,
        "head_match_iou": 0.10,
        "status_window": 30,
    },
    # Reacts quickly; more flicker on noisy detectors.
    "responsive": {
        "person_confidence": 0.35,
        "head_confidence": 0.25,
        "head_match_iou": 0.10,
        "status_window": 15,
    },
}


PRESET_LABELS: dict[str, str] = {
    "strict": "Strict",
    "balanced": "Balanced",
    "responsive": "Responsive",
}


def list_presets() -> list[dict[str, Any]]:
    return [
        {
            "id": preset_id,
            "label": PRESET_LABELS.get(preset_id, preset_id),
            "settings": PRESETS[preset_id],
        }
        for preset_id in PRESETS.keys()
    ]


def preset_patch(preset_id: str) -> dict[str, Any]:
    if preset_id not in PRESETS:
        raise KeyError(preset_id)
    return dict(PRESETS[preset_id])
