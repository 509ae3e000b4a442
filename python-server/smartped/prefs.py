"""
Saved pedometer state across sessions.

Stored as a small JSON document keyed like the device preferences, so
existing exports can be restored directly.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PREFERENCES_VERSION = 28

PREF_VERSION = "version_number"
PREF_TOTAL_TIME = "total_time"
PREF_VOLUME = "volume"
PREF_CALIBRATOR = "CALIBRATOR"
PREF_THRESHOLD = "threshold"
PREF_STEPS_SCALAR = "steps_scalar"
PREF_LOW_PASS_ENABLE = "low_pass_enable"

DEFAULT_VOLUME = 10


def load_state(path) -> Optional[Dict[str, Any]]:
    """Return the saved document, or None when absent, unreadable or from another version."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as fh:
            saved = json.load(fh)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable prefs %s: %s", path, exc)
        return None
    if not isinstance(saved, dict) or saved.get(PREF_VERSION) != PREFERENCES_VERSION:
        logger.info("Prefs %s are from another version; starting fresh", path)
        return None
    return saved


def manager_kwargs(saved: Dict[str, Any]) -> Dict[str, Any]:
    """Map a saved document onto StepDetectionManager constructor arguments."""
    return {
        "run_time": int(saved.get(PREF_TOTAL_TIME, 0)),
        "offset": float(saved.get(PREF_CALIBRATOR, 0.0)),
        "threshold": int(saved.get(PREF_THRESHOLD, 70)),
        "steps": int(saved.get(PREF_STEPS_SCALAR, 0)),
        "low_pass": bool(saved.get(PREF_LOW_PASS_ENABLE, False)),
    }


def load_volume(saved: Optional[Dict[str, Any]]) -> int:
    """Feedback volume from a saved document, clamped to 0-10."""
    if not saved:
        return DEFAULT_VOLUME
    try:
        volume = int(saved.get(PREF_VOLUME, DEFAULT_VOLUME))
    except (TypeError, ValueError):
        return DEFAULT_VOLUME
    return max(0, min(10, volume))


def save_state(path, manager, volume: int = DEFAULT_VOLUME) -> None:
    path = Path(path)
    doc = {
        PREF_VERSION: PREFERENCES_VERSION,
        PREF_TOTAL_TIME: manager.run_time,
        PREF_VOLUME: volume,
        PREF_CALIBRATOR: manager.offset,
        PREF_THRESHOLD: manager.threshold,
        PREF_STEPS_SCALAR: manager.steps,
        PREF_LOW_PASS_ENABLE: manager.low_pass,
    }
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(doc, fh, indent=2)
    os.replace(tmp, path)
    logger.debug("Saved prefs to %s", path)


__all__ = [
    "PREFERENCES_VERSION",
    "load_state",
    "save_state",
    "manager_kwargs",
    "load_volume",
    "DEFAULT_VOLUME",
]
