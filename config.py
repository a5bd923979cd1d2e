"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from interfaces import ConfigStore
from models import CommandSource, ScalePolicy

logger = logging.getLogger(__name__)

DEFAULT_HOTKEYS = {
    "toggle": "Key.f8",
    "increase": "Key.page_up",
    "decrease": "Key.page_down",
}

DEFAULT_STEPS = {
    CommandSource.BUTTON: 0.5,
    CommandSource.VOICE: 0.5,
    CommandSource.MOTION: 0.1,
}

MIN_SCALE = 0.1
MOTION_MAX_SCALE = 1.0
MOTION_THRESHOLD = 0.5
SAMPLE_INTERVAL_S = 0.1
RECOGNITION_WINDOW_S = 3.0
SILENCE_RMS = 200.0


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "scale_control" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "")) or os.getenv("DASHSCOPE_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_hotkey(self, action: str) -> str:
        hotkeys = self._read_all().get("hotkeys", {})
        if not isinstance(hotkeys, dict):
            hotkeys = {}
        return str(hotkeys.get(action, DEFAULT_HOTKEYS.get(action, "")))

    def set_hotkey(self, action: str, hotkey: str) -> None:
        data = self._read_all()
        hotkeys = data.get("hotkeys")
        if not isinstance(hotkeys, dict):
            hotkeys = {}
        hotkeys[action] = hotkey
        data["hotkeys"] = hotkeys
        self._write_all(data)

    def get_step(self, source: CommandSource) -> float:
        return self._get_float(f"{source.value}_step", DEFAULT_STEPS[source])

    def set_step(self, source: CommandSource, step: float) -> None:
        self._set(f"{source.value}_step", step)

    def get_min_scale(self) -> float:
        return self._get_float("min_scale", MIN_SCALE)

    def get_motion_max_scale(self) -> float:
        return self._get_float("motion_max_scale", MOTION_MAX_SCALE)

    def get_motion_threshold(self) -> float:
        return self._get_float("motion_threshold", MOTION_THRESHOLD)

    def get_sample_interval_s(self) -> float:
        return self._get_float("sample_interval_s", SAMPLE_INTERVAL_S)

    def get_recognition_window_s(self) -> float:
        return self._get_float("recognition_window_s", RECOGNITION_WINDOW_S)

    def get_silence_rms(self) -> float:
        return self._get_float("silence_rms", SILENCE_RMS)

    def get_serial_port(self) -> str:
        return str(self._read_all().get("serial_port", "/dev/ttyUSB0"))

    def set_serial_port(self, port: str) -> None:
        self._set("serial_port", port)

    def get_baudrate(self) -> int:
        value = self._read_all().get("baudrate", 115200)
        return value if isinstance(value, int) and not isinstance(value, bool) else 115200

    def _get_float(self, key: str, default: float) -> float:
        value = self._read_all().get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning(f"Ignoring invalid value for {key!r}: {value!r}")
            return default
        return float(value)

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning(f"Could not read config at {self._path}, using defaults")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def build_policies(store: ConfigStore) -> dict[CommandSource, ScalePolicy]:
    """Per-source step and bounds; only motion is bounded above."""
    min_scale = store.get_min_scale()
    return {
        CommandSource.BUTTON: ScalePolicy(store.get_step(CommandSource.BUTTON), min_scale),
        CommandSource.VOICE: ScalePolicy(store.get_step(CommandSource.VOICE), min_scale),
        CommandSource.MOTION: ScalePolicy(
            store.get_step(CommandSource.MOTION),
            min_scale,
            store.get_motion_max_scale(),
        ),
    }
