"""Global hotkeys for the mic toggle and the +/- buttons, based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Mapping, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


class GlobalHotkeyAdapter:
    """Fires each binding once per key press; auto-repeat is ignored until release."""

    def __init__(self, bindings: Mapping[str, Callable[[], None]]) -> None:
        self._bindings = dict(bindings)
        self._listener: Optional[object] = None
        self._pressed: set[str] = set()
        self._lock = threading.Lock()

    def start(self) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        self._listener.start()
        logger.info(f"Hotkeys active: {', '.join(sorted(self._bindings))}")

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

    def _on_press(self, key: object) -> None:
        name = str(key)
        action = self._bindings.get(name)
        if action is None:
            return
        with self._lock:
            if name in self._pressed:
                return
            self._pressed.add(name)
        action()

    def _on_release(self, key: object) -> None:
        with self._lock:
            self._pressed.discard(str(key))
