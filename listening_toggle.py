"""On/off switch for voice listening that mirrors the manager's real state."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from models import Command
from speech_session import SpeechSessionManager

logger = logging.getLogger(__name__)


class ListeningToggle:
    def __init__(
        self,
        manager: SpeechSessionManager,
        on_command: Callable[[Command], None],
        on_change: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self._manager = manager
        self._on_command = on_command
        self._on_change = on_change
        # Fires for user toggles and for self-disable after start failures.
        manager.add_listening_listener(self._handle_listening_change)

    @property
    def is_on(self) -> bool:
        return self._manager.is_listening

    def toggle(self) -> bool:
        self.set(not self.is_on)
        return self.is_on

    def set(self, on: bool) -> None:
        if on:
            if not self._manager.is_listening:
                self._manager.start(self._on_command)
        else:
            self._manager.stop()

    def _handle_listening_change(self, listening: bool) -> None:
        logger.debug(f"Listening is now {'on' if listening else 'off'}")
        if self._on_change:
            self._on_change(listening)
