"""Wires the three trigger sources to the shared scale."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from command_router import CommandRouter, ScaleCallback
from config import build_policies
from interfaces import ConfigStore, Dispatcher, MotionSensor, Recorder, RecognizerAdapter
from listening_toggle import ListeningToggle
from models import Command, CommandSource, ManagerState, ScaleVector
from motion import MotionChannel, MotionCommandClassifier
from scale_state import SharedScaleState
from speech_session import SpeechSessionManager

logger = logging.getLogger(__name__)


@dataclass
class ScaleControl:
    scale_state: SharedScaleState
    router: CommandRouter
    manager: SpeechSessionManager
    toggle: ListeningToggle
    motion: MotionChannel

    def start(self, listen: bool = True, use_motion: bool = True) -> None:
        # Listening starts at launch unless disabled.
        if listen:
            self.toggle.set(True)
        if use_motion:
            self.motion.start()

    def press(self, command: Command) -> None:
        """Button/hotkey press from any thread."""
        self.router.submit(command, CommandSource.BUTTON)

    def shutdown(self) -> None:
        self.motion.stop()
        self.manager.shutdown()


def _log_state_change(from_state: ManagerState, to_state: ManagerState) -> None:
    logger.debug(f"Speech session manager {from_state.value} -> {to_state.value}")


def build_scale_control(
    store: ConfigStore,
    dispatcher: Dispatcher,
    recorder: Recorder,
    recognizer: RecognizerAdapter,
    sensor: MotionSensor,
    initial_scale: Optional[ScaleVector] = None,
    on_error: Optional[Callable[[str, str], None]] = None,
    on_partial: Optional[Callable[[str], None]] = None,
    on_listening_change: Optional[Callable[[bool], None]] = None,
    on_scale_change: Optional[ScaleCallback] = None,
    retry_delay_s: float = 0.25,
) -> ScaleControl:
    scale_state = SharedScaleState(initial_scale or ScaleVector(1.0, 1.0, 1.0))
    manager = SpeechSessionManager(
        recorder=recorder,
        recognizer=recognizer,
        retry_delay_s=retry_delay_s,
        on_state_change=_log_state_change,
        on_partial=on_partial,
        on_error=on_error,
    )
    router = CommandRouter(
        scale_state,
        build_policies(store),
        dispatcher,
        voice_gate=lambda: manager.is_listening,
        on_scale_change=on_scale_change,
    )
    toggle = ListeningToggle(
        manager,
        on_command=lambda command: router.submit(command, CommandSource.VOICE),
        on_change=on_listening_change,
    )
    motion = MotionChannel(
        sensor,
        router,
        MotionCommandClassifier(store.get_motion_threshold()),
        interval_s=store.get_sample_interval_s(),
        on_error=on_error,
    )
    return ScaleControl(scale_state, router, manager, toggle, motion)
