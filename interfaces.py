"""Protocol interfaces for the collaborators around the command pipeline."""

from __future__ import annotations

from queue import Queue
from typing import Callable, Protocol

from models import AudioFrame, CommandSource, RecognitionEvent, RotationSample


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class RecognizerAdapter(Protocol):
    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
    ) -> None: ...

    def stop(self) -> None: ...


class MotionSensor(Protocol):
    @property
    def is_available(self) -> bool: ...

    def start(self, interval_s: float, callback: Callable[[RotationSample], None]) -> None: ...

    def stop(self) -> None: ...


class Dispatcher(Protocol):
    def post(self, fn: Callable[[], None]) -> None: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self, action: str) -> str: ...

    def set_hotkey(self, action: str, hotkey: str) -> None: ...

    def get_step(self, source: CommandSource) -> float: ...

    def get_min_scale(self) -> float: ...

    def get_motion_max_scale(self) -> float: ...

    def get_motion_threshold(self) -> float: ...

    def get_sample_interval_s(self) -> float: ...
