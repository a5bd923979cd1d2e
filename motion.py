"""Turns device rotation into discrete scale commands."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from command_router import CommandRouter
from errors import SENSOR_UNAVAILABLE
from interfaces import MotionSensor
from models import Command, CommandSource, RotationSample

logger = logging.getLogger(__name__)

ROTATION_THRESHOLD = 0.5

ErrorCallback = Callable[[str, str], None]


def classify_rotation(sample: RotationSample, threshold: float = ROTATION_THRESHOLD) -> Command:
    if sample.y > threshold:
        return Command.INCREASE
    if sample.y < -threshold:
        return Command.DECREASE
    return Command.NONE


class MotionCommandClassifier:
    def __init__(self, threshold: float = ROTATION_THRESHOLD) -> None:
        if threshold < 0:
            raise ValueError("threshold must be non-negative")
        self.threshold = threshold

    def on_sample(self, sample: RotationSample) -> Command:
        command = classify_rotation(sample, self.threshold)
        logger.debug(f"Rotation rate y={sample.y:+.3f} -> {command.value}")
        return command


class MotionChannel:
    """Sensor -> classifier -> router, disabled for good if the sensor is missing."""

    def __init__(
        self,
        sensor: MotionSensor,
        router: CommandRouter,
        classifier: Optional[MotionCommandClassifier] = None,
        interval_s: float = 0.1,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._sensor = sensor
        self._router = router
        self._classifier = classifier or MotionCommandClassifier()
        self._interval_s = interval_s
        self._on_error = on_error
        self._running = False
        self._disabled = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_disabled(self) -> bool:
        return self._disabled

    def start(self) -> bool:
        if self._running:
            return True
        if self._disabled:
            return False
        if not self._sensor.is_available:
            self._disable("Gyroscope not available")
            return False
        try:
            self._sensor.start(self._interval_s, self._on_sample)
        except Exception as exc:
            self._disable(f"Gyroscope failed to start: {exc}")
            return False
        self._running = True
        logger.info(f"Motion updates started every {self._interval_s * 1000:.0f} ms")
        return True

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._sensor.stop()
        logger.info("Motion updates stopped")

    def _on_sample(self, sample: RotationSample) -> None:
        command = self._classifier.on_sample(sample)
        if command != Command.NONE:
            self._router.submit(command, CommandSource.MOTION)

    def _disable(self, message: str) -> None:
        self._disabled = True
        logger.warning(message)
        if self._on_error:
            self._on_error(SENSOR_UNAVAILABLE, message)
