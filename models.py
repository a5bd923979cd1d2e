"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Command(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    NONE = "none"


class CommandSource(str, Enum):
    BUTTON = "button"
    VOICE = "voice"
    MOTION = "motion"


class ManagerState(str, Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    ACTIVE = "ACTIVE"
    RESTARTING = "RESTARTING"


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class RecognitionKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


@dataclass(frozen=True)
class ScaleVector:
    x: float = 1.0
    y: float = 1.0
    z: float = 1.0

    def shifted(self, delta: float) -> ScaleVector:
        return ScaleVector(self.x + delta, self.y + delta, self.z + delta)

    def clamped(self, min_bound: Optional[float] = None, max_bound: Optional[float] = None) -> ScaleVector:
        def clamp(value: float) -> float:
            if min_bound is not None:
                value = max(value, min_bound)
            if max_bound is not None:
                value = min(value, max_bound)
            return value

        return ScaleVector(clamp(self.x), clamp(self.y), clamp(self.z))

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class ScalePolicy:
    """Step and bounds applied by one trigger source."""

    step: float
    min_bound: float = 0.1
    max_bound: Optional[float] = None

    def delta_for(self, command: Command) -> float:
        if command == Command.INCREASE:
            return self.step
        if command == Command.DECREASE:
            return -self.step
        return 0.0

    def bounds_for(self, delta: float) -> tuple[Optional[float], Optional[float]]:
        """Only the bound in the direction of travel applies."""
        if delta > 0:
            return None, self.max_bound
        if delta < 0:
            return self.min_bound, None
        return None, None


@dataclass
class RecognitionSession:
    session_id: int
    status: SessionStatus = SessionStatus.ACTIVE
    transcript: str = ""


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass(frozen=True)
class RotationSample:
    """Angular rate in rad/s; ``y`` is the vertical axis."""

    x: float
    y: float
    z: float
    timestamp_ms: int = 0


@dataclass
class RecognitionEvent:
    kind: str
    text: str = ""
    code: str = ""
    message: str = ""
    retryable: bool = False
