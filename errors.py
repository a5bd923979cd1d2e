"""Shared error codes, user-facing messages and capture errors."""

from __future__ import annotations

SESSION_START_FAILED = "SESSION_START_FAILED"
RECOGNITION_ERROR = "RECOGNITION_ERROR"
SENSOR_UNAVAILABLE = "SENSOR_UNAVAILABLE"
AUTHORIZATION_DENIED = "AUTHORIZATION_DENIED"
PERMISSION_DENIED = "PERMISSION_DENIED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"

ERROR_MESSAGES = {
    SESSION_START_FAILED: "Could not start listening, voice control turned off.",
    RECOGNITION_ERROR: "Speech recognition hiccup, still listening.",
    SENSOR_UNAVAILABLE: "Gyroscope not available, motion control disabled.",
    AUTHORIZATION_DENIED: "Speech recognition not authorized.",
    PERMISSION_DENIED: "Microphone permission is required in system settings.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
}

# Codes after which restarting a session cannot succeed without user action.
FATAL_CODES = frozenset({PERMISSION_DENIED, AUTHORIZATION_DENIED, AUTH_FAILED})


class AudioCaptureError(RuntimeError):
    """Raised when the audio capture resource cannot be acquired."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code

    @property
    def denied(self) -> bool:
        return self.code in FATAL_CODES


def describe(code: str) -> str:
    return ERROR_MESSAGES.get(code, code)
