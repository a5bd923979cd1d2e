"""Microphone capture: the process-wide audio input resource."""

from __future__ import annotations

import logging
import threading
import time
from queue import Full, Queue
from typing import Any

from errors import PERMISSION_DENIED, SESSION_START_FAILED, AudioCaptureError
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

_DENIED_HINTS = ("permission", "denied", "not authorized", "unauthorized")


class SoundDeviceRecorder:
    """Owns at most one input stream; every session re-attaches one queue."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame | None] | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                # Re-attach instead of opening a second stream.
                self._audio_queue = audio_queue
                return
            if sd is None:
                raise AudioCaptureError(SESSION_START_FAILED, "sounddevice is not installed")
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            stream = None
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    callback=self._on_audio,
                )
                stream.start()
            except Exception as exc:
                if stream is not None:
                    stream.close()
                raise self._to_capture_error(exc) from exc
            self._audio_queue = audio_queue
            self._stream = stream
            self._running = True
            logger.debug(f"Audio capture started at {self.sample_rate} Hz")

    def stop(self) -> None:
        with self._lock:
            if self._running:
                self._running = False
                stream, self._stream = self._stream, None
                if stream is not None:
                    try:
                        stream.stop()
                    finally:
                        stream.close()
                logger.debug("Audio capture stopped")
            self._emit_sentinel_if_needed()
            self._audio_queue = None

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        audio_queue = self._audio_queue
        if not self._running or audio_queue is None:
            return
        if np is None:
            return
        if status:
            logger.debug(f"Audio input status: {status}")
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        frame = AudioFrame(
            pcm16_bytes=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            audio_queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1

    def _emit_sentinel_if_needed(self) -> None:
        if self._audio_queue is None:
            return
        try:
            self._audio_queue.put_nowait(None)
        except Full:
            pass

    def _to_capture_error(self, exc: Exception) -> AudioCaptureError:
        message = str(exc)
        if any(hint in message.lower() for hint in _DENIED_HINTS):
            return AudioCaptureError(PERMISSION_DENIED, message)
        return AudioCaptureError(SESSION_START_FAILED, message)
