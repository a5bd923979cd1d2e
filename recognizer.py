"""Bounded recognition sessions using DashScope qwen3-asr-flash.

qwen3-asr-flash accepts complete audio and streams back recognition results
via ``stream=True``.  Each call to :meth:`DashscopeRecognizerAdapter.start`
is one bounded session: PCM frames are collected from the audio queue for at
most ``window_s`` seconds (or until the sentinel), wrapped into a WAV file
and sent to the model.  Partial results flow through ``on_event`` and the
session always finishes with exactly one FINAL or ERROR event, unless it was
stopped first.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import time
import wave
from http import HTTPStatus
from queue import Empty, Queue
from typing import Any, Callable, Mapping, Optional

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, NETWORK_ERROR
from models import AudioFrame, RecognitionEvent, RecognitionKind

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

_AUTH_HINTS = ("401", "403", "auth", "api key", "apikey")
_NETWORK_HINTS = ("timeout", "timed out", "network", "connection")


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def pcm_rms(pcm: bytes) -> float:
    """Root-mean-square level of 16-bit PCM, 0..32768."""
    if np is None or len(pcm) < 2:
        return 0.0
    samples = np.frombuffer(pcm[: len(pcm) - len(pcm) % 2], dtype=np.int16).astype(np.float64)
    return float(np.sqrt(np.mean(np.square(samples))))


class DashscopeRecognizerAdapter:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
        window_s: float = 3.0,
        silence_rms: float = 0.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._window_s = window_s
        self._silence_rms = silence_rms
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._audio_queue: Optional[Queue[AudioFrame | None]] = None
        self._on_event: Optional[Callable[[RecognitionEvent], None]] = None

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
    ) -> None:
        if self._thread and self._thread.is_alive() and not self._stop_event.is_set():
            raise RuntimeError("recognition session already running")
        self._audio_queue = audio_queue
        self._on_event = on_event
        # Each session gets its own stop flag so a late stop() never
        # reaches into the next session.
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._worker,
            args=(self._stop_event,),
            name="recognizer",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=0.5)
        self._thread = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self, stop_event: threading.Event) -> None:
        """Consume audio frames until the window closes, then recognise."""
        audio_queue, on_event = self._audio_queue, self._on_event
        if audio_queue is None or on_event is None:
            return

        pcm = bytearray()
        sample_rate = 16000
        channels = 1
        deadline = time.monotonic() + self._window_s

        while not stop_event.is_set() and time.monotonic() < deadline:
            try:
                frame = audio_queue.get(timeout=0.1)
            except Empty:
                continue
            if frame is None:  # Sentinel
                break
            pcm.extend(frame.pcm16_bytes)
            sample_rate = frame.sample_rate
            channels = frame.channels

        if stop_event.is_set():
            return

        if not pcm or pcm_rms(bytes(pcm)) < self._silence_rms:
            self._emit(stop_event, on_event, RecognitionEvent(kind=RecognitionKind.FINAL.value, text=""))
            return

        wav_b64 = _pcm_to_wav_base64(bytes(pcm), sample_rate, channels)
        self._recognize_stream(stop_event, on_event, wav_b64)

    def _recognize_stream(
        self,
        stop_event: threading.Event,
        on_event: Callable[[RecognitionEvent], None],
        wav_base64: str,
    ) -> None:
        """Send audio to dashscope and stream partial/final results."""
        if dashscope is None:
            self._emit(stop_event, on_event, _error_event(ASR_PROTOCOL_ERROR, "dashscope is not installed", False))
            return

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            self._emit(stop_event, on_event, _error_event(AUTH_FAILED, "No API key configured", False))
            return

        latest_text = ""
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_base64}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False, "language": "en"},
                stream=True,
                timeout=self._request_timeout_s,
            )
            for chunk in response:
                if stop_event.is_set():
                    return
                text = transcript_from_chunk(chunk)
                if text and text != latest_text:
                    latest_text = text
                    self._emit(stop_event, on_event, RecognitionEvent(kind=RecognitionKind.PARTIAL.value, text=text))
        except Exception as exc:
            code, retryable = classify_failure(str(exc))
            self._emit(stop_event, on_event, _error_event(code, str(exc), retryable))
            return

        self._emit(stop_event, on_event, RecognitionEvent(kind=RecognitionKind.FINAL.value, text=latest_text))

    def _emit(
        self,
        stop_event: threading.Event,
        on_event: Callable[[RecognitionEvent], None],
        event: RecognitionEvent,
    ) -> None:
        if stop_event.is_set():
            return
        if event.kind == RecognitionKind.ERROR.value:
            logger.warning(f"Error in recognition task: {event.code}: {event.message}")
        else:
            logger.debug(f"Recognition {event.kind}: {event.text!r}")
        on_event(event)


def transcript_from_chunk(chunk: Any) -> str:
    """Text of a streamed qwen3-asr-flash response.

    Raises ``RuntimeError`` when the chunk carries a non-200 status, so the
    caller maps it like any other request failure.
    """
    if not isinstance(chunk, Mapping):
        return ""
    status = chunk.get("status_code")
    if status is not None and status != HTTPStatus.OK:
        raise RuntimeError(f"{status} {chunk.get('code', '')}: {chunk.get('message', '')}")
    try:
        content = chunk["output"]["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    for item in content or ():
        if isinstance(item, Mapping) and item.get("text"):
            return str(item["text"])
    return ""


def classify_failure(message: str) -> tuple[str, bool]:
    """Error code and retryability for a failed request."""
    low = message.lower()
    if any(hint in low for hint in _AUTH_HINTS):
        return AUTH_FAILED, False
    if any(hint in low for hint in _NETWORK_HINTS):
        return NETWORK_ERROR, True
    return ASR_PROTOCOL_ERROR, True


def _error_event(code: str, message: str, retryable: bool) -> RecognitionEvent:
    return RecognitionEvent(kind=RecognitionKind.ERROR.value, code=code, message=message, retryable=retryable)
