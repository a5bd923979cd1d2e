"""Tests for DashscopeRecognizerAdapter."""

from __future__ import annotations

import base64
import time
from queue import Queue
from unittest.mock import MagicMock, patch

import pytest

from models import AudioFrame, RecognitionEvent, RecognitionKind
from recognizer import (
    DashscopeRecognizerAdapter,
    _pcm_to_wav_base64,
    classify_failure,
    pcm_rms,
    transcript_from_chunk,
)


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _make_frame(n_samples: int = 1600, level: int = 0) -> AudioFrame:
    sample = int(level).to_bytes(2, "little", signed=True)
    return AudioFrame(pcm16_bytes=sample * n_samples, sample_rate=16000, channels=1)


def _wait_for_events(events: list, *, timeout: float = 3.0) -> None:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if any(e.kind in (RecognitionKind.FINAL.value, RecognitionKind.ERROR.value) for e in events):
            return
        time.sleep(0.05)


def _chunk(text: str) -> dict:
    return {"output": {"choices": [{"message": {"content": [{"text": text}]}}]}}


# ---------------------------------------------------------------
# Audio helpers
# ---------------------------------------------------------------

def test_pcm_to_wav_base64_produces_riff() -> None:
    result = _pcm_to_wav_base64(b"\x00\x00" * 1600, sample_rate=16000, channels=1)
    assert base64.b64decode(result)[:4] == b"RIFF"


def test_pcm_rms_levels() -> None:
    assert pcm_rms(b"") == 0.0
    assert pcm_rms(_make_frame(level=0).pcm16_bytes) == 0.0
    assert pcm_rms(_make_frame(level=1000).pcm16_bytes) == 1000.0
    assert pcm_rms(_make_frame(level=-1000).pcm16_bytes + b"\x01") == 1000.0


# ---------------------------------------------------------------
# Session boundaries
# ---------------------------------------------------------------

def test_empty_audio_ends_session_naturally() -> None:
    adapter = DashscopeRecognizerAdapter(api_key="test-key")
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(None)

    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    assert len(events) == 1
    assert events[0].kind == RecognitionKind.FINAL.value
    assert events[0].text == ""


@patch("recognizer.dashscope")
def test_silent_window_skips_remote_call(mock_ds: MagicMock) -> None:
    adapter = DashscopeRecognizerAdapter(api_key="test-key", silence_rms=50.0)
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame(level=3))
    q.put(None)

    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    mock_ds.MultiModalConversation.call.assert_not_called()
    assert [e.kind for e in events] == [RecognitionKind.FINAL.value]


@patch("recognizer.dashscope")
def test_window_closes_without_sentinel(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("increase")])

    adapter = DashscopeRecognizerAdapter(api_key="test-key", window_s=0.2)
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame(level=500))

    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    assert [e.kind for e in events] == [RecognitionKind.PARTIAL.value, RecognitionKind.FINAL.value]
    assert events[-1].text == "increase"


def test_second_start_while_running_is_rejected() -> None:
    adapter = DashscopeRecognizerAdapter(api_key="test-key", window_s=5.0)
    q: Queue[AudioFrame | None] = Queue()
    adapter.start(q, lambda e: None)
    try:
        with pytest.raises(RuntimeError, match="already running"):
            adapter.start(q, lambda e: None)
    finally:
        adapter.stop()


def test_start_after_stop_opens_new_session() -> None:
    adapter = DashscopeRecognizerAdapter(api_key="test-key", window_s=5.0)
    adapter.start(Queue(), lambda e: None)
    adapter.stop()

    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(None)
    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    assert [e.kind for e in events] == [RecognitionKind.FINAL.value]


# ---------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------

def test_transcript_from_chunk_reads_first_text_item() -> None:
    assert transcript_from_chunk(_chunk("increase")) == "increase"
    assert transcript_from_chunk({"output": {"choices": []}}) == ""
    assert transcript_from_chunk("not a chunk") == ""


def test_transcript_from_chunk_raises_on_error_status() -> None:
    with pytest.raises(RuntimeError, match="401"):
        transcript_from_chunk({"status_code": 401, "code": "InvalidApiKey", "message": "bad key"})


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("401 Unauthorized", ("AUTH_FAILED", False)),
        ("Read timed out", ("NETWORK_ERROR", True)),
        ("unexpected payload", ("ASR_PROTOCOL_ERROR", True)),
    ],
)
def test_classify_failure(message: str, expected: tuple[str, bool]) -> None:
    assert classify_failure(message) == expected


@patch("recognizer.dashscope")
def test_error_status_chunk_becomes_error_event(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter(
        [{"status_code": 403, "code": "AccessDenied", "message": "no access"}]
    )

    adapter = DashscopeRecognizerAdapter(api_key="test-key")
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame(level=500))
    q.put(None)

    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    assert [(e.kind, e.code) for e in events] == [(RecognitionKind.ERROR.value, "AUTH_FAILED")]


# ---------------------------------------------------------------
# Streaming results
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_successful_streaming_emits_partials_and_final(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter(
        [_chunk("please"), _chunk("please in"), _chunk("please increase")]
    )

    adapter = DashscopeRecognizerAdapter(api_key="test-key")
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame(level=500))
    q.put(None)

    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    partials = [e.text for e in events if e.kind == RecognitionKind.PARTIAL.value]
    finals = [e.text for e in events if e.kind == RecognitionKind.FINAL.value]
    assert partials == ["please", "please in", "please increase"]
    assert finals == ["please increase"]


@patch("recognizer.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_emits_auth_error() -> None:
    adapter = DashscopeRecognizerAdapter(api_key="")
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame(level=500))
    q.put(None)

    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    error = next(e for e in events if e.kind == RecognitionKind.ERROR.value)
    assert error.code == "AUTH_FAILED"
    assert error.retryable is False


@patch("recognizer.dashscope")
def test_network_error_is_retryable(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ConnectionError("network timeout")

    adapter = DashscopeRecognizerAdapter(api_key="test-key")
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame(level=500))
    q.put(None)

    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    errors = [e for e in events if e.kind == RecognitionKind.ERROR.value]
    assert len(errors) == 1
    assert errors[0].code == "NETWORK_ERROR"
    assert errors[0].retryable is True


@patch("recognizer.dashscope")
def test_auth_error_is_not_retryable(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = Exception("401 Unauthorized: invalid api key")

    adapter = DashscopeRecognizerAdapter(api_key="bad-key")
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame(level=500))
    q.put(None)

    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    errors = [e for e in events if e.kind == RecognitionKind.ERROR.value]
    assert len(errors) == 1
    assert errors[0].code == "AUTH_FAILED"
    assert errors[0].retryable is False


@patch("recognizer.dashscope", None)
def test_dashscope_not_installed_emits_error() -> None:
    adapter = DashscopeRecognizerAdapter(api_key="test-key")
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame(level=500))
    q.put(None)

    adapter.start(q, events.append)
    _wait_for_events(events)
    adapter.stop()

    errors = [e for e in events if e.kind == RecognitionKind.ERROR.value]
    assert len(errors) == 1
    assert "not installed" in errors[0].message


@patch("recognizer.dashscope")
def test_stop_during_streaming_suppresses_further_events(mock_ds: MagicMock) -> None:
    def slow_response():  # noqa: ANN202
        yield _chunk("hello")
        time.sleep(1.0)
        yield _chunk("increase")

    mock_ds.MultiModalConversation.call.return_value = slow_response()

    adapter = DashscopeRecognizerAdapter(api_key="test-key")
    events: list[RecognitionEvent] = []
    q: Queue[AudioFrame | None] = Queue()
    q.put(_make_frame(level=500))
    q.put(None)

    adapter.start(q, events.append)
    time.sleep(0.3)
    adapter.stop()
    time.sleep(1.2)

    assert [e.text for e in events] == ["hello"]
