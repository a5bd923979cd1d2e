"""Continuous voice-command listening built from bounded recognition sessions.

The recognizer only ever transcribes one bounded session at a time.  The
manager keeps listening indefinitely by opening a fresh session whenever the
current one recognizes a command, ends naturally or fails mid-way, for as
long as listening is enabled.

Threading model:

* ``start()``/``stop()`` are called from the UI thread and never wait for a
  session to be established.
* Recognizer and audio callbacks arrive on their own threads; they only
  update bookkeeping under ``_lock`` and queue requests.
* A supervisor thread performs every open/close of the recorder and
  recognizer, so a session is never torn down from its own callback thread.
"""

from __future__ import annotations

import functools
import logging
import threading
from queue import Queue
from typing import Callable, Optional

from errors import (
    AUTHORIZATION_DENIED,
    FATAL_CODES,
    RECOGNITION_ERROR,
    SESSION_START_FAILED,
    AudioCaptureError,
)
from interfaces import Recorder, RecognizerAdapter
from models import (
    AudioFrame,
    Command,
    ManagerState,
    RecognitionEvent,
    RecognitionKind,
    RecognitionSession,
    SessionStatus,
)

logger = logging.getLogger(__name__)

CommandCallback = Callable[[Command], None]
StateCallback = Callable[[ManagerState, ManagerState], None]
PartialCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]
ListeningCallback = Callable[[bool], None]

_OPEN = "open"
_RETRY = "retry"
_RELEASE = "release"


def detect_voice_command(text: str) -> Command:
    """First match wins: "increase" is checked before "decrease"."""
    normalized = text.lower()
    if "increase" in normalized:
        return Command.INCREASE
    if "decrease" in normalized:
        return Command.DECREASE
    return Command.NONE


class SpeechSessionManager:
    def __init__(
        self,
        recorder: Recorder,
        recognizer: RecognizerAdapter,
        max_start_attempts: int = 2,
        retry_delay_s: float = 0.25,
        queue_maxsize: int = 100,
        on_state_change: Optional[StateCallback] = None,
        on_partial: Optional[PartialCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        if max_start_attempts < 1:
            raise ValueError("max_start_attempts must be at least 1")
        self._recorder = recorder
        self._recognizer = recognizer
        self._max_start_attempts = max_start_attempts
        self._retry_delay_s = retry_delay_s
        self._queue_maxsize = queue_maxsize
        self._on_state_change = on_state_change
        self._on_partial = on_partial
        self._on_error = on_error

        self._lock = threading.RLock()
        self._resource_lock = threading.Lock()
        self._state = ManagerState.IDLE
        self._listening = False
        # Bumped by every start()/stop(); requests from older runs are dropped.
        self._generation = 0
        self._session: Optional[RecognitionSession] = None
        self._last_session_id = 0
        self._on_command: Optional[CommandCallback] = None
        self._start_failures = 0
        self._had_active_session = False
        self._listeners: list[ListeningCallback] = []

        self._requests: Queue[tuple[str, int] | None] = Queue()
        self._halt = threading.Event()
        self._supervisor: Optional[threading.Thread] = None
        self.sessions_opened = 0

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def session(self) -> Optional[RecognitionSession]:
        return self._session

    def add_listening_listener(self, callback: ListeningCallback) -> None:
        with self._lock:
            self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Public lifecycle
    # ------------------------------------------------------------------

    def start(self, on_command: CommandCallback) -> None:
        with self._lock:
            was_listening = self._listening
            self._generation += 1
            generation = self._generation
            self._on_command = on_command
            self._listening = True
            self._start_failures = 0
            self._had_active_session = False
            self._halt.clear()
            self._retire_session(SessionStatus.CANCELLED)
            transition = self._transition(ManagerState.STARTING)
            self._ensure_supervisor()
            self._requests.put((_OPEN, generation))
        self._notify_state(transition)
        logger.info("Speech recognition restarted" if was_listening else "Speech recognition started")
        if not was_listening:
            self._notify_listening(True)

    def stop(self) -> None:
        """End listening without waiting for capture or recognition to wind down.

        The supervisor releases the recorder and recognizer; no command
        callback fires once this returns.
        """
        with self._lock:
            was_listening = self._listening
            self._listening = False
            self._generation += 1
            self._on_command = None
            self._halt.set()
            self._retire_session(SessionStatus.CANCELLED)
            transition = self._transition(ManagerState.IDLE)
            self._requests.put((_RELEASE, self._generation))
            self._requests.put(None)
        self._notify_state(transition)
        if was_listening:
            logger.info("Speech recognition stopped")
            self._notify_listening(False)

    def shutdown(self, timeout: float = 1.0) -> None:
        """Stop listening and wait for the supervisor thread to exit."""
        self.stop()
        with self._lock:
            supervisor = self._supervisor
        if supervisor is not None and supervisor is not threading.current_thread():
            supervisor.join(timeout=timeout)

    # ------------------------------------------------------------------
    # Supervisor
    # ------------------------------------------------------------------

    def _ensure_supervisor(self) -> None:
        if self._supervisor is not None and self._supervisor.is_alive():
            return
        self._supervisor = threading.Thread(target=self._supervise, name="speech-supervisor", daemon=True)
        self._supervisor.start()

    def _supervise(self) -> None:
        while True:
            request = self._requests.get()
            if request is None:
                with self._lock:
                    if not self._listening:
                        self._supervisor = None
                        return
                continue
            kind, generation = request
            if kind == _RELEASE:
                with self._resource_lock:
                    if not self._listening:
                        self._release_resources()
                continue
            if kind == _RETRY and self._halt.wait(self._retry_delay_s):
                continue
            self._open_session(generation)

    def _open_session(self, generation: int) -> None:
        failure: Optional[Exception] = None
        with self._resource_lock:
            with self._lock:
                if generation != self._generation or not self._listening:
                    return
                self._retire_session(SessionStatus.CANCELLED)
                starting = self._transition(ManagerState.STARTING)
                self._last_session_id += 1
                session = RecognitionSession(session_id=self._last_session_id)
                self._session = session
            self._notify_state(starting)

            # Never let the previous session's tap survive into the new one.
            self._release_resources()
            audio_queue: Queue[AudioFrame | None] = Queue(maxsize=self._queue_maxsize)
            on_event = functools.partial(self._handle_recognition_event, session.session_id)
            try:
                self._recognizer.start(audio_queue, on_event)
                self._recorder.start(audio_queue)
            except Exception as exc:
                self._release_resources()
                failure = exc
            else:
                activated = None
                with self._lock:
                    stale = generation != self._generation or not self._listening
                    if not stale:
                        self._start_failures = 0
                        self._had_active_session = True
                        self.sessions_opened += 1
                        activated = self._transition(ManagerState.ACTIVE)
                self._notify_state(activated)
                if stale:
                    self._release_resources()
                    return
                logger.debug(f"Recognition session {session.session_id} active")

        if failure is not None:
            self._handle_start_failure(generation, session, failure)

    def _handle_start_failure(
        self, generation: int, session: RecognitionSession, exc: Exception
    ) -> None:
        code = exc.code if isinstance(exc, AudioCaptureError) else SESSION_START_FAILED
        restarting = None
        with self._lock:
            session.status = SessionStatus.FAILED
            if generation != self._generation or not self._listening:
                return
            self._start_failures += 1
            logger.warning(
                f"There was a problem starting speech recognition "
                f"(attempt {self._start_failures}/{self._max_start_attempts}): {exc}"
            )
            give_up = (
                code in FATAL_CODES
                or not self._had_active_session
                or self._start_failures >= self._max_start_attempts
            )
            if not give_up:
                restarting = self._transition(ManagerState.RESTARTING)
                self._requests.put((_RETRY, generation))
        self._notify_state(restarting)
        if give_up:
            self._disable_listening(code, str(exc))

    # ------------------------------------------------------------------
    # Recognizer callbacks (recognizer thread)
    # ------------------------------------------------------------------

    def _handle_recognition_event(self, session_id: int, event: RecognitionEvent) -> None:
        command = Command.NONE
        callback: Optional[CommandCallback] = None
        partial_text: Optional[str] = None
        restart = False
        fatal = False
        transition = None

        with self._lock:
            session = self._session
            if (
                not self._listening
                or session is None
                or session.session_id != session_id
                or session.status != SessionStatus.ACTIVE
            ):
                return
            generation = self._generation
            kind = event.kind

            if kind in (RecognitionKind.PARTIAL.value, RecognitionKind.FINAL.value):
                session.transcript = event.text
                command = detect_voice_command(event.text)
                if command != Command.NONE:
                    logger.info(f"Voice command recognized: {command.value}")
                    session.status = SessionStatus.CANCELLED
                    callback = self._on_command
                    restart = True
                elif kind == RecognitionKind.FINAL.value:
                    logger.debug(f"Recognition session {session_id} ended without a command")
                    session.status = SessionStatus.ENDED
                    restart = True
                else:
                    partial_text = event.text
            elif kind == RecognitionKind.ERROR.value:
                session.status = SessionStatus.FAILED
                if event.retryable and event.code not in FATAL_CODES:
                    logger.warning(f"Error in recognition task, restarting: {event.code}: {event.message}")
                    restart = True
                else:
                    fatal = True
            else:
                return

            if restart:
                transition = self._transition(ManagerState.RESTARTING)

        self._notify_state(transition)
        if partial_text is not None and self._on_partial:
            self._on_partial(partial_text)
        if callback is not None:
            callback(command)
        if restart:
            self._requests.put((_OPEN, generation))
        if fatal:
            code = AUTHORIZATION_DENIED if event.code in FATAL_CODES else RECOGNITION_ERROR
            self._disable_listening(code, f"{event.code}: {event.message}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _disable_listening(self, code: str, message: str) -> None:
        with self._lock:
            if not self._listening:
                return
            self._listening = False
            self._generation += 1
            self._on_command = None
            self._halt.set()
            self._retire_session(SessionStatus.FAILED)
            transition = self._transition(ManagerState.IDLE)
            self._requests.put((_RELEASE, self._generation))
            self._requests.put(None)
        self._notify_state(transition)
        logger.error(f"Speech recognition disabled ({code}): {message}")
        self._emit_error(code, message)
        self._notify_listening(False)

    def _retire_session(self, status: SessionStatus) -> None:
        session = self._session
        if session is not None and session.status == SessionStatus.ACTIVE:
            session.status = status

    def _release_resources(self) -> None:
        try:
            self._recorder.stop()
        except Exception:
            logger.warning("Failed to stop audio capture", exc_info=True)
        try:
            self._recognizer.stop()
        except Exception:
            logger.warning("Failed to stop recognizer", exc_info=True)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _notify_listening(self, listening: bool) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(listening)

    def _transition(self, to_state: ManagerState) -> Optional[tuple[ManagerState, ManagerState]]:
        """Update the state under ``_lock``; the caller reports it via :meth:`_notify_state`."""
        from_state = self._state
        if from_state == to_state:
            return None
        self._state = to_state
        return from_state, to_state

    def _notify_state(self, transition: Optional[tuple[ManagerState, ManagerState]]) -> None:
        if transition is not None and self._on_state_change:
            self._on_state_change(*transition)
