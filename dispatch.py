"""Owner-thread executor that serializes every state mutation."""

from __future__ import annotations

import logging
import threading
from queue import Queue
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SerialDispatcher:
    """Runs posted callables one at a time, in posting order, on one thread.

    Background producers (audio, recognizer and sensor threads) post here
    instead of touching shared state themselves.
    """

    def __init__(self, name: str = "owner") -> None:
        self._name = name
        self._queue: Queue[Callable[[], None] | None] = Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._thread = threading.Thread(target=self._worker, name=self._name, daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._queue.put(None)
            self._thread = None
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def post(self, fn: Callable[[], None]) -> None:
        self._queue.put(fn)

    def flush(self) -> None:
        """Block until everything posted so far has run."""
        self._queue.join()

    def is_owner_thread(self) -> bool:
        return self._thread is threading.current_thread()

    def _worker(self) -> None:
        while True:
            fn = self._queue.get()
            try:
                if fn is None:
                    return
                fn()
            except Exception:
                logger.exception(f"Task posted to {self._name} failed")
            finally:
                self._queue.task_done()
