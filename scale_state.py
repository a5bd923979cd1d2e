"""The single mutable scale of the placed object."""

from __future__ import annotations

import logging
import threading

from models import ScalePolicy, ScaleVector

logger = logging.getLogger(__name__)


class SharedScaleState:
    """Thread-safe scale vector, mutated only through :meth:`apply`.

    The renderer reads it with :meth:`get` every frame; writers never see a
    partially updated vector because each read-modify-write holds the lock.
    """

    def __init__(self, initial: ScaleVector | None = None) -> None:
        self._lock = threading.Lock()
        self._scale = initial or ScaleVector()

    def get(self) -> ScaleVector:
        with self._lock:
            return self._scale

    def apply(self, delta: float, policy: ScalePolicy) -> ScaleVector:
        with self._lock:
            before = self._scale
            self._scale = before.shifted(delta).clamped(*policy.bounds_for(delta))
            after = self._scale
        logger.debug(f"Scale {before.as_tuple()} -> {after.as_tuple()} (delta={delta:+.2f})")
        return after
