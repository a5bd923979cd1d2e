"""Routes commands from every trigger source to the shared scale."""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional

from interfaces import Dispatcher
from models import Command, CommandSource, ScalePolicy, ScaleVector
from scale_state import SharedScaleState

logger = logging.getLogger(__name__)

ScaleCallback = Callable[[ScaleVector, CommandSource], None]


class CommandRouter:
    def __init__(
        self,
        scale_state: SharedScaleState,
        policies: Mapping[CommandSource, ScalePolicy],
        dispatcher: Dispatcher,
        voice_gate: Optional[Callable[[], bool]] = None,
        on_scale_change: Optional[ScaleCallback] = None,
    ) -> None:
        missing = set(CommandSource) - set(policies)
        if missing:
            raise ValueError(f"missing scale policy for {sorted(s.value for s in missing)}")
        self._scale_state = scale_state
        self._policies = dict(policies)
        self._dispatcher = dispatcher
        self._voice_gate = voice_gate
        self._on_scale_change = on_scale_change

    def submit(self, command: Command, source: CommandSource) -> None:
        """Thread-safe entry point: hand the command to the owner thread."""
        if command == Command.NONE:
            return
        self._dispatcher.post(lambda: self.apply(command, source))

    def apply(self, command: Command, source: CommandSource) -> Optional[ScaleVector]:
        """Apply on the owner thread. Returns the new scale, or None if ignored."""
        if command == Command.NONE:
            return None
        if source == CommandSource.VOICE and self._voice_gate is not None and not self._voice_gate():
            logger.info(f"Dropping late voice command {command.value}: listening is off")
            return None

        policy = self._policies[source]
        scale = self._scale_state.apply(policy.delta_for(command), policy)
        logger.info(f"{source.value} {command.value} -> scale {scale.as_tuple()}")
        if self._on_scale_change:
            self._on_scale_change(scale, source)
        return scale
