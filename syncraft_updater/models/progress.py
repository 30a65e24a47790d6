"""
Progress state of an update run and the tracker through which the worker
publishes it to observers.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

log = logging.getLogger(__name__)


class Phase(str, Enum):
    """Lifecycle phases of the update worker."""

    IDLE = "idle"
    READING_INPUT = "reading_input"
    WAITING_GRACE = "waiting_grace"
    DOWNLOADING = "downloading"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.DONE, Phase.FAILED, Phase.CANCELLED)


# Allowed worker transitions. Cancelled is only reachable from Applying when
# cancellation between apply items is enabled.
TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.IDLE: frozenset({Phase.READING_INPUT, Phase.FAILED}),
    Phase.READING_INPUT: frozenset({Phase.WAITING_GRACE, Phase.FAILED}),
    Phase.WAITING_GRACE: frozenset(
        {Phase.DOWNLOADING, Phase.FAILED, Phase.CANCELLED}
    ),
    Phase.DOWNLOADING: frozenset({Phase.APPLYING, Phase.FAILED, Phase.CANCELLED}),
    Phase.APPLYING: frozenset({Phase.DONE, Phase.FAILED, Phase.CANCELLED}),
    Phase.DONE: frozenset(),
    Phase.FAILED: frozenset(),
    Phase.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class ProgressState:
    """Snapshot of the worker's progress. `fraction` is a percentage (0-100)."""

    phase: Phase = Phase.IDLE
    fraction: float = 0.0
    note: str = ""


class ProgressTracker:
    """
    Holds the current ProgressState. Only the worker writes to it; observers
    either register a listener or await `wait_changed()`.
    """

    def __init__(self) -> None:
        self._state = ProgressState()
        self._changed = asyncio.Event()
        self._listeners: list[Callable[[ProgressState], None]] = []

    @property
    def state(self) -> ProgressState:
        return self._state

    def add_listener(self, listener: Callable[[ProgressState], None]) -> None:
        self._listeners.append(listener)

    def set_phase(self, phase: Phase, note: str | None = None) -> None:
        """
        Moves the worker into `phase`.

        Raises:
            ValueError: If the transition is not part of the worker lifecycle.
        """
        current = self._state.phase
        if phase is current:
            return
        if phase not in TRANSITIONS[current]:
            raise ValueError(
                f"Invalid phase transition: {current.value} -> {phase.value}"
            )
        log.debug(f"Phase {current.value} -> {phase.value}")
        self._publish(
            replace(
                self._state,
                phase=phase,
                note=self._state.note if note is None else note,
            )
        )

    def update(self, fraction: float, note: str | None = None) -> None:
        """Sets the progress fraction, never letting it move backwards."""
        fraction = min(100.0, max(0.0, fraction))
        if fraction < self._state.fraction:
            log.debug(
                f"Ignoring progress regression {self._state.fraction:.1f} -> {fraction:.1f}"
            )
            fraction = self._state.fraction
        self._publish(
            replace(
                self._state,
                fraction=fraction,
                note=self._state.note if note is None else note,
            )
        )

    async def wait_changed(self) -> ProgressState:
        """Waits until the state changes after the last call, then returns it."""
        await self._changed.wait()
        self._changed.clear()
        return self._state

    def _publish(self, state: ProgressState) -> None:
        self._state = state
        self._changed.set()
        for listener in self._listeners:
            listener(state)
