"""
Observer that runs beside the update worker: it mirrors the worker's progress
into the UI and turns a cancel request from the UI into the shared CancelToken.
"""

import asyncio
import contextlib
import logging
from typing import Protocol

from syncraft_updater.models.progress import ProgressState, ProgressTracker

from .cancellation import CancelToken

log = logging.getLogger(__name__)


class UpdateUI(Protocol):
    """What the updater needs from a progress window."""

    def set_range(self, total: int) -> None: ...

    def set_progress(self, value: float) -> None: ...

    def set_note(self, note: str) -> None: ...

    def is_cancel_requested(self) -> bool: ...

    async def wait_cancel_requested(self) -> None: ...

    def show_message(self, title: str, message: str, success: bool) -> None: ...

    def close(self) -> None: ...


class UpdateMonitor:
    """
    Purely observational: the monitor never drives the pipeline.

    It sleeps until the worker finishes, the progress changes or the user asks
    to cancel, whichever comes first. On cancel it sets the token, which wakes
    any cancellable wait inside the worker. When the worker finishes the UI is
    closed, whatever the outcome.
    """

    def __init__(self, ui: UpdateUI, tracker: ProgressTracker, token: CancelToken):
        self.ui = ui
        self.tracker = tracker
        self.token = token
        self._published: ProgressState | None = None

    async def watch(self, worker: asyncio.Future) -> None:
        self.ui.set_range(100)
        self._publish(self.tracker.state)

        cancel_waiter = asyncio.ensure_future(self.ui.wait_cancel_requested())
        changed: asyncio.Future | None = None
        try:
            while not worker.done():
                changed = asyncio.ensure_future(self.tracker.wait_changed())
                waits = {worker, changed}
                if not cancel_waiter.done():
                    waits.add(cancel_waiter)
                done, _ = await asyncio.wait(waits, return_when=asyncio.FIRST_COMPLETED)

                if not changed.done():
                    changed.cancel()
                if cancel_waiter in done and not self.token.cancelled:
                    log.info("Cancellation requested by user.")
                    self.token.cancel()
                self._publish(self.tracker.state)
            self._publish(self.tracker.state)
        finally:
            for waiter in (cancel_waiter, changed):
                if waiter is not None and not waiter.done():
                    waiter.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await waiter
            self.ui.close()

    def _publish(self, state: ProgressState) -> None:
        previous = self._published
        if previous is None or state.fraction != previous.fraction:
            self.ui.set_progress(state.fraction)
        if previous is None or state.note != previous.note:
            self.ui.set_note(state.note)
        self._published = state
