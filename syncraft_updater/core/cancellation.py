"""
One-shot cancellation signal shared by the update worker and the monitor.
"""

import asyncio
import contextlib
import logging
from typing import Awaitable, TypeVar

from syncraft_updater.exceptions import UpdateCancelledError

log = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """
    A write-once flag: once `cancel()` is called it stays set.

    The monitor is the only writer. The worker polls `raise_if_cancelled()` at
    its checkpoints and wraps blocking waits in `sleep()` or `run()` so they
    return as soon as the flag is set instead of running to completion.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._event.is_set():
            log.debug("Cancellation requested")
            self._event.set()

    def cancel_threadsafe(self, loop: asyncio.AbstractEventLoop) -> None:
        """Sets the flag from a thread other than the one running `loop`."""
        loop.call_soon_threadsafe(self.cancel)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise UpdateCancelledError("Update cancelled by user.")

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """
        Sleeps for `delay` seconds.

        Raises:
            UpdateCancelledError: As soon as cancellation is requested.
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Awaits `awaitable`, abandoning it if cancellation is requested first.

        Raises:
            UpdateCancelledError: If the token was set before `awaitable` finished.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        if task.cancelled():
            raise UpdateCancelledError("Update cancelled by user.")
        return task.result()
