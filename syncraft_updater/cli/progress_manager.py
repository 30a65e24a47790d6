"""
Terminal progress window for the updater, built on a Rich progress bar.
Ctrl+C is the cancel button.
"""

import asyncio
import logging
import signal

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from syncraft_updater.core.cancellation import CancelToken

log = logging.getLogger("syncraft_updater")

DEFAULT_DESCRIPTION = "Updating files..."


class RichUpdateUI:
    """
    Progress window shown while an update runs.

    Accepts a range, a current value and a status note, exposes the user's
    cancel request, and shows the final message. With `enabled=False` no bar
    is drawn and only the log and the final message are printed.
    """

    def __init__(
        self,
        console: Console,
        title: str = "syncraft Updater",
        enabled: bool = True,
    ):
        self.console = console
        self.title = title
        self.enabled = enabled

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None
        self._cancel_request = CancelToken()
        self._cancel_announced = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_handler = None
        self._uses_loop_handler = False
        self._started = False
        self._closed = False

    def set_range(self, total: int) -> None:
        if self._task_id is None:
            self._task_id = self.progress.add_task(DEFAULT_DESCRIPTION, total=total)
        else:
            self.progress.update(self._task_id, total=total)

    def set_progress(self, value: float) -> None:
        if self._task_id is not None:
            self.progress.update(self._task_id, completed=value)

    def set_note(self, note: str) -> None:
        if self._task_id is not None:
            self.progress.update(self._task_id, description=note or DEFAULT_DESCRIPTION)

    def request_cancel(self) -> None:
        """Called from the SIGINT handler on the event loop."""
        self._cancel_request.cancel()
        self._announce_cancel()

    def request_cancel_threadsafe(self) -> None:
        """Called from a thread other than the one running the event loop."""
        if self._loop is not None:
            self._cancel_request.cancel_threadsafe(self._loop)

    def is_cancel_requested(self) -> bool:
        return self._cancel_request.cancelled

    async def wait_cancel_requested(self) -> None:
        await self._cancel_request.wait()
        self._announce_cancel()

    def _announce_cancel(self) -> None:
        if not self._cancel_announced:
            self._cancel_announced = True
            self.console.print("[yellow]⚠️  Cancelling update...[/yellow]")

    def show_message(self, title: str, message: str, success: bool) -> None:
        style = "green" if success else "red"
        icon = "✓" if success else "✗"
        self.console.print(
            Panel(
                Text(f"{icon} {message}", style=f"bold {style}"),
                title=f"[bold]{title}[/bold]",
                border_style=style,
                expand=False,
            )
        )

    def open(self) -> None:
        """Shows the window and starts listening for Ctrl+C."""
        self.console.print(
            Panel(
                Text(
                    "syncraft updater is updating your files...",
                    justify="center",
                ),
                title=f"[bold cyan]{self.title}[/bold cyan]",
                border_style="cyan",
            )
        )
        self._install_cancel_handler()
        if self.enabled:
            self.progress.start()
            self._started = True

    def close(self) -> None:
        """Stops the progress display and restores the default Ctrl+C behaviour."""
        if self._closed:
            return
        self._closed = True
        if self._started:
            self.progress.stop()
        self._remove_cancel_handler()

    def _install_cancel_handler(self) -> None:
        self._loop = asyncio.get_running_loop()
        try:
            self._loop.add_signal_handler(signal.SIGINT, self.request_cancel)
            self._uses_loop_handler = True
        except (NotImplementedError, RuntimeError, ValueError):
            # Windows event loops have no signal handler support.
            try:
                self._previous_handler = signal.signal(
                    signal.SIGINT, lambda *_: self.request_cancel_threadsafe()
                )
            except ValueError:
                log.debug("Ctrl+C cancellation unavailable outside the main thread.")

    def _remove_cancel_handler(self) -> None:
        if self._loop is None:
            return
        if self._uses_loop_handler:
            self._loop.remove_signal_handler(signal.SIGINT)
        elif self._previous_handler is not None:
            signal.signal(signal.SIGINT, self._previous_handler)
        self._loop = None

    async def __aenter__(self) -> "RichUpdateUI":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
