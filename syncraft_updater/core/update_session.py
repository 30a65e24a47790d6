"""
The update worker: reads the manifest, waits for the application to exit,
downloads the artifacts and applies them, then reports a single outcome.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from syncraft_updater.api.client import UpdateServerClient
from syncraft_updater.artifacts import DownloadedArtifacts, Downloader
from syncraft_updater.exceptions import (
    FileSystemError,
    NetworkError,
    ProtocolError,
    UpdateCancelledError,
    UpdaterError,
)
from syncraft_updater.models.config import UpdaterConfig
from syncraft_updater.models.manifest import Manifest
from syncraft_updater.models.progress import Phase, ProgressState, ProgressTracker
from syncraft_updater.models.stats import UpdateStats
from syncraft_updater.protocol import read_manifest
from syncraft_updater.utils.structured_logger import UpdateEventLogger

from .apply_engine import ApplyEngine
from .cancellation import CancelToken
from .monitor import UpdateMonitor, UpdateUI

log = logging.getLogger(__name__)

APP_TITLE = "syncraft Updater"
SUCCESS_MESSAGE = "Files successfully updated. Please restart your game!"
FAILURE_MESSAGE = "Files update failed. Please report this bug!"
INPUT_FAILURE_MESSAGE = "Could not read updater input. Please report this bug!"


@dataclass
class UpdateOutcome:
    """How an update run ended."""

    phase: Phase
    stats: UpdateStats
    manifest: Manifest | None = None
    error: UpdaterError | None = None

    @property
    def succeeded(self) -> bool:
        return self.phase is Phase.DONE

    @property
    def cancelled(self) -> bool:
        return self.phase is Phase.CANCELLED


class UpdateSession:
    """Runs the update pipeline sequentially. One session per update."""

    def __init__(
        self,
        config: UpdaterConfig,
        token: CancelToken | None = None,
        tracker: ProgressTracker | None = None,
        events: UpdateEventLogger | None = None,
    ):
        self.config = config
        self.token = token or CancelToken()
        self.tracker = tracker or ProgressTracker()
        self.events = events
        self.stats = UpdateStats()
        self.manifest: Manifest | None = None
        if events:
            self.tracker.add_listener(self._log_phase_change)
        self._last_phase = self.tracker.state.phase

    async def run(self, source: BinaryIO) -> UpdateOutcome:
        """
        Executes the whole update from the manifest in `source`.

        Expected failures are logged and turned into an outcome; only
        programming errors propagate.
        """
        try:
            self.tracker.set_phase(Phase.READING_INPUT, "Reading update instructions...")
            self.manifest = await asyncio.to_thread(read_manifest, source)
            if self.events:
                self.events.logger.bind(
                    server=self.manifest.endpoint.base_url(),
                    install_root=str(self.manifest.install_root),
                )

            grace = self.config.grace_period
            self.tracker.set_phase(
                Phase.WAITING_GRACE, "Waiting for the application to exit..."
            )
            log.info(f"Waiting {grace:g} seconds for the application to stop...")
            await self.token.sleep(grace)

            self.tracker.set_phase(Phase.DOWNLOADING)
            await self._download_and_apply(self.manifest)
        except UpdateCancelledError:
            log.info("Update cancelled")
            return self._finish(Phase.CANCELLED, "Update cancelled.")
        except ProtocolError as e:
            log.error(f"[red]Could not read updater input: {e}[/red]")
            return self._finish(Phase.FAILED, INPUT_FAILURE_MESSAGE, e)
        except NetworkError as e:
            log.error(f"[red]Could not download updates: {e}[/red]")
            return self._finish(Phase.FAILED, FAILURE_MESSAGE, e)
        except FileSystemError as e:
            log.error(f"[red]Could not apply updates: {e}[/red]")
            return self._finish(Phase.FAILED, FAILURE_MESSAGE, e)
        except Exception:
            log.exception("Unexpected error during update")
            self._finish(Phase.FAILED, FAILURE_MESSAGE)
            raise

        log.info(SUCCESS_MESSAGE)
        return self._finish(Phase.DONE, SUCCESS_MESSAGE)

    async def _download_and_apply(self, manifest: Manifest) -> None:
        with DownloadedArtifacts(self.config.temp_dir or None) as artifacts:
            async with UpdateServerClient(
                manifest.endpoint,
                connect_timeout=self.config.connect_timeout,
                read_timeout=self.config.read_timeout,
            ) as client:
                downloader = Downloader(
                    client,
                    self.config,
                    self.token,
                    self.tracker,
                    stats=self.stats,
                    events=self.events,
                )
                await downloader.download_all(manifest.updates, artifacts)

            # Last point at which cancelling leaves the install tree untouched.
            self.token.raise_if_cancelled()
            self.tracker.set_phase(Phase.APPLYING)
            engine = ApplyEngine(
                Path(manifest.install_root),
                self.tracker,
                self.token,
                config=self.config,
                stats=self.stats,
                events=self.events,
            )
            await engine.apply(manifest.removals, artifacts)

    def _finish(
        self, phase: Phase, note: str, error: UpdaterError | None = None
    ) -> UpdateOutcome:
        self.stats.finish()
        self.tracker.set_phase(phase, note)
        if self.events:
            self.events.session_completed(
                outcome=phase.value,
                duration_s=self.stats.duration_s,
                artifacts_downloaded=self.stats.artifacts_downloaded,
                bytes_downloaded=self.stats.bytes_downloaded,
                files_removed=self.stats.files_removed,
                files_installed=self.stats.files_installed,
                error=str(error) if error else None,
            )
        return UpdateOutcome(
            phase=phase, stats=self.stats, manifest=self.manifest, error=error
        )

    def _log_phase_change(self, state: ProgressState) -> None:
        if state.phase is not self._last_phase:
            self._last_phase = state.phase
            self.events.phase_changed(state.phase.value, state.fraction, state.note)


async def run_update(
    session: UpdateSession, source: BinaryIO, ui: UpdateUI
) -> UpdateOutcome:
    """
    Runs `session` as the worker task with an UpdateMonitor watching it, then
    shows the final message. Cancellation shows no message.
    """
    worker = asyncio.create_task(session.run(source), name="update-worker")
    monitor = UpdateMonitor(ui, session.tracker, session.token)
    try:
        await monitor.watch(worker)
    finally:
        if not worker.done():
            worker.cancel()
    outcome = worker.result()

    if outcome.succeeded:
        ui.show_message(APP_TITLE, SUCCESS_MESSAGE, success=True)
    elif not outcome.cancelled:
        message = (
            INPUT_FAILURE_MESSAGE
            if isinstance(outcome.error, ProtocolError)
            else FAILURE_MESSAGE
        )
        ui.show_message(APP_TITLE, message, success=False)
    return outcome
