"""
Applies a downloaded update to the install directory: obsolete files are
deleted first, then the new artifacts are moved into place.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from collections.abc import Mapping
from pathlib import Path

from syncraft_updater.core.cancellation import CancelToken
from syncraft_updater.exceptions import FileSystemError
from syncraft_updater.models.config import UpdaterConfig
from syncraft_updater.models.progress import ProgressTracker
from syncraft_updater.models.stats import UpdateStats
from syncraft_updater.utils.formatting import progress_note
from syncraft_updater.utils.path import create_dir, resolve_within
from syncraft_updater.utils.structured_logger import UpdateEventLogger

log = logging.getLogger(__name__)

STAGING_PREFIX = ".syncraft-staging-"
APPLY_BAND_START = 50.0
APPLY_BAND = 50.0


class ApplyEngine:
    """
    Mutates the install tree.

    Before the first mutation every artifact is moved into a staging directory
    inside the install root, so the install step itself is a same-filesystem
    `os.replace`. An error on any item aborts the remaining items; nothing is
    rolled back, but the error lists which items were applied and which were
    not.
    """

    def __init__(
        self,
        install_root: Path,
        tracker: ProgressTracker,
        token: CancelToken,
        config: UpdaterConfig | None = None,
        stats: UpdateStats | None = None,
        events: UpdateEventLogger | None = None,
    ):
        self.install_root = Path(install_root)
        self.tracker = tracker
        self.token = token
        self.config = config or UpdaterConfig()
        self.stats = stats or UpdateStats()
        self.events = events
        self._cancel_ignored_logged = False

    async def apply(
        self, removals: Mapping[str, str], artifacts: Mapping[str, Path]
    ) -> None:
        """
        Deletes every path in `removals`, then installs every artifact.

        Raises:
            FileSystemError: If the root is unusable, a path escapes it, or a
                delete/install fails.
            UpdateCancelledError: Only when `cancel_during_apply` is enabled.
        """
        if not await asyncio.to_thread(self.install_root.is_dir):
            raise FileSystemError(
                f"Install directory '{self.install_root}' does not exist.",
                pending=[*removals, *artifacts],
            )

        removal_paths = {t: self._resolve(t) for t in removals}
        install_paths = {t: self._resolve(t) for t in artifacts}
        items = [*removal_paths, *install_paths]
        total = len(items)
        applied: list[str] = []

        note = progress_note("Applying", 0, total)
        self.tracker.update(APPLY_BAND_START, note)
        log.info(note)

        staging_dir = await asyncio.to_thread(self._create_staging_dir, items)
        try:
            staged = await asyncio.to_thread(self._stage, artifacts, staging_dir, items)

            for target, path in removal_paths.items():
                self._checkpoint(applied, items)
                log.info(f"Removing {target}...")
                try:
                    await asyncio.to_thread(remove_file, path)
                except OSError as e:
                    raise self._apply_error("remove", target, e, applied, items) from e
                applied.append(target)
                self.stats.files_removed += 1
                if self.events:
                    self.events.file_removed(target)
                self._report(len(applied), total)

            for target, path in install_paths.items():
                self._checkpoint(applied, items)
                log.info(f"Updating {target}...")
                try:
                    await asyncio.to_thread(install_file, staged[target], path)
                except OSError as e:
                    raise self._apply_error("install", target, e, applied, items) from e
                applied.append(target)
                self.stats.files_installed += 1
                if self.events:
                    self.events.file_installed(target)
                self._report(len(applied), total)
        finally:
            await asyncio.to_thread(shutil.rmtree, staging_dir, ignore_errors=True)

        if total == 0:
            self.tracker.update(100.0, progress_note("Applying", 0, 0))

    def _resolve(self, target: str) -> Path:
        try:
            return resolve_within(self.install_root, target)
        except ValueError as e:
            raise FileSystemError(str(e)) from e

    def _create_staging_dir(self, items: list[str]) -> Path:
        try:
            return Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=self.install_root))
        except OSError as e:
            raise FileSystemError(
                f"Install directory '{self.install_root}' is not writable: {e}",
                pending=list(items),
            ) from e

    def _stage(
        self, artifacts: Mapping[str, Path], staging_dir: Path, items: list[str]
    ) -> dict[str, Path]:
        """Moves every downloaded artifact into the staging directory."""
        staged: dict[str, Path] = {}
        for index, (target, temp_path) in enumerate(artifacts.items()):
            destination = staging_dir / f"{index:05d}{Path(target).suffix}"
            try:
                shutil.move(os.fspath(temp_path), destination)
            except OSError as e:
                raise FileSystemError(
                    f"Could not stage '{target}' from '{temp_path}': {e}",
                    pending=list(items),
                ) from e
            staged[target] = destination
        log.debug(f"Staged {len(staged)} artifact(s) in {staging_dir}")
        return staged

    def _checkpoint(self, applied: list[str], items: list[str]) -> None:
        if not self.token.cancelled:
            return
        if self.config.cancel_during_apply:
            log.warning(
                f"Update cancelled during apply: {len(applied)} item(s) applied, "
                f"{len(items) - len(applied)} not applied."
            )
            self.token.raise_if_cancelled()
        elif not self._cancel_ignored_logged:
            log.info("Cancellation requested, but the apply phase runs to completion.")
            self._cancel_ignored_logged = True

    def _report(self, done: int, total: int) -> None:
        note = progress_note("Applying", done, total)
        self.tracker.update(APPLY_BAND_START + APPLY_BAND * done / total, note)
        log.info(note)

    def _apply_error(
        self,
        action: str,
        target: str,
        error: OSError,
        applied: list[str],
        items: list[str],
    ) -> FileSystemError:
        pending = items[len(applied):]
        log.error(
            f"[red]Could not {action} '{target}': {error}. "
            f"{len(applied)} item(s) applied, {len(pending)} not applied.[/red]"
        )
        if pending:
            log.error(f"Not applied: {', '.join(pending)}")
        return FileSystemError(
            f"Could not {action} '{target}': {error}",
            applied=list(applied),
            pending=pending,
        )


def remove_file(path: Path) -> bool:
    """
    Deletes `path` if it exists. A missing file is not an error.

    Returns:
        True if a file was deleted.
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


def install_file(source: Path, destination: Path) -> None:
    """Moves `source` to `destination`, creating parents and replacing any existing file."""
    create_dir(destination.parent)
    os.replace(source, destination)
