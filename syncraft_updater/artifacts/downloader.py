"""
Sequential download of update artifacts into temporary files, with fixed-size
chunked streaming and cooperative cancellation.
"""

import asyncio
import logging
import time
from pathlib import Path, PurePath

import aiofiles
import aiohttp

from syncraft_updater.api.client import UpdateServerClient
from syncraft_updater.core.cancellation import CancelToken
from syncraft_updater.exceptions import FileSystemError, NetworkError
from syncraft_updater.models.config import UpdaterConfig
from syncraft_updater.models.progress import ProgressTracker
from syncraft_updater.models.stats import UpdateStats
from syncraft_updater.utils.formatting import progress_note
from syncraft_updater.utils.structured_logger import UpdateEventLogger

from .integrity import ArtifactVerifier
from .store import DownloadedArtifacts

log = logging.getLogger(__name__)

# The download phase fills the first half of the progress bar.
DOWNLOAD_BAND = 50.0


class Downloader:
    """
    Fetches every artifact of an update, one after the other.

    The first failure aborts the whole batch; files downloaded before it stay
    in the DownloadedArtifacts they were recorded in, which deletes them when
    closed. Nothing is retried.
    """

    def __init__(
        self,
        client: UpdateServerClient,
        config: UpdaterConfig,
        token: CancelToken,
        tracker: ProgressTracker,
        stats: UpdateStats | None = None,
        events: UpdateEventLogger | None = None,
    ):
        self.client = client
        self.config = config
        self.token = token
        self.tracker = tracker
        self.stats = stats or UpdateStats()
        self.events = events

    async def download_all(
        self, updates: dict[str, str], artifacts: DownloadedArtifacts
    ) -> DownloadedArtifacts:
        """
        Downloads each entry of `updates` (target path -> hash) into `artifacts`.

        Raises:
            NetworkError: If any artifact cannot be fetched.
            FileSystemError: If a temporary file cannot be written.
            UpdateCancelledError: If cancellation is requested before the batch ends.
        """
        total = len(updates)
        note = progress_note("Downloading", 0, total)
        self.tracker.update(0, note)
        log.info(note)

        for completed, (target, content_hash) in enumerate(updates.items(), start=1):
            self.token.raise_if_cancelled()
            suffix = PurePath(target).suffix or self.config.artifact_suffix
            try:
                temp_path = artifacts.allocate(content_hash, suffix)
            except OSError as e:
                raise FileSystemError(
                    f"Could not create temporary file for '{target}': {e}"
                ) from e

            start_time = time.monotonic()
            size = await self.download_file(content_hash, temp_path, name=target)
            artifacts.add(target, temp_path)

            self.stats.artifacts_downloaded += 1
            self.stats.bytes_downloaded += size
            if self.events:
                self.events.artifact_downloaded(
                    target, content_hash, size, time.monotonic() - start_time
                )

            note = progress_note("Downloading", completed, total)
            self.tracker.update(DOWNLOAD_BAND * completed / total, note)
            log.info(note)

        return artifacts

    async def download_file(
        self, content_hash: str, destination: Path, name: str | None = None
    ) -> int:
        """
        Streams the artifact identified by `content_hash` into `destination`.

        Returns:
            The number of bytes written.
        """
        name = name or content_hash
        verifier = ArtifactVerifier(self.config.verify_algorithm)

        response = await self.token.run(self.client.request_artifact(content_hash))
        written = 0
        try:
            self.token.raise_if_cancelled()
            async with aiofiles.open(destination, "wb") as f:
                while True:
                    chunk = await self.token.run(
                        response.content.read(self.config.chunk_size)
                    )
                    if not chunk:
                        break
                    self.token.raise_if_cancelled()
                    await f.write(chunk)
                    verifier.update(chunk)
                    written += len(chunk)
                    self.token.raise_if_cancelled()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(
                f"Connection lost while downloading '{name}' after {written} bytes: {e}"
            ) from e
        except OSError as e:
            raise FileSystemError(
                f"Could not write temporary file '{destination}': {e}"
            ) from e
        finally:
            response.release()

        verifier.verify(content_hash, name)
        log.debug(f"Downloaded '{name}' ({written} bytes) to {destination}")
        return written
