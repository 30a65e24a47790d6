"""
Dataclass for tracking the statistics of one update run.
"""

import time
from dataclasses import dataclass, field


@dataclass
class UpdateStats:
    """Counters filled in by the worker while the update runs."""

    artifacts_downloaded: int = 0
    bytes_downloaded: int = 0
    files_removed: int = 0
    files_installed: int = 0
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None

    def finish(self) -> None:
        self.finished_at = time.monotonic()

    @property
    def duration_s(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return max(0.0, end - self.started_at)
