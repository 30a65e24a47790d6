"""
Ownership of the temporary files produced by the download phase.
"""

import logging
import os
import tempfile
from collections.abc import Iterator, Mapping
from pathlib import Path

from syncraft_updater.utils.path import temp_file_prefix

log = logging.getLogger(__name__)


class DownloadedArtifacts(Mapping[str, Path]):
    """
    Maps a target path (relative to the install root) to the temporary file
    holding its downloaded bytes.

    Every temporary file allocated through this object is deleted when the
    object is closed (or its `with` block exits), unless the apply phase has
    already moved it away. Use it as a context manager so no temp file outlives
    the run, whether it succeeds, fails or is cancelled.
    """

    def __init__(self, temp_dir: str | os.PathLike | None = None):
        self.temp_dir = Path(temp_dir) if temp_dir else None
        self._entries: dict[str, Path] = {}
        self._owned: list[Path] = []

    def allocate(self, content_hash: str, suffix: str) -> Path:
        """Creates an empty temporary file named ``<hash>_*<suffix>``."""
        fd, name = tempfile.mkstemp(
            prefix=temp_file_prefix(content_hash),
            suffix=suffix,
            dir=self.temp_dir,
        )
        os.close(fd)
        path = Path(name)
        self._owned.append(path)
        return path

    def add(self, target: str, temp_path: Path) -> None:
        """Records a completed download for `target`."""
        self._entries[target] = temp_path

    @property
    def temp_files(self) -> list[Path]:
        """All temporary files this object still owns."""
        return list(self._owned)

    def cleanup(self) -> None:
        """Deletes every owned temporary file that still exists."""
        for path in self._owned:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.warning(f"Could not delete temporary file '{path}': {e}")
        if self._owned:
            log.debug(f"Cleaned up {len(self._owned)} temporary file(s).")
        self._owned.clear()

    def __getitem__(self, target: str) -> Path:
        return self._entries[target]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __enter__(self) -> "DownloadedArtifacts":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.cleanup()
        return False
