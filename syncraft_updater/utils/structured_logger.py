"""
JSON-lines event log for update runs.

Each run gets its own ``update_<timestamp>.jsonl`` file. Every line is one
event carrying the run id, so the launcher's support tooling can reconstruct
what an update did on a player's machine.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

log = logging.getLogger(__name__)


class StructuredLogger:
    """
    Writes structured events to a JSON-lines file and, optionally, mirrors them
    to the regular ``logging`` hierarchy.

    Usage:
        with StructuredLogger("syncraft_updater.events", log_dir=Path("logs")) as events:
            events.bind(install_root="/srv/game")
            events.info("file_installed", target="lib/a.jar")
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Name of the mirrored ``logging`` logger.
            log_dir: Directory receiving the JSON-lines file. None disables it.
            enable_json: Write events to the JSON-lines file.
            enable_console: Mirror events to ``logging`` at their level.
        """
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console
        self.json_log_path: Path | None = None

        self._logger = logging.getLogger(name)
        self._context: dict[str, Any] = {"run_id": uuid.uuid4().hex[:12]}
        self._sink: TextIO | None = None

        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.json_log_path = log_dir / f"update_{stamp}.jsonl"
            self._sink = open(self.json_log_path, "a", encoding="utf-8")  # noqa: SIM115

    def bind(self, **context) -> None:
        """Adds fields written with every following event."""
        self._context.update(context)

    def debug(self, event: str, **fields) -> None:
        self._emit(logging.DEBUG, event, fields)

    def info(self, event: str, **fields) -> None:
        self._emit(logging.INFO, event, fields)

    def warning(self, event: str, **fields) -> None:
        self._emit(logging.WARNING, event, fields)

    def error(self, event: str, **fields) -> None:
        self._emit(logging.ERROR, event, fields)

    def _emit(self, level: int, event: str, fields: dict[str, Any]) -> None:
        if self.enable_console and self._logger.isEnabledFor(level):
            details = " ".join(f"{key}={value}" for key, value in fields.items())
            self._logger.log(level, f"{event} {details}".rstrip())

        if self._sink is None or self._sink.closed:
            return
        record = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": logging.getLevelName(level),
            "event": event,
            **self._context,
            **fields,
        }
        try:
            self._sink.write(json.dumps(record, default=str) + "\n")
            self._sink.flush()
        except OSError as e:
            # Event log failures never fail the update.
            log.warning(f"Could not write event log '{self.json_log_path}': {e}")
            self._sink.close()

    def close(self) -> None:
        if self._sink is not None and not self._sink.closed:
            self._sink.close()

    def __enter__(self) -> "StructuredLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class UpdateEventLogger:
    """The events an update run records."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def phase_changed(self, phase: str, fraction: float, note: str) -> None:
        self.logger.debug("phase_changed", phase=phase, fraction=round(fraction, 1), note=note)

    def artifact_downloaded(
        self, target: str, content_hash: str, size_bytes: int, duration_s: float
    ) -> None:
        self.logger.info(
            "artifact_downloaded",
            target=target,
            hash=content_hash,
            size_bytes=size_bytes,
            duration_s=round(duration_s, 2),
        )

    def file_removed(self, target: str) -> None:
        self.logger.debug("file_removed", target=target)

    def file_installed(self, target: str) -> None:
        self.logger.debug("file_installed", target=target)

    def session_completed(
        self,
        outcome: str,
        duration_s: float,
        artifacts_downloaded: int,
        bytes_downloaded: int,
        files_removed: int,
        files_installed: int,
        error: str | None = None,
    ) -> None:
        """Records how the run ended. Always the last event of a run."""
        self.logger.info(
            "session_completed",
            outcome=outcome,
            duration_s=round(duration_s, 2),
            artifacts_downloaded=artifacts_downloaded,
            bytes_downloaded=bytes_downloaded,
            files_removed=files_removed,
            files_installed=files_installed,
            error=error,
        )


def create_structured_logger(
    log_dir: Path | None = None,
    enable_json: bool = False,
    enable_console: bool = False,
) -> tuple[StructuredLogger, UpdateEventLogger]:
    """
    Creates the event loggers for one run.

    The pipeline already logs every step for humans, so mirroring events to the
    console is only useful when debugging.

    Returns:
        Tuple of (base_logger, event_logger)
    """
    base = StructuredLogger(
        "syncraft_updater.events",
        log_dir=log_dir,
        enable_json=enable_json,
        enable_console=enable_console,
    )
    return base, UpdateEventLogger(base)
