"""
Helper functions for formatting data into human-readable strings.
"""

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    size = float(bytes_size)
    for unit in SIZE_UNITS[:-1]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} {SIZE_UNITS[-1]}"


def format_speed(bytes_size: int, seconds: float) -> str:
    """Average transfer rate, e.g. '2.4 MB/s'."""
    if seconds <= 0:
        return format_size(0) + "/s"
    return format_size(bytes_size / seconds) + "/s"


def format_duration(seconds: float) -> str:
    """Formats a duration as e.g. '1h 2m 5s', dropping zero components."""
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    parts = [f"{value}{unit}" for value, unit in ((hours, "h"), (minutes, "m")) if value]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def progress_note(action: str, done: int, total: int) -> str:
    """Builds the status note shown beside the progress bar."""
    return f"{action} updates ({done}/{total})..."
