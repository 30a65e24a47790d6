"""
Utilities for validating manifest paths and resolving them under an install root.
"""

import os
from pathlib import Path, PurePath

from pathvalidate import ValidationError, sanitize_filename, validate_filepath

MAX_TEMP_PREFIX = 64


def validate_install_root(raw: str) -> PurePath:
    """
    Parses the install root sent in the manifest.

    Raises:
        ValueError: If the string is not a valid absolute path.
    """
    try:
        validate_filepath(raw, platform="auto")
    except ValidationError as e:
        raise ValueError(f"Invalid install root '{raw}': {e}") from e
    root = PurePath(raw)
    if not root.is_absolute():
        raise ValueError(f"Install root must be absolute, got '{raw}'.")
    return root


def validate_relative_path(raw: str) -> str:
    """
    Checks that a manifest entry is a relative path which cannot escape the
    directory it is resolved against. Returns the path unchanged.

    Raises:
        ValueError: If the path is empty, absolute, malformed or escapes its root.
    """
    try:
        validate_filepath(raw, platform="auto")
    except ValidationError as e:
        raise ValueError(f"Invalid path '{raw}': {e}") from e
    if PurePath(raw).is_absolute() or PurePath(raw).drive:
        raise ValueError(f"Path must be relative, got '{raw}'.")
    normalized = os.path.normpath(raw)
    if normalized == os.curdir:
        raise ValueError(f"Path '{raw}' refers to the install root itself.")
    if normalized == os.pardir or normalized.startswith(os.pardir + os.sep):
        raise ValueError(f"Path '{raw}' escapes the install root.")
    return raw


def resolve_within(root: Path, relative: str) -> Path:
    """
    Resolves `relative` against `root` lexically and guarantees the result
    stays strictly below `root`.

    Raises:
        ValueError: If the resolved path is outside the root.
    """
    base = Path(os.path.normpath(root))
    target = Path(os.path.normpath(base / relative))
    if target == base or os.path.commonpath([base, target]) != str(base):
        raise ValueError(f"Path '{relative}' resolves outside '{root}'.")
    return target


def temp_file_prefix(content_hash: str) -> str:
    """Builds the `<hash>_` prefix for an artifact's temporary file."""
    safe = sanitize_filename(content_hash, replacement_text="_")[:MAX_TEMP_PREFIX]
    return f"{safe or 'artifact'}_"


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
