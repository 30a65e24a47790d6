"""
Data Models Layer.

This package contains the dataclasses and Pydantic models that define the core
data structures used throughout the updater: the manifest, the configuration,
progress state and run statistics.
"""

from .config import UpdaterConfig
from .manifest import Manifest, ServerEndpoint
from .progress import Phase, ProgressState, ProgressTracker
from .stats import UpdateStats

__all__ = [
    "Manifest",
    "Phase",
    "ProgressState",
    "ProgressTracker",
    "ServerEndpoint",
    "UpdateStats",
    "UpdaterConfig",
]
