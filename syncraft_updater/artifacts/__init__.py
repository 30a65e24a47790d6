"""
Artifact Layer.

Downloading update artifacts into temporary files, verifying them and owning
those files until the apply phase consumes them.
"""

from .downloader import Downloader
from .integrity import ArtifactVerifier
from .store import DownloadedArtifacts

__all__ = ["ArtifactVerifier", "DownloadedArtifacts", "Downloader"]
