"""
syncraft-updater: client-side engine that downloads replacement artifacts
from an update server and swaps them into an install directory.
"""

__version__ = "1.2.0"
