"""
Wire protocol between the launcher and the updater.

The launcher writes a binary manifest to the updater's standard input; this
package decodes it (and encodes it, for tooling and tests).
"""

from .manifest import read_manifest, write_manifest

__all__ = ["read_manifest", "write_manifest"]
