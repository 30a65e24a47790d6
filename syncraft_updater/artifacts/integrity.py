"""
Optional verification of downloaded artifacts against their manifest hash.
"""

import hashlib
import hmac
import logging

from syncraft_updater.exceptions import ArtifactIntegrityError

log = logging.getLogger(__name__)


class ArtifactVerifier:
    """
    Incrementally hashes an artifact while it is streamed to disk.

    With an empty algorithm name verification is disabled and `verify()`
    always succeeds; the manifest hash then only serves as the server lookup
    key.
    """

    def __init__(self, algorithm: str = ""):
        self.algorithm = algorithm
        self._hasher = hashlib.new(algorithm) if algorithm else None

    @property
    def enabled(self) -> bool:
        return self._hasher is not None

    def update(self, chunk: bytes) -> None:
        if self._hasher is not None:
            self._hasher.update(chunk)

    def hexdigest(self) -> str:
        return self._hasher.hexdigest() if self._hasher is not None else ""

    def verify(self, expected_hash: str, name: str) -> None:
        """
        Compares the computed digest with `expected_hash` (case-insensitive).

        Args:
            expected_hash: Hash from the manifest.
            name: Artifact name, used in messages.

        Raises:
            ArtifactIntegrityError: If verification is enabled and the digests differ.
        """
        if self._hasher is None:
            return
        actual = self.hexdigest()
        if not hmac.compare_digest(actual.lower(), expected_hash.strip().lower()):
            log.warning(
                f"{self.algorithm} mismatch for '{name}': expected {expected_hash}, got {actual}"
            )
            raise ArtifactIntegrityError(
                f"Downloaded artifact '{name}' failed {self.algorithm} verification."
            )
        log.debug(f"{self.algorithm} verified for '{name}'")
