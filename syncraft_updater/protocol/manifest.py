"""
Binary codec for the update manifest.

The manifest uses the Java ``DataOutput`` conventions: integers are signed
32-bit big-endian, strings are an unsigned 16-bit big-endian byte length
followed by "modified UTF-8" (NUL as ``C0 80``, supplementary characters as
CESU-8 surrogate pairs). The fields appear in this order::

    host, port, install_root,
    N, (path, hash) * N      # files to remove
    M, (path, hash) * M      # files to update
"""

import logging
import struct
from pathlib import PurePath
from typing import BinaryIO

from syncraft_updater.exceptions import ProtocolError
from syncraft_updater.models.manifest import Manifest, ServerEndpoint
from syncraft_updater.utils.path import validate_install_root, validate_relative_path

log = logging.getLogger(__name__)

_INT = struct.Struct(">i")
_USHORT = struct.Struct(">H")
MAX_STRING_BYTES = 0xFFFF
MAX_ENTRIES = 1_000_000


class _ManifestDecoder:
    """Reads primitive values from a binary stream, raising ProtocolError on any defect."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def _read_exact(self, size: int) -> bytes:
        data = self._stream.read(size)
        if data is None or len(data) != size:
            raise ProtocolError(
                f"Unexpected end of manifest (wanted {size} bytes, "
                f"got {0 if not data else len(data)})."
            )
        return data

    def read_int(self) -> int:
        return _INT.unpack(self._read_exact(_INT.size))[0]

    def read_count(self, what: str) -> int:
        count = self.read_int()
        if count < 0 or count > MAX_ENTRIES:
            raise ProtocolError(f"Invalid {what} count: {count}.")
        return count

    def read_utf(self) -> str:
        (length,) = _USHORT.unpack(self._read_exact(_USHORT.size))
        return decode_modified_utf8(self._read_exact(length))

    def read_entries(self, what: str) -> dict[str, str]:
        entries: dict[str, str] = {}
        for _ in range(self.read_count(what)):
            raw_path = self.read_utf()
            content_hash = self.read_utf()
            try:
                path = validate_relative_path(raw_path)
            except ValueError as e:
                raise ProtocolError(str(e)) from e
            entries[path] = content_hash
        return entries


def decode_modified_utf8(data: bytes) -> str:
    """Decodes Java modified UTF-8 into a Python string."""
    try:
        text = data.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
        # Join CESU-8 surrogate pairs into real code points.
        return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")
    except UnicodeError as e:
        raise ProtocolError(f"Invalid string in manifest: {e}") from e


def encode_modified_utf8(text: str) -> bytes:
    """Encodes a Python string as Java modified UTF-8."""
    utf16 = text.encode("utf-16-le", "surrogatepass")
    out = bytearray()
    for i in range(0, len(utf16), 2):
        unit = int.from_bytes(utf16[i : i + 2], "little")
        if unit == 0:
            out += b"\xc0\x80"
        else:
            out += chr(unit).encode("utf-8", "surrogatepass")
    return bytes(out)


def read_manifest(stream: BinaryIO) -> Manifest:
    """
    Reads a complete manifest from `stream`.

    Raises:
        ProtocolError: If the stream is truncated, malformed or contains a path
        that is invalid or escapes the install root. No partial manifest is
        returned.
    """
    decoder = _ManifestDecoder(stream)
    try:
        host = decoder.read_utf()
        port = decoder.read_int()
        raw_root = decoder.read_utf()
        removals = decoder.read_entries("removal")
        updates = decoder.read_entries("update")
    except (OSError, struct.error) as e:
        raise ProtocolError(f"Could not read manifest: {e}") from e

    if not host:
        raise ProtocolError("Manifest does not name an update server.")
    if not 0 < port <= 0xFFFF:
        raise ProtocolError(f"Invalid server port: {port}.")
    try:
        install_root = validate_install_root(raw_root)
    except ValueError as e:
        raise ProtocolError(str(e)) from e

    log.debug(
        f"Decoded manifest: server={host}:{port}, root={install_root}, "
        f"{len(removals)} removals, {len(updates)} updates"
    )
    return Manifest(
        endpoint=ServerEndpoint(host=host, port=port),
        install_root=install_root,
        removals=removals,
        updates=updates,
    )


def write_manifest(manifest: Manifest, stream: BinaryIO) -> None:
    """
    Writes `manifest` to `stream` in the wire format read by `read_manifest`.

    Raises:
        ProtocolError: If a string is too long to be length-prefixed.
    """

    def write_utf(text: str) -> None:
        data = encode_modified_utf8(text)
        if len(data) > MAX_STRING_BYTES:
            raise ProtocolError(
                f"String too long for manifest ({len(data)} bytes): '{text[:40]}...'"
            )
        stream.write(_USHORT.pack(len(data)))
        stream.write(data)

    def write_entries(entries: dict[str, str]) -> None:
        stream.write(_INT.pack(len(entries)))
        for path, content_hash in entries.items():
            write_utf(str(path))
            write_utf(content_hash)

    write_utf(manifest.endpoint.host)
    stream.write(_INT.pack(manifest.endpoint.port))
    write_utf(str(PurePath(manifest.install_root)))
    write_entries(manifest.removals)
    write_entries(manifest.updates)
