"""
Tests for the binary manifest codec.
"""

import io
import struct
from pathlib import PurePath

import pytest

from syncraft_updater.exceptions import ProtocolError
from syncraft_updater.models.manifest import Manifest, ServerEndpoint
from syncraft_updater.protocol import read_manifest, write_manifest
from syncraft_updater.protocol.manifest import (
    decode_modified_utf8,
    encode_modified_utf8,
)


def utf(text: str) -> bytes:
    data = text.encode("utf-8")
    return struct.pack(">H", len(data)) + data


def i32(value: int) -> bytes:
    return struct.pack(">i", value)


def build(
    host="localhost",
    port=8080,
    root="/srv/game",
    removals=(("old.dat", "h0"),),
    updates=(("lib/a.jar", "h1"),),
) -> bytes:
    data = utf(host) + i32(port) + utf(root)
    data += i32(len(removals))
    for path, content_hash in removals:
        data += utf(path) + utf(content_hash)
    data += i32(len(updates))
    for path, content_hash in updates:
        data += utf(path) + utf(content_hash)
    return data


class TestReadManifest:
    def test_decodes_data_output_layout(self):
        manifest = read_manifest(io.BytesIO(build()))

        assert manifest.endpoint == ServerEndpoint("localhost", 8080)
        assert manifest.install_root == PurePath("/srv/game")
        assert manifest.removals == {"old.dat": "h0"}
        assert manifest.updates == {"lib/a.jar": "h1"}
        assert manifest.total_items == 2

    def test_empty_lists(self):
        manifest = read_manifest(io.BytesIO(build(removals=(), updates=())))
        assert manifest.removals == {}
        assert manifest.updates == {}

    def test_entry_order_is_preserved(self):
        updates = (("z.jar", "3"), ("a.jar", "1"), ("m/b.jar", "2"))
        manifest = read_manifest(io.BytesIO(build(updates=updates)))
        assert list(manifest.updates) == ["z.jar", "a.jar", "m/b.jar"]

    def test_every_truncation_is_rejected(self):
        data = build()
        for size in range(len(data)):
            with pytest.raises(ProtocolError):
                read_manifest(io.BytesIO(data[:size]))

    def test_negative_count_is_rejected(self):
        data = utf("localhost") + i32(8080) + utf("/srv/game") + i32(-1)
        with pytest.raises(ProtocolError, match="count"):
            read_manifest(io.BytesIO(data))

    @pytest.mark.parametrize("port", [0, -5, 70000])
    def test_invalid_port_is_rejected(self, port):
        with pytest.raises(ProtocolError, match="port"):
            read_manifest(io.BytesIO(build(port=port)))

    def test_empty_host_is_rejected(self):
        with pytest.raises(ProtocolError):
            read_manifest(io.BytesIO(build(host="")))

    def test_relative_install_root_is_rejected(self):
        with pytest.raises(ProtocolError):
            read_manifest(io.BytesIO(build(root="games/syncraft")))

    @pytest.mark.parametrize(
        "path", ["../escape.jar", "lib/../../escape.jar", "/etc/passwd", ""]
    )
    def test_unsafe_update_path_is_rejected(self, path):
        with pytest.raises(ProtocolError):
            read_manifest(io.BytesIO(build(updates=((path, "h1"),))))

    def test_unsafe_removal_path_is_rejected(self):
        with pytest.raises(ProtocolError):
            read_manifest(io.BytesIO(build(removals=(("../../home/user", "h0"),))))

    def test_invalid_utf8_is_rejected(self):
        data = struct.pack(">H", 2) + b"\xff\xfe" + build()[11:]
        with pytest.raises(ProtocolError):
            read_manifest(io.BytesIO(data))


class TestWriteManifest:
    def test_output_matches_data_output_layout(self):
        manifest = Manifest(
            endpoint=ServerEndpoint("localhost", 8080),
            install_root=PurePath("/srv/game"),
            removals={"old.dat": "h0"},
            updates={"lib/a.jar": "h1"},
        )
        buffer = io.BytesIO()
        write_manifest(manifest, buffer)
        assert buffer.getvalue() == build()

    def test_written_manifest_reads_back(self):
        manifest = Manifest(
            endpoint=ServerEndpoint("updates.example.org", 25565),
            install_root=PurePath("/opt/syncraft"),
            removals={"mods/old.jar": "aa", "config/obsolete.cfg": "bb"},
            updates={"mods/new.jar": "cc", "données/carte.dat": "dd"},
        )
        buffer = io.BytesIO()
        write_manifest(manifest, buffer)
        buffer.seek(0)
        assert read_manifest(buffer) == manifest

    def test_overlong_string_is_rejected(self):
        manifest = Manifest(
            endpoint=ServerEndpoint("h" * 70000, 80),
            install_root=PurePath("/srv/game"),
        )
        with pytest.raises(ProtocolError, match="too long"):
            write_manifest(manifest, io.BytesIO())


class TestModifiedUtf8:
    def test_nul_uses_two_byte_form(self):
        assert encode_modified_utf8("a\x00b") == b"a\xc0\x80b"
        assert decode_modified_utf8(b"a\xc0\x80b") == "a\x00b"

    def test_supplementary_character_uses_surrogate_pair(self):
        encoded = encode_modified_utf8("\U0001f600")
        assert encoded == b"\xed\xa0\xbd\xed\xb8\x80"
        assert decode_modified_utf8(encoded) == "\U0001f600"

    def test_ascii_and_bmp_match_plain_utf8(self):
        text = "mods/café-ß.jar"
        assert encode_modified_utf8(text) == text.encode("utf-8")

    def test_lone_surrogate_is_rejected(self):
        with pytest.raises(ProtocolError):
            decode_modified_utf8(b"\xed\xa0\xbd")
