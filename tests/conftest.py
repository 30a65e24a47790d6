"""
pytest shared fixtures
"""

import asyncio
import io
from pathlib import PurePath

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from syncraft_updater.models.config import UpdaterConfig
from syncraft_updater.models.manifest import Manifest, ServerEndpoint
from syncraft_updater.protocol import write_manifest


class FakeArtifactServer:
    """Minimal update server serving artifacts by hash."""

    def __init__(self):
        self.artifacts: dict[str, bytes] = {}
        self.statuses: dict[str, int] = {}
        self.hang_hashes: set[str] = set()
        self.requests: list[str] = []
        self.request_seen = asyncio.Event()
        self.release = asyncio.Event()
        self.endpoint: ServerEndpoint | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/download", self.handle_download)
        return app

    async def handle_download(self, request: web.Request) -> web.StreamResponse:
        content_hash = request.query.get("hash", "")
        self.requests.append(content_hash)
        self.request_seen.set()

        if content_hash in self.hang_hashes:
            response = web.StreamResponse()
            await response.prepare(request)
            await response.write(b"partial")
            await self.release.wait()
            return response

        if content_hash in self.statuses:
            return web.Response(status=self.statuses[content_hash])
        if content_hash not in self.artifacts:
            return web.Response(status=404, text="unknown hash")
        return web.Response(body=self.artifacts[content_hash])


class FakeUI:
    """Records everything the monitor sends to the progress window."""

    def __init__(self):
        self.total: int | None = None
        self.values: list[float] = []
        self.notes: list[str] = []
        self.messages: list[tuple[str, str, bool]] = []
        self.closed = False
        self._cancel = asyncio.Event()

    def set_range(self, total: int) -> None:
        self.total = total

    def set_progress(self, value: float) -> None:
        self.values.append(value)

    def set_note(self, note: str) -> None:
        self.notes.append(note)

    def request_cancel(self) -> None:
        self._cancel.set()

    def is_cancel_requested(self) -> bool:
        return self._cancel.is_set()

    async def wait_cancel_requested(self) -> None:
        await self._cancel.wait()

    def show_message(self, title: str, message: str, success: bool) -> None:
        self.messages.append((title, message, success))

    def close(self) -> None:
        self.closed = True


def encode_manifest(
    endpoint: ServerEndpoint,
    root,
    removals: dict[str, str] | None = None,
    updates: dict[str, str] | None = None,
) -> io.BytesIO:
    """Encodes a manifest into a rewound in-memory stream."""
    buffer = io.BytesIO()
    write_manifest(
        Manifest(
            endpoint=endpoint,
            install_root=PurePath(root),
            removals=removals or {},
            updates=updates or {},
        ),
        buffer,
    )
    buffer.seek(0)
    return buffer


@pytest.fixture
async def artifact_server():
    """Runs a FakeArtifactServer on a free local port."""
    server = FakeArtifactServer()
    test_server = TestServer(server.build_app())
    await test_server.start_server()
    server.endpoint = ServerEndpoint(host=test_server.host, port=test_server.port)
    yield server
    server.release.set()
    await test_server.close()


@pytest.fixture
def install_root(tmp_path):
    """Empty install directory"""
    root = tmp_path / "game"
    root.mkdir()
    return root


@pytest.fixture
def temp_dir(tmp_path):
    """Directory receiving downloaded temporary files"""
    path = tmp_path / "tmp"
    path.mkdir()
    return path


@pytest.fixture
def config(temp_dir):
    """Updater configuration without grace period"""
    return UpdaterConfig(grace_period=0, temp_dir=str(temp_dir))


@pytest.fixture
def fake_ui():
    return FakeUI()


@pytest.fixture
def make_manifest():
    """Returns the `encode_manifest` helper."""
    return encode_manifest
