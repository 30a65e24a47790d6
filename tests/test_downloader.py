"""
Tests for the artifact downloader against a local update server.
"""

import asyncio
import hashlib
import socket

import pytest

from syncraft_updater.api.client import UpdateServerClient
from syncraft_updater.artifacts import DownloadedArtifacts, Downloader
from syncraft_updater.core.cancellation import CancelToken
from syncraft_updater.exceptions import (
    ArtifactIntegrityError,
    NetworkError,
    UpdateCancelledError,
)
from syncraft_updater.models.config import UpdaterConfig
from syncraft_updater.models.manifest import ServerEndpoint
from syncraft_updater.models.progress import ProgressTracker
from syncraft_updater.models.stats import UpdateStats


def make_downloader(client, config, token=None, tracker=None, stats=None):
    return Downloader(
        client,
        config,
        token or CancelToken(),
        tracker or ProgressTracker(),
        stats=stats,
    )


async def test_downloads_in_manifest_order(artifact_server, config, temp_dir):
    artifact_server.artifacts = {"h1": b"A" * 100_000, "h2": b"B"}
    tracker = ProgressTracker()
    fractions = []
    tracker.add_listener(lambda state: fractions.append(state.fraction))
    stats = UpdateStats()

    async with UpdateServerClient(artifact_server.endpoint) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            downloader = make_downloader(client, config, tracker=tracker, stats=stats)
            await downloader.download_all({"lib/a.jar": "h1", "b.txt": "h2"}, artifacts)

            assert list(artifacts) == ["lib/a.jar", "b.txt"]
            assert artifacts["lib/a.jar"].read_bytes() == b"A" * 100_000
            assert artifacts["b.txt"].read_bytes() == b"B"
            assert artifacts["lib/a.jar"].name.startswith("h1_")
            assert artifacts["lib/a.jar"].suffix == ".jar"
            assert artifacts["b.txt"].suffix == ".txt"

    assert artifact_server.requests == ["h1", "h2"]
    assert fractions == [0, 25, 50]
    assert tracker.state.note == "Downloading updates (2/2)..."
    assert stats.artifacts_downloaded == 2
    assert stats.bytes_downloaded == 100_001
    assert list(temp_dir.iterdir()) == []


async def test_target_without_suffix_uses_default(artifact_server, config, temp_dir):
    artifact_server.artifacts = {"h1": b"data"}
    async with UpdateServerClient(artifact_server.endpoint) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            await make_downloader(client, config).download_all({"bin/run": "h1"}, artifacts)
            assert artifacts["bin/run"].suffix == ".jar"


async def test_non_200_aborts_batch(artifact_server, config, temp_dir):
    artifact_server.artifacts = {"h1": b"A", "h3": b"C"}
    artifact_server.statuses = {"h2": 500}

    async with UpdateServerClient(artifact_server.endpoint) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            with pytest.raises(NetworkError) as exc_info:
                await make_downloader(client, config).download_all(
                    {"a.jar": "h1", "b.jar": "h2", "c.jar": "h3"}, artifacts
                )
            assert list(artifacts) == ["a.jar"]
            assert len(artifacts.temp_files) == 2

    assert exc_info.value.status == 500
    assert "response code = 500" in str(exc_info.value)
    assert artifact_server.requests == ["h1", "h2"]
    assert list(temp_dir.iterdir()) == []


async def test_unknown_hash_is_network_error(artifact_server, config, temp_dir):
    async with UpdateServerClient(artifact_server.endpoint) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            with pytest.raises(NetworkError) as exc_info:
                await make_downloader(client, config).download_all(
                    {"a.jar": "missing"}, artifacts
                )
    assert exc_info.value.status == 404


async def test_unreachable_server_is_network_error(config, temp_dir):
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    endpoint = ServerEndpoint("127.0.0.1", port)
    async with UpdateServerClient(endpoint, connect_timeout=2) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            with pytest.raises(NetworkError):
                await make_downloader(client, config).download_all(
                    {"a.jar": "h1"}, artifacts
                )


async def test_verification_accepts_matching_hash(artifact_server, temp_dir):
    body = b"verified artifact"
    digest = hashlib.sha256(body).hexdigest()
    artifact_server.artifacts = {digest: body}
    config = UpdaterConfig(grace_period=0, verify_algorithm="SHA256")

    async with UpdateServerClient(artifact_server.endpoint) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            await make_downloader(client, config).download_all({"a.jar": digest}, artifacts)
            assert artifacts["a.jar"].read_bytes() == body


async def test_verification_rejects_mismatch(artifact_server, temp_dir):
    artifact_server.artifacts = {"0" * 64: b"tampered"}
    config = UpdaterConfig(grace_period=0, verify_algorithm="sha256")

    async with UpdateServerClient(artifact_server.endpoint) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            with pytest.raises(ArtifactIntegrityError):
                await make_downloader(client, config).download_all(
                    {"a.jar": "0" * 64}, artifacts
                )
    assert list(temp_dir.iterdir()) == []


async def test_without_verification_hash_is_only_a_key(artifact_server, config, temp_dir):
    artifact_server.artifacts = {"not-a-digest": b"anything"}
    async with UpdateServerClient(artifact_server.endpoint) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            await make_downloader(client, config).download_all(
                {"a.jar": "not-a-digest"}, artifacts
            )
            assert len(artifacts) == 1


async def test_cancel_during_stream(artifact_server, config, temp_dir):
    artifact_server.hang_hashes = {"h1"}
    token = CancelToken()

    async def cancel_when_requested():
        await artifact_server.request_seen.wait()
        await asyncio.sleep(0.05)
        token.cancel()

    canceller = asyncio.create_task(cancel_when_requested())
    async with UpdateServerClient(artifact_server.endpoint) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            with pytest.raises(UpdateCancelledError):
                await asyncio.wait_for(
                    make_downloader(client, config, token=token).download_all(
                        {"a.jar": "h1", "b.jar": "h2"}, artifacts
                    ),
                    timeout=10,
                )
            assert len(artifacts) == 0
    await canceller

    assert artifact_server.requests == ["h1"]
    assert list(temp_dir.iterdir()) == []


async def test_cancelled_before_start_sends_no_request(artifact_server, config, temp_dir):
    token = CancelToken()
    token.cancel()
    async with UpdateServerClient(artifact_server.endpoint) as client:
        with DownloadedArtifacts(temp_dir) as artifacts:
            with pytest.raises(UpdateCancelledError):
                await make_downloader(client, config, token=token).download_all(
                    {"a.jar": "h1"}, artifacts
                )
    assert artifact_server.requests == []
