"""
HTTP client for the update server's artifact endpoint.
"""

import asyncio
import logging
import time
from typing import Optional

import aiohttp

from syncraft_updater import __version__
from syncraft_updater.exceptions import NetworkError
from syncraft_updater.models.manifest import ServerEndpoint

log = logging.getLogger(__name__)


class UpdateServerClient:
    """
    Async client for ``GET /download?hash=<hash>`` on the update server.

    The client never retries: a connection error, timeout or any status other
    than 200 is reported as a NetworkError straight away.
    """

    DOWNLOAD_PATH = "/download"

    def __init__(
        self,
        endpoint: ServerEndpoint,
        connect_timeout: float = 15.0,
        read_timeout: float = 90.0,
    ):
        """
        Initializes the client.

        Args:
            endpoint: Host and port of the update server.
            connect_timeout: Seconds allowed to establish a connection.
            read_timeout: Seconds allowed between two reads of the response body.
        """
        self.endpoint = endpoint
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def download_url(self) -> str:
        return self.endpoint.base_url() + self.DOWNLOAD_PATH

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=1, enable_cleanup_closed=True)
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": f"syncraft-updater/{__version__}"},
                timeout=aiohttp.ClientTimeout(
                    total=None,
                    sock_connect=self.connect_timeout,
                    sock_read=self.read_timeout,
                ),
            )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "UpdateServerClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def request_artifact(self, content_hash: str) -> aiohttp.ClientResponse:
        """
        Sends the download request for one artifact and returns the open response.

        The caller owns the returned response and must release it.

        Raises:
            NetworkError: On connection failure, timeout or a non-200 status.
        """
        session = await self._initialize_session()
        start_time = time.monotonic()
        try:
            response = await session.get(
                self.download_url, params={"hash": content_hash}
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(
                f"Could not connect to update server {self.endpoint.base_url()}: {e}"
            ) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        log.debug(
            f"GET {response.url} -> {response.status} ({duration_ms:.0f} ms)"
        )
        if response.status != 200:
            response.release()
            raise NetworkError(
                f"Could not download update '{content_hash}' from server, "
                f"response code = {response.status}",
                status=response.status,
            )
        return response
