"""Hand-off of selected torrents.

Magnet links go to a Deluge seedbox when one is configured, and are
otherwise returned for manual use. Plain URLs point to .torrent files,
which are downloaded into the download directory.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import httpx
import structlog

from getme.config import Settings, settings
from getme.search.base import Torrent

logger = structlog.get_logger(__name__)

DOWNLOAD_TIMEOUT = 30.0

MAX_FILE_NAME_LENGTH = 200


# ============================================================================
# Exceptions
# ============================================================================


class SeedboxError(Exception):
    """Base exception for seedbox operations."""

    pass


class SeedboxAuthError(SeedboxError):
    """Authentication failed with seedbox."""

    pass


class SeedboxConnectionError(SeedboxError):
    """Failed to connect to seedbox."""

    pass


class SeedboxTorrentError(SeedboxError):
    """Error adding a torrent."""

    pass


# ============================================================================
# Models
# ============================================================================


class HandOffStatus(str, Enum):
    SENT = "sent"
    MAGNET = "magnet"
    DOWNLOADED = "downloaded"
    ERROR = "error"


@dataclass
class HandOffResult:
    """Outcome of handing a torrent off."""

    status: HandOffStatus
    url: str
    detail: str = ""


# ============================================================================
# Deluge Client
# ============================================================================


class DelugeClient:
    """Client for the Deluge Web UI JSON-RPC API.

    Deluge authenticates with a session cookie. Default API path is /json.
    """

    def __init__(
        self,
        host: str,
        password: str,
        timeout: float = 30.0,
        api_path: str = "/json",
    ):
        self.host = host.rstrip("/")
        self.password = password
        self.timeout = timeout
        self.api_path = api_path
        self._client: httpx.AsyncClient | None = None
        self._request_id = 0

    async def __aenter__(self) -> "DelugeClient":
        self._client = httpx.AsyncClient(timeout=self.timeout)
        try:
            await self.authenticate()
        except BaseException:
            await self._client.aclose()
            self._client = None
            raise
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("DelugeClient must be used as async context manager")
        return self._client

    async def authenticate(self) -> None:
        """Log in and make sure the Web UI is connected to a daemon.

        Raises:
            SeedboxAuthError: If the password is rejected.
            SeedboxConnectionError: If Deluge cannot be reached.
        """
        try:
            response = await self._rpc_call_raw("auth.login", [self.password])
            if response.get("result") is not True:
                raise SeedboxAuthError("Invalid Deluge password")
            logger.debug("deluge_authenticated", host=self.host)

            response = await self._rpc_call_raw("web.connected", [])
            if not response.get("result"):
                hosts = await self._rpc_call_raw("web.get_hosts", [])
                if hosts.get("result"):
                    await self._rpc_call_raw("web.connect", [hosts["result"][0][0]])

        except httpx.ConnectError as e:
            raise SeedboxConnectionError(f"Failed to connect to Deluge: {e}") from e
        except httpx.TimeoutException as e:
            raise SeedboxConnectionError("Deluge connection timed out") from e

    async def _rpc_call_raw(self, method: str, params: list) -> dict:
        self._request_id += 1
        response = await self.client.post(
            f"{self.host}{self.api_path}",
            json={"method": method, "params": params, "id": self._request_id},
        )
        if response.status_code != 200:
            raise SeedboxTorrentError(f"Deluge RPC failed: {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise SeedboxTorrentError(f"Deluge returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SeedboxTorrentError(f"Unexpected Deluge response: {data!r}")
        return data

    async def add_magnet(self, magnet_link: str) -> str:
        """Add a magnet link.

        Returns:
            Torrent info hash.

        Raises:
            SeedboxTorrentError: If Deluge refuses the torrent.
        """
        response = await self._rpc_call_raw("core.add_torrent_magnet", [magnet_link, {}])
        error = response.get("error")
        if error:
            message = error.get("message", "Unknown error") if isinstance(error, dict) else error
            raise SeedboxTorrentError(f"Deluge RPC error: {message}")
        torrent_hash = response.get("result")
        if not torrent_hash:
            raise SeedboxTorrentError("Failed to add torrent to Deluge")

        logger.info("deluge_torrent_added", hash=torrent_hash)
        return torrent_hash


# ============================================================================
# Hand-off
# ============================================================================


def torrent_file_name(name: str) -> str:
    """File name for a release: its name with unsafe characters replaced."""
    safe = re.sub(r"[^\w.\-]+", "_", name).strip("._")[:MAX_FILE_NAME_LENGTH]
    return f"{safe or 'download'}.torrent"


async def download_file(url: str, target: str | Path) -> Path:
    """Download a URL to a file, removing the file if the download fails.

    Raises:
        httpx.HTTPError: If the download fails.
        OSError: If the file cannot be written.
    """
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)

    async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True) as client:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            try:
                with target.open("wb") as output:
                    async for chunk in response.aiter_bytes():
                        output.write(chunk)
            except BaseException:
                target.unlink(missing_ok=True)
                raise

    logger.info("torrent_file_downloaded", url=url, path=str(target))
    return target


async def send_magnet_to_seedbox(magnet_link: str, config: Settings) -> str:
    """Add a magnet link to the configured Deluge seedbox.

    Returns:
        Torrent info hash.
    """
    password = config.seedbox_password.get_secret_value() if config.seedbox_password else ""
    async with DelugeClient(host=str(config.seedbox_host), password=password) as client:
        return await client.add_magnet(magnet_link)


async def hand_off(torrent: Torrent, config: Settings | None = None) -> HandOffResult:
    """Pass a selected torrent on to whatever fetches it.

    Never raises; failures are logged and reported as ``HandOffStatus.ERROR``.
    """
    if config is None:
        config = settings

    try:
        if torrent.is_magnet:
            return await _hand_off_magnet(torrent, config)
        return await _hand_off_file(torrent, config)
    except Exception as e:
        logger.exception("hand_off_unexpected_error", name=torrent.original_name)
        return HandOffResult(HandOffStatus.ERROR, torrent.url, f"Unexpected error: {e}")


async def _hand_off_magnet(torrent: Torrent, config: Settings) -> HandOffResult:
    if not config.has_seedbox:
        logger.info("seedbox_not_configured", name=torrent.original_name)
        return HandOffResult(HandOffStatus.MAGNET, torrent.url)
    try:
        torrent_hash = await send_magnet_to_seedbox(torrent.url, config)
    except (SeedboxError, httpx.HTTPError) as e:
        logger.error("seedbox_hand_off_failed", name=torrent.original_name, error=str(e))
        return HandOffResult(HandOffStatus.ERROR, torrent.url, str(e))
    return HandOffResult(HandOffStatus.SENT, torrent.url, torrent_hash)


async def _hand_off_file(torrent: Torrent, config: Settings) -> HandOffResult:
    target = Path(config.download_dir) / torrent_file_name(torrent.original_name)
    try:
        path = await download_file(torrent.url, target)
    except (httpx.HTTPError, OSError) as e:
        logger.error("torrent_download_failed", url=torrent.url, error=str(e))
        return HandOffResult(HandOffStatus.ERROR, torrent.url, str(e))
    return HandOffResult(HandOffStatus.DOWNLOADED, torrent.url, str(path))
