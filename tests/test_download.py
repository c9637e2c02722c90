"""Tests for torrent hand-off."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from getme.config import Settings
from getme.download import (
    DelugeClient,
    HandOffStatus,
    SeedboxAuthError,
    SeedboxConnectionError,
    SeedboxTorrentError,
    download_file,
    hand_off,
    torrent_file_name,
)
from getme.search.base import Torrent

MAGNET = "magnet:?xt=urn:btih:ABCD1234567890ABCD1234567890ABCD12345678"


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def rpc_response(data: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code, json=data, request=httpx.Request("POST", "http://seedbox:8112/json")
    )


# =============================================================================
# Helper Tests
# =============================================================================


class TestTorrentFileName:
    """Tests for torrent_file_name."""

    def test_named_after_release(self):
        assert torrent_file_name("The.Wire.S01E01.720p") == "The.Wire.S01E01.720p.torrent"

    def test_unsafe_characters_replaced(self):
        assert torrent_file_name("The Wire / S01E02: Detail") == "The_Wire_S01E02_Detail.torrent"

    def test_empty_name(self):
        assert torrent_file_name("") == "download.torrent"
        assert torrent_file_name("../..") == "download.torrent"

    def test_long_name_truncated(self):
        assert len(torrent_file_name("x" * 500)) == 200 + len(".torrent")


def mock_transport_client(handler):
    """Build a factory for AsyncClients that answer through ``handler``."""
    real_client = httpx.AsyncClient
    transport = httpx.MockTransport(handler)

    def _factory(**kwargs):
        return real_client(transport=transport, **kwargs)

    return _factory


class TestDownloadFile:
    """Tests for download_file."""

    @pytest.mark.asyncio
    async def test_writes_file(self, tmp_path):
        target = tmp_path / "nested" / "x.torrent"
        factory = mock_transport_client(lambda request: httpx.Response(200, content=b"d8:announce"))

        with patch("getme.download.httpx.AsyncClient", side_effect=factory):
            path = await download_file("https://t.example/dl.php?t=1", target)

        assert path == target
        assert target.read_bytes() == b"d8:announce"

    @pytest.mark.asyncio
    async def test_partial_file_removed_on_failure(self, tmp_path):
        target = tmp_path / "x.torrent"

        async def broken_body():
            yield b"d8:anno"
            raise httpx.ReadError("connection reset")

        factory = mock_transport_client(lambda request: httpx.Response(200, content=broken_body()))

        with patch("getme.download.httpx.AsyncClient", side_effect=factory):
            with pytest.raises(httpx.ReadError):
                await download_file("https://t.example/dl.php?t=1", target)

        assert not target.exists()

    @pytest.mark.asyncio
    async def test_http_error_leaves_no_file(self, tmp_path):
        target = tmp_path / "x.torrent"
        factory = mock_transport_client(lambda request: httpx.Response(404))

        with patch("getme.download.httpx.AsyncClient", side_effect=factory):
            with pytest.raises(httpx.HTTPStatusError):
                await download_file("https://t.example/dl.php?t=1", target)

        assert not target.exists()


# =============================================================================
# Deluge Client Tests
# =============================================================================


class TestDelugeClient:
    """Tests for DelugeClient."""

    def test_client_not_in_context(self):
        with pytest.raises(RuntimeError, match="async context manager"):
            _ = DelugeClient("http://seedbox:8112", "pw").client

    @pytest.mark.asyncio
    async def test_authenticate_rejected(self):
        client = DelugeClient("http://seedbox:8112/", "wrong")
        client._client = MagicMock(spec=httpx.AsyncClient)
        client._client.post = AsyncMock(return_value=rpc_response({"result": False}))

        with pytest.raises(SeedboxAuthError):
            await client.authenticate()

    @pytest.mark.asyncio
    async def test_authenticate_unreachable(self):
        client = DelugeClient("http://seedbox:8112", "pw")
        client._client = MagicMock(spec=httpx.AsyncClient)
        client._client.post = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(SeedboxConnectionError):
            await client.authenticate()

    @pytest.mark.asyncio
    async def test_authenticate_connects_to_first_host(self):
        client = DelugeClient("http://seedbox:8112", "pw")
        client._client = MagicMock(spec=httpx.AsyncClient)
        client._client.post = AsyncMock(
            side_effect=[
                rpc_response({"result": True}),
                rpc_response({"result": False}),
                rpc_response({"result": [["host-id", "127.0.0.1", 58846, "Online"]]}),
                rpc_response({"result": None}),
            ]
        )

        await client.authenticate()

        last_call = client._client.post.call_args
        assert last_call.args[0] == "http://seedbox:8112/json"
        assert last_call.kwargs["json"]["method"] == "web.connect"
        assert last_call.kwargs["json"]["params"] == ["host-id"]

    @pytest.mark.asyncio
    async def test_add_magnet(self):
        client = DelugeClient("http://seedbox:8112", "pw")
        client._client = MagicMock(spec=httpx.AsyncClient)
        client._client.post = AsyncMock(return_value=rpc_response({"result": "abcd"}))

        assert await client.add_magnet(MAGNET) == "abcd"

    @pytest.mark.asyncio
    async def test_add_magnet_rpc_error(self):
        client = DelugeClient("http://seedbox:8112", "pw")
        client._client = MagicMock(spec=httpx.AsyncClient)
        client._client.post = AsyncMock(
            return_value=rpc_response({"result": None, "error": {"message": "Torrent exists"}})
        )

        with pytest.raises(SeedboxTorrentError, match="Torrent exists"):
            await client.add_magnet(MAGNET)

    @pytest.mark.asyncio
    async def test_add_magnet_string_error(self):
        client = DelugeClient("http://seedbox:8112", "pw")
        client._client = MagicMock(spec=httpx.AsyncClient)
        client._client.post = AsyncMock(
            return_value=rpc_response({"result": None, "error": "Torrent exists"})
        )

        with pytest.raises(SeedboxTorrentError, match="Torrent exists"):
            await client.add_magnet(MAGNET)

    @pytest.mark.asyncio
    async def test_non_json_answer(self):
        client = DelugeClient("http://seedbox:8112", "pw")
        client._client = MagicMock(spec=httpx.AsyncClient)
        client._client.post = AsyncMock(
            return_value=httpx.Response(
                200,
                text="<html>login</html>",
                request=httpx.Request("POST", "http://seedbox:8112/json"),
            )
        )

        with pytest.raises(SeedboxTorrentError, match="invalid JSON"):
            await client.add_magnet(MAGNET)

    @pytest.mark.asyncio
    async def test_non_object_answer(self):
        client = DelugeClient("http://seedbox:8112", "pw")
        client._client = MagicMock(spec=httpx.AsyncClient)
        client._client.post = AsyncMock(
            return_value=httpx.Response(
                200, json=["abcd"], request=httpx.Request("POST", "http://seedbox:8112/json")
            )
        )

        with pytest.raises(SeedboxTorrentError, match="Unexpected Deluge response"):
            await client.add_magnet(MAGNET)


# =============================================================================
# Hand-off Tests
# =============================================================================


class TestHandOff:
    """Tests for hand_off routing."""

    @pytest.mark.asyncio
    async def test_magnet_without_seedbox_returned(self):
        torrent = Torrent(url=MAGNET, original_name="X")

        result = await hand_off(torrent, make_settings())

        assert result.status is HandOffStatus.MAGNET
        assert result.url == MAGNET

    @pytest.mark.asyncio
    async def test_magnet_sent_to_seedbox(self):
        config = make_settings(seedbox_host="http://seedbox:8112", seedbox_password="pw")
        torrent = Torrent(url=MAGNET, original_name="X")

        with patch(
            "getme.download.send_magnet_to_seedbox",
            new_callable=AsyncMock,
            return_value="abcd",
        ) as mock_send:
            result = await hand_off(torrent, config)

        assert result.status is HandOffStatus.SENT
        assert result.detail == "abcd"
        mock_send.assert_awaited_once_with(MAGNET, config)

    @pytest.mark.asyncio
    async def test_seedbox_failure_reported(self):
        config = make_settings(seedbox_host="http://seedbox:8112", seedbox_password="pw")
        torrent = Torrent(url=MAGNET, original_name="X")

        with patch(
            "getme.download.send_magnet_to_seedbox",
            new_callable=AsyncMock,
            side_effect=SeedboxAuthError("Invalid Deluge password"),
        ):
            result = await hand_off(torrent, config)

        assert result.status is HandOffStatus.ERROR
        assert "Invalid Deluge password" in result.detail

    @pytest.mark.asyncio
    async def test_seedbox_non_json_answer_reported(self):
        config = make_settings(seedbox_host="http://seedbox:8112", seedbox_password="pw")
        torrent = Torrent(url=MAGNET, original_name="X")
        login_page = httpx.Response(
            200,
            text="<html>login</html>",
            request=httpx.Request("POST", "http://seedbox:8112/json"),
        )

        with patch.object(
            httpx.AsyncClient, "post", new_callable=AsyncMock, return_value=login_page
        ):
            result = await hand_off(torrent, config)

        assert result.status is HandOffStatus.ERROR
        assert "invalid JSON" in result.detail

    @pytest.mark.asyncio
    async def test_unexpected_error_reported(self):
        config = make_settings(seedbox_host="http://seedbox:8112", seedbox_password="pw")
        torrent = Torrent(url=MAGNET, original_name="X")

        with patch(
            "getme.download.send_magnet_to_seedbox",
            new_callable=AsyncMock,
            side_effect=RuntimeError("boom"),
        ):
            result = await hand_off(torrent, config)

        assert result.status is HandOffStatus.ERROR
        assert result.url == MAGNET
        assert "boom" in result.detail

    @pytest.mark.asyncio
    async def test_torrent_file_downloaded(self, tmp_path):
        config = make_settings(download_dir=str(tmp_path))
        torrent = Torrent(url="https://t.example/dl.php?t=1", original_name="X S01E01")
        target = tmp_path / "X_S01E01.torrent"

        with patch(
            "getme.download.download_file",
            new_callable=AsyncMock,
            return_value=target,
        ) as mock_download:
            result = await hand_off(torrent, config)

        assert result.status is HandOffStatus.DOWNLOADED
        assert Path(result.detail) == target
        mock_download.assert_awaited_once_with("https://t.example/dl.php?t=1", target)

    @pytest.mark.asyncio
    async def test_torrent_files_from_same_script_kept_apart(self, tmp_path):
        config = make_settings(download_dir=str(tmp_path))
        bodies = {"1": b"first", "2": b"second"}
        factory = mock_transport_client(
            lambda request: httpx.Response(200, content=bodies[request.url.params["t"]])
        )

        with patch("getme.download.httpx.AsyncClient", side_effect=factory):
            first = await hand_off(
                Torrent(url="https://t.example/dl.php?t=1", original_name="X S01E01"), config
            )
            second = await hand_off(
                Torrent(url="https://t.example/dl.php?t=2", original_name="X S01E02"), config
            )

        assert first.status is HandOffStatus.DOWNLOADED
        assert second.status is HandOffStatus.DOWNLOADED
        assert first.detail != second.detail
        assert Path(first.detail).read_bytes() == b"first"
        assert Path(second.detail).read_bytes() == b"second"

    @pytest.mark.asyncio
    async def test_download_failure_reported(self, tmp_path):
        config = make_settings(download_dir=str(tmp_path))
        torrent = Torrent(url="https://t.example/dl/x.torrent", original_name="X")

        with patch(
            "getme.download.download_file",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("refused"),
        ):
            result = await hand_off(torrent, config)

        assert result.status is HandOffStatus.ERROR
