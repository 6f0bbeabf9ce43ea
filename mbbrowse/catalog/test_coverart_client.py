from __future__ import annotations

import asyncio

import aiohttp
import pytest
from multidict import CIMultiDict
from yarl import URL

from mbbrowse.catalog import coverart_client
from mbbrowse.config import ImagesConfig


class _FakeImageResponse:
    def __init__(
        self,
        *,
        status: int = 200,
        body: bytes = b"",
        content_type: str | None = "image/jpeg",
        reason: str = "OK",
    ) -> None:
        self.status = status
        self.reason = reason
        self._body = body
        self.headers = {"Content-Type": content_type} if content_type else {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self) -> None:
        if self.status < 400:
            return
        url = URL("https://coverart.example/release/x/front-250")
        raise aiohttp.ClientResponseError(
            aiohttp.RequestInfo(url, "GET", CIMultiDict(), url),
            (),
            status=self.status,
            message=self.reason,
        )

    async def read(self) -> bytes:
        return self._body


class _FakeSession:
    def __init__(self, response: _FakeImageResponse) -> None:
        self.response = response
        self.closed = False
        self.calls: list[tuple[str, dict]] = []

    def get(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        return self.response

    async def close(self) -> None:
        self.closed = True


class _FakeLog:
    def api_request(self, *_args, **_kwargs) -> None:
        return None

    def api_response(self, *_args, **_kwargs) -> None:
        return None


@pytest.fixture(autouse=True)
def _fake_log(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(coverart_client.logger, "get_logger", lambda: _FakeLog())


def _client_for(response: _FakeImageResponse, **config) -> tuple[coverart_client.CoverArtClient, _FakeSession]:
    session = _FakeSession(response)
    client = coverart_client.CoverArtClient(
        ImagesConfig(**config),
        user_agent="test-agent/1.0",
        session_factory=lambda **_kwargs: session,
    )
    return client, session


def test_cover_url_uses_kind_path_and_size() -> None:
    client = coverart_client.CoverArtClient(ImagesConfig(size=500))
    assert client.cover_url("abc", "release") == "https://coverartarchive.org/release/abc/front-500"
    assert client.cover_url("def", "release-group") == "https://coverartarchive.org/release-group/def/front-500"


def test_cover_url_rejects_artist_kind() -> None:
    client = coverart_client.CoverArtClient()
    with pytest.raises(ValueError, match="not available"):
        client.cover_url("abc", "artist")


def test_fetch_image_returns_bytes_for_image_response() -> None:
    client, session = _client_for(_FakeImageResponse(body=b"\xff\xd8\xffjpeg"))

    data = asyncio.run(client.fetch_image("abc", "release-group"))

    assert data == b"\xff\xd8\xffjpeg"
    url, kwargs = session.calls[0]
    assert url == "https://coverartarchive.org/release-group/abc/front-250"
    assert kwargs["allow_redirects"] is True


def test_fetch_image_treats_404_as_no_image() -> None:
    client, _ = _client_for(_FakeImageResponse(status=404, content_type="text/html", reason="Not Found"))
    assert asyncio.run(client.fetch_image("abc")) is None


def test_fetch_image_rejects_non_image_content() -> None:
    client, _ = _client_for(_FakeImageResponse(body=b"<html>", content_type="text/html; charset=utf-8"))
    with pytest.raises(ValueError, match="unexpected response shape"):
        asyncio.run(client.fetch_image("abc"))


def test_fetch_image_rejects_empty_body() -> None:
    client, _ = _client_for(_FakeImageResponse(body=b"", content_type="image/png"))
    with pytest.raises(ValueError, match="empty"):
        asyncio.run(client.fetch_image("abc"))


def test_fetch_image_raises_on_server_error() -> None:
    client, _ = _client_for(_FakeImageResponse(status=503, reason="Service Unavailable"))
    with pytest.raises(aiohttp.ClientResponseError) as exc_info:
        asyncio.run(client.fetch_image("abc"))
    assert exc_info.value.status == 503


def test_close_releases_session() -> None:
    client, session = _client_for(_FakeImageResponse(body=b"x"))

    async def _run() -> None:
        await client.fetch_image("abc")
        await client.close()

    asyncio.run(_run())
    assert session.closed is True
