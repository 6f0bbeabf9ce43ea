from __future__ import annotations

import asyncio

import aiohttp
import pytest
from multidict import CIMultiDict
from yarl import URL

from mbbrowse.catalog import musicbrainz_client, resilience
from mbbrowse.catalog.types import Artist, Release, ReleaseGroup
from mbbrowse.config import CatalogConfig


class _FakeResponseCtx:
    def __init__(
        self,
        *,
        status: int = 200,
        payload: object = None,
        headers: dict[str, str] | None = None,
        reason: str = "OK",
    ) -> None:
        self.status = status
        self.reason = reason
        self._payload = {} if payload is None else payload
        self.headers = headers or {}
        self.history = ()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self) -> None:
        if self.status < 400:
            return
        url = URL("https://musicbrainz.example/ws/2")
        raise aiohttp.ClientResponseError(
            aiohttp.RequestInfo(url, "GET", CIMultiDict(), url),
            self.history,
            status=self.status,
            message=self.reason,
            headers=self.headers,
        )

    async def json(self, content_type: str | None = "application/json") -> object:
        return self._payload


class _SequencedSession:
    def __init__(self, responses: list[object]) -> None:
        self._responses = responses
        self.closed = False
        self.calls: list[tuple[str, dict]] = []

    def get(self, url: str, **kwargs):
        idx = min(len(self.calls), len(self._responses) - 1)
        self.calls.append((url, kwargs))
        response = self._responses[idx]
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


class _FakeLog:
    def __init__(self) -> None:
        self.retries: list[tuple[str, int, int, int]] = []
        self.failures: list[tuple[str, int]] = []

    def api_request(self, *_args, **_kwargs) -> None:
        return None

    def api_response(self, *_args, **_kwargs) -> None:
        return None

    def api_retry(self, service: str, attempt: int, max_attempts: int, delay: int) -> None:
        self.retries.append((service, attempt, max_attempts, delay))

    def api_failed(self, service: str, max_attempts: int) -> None:
        self.failures.append((service, max_attempts))

    def debug(self, *_args, **_kwargs) -> None:
        return None


@pytest.fixture
def fake_log(monkeypatch: pytest.MonkeyPatch) -> _FakeLog:
    log = _FakeLog()
    monkeypatch.setattr(musicbrainz_client.logger, "get_logger", lambda: log)
    return log


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    async def _record_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr(resilience.asyncio, "sleep", _record_sleep)
    return recorded


def _client_for(session: _SequencedSession, **config) -> tuple[musicbrainz_client.MusicBrainzClient, list[dict]]:
    factory_calls: list[dict] = []

    def _factory(**kwargs):
        factory_calls.append(kwargs)
        return session

    client = musicbrainz_client.MusicBrainzClient(CatalogConfig(**config), session_factory=_factory)
    return client, factory_calls


def test_build_query_targets_kind_field() -> None:
    assert musicbrainz_client.build_query("artist", "Pink Floyd") == "artist:(Pink Floyd)"
    assert musicbrainz_client.build_query("release", "  Dark   Side ") == "release:(Dark Side)"
    assert musicbrainz_client.build_query("release-group", "Echoes") == "releasegroup:(Echoes)"


def test_build_query_escapes_lucene_syntax() -> None:
    assert musicbrainz_client.build_query("release", "AC/DC: Live!") == r"release:(AC\/DC\: Live\!)"
    assert musicbrainz_client.escape_lucene("a && b || (c)") == r"a \&& b \|| \(c\)"


def test_build_query_rejects_blank_text() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        musicbrainz_client.build_query("artist", "   ")


def test_map_search_payload_skips_records_without_id(fake_log: _FakeLog) -> None:
    payload = {
        "count": 3,
        "artists": [
            {"id": "a1", "name": "Pink Floyd", "type": "Group", "country": "GB", "disambiguation": ""},
            {"name": "No id"},
            {"id": "a2", "name": "Floyd Cramer"},
        ],
    }

    artists = musicbrainz_client.map_search_payload("artist", payload)

    assert [artist.id for artist in artists] == ["a1", "a2"]
    assert isinstance(artists[0], Artist)
    assert artists[0].disambiguation is None
    assert artists[0].country == "GB"


def test_map_search_payload_missing_list_is_empty() -> None:
    assert musicbrainz_client.map_search_payload("release", {"count": 0}) == []


def test_map_search_payload_rejects_non_object() -> None:
    with pytest.raises(ValueError, match="unexpected response shape"):
        musicbrainz_client.map_search_payload("release", ["not", "a", "dict"])


def test_search_release_groups_sends_query_and_maps_results(fake_log: _FakeLog) -> None:
    payload = {
        "count": 1,
        "offset": 0,
        "release-groups": [
            {
                "id": "rg1",
                "title": "Echoes",
                "primary-type": "Album",
                "first-release-date": "2001-11-05",
                "artist-credit": [{"name": "Pink Floyd", "joinphrase": ""}],
            }
        ],
    }
    session = _SequencedSession([_FakeResponseCtx(payload=payload)])
    client, factory_calls = _client_for(session, search_limit=10, user_agent="test-agent/1.0")

    async def _run():
        try:
            return await client.search("release-group", "Echoes")
        finally:
            await client.close()

    groups = asyncio.run(_run())

    assert groups == [ReleaseGroup(id="rg1", title="Echoes")]
    assert groups[0].primary_type == "Album"
    assert groups[0].first_release_date == "2001-11-05"
    assert groups[0].artist_credit == "Pink Floyd"
    assert groups[0].image is None
    url, kwargs = session.calls[0]
    assert url == "https://musicbrainz.org/ws/2/release-group"
    assert kwargs["params"] == {"query": "releasegroup:(Echoes)", "fmt": "json", "limit": 10}
    assert factory_calls[0]["headers"]["User-Agent"] == "test-agent/1.0"
    assert factory_calls[0]["timeout"].total == 10
    assert session.closed is True


def test_search_releases_joins_artist_credit(fake_log: _FakeLog) -> None:
    payload = {
        "releases": [
            {
                "id": "r1",
                "title": "Under Pressure",
                "date": "1981",
                "country": "GB",
                "artist-credit": [
                    {"name": "Queen", "joinphrase": " & "},
                    {"artist": {"name": "David Bowie"}},
                ],
            }
        ]
    }
    session = _SequencedSession([_FakeResponseCtx(payload=payload)])
    client, _ = _client_for(session)

    releases = asyncio.run(client.search("release", "Under Pressure"))

    assert releases == [Release(id="r1", title="Under Pressure")]
    assert releases[0].artist_credit == "Queen & David Bowie"
    assert releases[0].date == "1981"


def test_search_rejects_unknown_kind(fake_log: _FakeLog) -> None:
    client, _ = _client_for(_SequencedSession([_FakeResponseCtx()]))
    with pytest.raises(ValueError, match="Unsupported search kind"):
        asyncio.run(client.search("label", "Harvest"))  # type: ignore[arg-type]


def test_search_does_not_retry_http_400(fake_log: _FakeLog, sleeps: list[float]) -> None:
    session = _SequencedSession([_FakeResponseCtx(status=400, reason="Bad Request")])
    client, _ = _client_for(session)

    with pytest.raises(aiohttp.ClientResponseError) as exc_info:
        asyncio.run(client.search("artist", "Floyd"))

    assert exc_info.value.status == 400
    assert len(session.calls) == 1
    assert sleeps == []
    assert fake_log.retries == []


def test_search_retries_503_honouring_retry_after(fake_log: _FakeLog, sleeps: list[float]) -> None:
    session = _SequencedSession(
        [
            _FakeResponseCtx(status=503, reason="Service Unavailable", headers={"Retry-After": "3"}),
            _FakeResponseCtx(payload={"artists": [{"id": "a1", "name": "Pink Floyd"}]}),
        ]
    )
    client, _ = _client_for(session)

    artists = asyncio.run(client.search("artist", "Floyd"))

    assert [artist.id for artist in artists] == ["a1"]
    assert len(session.calls) == 2
    assert sleeps == [3]
    assert fake_log.retries == [("MUSICBRAINZ", 1, 3, 3)]


def test_search_gives_up_after_max_attempts(fake_log: _FakeLog, sleeps: list[float]) -> None:
    session = _SequencedSession([aiohttp.ClientConnectionError("connection reset")])
    client, _ = _client_for(session, max_attempts=2)

    with pytest.raises(aiohttp.ClientConnectionError):
        asyncio.run(client.search("release", "Meddle"))

    assert len(session.calls) == 2
    assert sleeps == [2]
    assert fake_log.failures == [("MUSICBRAINZ", 2)]


def test_search_surfaces_unexpected_payload_shape(fake_log: _FakeLog, sleeps: list[float]) -> None:
    session = _SequencedSession([_FakeResponseCtx(payload=["oops"])])
    client, _ = _client_for(session)

    with pytest.raises(ValueError, match="unexpected response shape"):
        asyncio.run(client.search("release", "Meddle"))
    assert len(session.calls) == 1
