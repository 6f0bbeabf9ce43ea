"""MusicBrainz web service adapter for entity searches."""

from __future__ import annotations

import re
import time
from typing import Any, Callable, Dict, List

import aiohttp

from mbbrowse import logger
from mbbrowse.catalog.http_client import SessionClient
from mbbrowse.catalog.protocols import CatalogClient
from mbbrowse.catalog.resilience import (
    expect_dict,
    optional_list_of_dicts,
    run_with_retries,
)
from mbbrowse.catalog.types import (
    ENTITY_TYPES,
    Entity,
    SearchKind,
    SEARCH_KINDS,
)
from mbbrowse.config import CatalogConfig

SERVICE_NAME = "MUSICBRAINZ"

# Lucene field searched and response list key, per search kind.
_QUERY_FIELDS: dict[SearchKind, str] = {
    "artist": "artist",
    "release": "release",
    "release-group": "releasegroup",
}
_RESULT_KEYS: dict[SearchKind, str] = {
    "artist": "artists",
    "release": "releases",
    "release-group": "release-groups",
}
_LUCENE_SPECIAL = re.compile(r'([+\-!(){}\[\]^"~*?:\\/]|&&|\|\|)')


def escape_lucene(text: str) -> str:
    return _LUCENE_SPECIAL.sub(r"\\\1", text)


def build_query(kind: SearchKind, text: str) -> str:
    terms = " ".join(text.split())
    if not terms:
        raise ValueError("Search text must not be empty")
    return f"{_QUERY_FIELDS[kind]}:({escape_lucene(terms)})"


def map_search_payload(kind: SearchKind, payload: object) -> List[Entity]:
    """Turn a search response into entities, skipping records without an id."""
    root = expect_dict(payload, f"{kind} search payload")
    records = optional_list_of_dicts(root, _RESULT_KEYS[kind], f"{kind} search payload")
    entity_type = ENTITY_TYPES[kind]
    entities: List[Entity] = []
    for idx, record in enumerate(records):
        try:
            entities.append(entity_type.from_record(record))
        except ValueError as exc:
            logger.get_logger().debug(f"Skipping {kind} record #{idx}: {exc}")
    return entities


class MusicBrainzClient(SessionClient, CatalogClient):
    """Async adapter for the /ws/2 search endpoints."""

    def __init__(
        self,
        config: CatalogConfig | None = None,
        session_factory: Callable[..., aiohttp.ClientSession] | None = None,
    ):
        self.config = config or CatalogConfig()
        self.base_url = self.config.base_url.rstrip("/")
        super().__init__(self.config.timeout, session_factory)

    async def search(self, kind: SearchKind, query: str) -> List[Entity]:
        """Search one entity kind; order follows the service's ranking."""
        if kind not in SEARCH_KINDS:
            raise ValueError(f"Unsupported search kind '{kind}'")
        params: Dict[str, Any] = {
            "query": build_query(kind, query),
            "fmt": "json",
            "limit": self.config.search_limit,
        }
        payload = await self._request(kind, params)
        return map_search_payload(kind, payload)

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        log = logger.get_logger()
        log.api_request("GET", url, params)
        request_start = time.time()

        async def _attempt() -> tuple[int, Dict[str, Any]]:
            session = await self._ensure_session()
            async with session.get(url, params=params) as response:
                response.raise_for_status()
                data = await response.json(content_type=None)
                return response.status, expect_dict(data, f"{endpoint} response")

        status, data = await run_with_retries(
            _attempt,
            max_attempts=self.config.max_attempts,
            on_retry=lambda attempt, total, delay, _exc: log.api_retry(SERVICE_NAME, attempt, total, delay),
            on_give_up=lambda total, _exc: log.api_failed(SERVICE_NAME, total),
        )
        elapsed_ms = (time.time() - request_start) * 1000
        log.api_response(status, elapsed_ms, {"count": data.get("count"), "offset": data.get("offset")})
        return data

    def _get_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.config.user_agent, "Accept": "application/json"}
