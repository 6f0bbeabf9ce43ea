"""Cover Art Archive adapter: front cover thumbnails for releases and release groups."""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional

import aiohttp

from mbbrowse import logger
from mbbrowse.catalog.http_client import SessionClient
from mbbrowse.catalog.protocols import ImageClient
from mbbrowse.catalog.resilience import UNEXPECTED_SHAPE_HINT
from mbbrowse.catalog.types import ENRICHABLE_KINDS, SearchKind
from mbbrowse.config import ImagesConfig


class CoverArtClient(SessionClient, ImageClient):
    """Fetch front cover bytes at the configured thumbnail size."""

    def __init__(
        self,
        config: ImagesConfig | None = None,
        user_agent: str = "mbbrowse",
        session_factory: Callable[..., aiohttp.ClientSession] | None = None,
    ):
        self.config = config or ImagesConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.user_agent = user_agent
        super().__init__(self.config.timeout, session_factory)

    def cover_url(self, entity_id: str, kind: SearchKind = "release") -> str:
        if kind not in ENRICHABLE_KINDS:
            raise ValueError(f"Cover art is not available for kind '{kind}'")
        return f"{self.base_url}/{kind}/{entity_id}/front-{self.config.size}"

    async def fetch_image(self, entity_id: str, kind: SearchKind = "release") -> Optional[bytes]:
        """Return cover bytes, or None when the archive has no front cover."""
        url = self.cover_url(entity_id, kind)
        log = logger.get_logger()
        log.api_request("GET", url)
        request_start = time.time()

        session = await self._ensure_session()
        async with session.get(url, allow_redirects=True) as response:
            elapsed_ms = (time.time() - request_start) * 1000
            if response.status == 404:
                log.api_response(response.status, elapsed_ms, f"no cover for {kind} {entity_id}")
                return None
            response.raise_for_status()
            content_type = (response.headers.get("Content-Type") or "").split(";", 1)[0].strip().lower()
            if not content_type.startswith("image/"):
                raise ValueError(
                    f"cover for {kind} {entity_id} has content type '{content_type or 'none'}' ({UNEXPECTED_SHAPE_HINT})"
                )
            data = await response.read()
            if not data:
                raise ValueError(f"cover for {kind} {entity_id} is empty ({UNEXPECTED_SHAPE_HINT})")
            log.api_response(response.status, elapsed_ms, f"{content_type}, {len(data):,} bytes")
            return data

    def _get_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent}
