"""Protocol definitions for the catalog and cover image clients."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from mbbrowse.catalog.types import Entity, SearchKind


class CatalogClient(Protocol):
    """Free-text entity search used by the orchestrator."""

    async def search(self, kind: SearchKind, query: str) -> Sequence[Entity]:
        ...


class ImageClient(Protocol):
    """Cover lookup used by the enrichment dispatcher.

    Returns image bytes, or None when the service reports that no image
    exists. Any other outcome raises.
    """

    async def fetch_image(self, entity_id: str, kind: SearchKind = "release") -> Optional[bytes]:
        ...
