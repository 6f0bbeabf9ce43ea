"""Catalog entities and the MusicBrainz / Cover Art Archive clients."""

from .coverart_client import CoverArtClient
from .musicbrainz_client import MusicBrainzClient
from .protocols import CatalogClient, ImageClient
from .types import (
    ENRICHABLE_KINDS,
    SEARCH_KINDS,
    Artist,
    EnrichableEntity,
    Entity,
    Release,
    ReleaseGroup,
    SearchKind,
    format_kind_label,
    parse_kind,
)

__all__ = [
    "Artist",
    "CatalogClient",
    "CoverArtClient",
    "ENRICHABLE_KINDS",
    "EnrichableEntity",
    "Entity",
    "ImageClient",
    "MusicBrainzClient",
    "Release",
    "ReleaseGroup",
    "SEARCH_KINDS",
    "SearchKind",
    "format_kind_label",
    "parse_kind",
]
