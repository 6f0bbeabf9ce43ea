"""Catalog entity types shared by the clients, the result set and the UI."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Mapping, Optional, Union

SearchKind = Literal["artist", "release", "release-group"]
SEARCH_KINDS: tuple[SearchKind, ...] = ("artist", "release", "release-group")
ENRICHABLE_KINDS: frozenset[SearchKind] = frozenset({"release", "release-group"})

KIND_LABELS: dict[SearchKind, str] = {
    "artist": "Artist",
    "release": "Release",
    "release-group": "Release group",
}
_KIND_ALIASES: dict[str, SearchKind] = {
    "artist": "artist",
    "a": "artist",
    "release": "release",
    "r": "release",
    "release-group": "release-group",
    "release_group": "release-group",
    "releasegroup": "release-group",
    "release group": "release-group",
    "group": "release-group",
    "rg": "release-group",
    "g": "release-group",
}


def format_kind_label(kind: SearchKind) -> str:
    return KIND_LABELS.get(kind, kind.replace("-", " ").capitalize())


def parse_kind(text: str) -> SearchKind:
    normalized = (text or "").strip().lower()
    kind = _KIND_ALIASES.get(normalized)
    if kind is not None:
        return kind
    supported = ", ".join(SEARCH_KINDS)
    raise ValueError(f"Unknown search kind '{text}'. Supported kinds: {supported}.")


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _record_id(record: object, kind: str) -> str:
    if not isinstance(record, Mapping):
        raise ValueError(f"{kind} record has unexpected type '{type(record).__name__}'")
    entity_id = _optional_text(record.get("id"))
    if entity_id is None:
        raise ValueError(f"{kind} record is missing an id")
    return entity_id


def format_artist_credit(credits: object) -> Optional[str]:
    """Join a MusicBrainz artist-credit list into display text."""
    if not isinstance(credits, list):
        return None
    parts: list[str] = []
    for credit in credits:
        if isinstance(credit, str):
            parts.append(credit)
            continue
        if not isinstance(credit, Mapping):
            continue
        artist = credit.get("artist")
        name = credit.get("name") or (artist.get("name") if isinstance(artist, Mapping) else None)
        if name:
            parts.append(str(name))
        joinphrase = credit.get("joinphrase")
        if joinphrase:
            parts.append(str(joinphrase))
    return _optional_text("".join(parts))


@dataclass(frozen=True)
class Artist:
    """Artist search hit; displayed as-is, never enriched."""

    id: str
    name: str = field(compare=False)
    disambiguation: Optional[str] = field(default=None, compare=False)
    type: Optional[str] = field(default=None, compare=False)
    country: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Artist":
        return cls(
            id=_record_id(record, "artist"),
            name=str(record.get("name") or ""),
            disambiguation=_optional_text(record.get("disambiguation")),
            type=_optional_text(record.get("type")),
            country=_optional_text(record.get("country")),
        )


@dataclass(frozen=True)
class _EnrichableEntity:
    # Equality is identity: two values with the same id are the same entity.
    id: str
    title: str = field(compare=False)
    disambiguation: Optional[str] = field(default=None, compare=False)
    artist_credit: Optional[str] = field(default=None, compare=False)
    image: Optional[bytes] = field(default=None, compare=False, repr=False)

    @property
    def has_image(self) -> bool:
        return self.image is not None

    def with_image(self, data: bytes):
        """Return an enriched copy carrying the same id and display fields."""
        return replace(self, image=bytes(data))


@dataclass(frozen=True)
class Release(_EnrichableEntity):
    date: Optional[str] = field(default=None, compare=False)
    country: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Release":
        return cls(
            id=_record_id(record, "release"),
            title=str(record.get("title") or ""),
            disambiguation=_optional_text(record.get("disambiguation")),
            artist_credit=format_artist_credit(record.get("artist-credit")),
            date=_optional_text(record.get("date")),
            country=_optional_text(record.get("country")),
        )


@dataclass(frozen=True)
class ReleaseGroup(_EnrichableEntity):
    primary_type: Optional[str] = field(default=None, compare=False)
    first_release_date: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ReleaseGroup":
        return cls(
            id=_record_id(record, "release-group"),
            title=str(record.get("title") or ""),
            disambiguation=_optional_text(record.get("disambiguation")),
            artist_credit=format_artist_credit(record.get("artist-credit")),
            primary_type=_optional_text(record.get("primary-type")),
            first_release_date=_optional_text(record.get("first-release-date")),
        )


EnrichableEntity = Union[Release, ReleaseGroup]
Entity = Union[Artist, Release, ReleaseGroup]

ENTITY_TYPES: dict[SearchKind, type] = {
    "artist": Artist,
    "release": Release,
    "release-group": ReleaseGroup,
}
