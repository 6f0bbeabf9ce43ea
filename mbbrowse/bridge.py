"""Translate UI intents into orchestrator calls and snapshots into display rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from mbbrowse.catalog.types import (
    ENRICHABLE_KINDS,
    Artist,
    SearchKind,
)
from mbbrowse.orchestrator import SearchOrchestrator
from mbbrowse.results import ResultSnapshot

_IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "PNG"),
    (b"\xff\xd8\xff", "JPEG"),
    (b"GIF87a", "GIF"),
    (b"GIF89a", "GIF"),
)


@dataclass(frozen=True)
class QueryChanged:
    text: str


@dataclass(frozen=True)
class KindChanged:
    kind: str


@dataclass(frozen=True)
class Submit:
    pass


UiEvent = Union[QueryChanged, KindChanged, Submit]


@dataclass(frozen=True)
class ResultRow:
    id: str
    title: str
    detail: str
    credit: str
    cover: str


def describe_image(data: Optional[bytes], pending: bool = False) -> str:
    if data is None:
        return "pending" if pending else "-"
    image_format = "image"
    for signature, name in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            image_format = name
            break
    else:
        if data[8:12] == b"WEBP":
            image_format = "WEBP"
    return f"{image_format}, {len(data):,} bytes"


def _join(*parts: Optional[str]) -> str:
    return " · ".join(part for part in parts if part)


def _artist_row(artist: Artist) -> ResultRow:
    return ResultRow(
        id=artist.id,
        title=artist.name,
        detail=_join(artist.disambiguation, artist.type, artist.country),
        credit="",
        cover="",
    )


def build_rows(snapshot: ResultSnapshot, pending_ids: frozenset[str] = frozenset()) -> list[ResultRow]:
    """Display rows for a snapshot; `pending_ids` marks covers still being fetched."""
    if snapshot.kind is None:
        return []
    if snapshot.kind not in ENRICHABLE_KINDS:
        return [_artist_row(entity) for entity in snapshot.entities]
    rows: list[ResultRow] = []
    for entity in snapshot.entities:
        if snapshot.kind == "release":
            extra = _join(getattr(entity, "date", None), getattr(entity, "country", None))
        else:
            extra = _join(getattr(entity, "primary_type", None), getattr(entity, "first_release_date", None))
        rows.append(
            ResultRow(
                id=entity.id,
                title=entity.title,
                detail=_join(entity.disambiguation, extra),
                credit=entity.artist_credit or "",
                cover=describe_image(entity.image, pending=entity.id in pending_ids),
            )
        )
    return rows


class EventBridge:
    """Narrow boundary between the terminal UI and the orchestrator."""

    def __init__(self, orchestrator: SearchOrchestrator) -> None:
        self.orchestrator = orchestrator

    def dispatch(self, event: UiEvent) -> Optional[int]:
        if isinstance(event, QueryChanged):
            self.orchestrator.query_changed(event.text)
        elif isinstance(event, KindChanged):
            self.orchestrator.kind_changed(event.kind)
        elif isinstance(event, Submit):
            return self.orchestrator.submit()
        else:
            raise TypeError(f"Unknown UI event {type(event).__name__}")
        return None

    @property
    def kind(self) -> SearchKind:
        return self.orchestrator.intent.kind

    @property
    def query(self) -> str:
        return self.orchestrator.intent.text

    def rows(self, snapshot: ResultSnapshot | None = None, *, busy: bool = False) -> list[ResultRow]:
        snapshot = snapshot or self.orchestrator.snapshot()
        pending = frozenset(snapshot.pending_ids()) if busy else frozenset()
        return build_rows(snapshot, pending)
