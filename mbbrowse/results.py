"""Owned search results: one live kind at a time, merged by entity id."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from mbbrowse.catalog.types import ENRICHABLE_KINDS, Entity, SearchKind


@dataclass(frozen=True)
class ResultSnapshot:
    """Immutable view handed to readers."""

    kind: Optional[SearchKind] = None
    generation: int = 0
    entities: tuple[Entity, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.kind is None

    def ids(self) -> tuple[str, ...]:
        return tuple(entity.id for entity in self.entities)

    def pending_ids(self) -> tuple[str, ...]:
        if self.kind not in ENRICHABLE_KINDS:
            return ()
        return tuple(entity.id for entity in self.entities if not entity.has_image)


def _unique_by_id(entities: Iterable[Entity]) -> tuple[Entity, ...]:
    seen: set[str] = set()
    unique: list[Entity] = []
    for entity in entities:
        if entity.id in seen:
            continue
        seen.add(entity.id)
        unique.append(entity)
    return tuple(unique)


class ResultSet:
    """Tagged union of artist, release or release-group results, or nothing.

    Every write swaps in a new ResultSnapshot, so snapshot() is O(1) and
    readers never observe a partial update.
    """

    def __init__(self) -> None:
        self._current = ResultSnapshot()
        self._last_generation = 0

    @property
    def kind(self) -> Optional[SearchKind]:
        return self._current.kind

    @property
    def generation(self) -> int:
        return self._current.generation

    def snapshot(self) -> ResultSnapshot:
        return self._current

    def _next_generation(self, generation: Optional[int]) -> int:
        if generation is None:
            generation = self._last_generation + 1
        self._last_generation = max(self._last_generation, generation)
        return generation

    def replace_with(
        self,
        kind: SearchKind,
        entities: Iterable[Entity],
        generation: Optional[int] = None,
    ) -> ResultSnapshot:
        """Discard the previous variant and install `entities` under `kind`."""
        self._current = ResultSnapshot(
            kind=kind,
            generation=self._next_generation(generation),
            entities=_unique_by_id(entities),
        )
        return self._current

    def clear(self, generation: Optional[int] = None) -> ResultSnapshot:
        self._current = ResultSnapshot(generation=self._next_generation(generation))
        return self._current

    def merge_by_id(
        self,
        kind: SearchKind,
        entity: Entity,
        generation: Optional[int] = None,
    ) -> bool:
        """Replace the entry sharing `entity.id`; stale or unknown merges are dropped.

        Returns True only when the live results changed.
        """
        current = self._current
        if current.kind != kind:
            return False
        if generation is not None and generation != current.generation:
            return False
        for idx, existing in enumerate(current.entities):
            if existing.id != entity.id:
                continue
            if existing is entity:
                return False
            entities = current.entities[:idx] + (entity,) + current.entities[idx + 1:]
            self._current = ResultSnapshot(kind=current.kind, generation=current.generation, entities=entities)
            return True
        return False
