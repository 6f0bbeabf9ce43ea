"""Concurrent per-entity cover fetches with independently reported outcomes."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Iterable, Literal, Optional

from mbbrowse import logger
from mbbrowse.catalog.protocols import ImageClient
from mbbrowse.catalog.types import EnrichableEntity, SearchKind

EnrichmentOutcome = Literal["image", "no_image", "failed", "stale"]


@dataclass(frozen=True)
class EnrichmentCompletion:
    """Result of one cover fetch, tagged with the search it belongs to."""

    kind: SearchKind
    generation: int
    entity: EnrichableEntity
    outcome: EnrichmentOutcome
    error: Optional[BaseException] = None

    @property
    def entity_id(self) -> str:
        return self.entity.id

    @property
    def succeeded(self) -> bool:
        return self.outcome in ("image", "no_image")


def _describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


class EnrichmentDispatcher:
    """Fan out one image fetch per entity, bounded by `max_concurrency`.

    `max_concurrency=None` gives unbounded fan-out. `is_current`, when set,
    lets queued fetches of a superseded search finish as "stale" without
    touching the network.
    """

    def __init__(
        self,
        client: ImageClient,
        max_concurrency: Optional[int] = 8,
        is_current: Callable[[int], bool] | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1 (or None for unbounded)")
        self._client = client
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None
        self._is_current = is_current
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> frozenset[asyncio.Task]:
        return frozenset(task for task in self._tasks if not task.done())

    async def fetch_one(
        self,
        kind: SearchKind,
        entity: EnrichableEntity,
        generation: int,
    ) -> EnrichmentCompletion:
        """Fetch one cover. Never raises; failures come back as outcome="failed"."""
        if self._semaphore is None:
            return await self._fetch(kind, entity, generation)
        async with self._semaphore:
            return await self._fetch(kind, entity, generation)

    async def _fetch(
        self,
        kind: SearchKind,
        entity: EnrichableEntity,
        generation: int,
    ) -> EnrichmentCompletion:
        if self._is_current is not None and not self._is_current(generation):
            return EnrichmentCompletion(kind, generation, entity, "stale")
        try:
            data = await self._client.fetch_image(entity.id, kind)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.get_logger().warning(f"Cover fetch failed for {kind} {entity.id}: {_describe_error(exc)}")
            return EnrichmentCompletion(kind, generation, entity, "failed", error=exc)
        if data is None:
            logger.get_logger().debug(f"No cover available for {kind} {entity.id}")
            return EnrichmentCompletion(kind, generation, entity, "no_image")
        return EnrichmentCompletion(kind, generation, entity.with_image(data), "image")

    def spawn(
        self,
        kind: SearchKind,
        entities: Iterable[EnrichableEntity],
        generation: int,
        deliver: Callable[[EnrichmentCompletion], None],
    ) -> list[asyncio.Task]:
        """Start one task per entity; each delivers exactly one completion."""

        async def _run(entity: EnrichableEntity) -> None:
            deliver(await self.fetch_one(kind, entity, generation))

        tasks = [asyncio.create_task(_run(entity), name=f"cover:{entity.id}") for entity in entities]
        for task in tasks:
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        logger.get_logger().debug(f"Dispatched {len(tasks)} cover fetch(es) for {kind} search #{generation}")
        return tasks

    async def enrich(
        self,
        kind: SearchKind,
        entities: Iterable[EnrichableEntity],
        generation: int = 0,
    ) -> AsyncIterator[EnrichmentCompletion]:
        """Yield completions as they finish, not in input order."""
        pending = [asyncio.ensure_future(self.fetch_one(kind, entity, generation)) for entity in entities]
        try:
            for next_done in asyncio.as_completed(pending):
                yield await next_done
        finally:
            for future in pending:
                if not future.done():
                    future.cancel()

    async def aclose(self) -> None:
        """Cancel outstanding fetches; used on shutdown only."""
        tasks = list(self.pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
