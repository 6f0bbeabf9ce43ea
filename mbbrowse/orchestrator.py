"""Two-phase search orchestration: catalog search, then per-item cover enrichment.

All ResultSet writes happen in `apply`, called one message at a time by the
runner task. Background work (the catalog call and every cover fetch) only
posts messages.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional, Union

from mbbrowse import logger
from mbbrowse.catalog.protocols import CatalogClient, ImageClient
from mbbrowse.catalog.types import ENRICHABLE_KINDS, Entity, SearchKind, format_kind_label, parse_kind
from mbbrowse.enrichment import EnrichmentCompletion, EnrichmentDispatcher
from mbbrowse.results import ResultSet, ResultSnapshot


@dataclass
class SearchIntent:
    kind: SearchKind = "artist"
    text: str = ""


@dataclass(frozen=True)
class Notice:
    message: str
    notify_type: str = "error"


@dataclass(frozen=True)
class SearchCompleted:
    kind: SearchKind
    generation: int
    query: str
    entities: tuple[Entity, ...]


@dataclass(frozen=True)
class SearchFailed:
    kind: SearchKind
    generation: int
    query: str
    error: BaseException


Message = Union[SearchCompleted, SearchFailed, EnrichmentCompletion]
SnapshotListener = Callable[[ResultSnapshot], None]
NoticeListener = Callable[[Notice], None]


def _describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or type(exc).__name__


class SearchOrchestrator:
    """Owns the search intent and the result set for one UI session."""

    def __init__(self, catalog: CatalogClient, dispatcher: EnrichmentDispatcher) -> None:
        self.intent = SearchIntent()
        self.results = ResultSet()
        self._catalog = catalog
        self._dispatcher = dispatcher
        self._generation = 0
        self._messages: asyncio.Queue[Message] | None = None
        self._runner: asyncio.Task | None = None
        self._searches: set[asyncio.Task] = set()
        self._listeners: list[SnapshotListener] = []
        self._notice_listeners: list[NoticeListener] = []

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def snapshot(self) -> ResultSnapshot:
        return self.results.snapshot()

    # -- listeners -----------------------------------------------------------

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def subscribe_notices(self, listener: NoticeListener) -> Callable[[], None]:
        self._notice_listeners.append(listener)
        return lambda: self._notice_listeners.remove(listener)

    def _publish(self) -> None:
        snapshot = self.results.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                logger.get_logger().error(f"Result listener failed: {_describe_error(exc)}")

    def _notify(self, notice: Notice) -> None:
        for listener in list(self._notice_listeners):
            try:
                listener(notice)
            except Exception as exc:
                logger.get_logger().error(f"Notice listener failed: {_describe_error(exc)}")

    # -- inbound intents -----------------------------------------------------

    def query_changed(self, text: str) -> None:
        self.intent.text = text
        self._publish()

    def kind_changed(self, kind: SearchKind | str) -> None:
        self.intent.kind = parse_kind(kind)
        self._publish()

    def submit(self) -> Optional[int]:
        """Start a search for the current intent; returns its generation."""
        kind = self.intent.kind
        query = self.intent.text.strip()
        if not query:
            logger.get_logger().debug("Ignoring search request with empty query")
            return None
        self.start()
        self._generation += 1
        generation = self._generation
        logger.get_logger().debug(f"Search #{generation}: {kind} '{query}'")
        task = asyncio.create_task(self._search(kind, query, generation), name=f"search:{generation}")
        self._searches.add(task)
        task.add_done_callback(self._searches.discard)
        return generation

    async def _search(self, kind: SearchKind, query: str, generation: int) -> None:
        try:
            entities = await self._catalog.search(kind, query)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._post(SearchFailed(kind, generation, query, exc))
            return
        self._post(SearchCompleted(kind, generation, query, tuple(entities)))

    # -- message loop --------------------------------------------------------

    def start(self) -> None:
        if self._runner is not None and not self._runner.done():
            return
        if self._messages is None:
            self._messages = asyncio.Queue()
        self._runner = asyncio.create_task(self._run(), name="orchestrator")

    def _post(self, message: Message) -> None:
        if self._messages is None:
            self._messages = asyncio.Queue()
        self._messages.put_nowait(message)

    async def _run(self) -> None:
        queue = self._messages
        while True:
            message = await queue.get()
            try:
                self.apply(message)
            except Exception as exc:
                logger.get_logger().error(f"Failed to apply {type(message).__name__}: {_describe_error(exc)}")
            finally:
                queue.task_done()

    def apply(self, message: Message) -> None:
        """Apply one background completion to the result set."""
        if isinstance(message, SearchCompleted):
            self._apply_search_completed(message)
        elif isinstance(message, SearchFailed):
            self._apply_search_failed(message)
        elif isinstance(message, EnrichmentCompletion):
            self._apply_enrichment(message)
        else:
            raise TypeError(f"Unknown message type {type(message).__name__}")

    def _apply_search_completed(self, message: SearchCompleted) -> None:
        if not self.is_current(message.generation):
            logger.get_logger().debug(f"Dropping superseded search #{message.generation}")
            return
        snapshot = self.results.replace_with(message.kind, message.entities, message.generation)
        label = format_kind_label(message.kind).lower()
        logger.get_logger().debug(f"Search #{message.generation}: {len(snapshot.entities)} {label} result(s)")
        if message.kind in ENRICHABLE_KINDS and snapshot.entities:
            self._dispatcher.spawn(message.kind, snapshot.entities, message.generation, self._post)
        self._publish()

    def _apply_search_failed(self, message: SearchFailed) -> None:
        if not self.is_current(message.generation):
            logger.get_logger().debug(f"Dropping failure of superseded search #{message.generation}")
            return
        self.results.clear(message.generation)
        label = format_kind_label(message.kind).lower()
        text = f"{label.capitalize()} search for '{message.query}' failed: {_describe_error(message.error)}"
        logger.get_logger().debug(text)
        self._publish()
        self._notify(Notice(message=text, notify_type="error"))

    def _apply_enrichment(self, completion: EnrichmentCompletion) -> None:
        if completion.outcome != "image":
            return
        if self.results.merge_by_id(completion.kind, completion.entity, completion.generation):
            self._publish()

    # -- lifecycle -----------------------------------------------------------

    @property
    def busy(self) -> bool:
        """True while a search or a cover fetch is still in flight."""
        return any(not task.done() for task in self._searches) or bool(self._dispatcher.pending)

    async def wait_idle(self, *, include_enrichment: bool = True) -> None:
        """Wait until in-flight work is finished and all its messages are applied.

        With `include_enrichment=False` only searches are awaited, so callers
        can resume while covers keep arriving.
        """
        while True:
            busy = [task for task in self._searches if not task.done()]
            if include_enrichment:
                busy.extend(self._dispatcher.pending)
            if busy:
                await asyncio.wait(busy)
                continue
            if self._messages is not None and not self._messages.empty():
                self.start()
                await self._messages.join()
                continue
            return

    async def aclose(self) -> None:
        for task in list(self._searches):
            task.cancel()
        await self._dispatcher.aclose()
        runner = self._runner
        self._runner = None
        if runner is not None and not runner.done():
            runner.cancel()
            await asyncio.gather(runner, return_exceptions=True)

    async def __aenter__(self) -> "SearchOrchestrator":
        self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()


def build_orchestrator(
    catalog: CatalogClient,
    image_client: ImageClient,
    max_concurrency: Optional[int] = 8,
) -> SearchOrchestrator:
    """Wire a dispatcher whose queued fetches skip superseded searches."""
    orchestrator: SearchOrchestrator

    def _is_current(generation: int) -> bool:
        return orchestrator.is_current(generation)

    dispatcher = EnrichmentDispatcher(image_client, max_concurrency=max_concurrency, is_current=_is_current)
    orchestrator = SearchOrchestrator(catalog, dispatcher)
    return orchestrator
