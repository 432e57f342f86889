"""Corpus cache with stale-while-revalidate freshness per library.

Each library owns one slot holding its serving ``Generation``. Readers only
ever see a complete generation; a rebuild assembles the next one in a worker
thread and the pointer swap back on the event loop is the single mutation
readers can observe.

Freshness:
- fresh: served as-is
- stale (older than the TTL): served as-is while one background rebuild runs;
  concurrent triggers coalesce onto the in-flight task
- cold (never built): the caller waits for the first build and receives its
  ``BuildError`` if it fails

A failed rebuild keeps the previous generation, which stays stale, so the
next trigger retries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
import hashlib
import logging
import re

from sci_docs_mcp.domain.model import ParseWarning
from sci_docs_mcp.domain.search import CorpusState, CorpusStatus, IngestResult
from sci_docs_mcp.errors import BuildError, SchemaError
from sci_docs_mcp.observability.context import library_context
from sci_docs_mcp.observability.metrics import CORPUS_RECORD_COUNT, CORPUS_STATE, PARSE_WARNING_COUNT, REBUILD_COUNT
from sci_docs_mcp.observability.tracing import create_span
from sci_docs_mcp.parsers.registry import ParserRegistry
from sci_docs_mcp.search.generation import Generation
from sci_docs_mcp.search.indexer import CorpusIndexer
from sci_docs_mcp.search.record_store import RecordStore


logger = logging.getLogger(__name__)

SourceLoader = Callable[[str], Awaitable[str]]
Clock = Callable[[], datetime]

DEFAULT_TTL_SECONDS = 3600

_SURROGATES = re.compile(r"[\ud800-\udfff]")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def content_hash(raw_source: str) -> str:
    return hashlib.sha256(raw_source.encode("utf-8", "surrogatepass")).hexdigest()


def clean_source(raw_source: str) -> tuple[str, int]:
    """Replace lone surrogates (e.g. from ``surrogateescape`` decoding) with U+FFFD.

    Returns the cleaned text and the number of replaced code points.
    """
    return _SURROGATES.subn("\ufffd", raw_source)


@dataclass
class _LibrarySlot:
    library: str
    generation: Generation | None = None
    rebuild_task: asyncio.Task | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    building: int = 0
    last_error: str | None = None
    last_source: str | None = None
    next_number: int = 1

    @property
    def rebuild_in_flight(self) -> bool:
        return self.building > 0 or (self.rebuild_task is not None and not self.rebuild_task.done())


class CorpusCacheController:
    """Own the per-library generation pointers and decide when to rebuild.

    Args:
        registry: Parser adapters keyed by library codename
        default_ttl_seconds: Freshness window for libraries without an override
        max_concurrent_rebuilds: Builds allowed to run in worker threads at once
        library_ttls: Per-library TTL overrides
        source_loader: Async callable returning a library's current raw source;
            without one, rebuilds re-parse the last ingested source
        clock: Returns the current aware datetime
        indexer: Index builder shared by every library
    """

    def __init__(
        self,
        registry: ParserRegistry,
        *,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_concurrent_rebuilds: int = 2,
        library_ttls: dict[str, int] | None = None,
        source_loader: SourceLoader | None = None,
        clock: Clock | None = None,
        indexer: CorpusIndexer | None = None,
    ) -> None:
        self.registry = registry
        self.default_ttl_seconds = default_ttl_seconds
        self.library_ttls = dict(library_ttls or {})
        self._source_loader = source_loader
        self._clock = clock or utc_now
        self._indexer = indexer or CorpusIndexer()
        self._semaphore = asyncio.Semaphore(max_concurrent_rebuilds)
        self._slots: dict[str, _LibrarySlot] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def ttl_for(self, library: str) -> int:
        return self.library_ttls.get(library, self.default_ttl_seconds)

    async def ingest(self, library: str, raw_source: str) -> IngestResult:
        """Build a generation from ``raw_source`` and make it the serving one.

        An identical source (same sha256) keeps the serving generation and only
        renews its fetch time. Ingests for one library run one after another,
        behind any rebuild already in flight.

        Raises:
            NotFound: ``library`` has no registered parser
            BuildError: the source could not be parsed or indexed
        """
        slot = self._slot(library)
        with library_context(library):
            pending = slot.rebuild_task
            if pending is not None and not pending.done():
                # asyncio.wait never raises the rebuild's own failure
                await asyncio.wait({pending})
            generation, reused = await self._build(slot, raw_source, trigger="ingest")
        return IngestResult(
            library=library,
            generation=generation.number,
            record_count=generation.record_count,
            warnings=generation.warnings,
            reused=reused,
        )

    async def acquire(self, library: str, *, required: bool = True) -> Generation | None:
        """Return the generation to serve for ``library``.

        A cold library with nothing to build from raises ``BuildError`` when
        ``required``; otherwise it is reported as ``None``.

        Raises:
            NotFound: ``library`` has no registered parser
            BuildError: the cold-start build failed
        """
        slot = self._slot(library)
        generation = slot.generation
        if generation is not None:
            if self._is_stale(slot, generation) and not slot.rebuild_in_flight:
                if self._schedule_refresh(slot, trigger="stale") is None:
                    logger.debug("Corpus %s is stale but has no source to rebuild from", library)
            return generation
        return await self._await_cold(slot, required=required)

    def status(self, library: str) -> CorpusStatus:
        """Snapshot the freshness state of one library.

        Raises:
            NotFound: ``library`` has no registered parser
        """
        slot = self._slot(library)
        generation = slot.generation
        return CorpusStatus(
            library=library,
            state=self._state(slot),
            generation=generation.number if generation else 0,
            fetched_at=generation.fetched_at if generation else None,
            record_count=generation.record_count if generation else 0,
            last_error=slot.last_error,
        )

    def generation(self, library: str) -> Generation | None:
        """Return the serving generation without triggering any rebuild."""
        return self._slot(library).generation

    async def aclose(self) -> None:
        """Stop scheduling rebuilds and wait for the ones in flight."""
        self._closed = True
        tasks = [slot.rebuild_task for slot in self._slots.values() if slot.rebuild_task is not None]
        if tasks:
            logger.debug("Waiting for %d in-flight rebuild(s)", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _slot(self, library: str) -> _LibrarySlot:
        slot = self._slots.get(library)
        if slot is None:
            self.registry.get(library)  # raises NotFound for unknown libraries
            slot = _LibrarySlot(library=library)
            self._slots[library] = slot
        return slot

    def _is_stale(self, slot: _LibrarySlot, generation: Generation) -> bool:
        return generation.age_seconds(self._clock()) > self.ttl_for(slot.library)

    def _state(self, slot: _LibrarySlot) -> CorpusState:
        if slot.rebuild_in_flight:
            return CorpusState.REBUILDING
        if slot.generation is None:
            return CorpusState.COLD
        if self._is_stale(slot, slot.generation):
            return CorpusState.STALE
        return CorpusState.FRESH

    def _publish_state(self, slot: _LibrarySlot) -> None:
        current = self._state(slot)
        for state in CorpusState:
            CORPUS_STATE.labels(library=slot.library, state=state.value).set(1 if state is current else 0)
        if slot.generation is not None:
            CORPUS_RECORD_COUNT.labels(library=slot.library).set(slot.generation.record_count)

    def _has_source(self, slot: _LibrarySlot) -> bool:
        return self._source_loader is not None or slot.last_source is not None

    # ------------------------------------------------------------------
    # Rebuilds
    # ------------------------------------------------------------------

    async def _await_cold(self, slot: _LibrarySlot, *, required: bool) -> Generation | None:
        if slot.building:
            # An explicit ingest is running; wait for it to release the slot
            async with slot.lock:
                pass
            if slot.generation is not None:
                return slot.generation

        task = self._schedule_refresh(slot, trigger="cold")
        if task is None:
            if not required:
                return None
            reason = "closed" if self._closed else "no_source"
            raise BuildError(
                f"Corpus {slot.library} has never been built and there is no source to build it from",
                library=slot.library,
                reason=reason,
            )
        return await asyncio.shield(task)

    def _schedule_refresh(self, slot: _LibrarySlot, *, trigger: str) -> asyncio.Task | None:
        task = slot.rebuild_task
        if task is not None and not task.done():
            return task
        if self._closed or not self._has_source(slot):
            return None

        task = asyncio.create_task(self._refresh(slot, trigger), name=f"corpus-rebuild:{slot.library}")
        slot.rebuild_task = task
        task.add_done_callback(partial(self._on_refresh_complete, slot))
        logger.info("Scheduled %s rebuild for %s", trigger, slot.library)
        self._publish_state(slot)
        return task

    def _on_refresh_complete(self, slot: _LibrarySlot, task: asyncio.Task) -> None:
        if slot.rebuild_task is task:
            slot.rebuild_task = None
        if task.cancelled():
            logger.warning("Rebuild for %s was cancelled", slot.library)
        elif task.exception() is not None:
            logger.warning("Rebuild for %s failed; keeping previous generation", slot.library)
        self._publish_state(slot)

    async def _refresh(self, slot: _LibrarySlot, trigger: str) -> Generation:
        with library_context(slot.library):
            raw_source = await self._load_source(slot, trigger)
            generation, _ = await self._build(slot, raw_source, trigger=trigger)
            return generation

    async def _load_source(self, slot: _LibrarySlot, trigger: str) -> str | None:
        if self._source_loader is None:
            return None  # re-parse the last ingested source under the slot lock
        try:
            return await self._source_loader(slot.library)
        except Exception as exc:
            slot.last_error = f"source loader failed: {exc}"
            REBUILD_COUNT.labels(library=slot.library, trigger=trigger, outcome="failed").inc()
            logger.warning("Source loader failed for %s: %s", slot.library, exc)
            raise BuildError(
                f"Could not load source for {slot.library}: {exc}",
                library=slot.library,
                reason="source_unavailable",
                detail=exc.__class__.__name__,
            ) from exc

    async def _build(self, slot: _LibrarySlot, raw_source: str | None, *, trigger: str) -> tuple[Generation, bool]:
        library = slot.library
        async with slot.lock:
            slot.building += 1
            self._publish_state(slot)
            try:
                source = raw_source if raw_source is not None else slot.last_source
                if source is None:
                    raise BuildError(f"No source available for {library}", library=library, reason="no_source")

                source, replaced = clean_source(source)
                digest = content_hash(source)
                current = slot.generation
                if current is not None and current.content_hash == digest:
                    refreshed = current.refreshed(self._clock())
                    slot.generation = refreshed
                    slot.last_source = source
                    slot.last_error = None
                    REBUILD_COUNT.labels(library=library, trigger=trigger, outcome="reused").inc()
                    logger.info("Source for %s unchanged; renewed generation %d", library, current.number)
                    return refreshed, True

                number = slot.next_number
                with create_span(
                    "corpus.build",
                    attributes={"library": library, "trigger": trigger, "generation": number},
                ) as span:
                    try:
                        async with self._semaphore:
                            generation = await asyncio.to_thread(
                                self._assemble, library, number, source, digest, replaced
                            )
                    except BuildError as exc:
                        slot.last_error = str(exc)
                        REBUILD_COUNT.labels(library=library, trigger=trigger, outcome="failed").inc()
                        logger.error("Build of %s generation %d failed: %s", library, number, exc)
                        raise
                    span.set_attribute("record_count", generation.record_count)

                # Pointer swap: the only change readers can observe
                slot.generation = generation
                slot.next_number = number + 1
                slot.last_source = source
                slot.last_error = None

                REBUILD_COUNT.labels(library=library, trigger=trigger, outcome="built").inc()
                if generation.warnings:
                    PARSE_WARNING_COUNT.labels(library=library, parser=self.registry.get(library).name).inc(
                        len(generation.warnings)
                    )
                    logger.warning(
                        "Generation %d of %s built with %d parse warning(s)",
                        number,
                        library,
                        len(generation.warnings),
                    )
                logger.info(
                    "Serving %s generation %d (%d records, trigger=%s)",
                    library,
                    number,
                    generation.record_count,
                    trigger,
                )
                return generation, False
            finally:
                slot.building -= 1
                self._publish_state(slot)

    def _assemble(self, library: str, number: int, raw_source: str, digest: str, replaced: int = 0) -> Generation:
        """Parse and index one source; runs in a worker thread."""
        parser = self.registry.get(library)
        try:
            outcome = parser.parse(raw_source)
        except Exception as exc:
            raise BuildError(
                f"Parser {parser.name} failed for {library}: {exc}",
                library=library,
                reason="parse_failed",
                detail=exc.__class__.__name__,
            ) from exc

        warnings: list[ParseWarning] = list(outcome.warnings)
        if replaced:
            warnings.insert(
                0,
                ParseWarning(
                    source_ref=f"{library}:source",
                    message=f"replaced {replaced} invalid surrogate character(s) with U+FFFD",
                ),
            )
        store = RecordStore(library)
        for record in outcome.records:
            try:
                store.put(record)
            except SchemaError as exc:
                warnings.append(
                    ParseWarning(
                        source_ref=record.source_ref or f"{library}:{record.id}",
                        message=str(exc),
                        fragment=record.id,
                    )
                )

        indexes = self._indexer.build(store)
        return Generation(
            library=library,
            number=number,
            store=store,
            indexes=indexes,
            fetched_at=self._clock(),
            content_hash=digest,
            warnings=tuple(warnings),
        )
