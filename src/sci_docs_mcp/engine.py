"""Documentation engine facade.

Single entry point for ingesting library documentation and querying it:

- ingest(library_id, raw_source) -> IngestResult
- query(query) -> QueryResult
- status(library_id) -> CorpusStatus
- get(library_id, record_id) -> DocRecord
- examples(library_id, record_id) -> tuple[CodeExample, ...]
- libraries() -> list[str]

Parsing, indexing and freshness are handled internally by the cache
controller; queries never mutate corpus data.
"""

from __future__ import annotations

import asyncio
import logging

from sci_docs_mcp.config import Settings
from sci_docs_mcp.deployment_config import DeploymentConfig, LibraryConfig
from sci_docs_mcp.domain.model import CodeExample, DocRecord
from sci_docs_mcp.domain.search import CorpusStatus, IngestResult, Query, QueryMode, QueryResult
from sci_docs_mcp.errors import DocsEngineError
from sci_docs_mcp.observability.logging import configure_logging
from sci_docs_mcp.observability.metrics import QUERY_COUNT, QUERY_LATENCY, init_metrics, track_latency
from sci_docs_mcp.observability.tracing import create_span, init_tracing
from sci_docs_mcp.parsers.registry import ParserRegistry, create_parser
from sci_docs_mcp.search.generation import Generation
from sci_docs_mcp.search.ranker import QueryPlanner
from sci_docs_mcp.services.cache_service import Clock, CorpusCacheController, SourceLoader


logger = logging.getLogger(__name__)

SERVICE_NAME = "sci-docs-mcp"


class DocumentationEngine:
    """Multi-library documentation search over cached corpus generations.

    Args:
        settings: Engine-wide settings
        registry: Parser adapter per library codename
        source_loader: Async callable fetching a library's raw source for rebuilds
        clock: Returns the current aware datetime
        library_ttls: Per-library cache TTL overrides in seconds
    """

    def __init__(
        self,
        settings: Settings,
        registry: ParserRegistry,
        *,
        source_loader: SourceLoader | None = None,
        clock: Clock | None = None,
        library_ttls: dict[str, int] | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self._planner = QueryPlanner(max_limit=settings.max_query_limit, enable_fuzzy=settings.enable_fuzzy)
        self._cache = CorpusCacheController(
            registry,
            default_ttl_seconds=settings.cache_ttl_seconds,
            max_concurrent_rebuilds=settings.max_concurrent_rebuilds,
            library_ttls=library_ttls,
            source_loader=source_loader,
            clock=clock,
        )
        logger.info("Initialized DocumentationEngine for %d libraries", len(registry))

    async def ingest(self, library_id: str, raw_source: str) -> IngestResult:
        """Parse ``raw_source`` into a new generation for ``library_id``.

        Raises:
            NotFound: the library has no registered parser
            BuildError: parsing or indexing failed; the serving generation is kept
        """
        with create_span("docs.ingest", attributes={"library": library_id}) as span:
            result = await self._cache.ingest(library_id, raw_source)
            span.set_attribute("generation", result.generation)
            span.set_attribute("reused", result.reused)
        return result

    async def query(self, query: Query) -> QueryResult:
        """Run a query over the libraries in scope.

        Raises:
            InvalidQuery: blank text or a limit outside 1..max_query_limit
            BuildError: a library named in ``library_scope`` is cold and its first build failed
        """
        mode = query.mode.value
        with create_span("docs.query", attributes={"mode": mode}), track_latency(QUERY_LATENCY, mode=mode):
            try:
                query = self._apply_default_limit(query)
                self._planner.validate(query)
                generations = await self._acquire_scope(query)
                result = self._planner.execute(query, generations)
            except DocsEngineError as exc:
                QUERY_COUNT.labels(mode=mode, status=exc.reason).inc()
                raise
        QUERY_COUNT.labels(mode=mode, status="ok").inc()
        return result

    def status(self, library_id: str) -> CorpusStatus:
        """Freshness snapshot for one library; raises NotFound when unknown."""
        return self._cache.status(library_id)

    async def get(self, library_id: str, record_id: str) -> DocRecord:
        """Fetch one record by id.

        Raises:
            NotFound: unknown library or record id
        """
        generation = await self._cache.acquire(library_id)
        return generation.store.get(record_id)

    async def examples(self, library_id: str, record_id: str) -> tuple[CodeExample, ...]:
        """Code examples attached to a record, in source order."""
        record = await self.get(library_id, record_id)
        return record.examples

    def libraries(self) -> list[str]:
        """Registered library codenames in registration order."""
        return self.registry.library_ids()

    async def run_test_queries(self, library: LibraryConfig) -> dict[str, int]:
        """Run a library's configured smoke-test queries and return hit counts.

        Keys are ``"<mode>:<text>"``.
        """
        counts: dict[str, int] = {}
        for mode, texts in (library.test_queries or {}).items():
            for text in texts:
                result = await self.query(Query(text=text, mode=QueryMode(mode), library_scope=(library.codename,)))
                counts[f"{mode}:{text}"] = result.total_matched
                if not result.hits:
                    logger.warning("Test query %r (%s) returned no hits for %s", text, mode, library.codename)
        return counts

    async def aclose(self) -> None:
        """Wait for in-flight rebuilds and stop scheduling new ones."""
        await self._cache.aclose()

    def _apply_default_limit(self, query: Query) -> Query:
        if "limit" in query.model_fields_set:
            return query
        return query.model_copy(update={"limit": self.settings.default_query_limit})

    async def _acquire_scope(self, query: Query) -> list[Generation]:
        if query.library_scope is None:
            # Implicit scope: libraries that were never ingested are skipped
            libraries = sorted(self.registry.library_ids())
            required = False
        else:
            libraries = [library for library in query.library_scope if library in self.registry]
            required = True

        acquired = await asyncio.gather(*(self._cache.acquire(library, required=required) for library in libraries))
        return [generation for generation in acquired if generation is not None]


def configure_observability(settings: Settings, deployment: DeploymentConfig | None = None) -> None:
    """Apply the active log profile and initialize metrics and tracing.

    A ``logging`` block declared in the deployment wins; otherwise LOG_LEVEL
    and LOG_JSON from the environment apply.
    """
    if deployment is not None and "logging" in deployment.model_fields_set:
        profile = deployment.logging
        configure_logging(
            level=profile.level,
            json_output=profile.json_output,
            logger_levels=profile.logger_levels,
            trace_categories=profile.trace_categories,
            trace_level=profile.trace_level,
        )
    else:
        configure_logging(level=settings.log_level, json_output=settings.log_json)
    init_metrics(service_name=SERVICE_NAME)
    init_tracing(service_name=SERVICE_NAME)


def create_documentation_engine(
    settings: Settings,
    deployment: DeploymentConfig,
    *,
    source_loader: SourceLoader | None = None,
    clock: Clock | None = None,
) -> DocumentationEngine:
    """Factory building the parser registry and TTL overrides from a deployment.

    Observability is configured first, from the deployment's log profile.

    Args:
        settings: Engine-wide settings
        deployment: Libraries to serve and their parser formats

    Returns:
        Configured DocumentationEngine instance
    """
    configure_observability(settings, deployment)

    registry = ParserRegistry()
    for library in deployment.libraries:
        registry.register(library.codename, create_parser(library.parser, library.codename))
        logger.info("Registered %s (%s) with the %s parser", library.docs_name, library.codename, library.parser)
    return DocumentationEngine(
        settings,
        registry,
        source_loader=source_loader,
        clock=clock,
        library_ttls=deployment.library_ttls(),
    )
