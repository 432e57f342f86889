"""Unit tests for the DocumentationEngine facade."""

import logging

import orjson
import pytest
import pytest_asyncio

from sci_docs_mcp.config import Settings
from sci_docs_mcp.deployment_config import DeploymentConfig, LibraryConfig
from sci_docs_mcp.domain.model import RecordKind
from sci_docs_mcp.domain.search import CorpusState, Query, QueryMode
from sci_docs_mcp import engine as engine_module
from sci_docs_mcp.engine import DocumentationEngine, configure_observability, create_documentation_engine
from sci_docs_mcp.errors import BuildError, InvalidQuery, NotFound
from sci_docs_mcp.parsers.registry import ParserRegistry, create_parser


SCIPY_JSON = orjson.dumps(
    [
        {
            "qualname": "scipy.fft.fft",
            "signature": "fft(x, n=None)",
            "docstring": "Compute the discrete Fourier transform.\n\nExamples\n--------\n>>> scipy.fft.fft([1, 0])\n",
        },
        {"qualname": "scipy.linalg.inv", "docstring": "Compute the inverse of a matrix."},
    ]
).decode()


@pytest.fixture
def deployment():
    return DeploymentConfig.from_mapping(
        {
            "libraries": [
                {"codename": "numpy", "docs_name": "NumPy", "parser": "markdown"},
                {"codename": "scipy", "docs_name": "SciPy", "parser": "docstring-json", "cache_ttl_seconds": 60},
            ]
        }
    )


@pytest.fixture(autouse=True)
def logging_calls(monkeypatch):
    """Record log profile applications instead of reconfiguring the root logger."""
    calls = []
    monkeypatch.setattr(engine_module, "configure_logging", lambda **kwargs: calls.append(kwargs))
    return calls


@pytest.fixture
def engine(test_settings, deployment, clock):
    return create_documentation_engine(test_settings, deployment, clock=clock)


@pytest_asyncio.fixture
async def numpy_engine(engine, numpy_markdown):
    await engine.ingest("numpy", numpy_markdown)
    return engine


@pytest.mark.unit
class TestScenarios:
    @pytest.mark.asyncio
    async def test_exact_lookup_of_single_record(self, test_settings):
        registry = ParserRegistry()
        registry.register("numpy", create_parser("markdown", "numpy"))
        engine = DocumentationEngine(test_settings, registry)
        await engine.ingest(
            "numpy", "## numpy.array\n---\nkind: function\ntags: [array, create]\n---\nCreate an array\n"
        )

        result = await engine.query(Query(text="numpy.array", mode=QueryMode.EXACT))

        assert len(result.hits) == 1
        assert result.hits[0].record.id == "numpy.array"
        assert result.hits[0].score == 1.0

    @pytest.mark.asyncio
    async def test_keyword_limit_keeps_best_hit(self, numpy_engine):
        result = await numpy_engine.query(Query(text="array", mode=QueryMode.KEYWORD, limit=1))

        assert result.ids == ["numpy.array"]
        assert result.total_matched == 2

    @pytest.mark.asyncio
    async def test_empty_keyword_query_rejected(self, numpy_engine):
        with pytest.raises(InvalidQuery):
            await numpy_engine.query(Query(text="", mode=QueryMode.KEYWORD))

    @pytest.mark.asyncio
    async def test_limit_over_cap_rejected(self, numpy_engine):
        with pytest.raises(InvalidQuery) as exc_info:
            await numpy_engine.query(Query(text="array", limit=500))
        assert exc_info.value.reason == "limit_out_of_range"

    @pytest.mark.asyncio
    async def test_malformed_fragment_keeps_valid_records(self, engine, numpy_markdown):
        source = numpy_markdown + "\n## numpy.widget\n---\nkind: widget\n---\nNot a real kind.\n"

        result = await engine.ingest("numpy", source)

        assert result.warnings
        assert result.record_count == 4
        assert (await engine.get("numpy", "numpy.linalg.inv")).summary == "Compute the inverse of a matrix."

    @pytest.mark.asyncio
    async def test_undecodable_bytes_do_not_abort_ingest(self, engine):
        source = "## numpy.array\nCreate an array \udcff.\n\n## numpy.zeros\nZeros.\n"

        result = await engine.ingest("numpy", source)

        assert result.record_count == 2
        assert [warning.source_ref for warning in result.warnings] == ["numpy:source"]
        assert (await engine.get("numpy", "numpy.array")).summary == "Create an array \ufffd."


@pytest.mark.unit
class TestQuery:
    @pytest.mark.asyncio
    async def test_prefix_query(self, numpy_engine):
        result = await numpy_engine.query(Query(text="numpy.lin", mode=QueryMode.PREFIX))
        assert result.ids == ["numpy.linalg.inv"]

    @pytest.mark.asyncio
    async def test_alias_exact_lookup(self, numpy_engine):
        result = await numpy_engine.query(Query(text="np.array", mode=QueryMode.EXACT))
        assert result.ids == ["numpy.array"]

    @pytest.mark.asyncio
    async def test_kind_filter(self, numpy_engine):
        result = await numpy_engine.query(Query(text="numpy", mode=QueryMode.PREFIX, kinds={RecordKind.MODULE}))
        assert result.ids == ["numpy"]

    @pytest.mark.asyncio
    async def test_default_limit_comes_from_settings(self, deployment, numpy_markdown):
        engine = create_documentation_engine(Settings(default_query_limit=1), deployment)
        await engine.ingest("numpy", numpy_markdown)

        result = await engine.query(Query(text="array"))

        assert len(result.hits) == 1
        assert result.total_matched == 2

    @pytest.mark.asyncio
    async def test_explicit_limit_is_kept(self, deployment, numpy_markdown):
        engine = create_documentation_engine(Settings(default_query_limit=1), deployment)
        await engine.ingest("numpy", numpy_markdown)

        result = await engine.query(Query(text="array", limit=5))

        assert len(result.hits) == 2

    @pytest.mark.asyncio
    async def test_implicit_scope_skips_libraries_never_ingested(self, numpy_engine):
        result = await numpy_engine.query(Query(text="inverse"))

        assert result.ids == ["numpy.linalg.inv"]
        assert result.generation_served == {"numpy": 1}

    @pytest.mark.asyncio
    async def test_implicit_scope_spans_all_ingested_libraries(self, numpy_engine):
        await numpy_engine.ingest("scipy", SCIPY_JSON)

        result = await numpy_engine.query(Query(text="inverse matrix"))

        assert result.ids == ["numpy.linalg.inv", "scipy.linalg.inv"]
        assert result.generation_served == {"numpy": 1, "scipy": 1}

    @pytest.mark.asyncio
    async def test_explicit_scope_restricts_libraries(self, numpy_engine):
        await numpy_engine.ingest("scipy", SCIPY_JSON)

        result = await numpy_engine.query(Query(text="inverse", library_scope="scipy"))

        assert result.ids == ["scipy.linalg.inv"]
        assert result.generation_served == {"scipy": 1}

    @pytest.mark.asyncio
    async def test_empty_scope_returns_nothing(self, numpy_engine):
        result = await numpy_engine.query(Query(text="array", library_scope=()))

        assert result.hits == ()
        assert result.total_matched == 0
        assert result.generation_served == {}

    @pytest.mark.asyncio
    async def test_unknown_library_in_scope_is_ignored(self, numpy_engine):
        result = await numpy_engine.query(Query(text="array", library_scope=["pandas", "numpy"]))
        assert result.generation_served == {"numpy": 1}

    @pytest.mark.asyncio
    async def test_explicit_cold_library_without_source(self, numpy_engine):
        with pytest.raises(BuildError) as exc_info:
            await numpy_engine.query(Query(text="fft", library_scope=["scipy"]))

        assert exc_info.value.reason == "no_source"
        assert exc_info.value.library == "scipy"

    @pytest.mark.asyncio
    async def test_generation_served_tracks_rebuilds(self, numpy_engine, numpy_markdown):
        await numpy_engine.ingest("numpy", numpy_markdown + "\n## numpy.ones\nReturn ones.\n")

        result = await numpy_engine.query(Query(text="numpy.ones", mode=QueryMode.EXACT))

        assert result.generation_served == {"numpy": 2}
        assert result.ids == ["numpy.ones"]

    @pytest.mark.asyncio
    async def test_cold_library_built_through_source_loader(self, test_settings, deployment, clock):
        requested = []

        async def load(library):
            requested.append(library)
            return SCIPY_JSON

        engine = create_documentation_engine(test_settings, deployment, source_loader=load, clock=clock)

        result = await engine.query(Query(text="scipy.fft.fft", mode=QueryMode.EXACT, library_scope=["scipy"]))

        assert result.ids == ["scipy.fft.fft"]
        assert requested == ["scipy"]


@pytest.mark.unit
class TestRecords:
    @pytest.mark.asyncio
    async def test_get_record(self, numpy_engine):
        record = await numpy_engine.get("numpy", "numpy.zeros")
        assert record.signature == "numpy.zeros(shape, dtype=float)"

    @pytest.mark.asyncio
    async def test_get_unknown_record(self, numpy_engine):
        with pytest.raises(NotFound):
            await numpy_engine.get("numpy", "numpy.nothing")

    @pytest.mark.asyncio
    async def test_get_unknown_library(self, numpy_engine):
        with pytest.raises(NotFound):
            await numpy_engine.get("pandas", "pandas.DataFrame")

    @pytest.mark.asyncio
    async def test_get_from_cold_library(self, numpy_engine):
        with pytest.raises(BuildError) as exc_info:
            await numpy_engine.get("scipy", "scipy.fft.fft")
        assert exc_info.value.reason == "no_source"

    @pytest.mark.asyncio
    async def test_examples(self, numpy_engine):
        (example,) = await numpy_engine.examples("numpy", "numpy.array")

        assert example.code == "np.array([1, 2, 3])"
        assert example.description == "Build a small array:"

    @pytest.mark.asyncio
    async def test_doctest_examples_from_json(self, engine):
        await engine.ingest("scipy", SCIPY_JSON)

        (example,) = await engine.examples("scipy", "scipy.fft.fft")

        assert example.code == ">>> scipy.fft.fft([1, 0])"

    def test_libraries_in_registration_order(self, engine):
        assert engine.libraries() == ["numpy", "scipy"]


@pytest.mark.unit
class TestStatusAndLifecycle:
    def test_cold_status(self, engine):
        assert engine.status("numpy").state is CorpusState.COLD

    def test_unknown_library_status(self, engine):
        with pytest.raises(NotFound):
            engine.status("pandas")

    @pytest.mark.asyncio
    async def test_unknown_library_ingest(self, engine):
        with pytest.raises(NotFound):
            await engine.ingest("pandas", "## pandas.DataFrame\n")

    @pytest.mark.asyncio
    async def test_library_ttl_override(self, engine, clock, numpy_markdown):
        await engine.ingest("numpy", numpy_markdown)
        await engine.ingest("scipy", SCIPY_JSON)

        clock.advance(61)

        assert engine.status("numpy").state is CorpusState.FRESH
        assert engine.status("scipy").state is CorpusState.STALE

    @pytest.mark.asyncio
    async def test_reingest_reports_reuse(self, numpy_engine, numpy_markdown):
        result = await numpy_engine.ingest("numpy", numpy_markdown)

        assert result.reused is True
        assert result.generation == 1

    @pytest.mark.asyncio
    async def test_stale_query_serves_old_generation_then_refreshes(self, numpy_engine, clock):
        clock.advance(3601)

        result = await numpy_engine.query(Query(text="numpy.zeros", mode=QueryMode.EXACT))
        await numpy_engine.aclose()

        assert result.generation_served == {"numpy": 1}
        assert numpy_engine.status("numpy").state is CorpusState.FRESH


@pytest.mark.unit
class TestRunTestQueries:
    @pytest.mark.asyncio
    async def test_counts_hits_per_query(self, numpy_engine, caplog):
        caplog.set_level(logging.WARNING, logger="sci_docs_mcp.engine")
        library = LibraryConfig(
            codename="numpy",
            docs_name="NumPy",
            test_queries={
                "exact": ["numpy.zeros"],
                "prefix": ["numpy.lin"],
                "keyword": ["inverse matrix", "spectrogram"],
            },
        )

        counts = await numpy_engine.run_test_queries(library)

        assert counts == {
            "exact:numpy.zeros": 1,
            "prefix:numpy.lin": 1,
            "keyword:inverse matrix": 1,
            "keyword:spectrogram": 0,
        }
        assert "spectrogram" in caplog.text

    @pytest.mark.asyncio
    async def test_no_test_queries(self, numpy_engine):
        assert await numpy_engine.run_test_queries(LibraryConfig(codename="numpy", docs_name="NumPy")) == {}


@pytest.mark.unit
class TestConfigureObservability:
    def test_factory_applies_declared_log_profile(self, test_settings, logging_calls):
        deployment = DeploymentConfig.from_mapping(
            {
                "logging": {
                    "level": "debug",
                    "json_output": False,
                    "trace_categories": ["sci_docs_mcp.services"],
                    "logger_levels": {"sci_docs_mcp.parsers": "warning"},
                },
                "libraries": [{"codename": "numpy", "docs_name": "NumPy"}],
            }
        )

        create_documentation_engine(test_settings, deployment)

        assert logging_calls == [
            {
                "level": "debug",
                "json_output": False,
                "logger_levels": {"sci_docs_mcp.parsers": "warning"},
                "trace_categories": ["sci_docs_mcp.services"],
                "trace_level": "debug",
            }
        ]

    def test_settings_apply_without_declared_profile(self, engine, logging_calls):
        assert logging_calls == [{"level": "info", "json_output": False}]

    def test_settings_only(self, monkeypatch, logging_calls):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        monkeypatch.setenv("LOG_JSON", "true")

        configure_observability(Settings())

        assert logging_calls == [{"level": "warning", "json_output": True}]

    def test_tracing_is_initialized_once(self, test_settings, logging_calls):
        configure_observability(test_settings)
        first = engine_module.init_tracing()

        configure_observability(test_settings)

        assert engine_module.init_tracing() is first
