"""Unit tests for CorpusIndexer."""

import math

import pytest

from sci_docs_mcp.domain.model import DocRecord, RecordKind
from sci_docs_mcp.errors import BuildError
from sci_docs_mcp.search.indexer import CorpusIndexer
from sci_docs_mcp.search.record_store import RecordStore


ARRAY = DocRecord(
    id="numpy.array",
    kind=RecordKind.FUNCTION,
    summary="Create an array",
    tags={"array", "create"},
    aliases=("np.array",),
)
ZEROS = DocRecord(
    id="numpy.zeros",
    kind=RecordKind.FUNCTION,
    summary="Return a new array of zeros",
    tags={"array"},
)


@pytest.fixture
def indexes():
    return CorpusIndexer().build(RecordStore("numpy", [ARRAY, ZEROS]))


@pytest.mark.unit
class TestRecordTerms:
    def test_terms_cover_summary_tags_and_id_parts(self):
        counts = CorpusIndexer().record_terms(ARRAY)
        assert counts == {"array": 3, "create": 2, "numpy": 1}

    def test_signature_is_indexed(self):
        record = DocRecord(id="numpy.zeros", kind=RecordKind.FUNCTION, signature="numpy.zeros(shape, dtype=float)")
        counts = CorpusIndexer().record_terms(record)
        assert counts["shape"] == 1
        assert counts["dtype"] == 1
        assert counts["zeros"] == 2


@pytest.mark.unit
class TestCorpusIndexer:
    def test_exact_map_includes_ids_and_aliases(self, indexes):
        assert indexes.lookup_exact("numpy.array") == ("numpy.array",)
        assert indexes.lookup_exact("np.array") == ("numpy.array",)
        assert indexes.lookup_exact("numpy.zeros") == ("numpy.zeros",)
        assert indexes.lookup_exact("np.zeros") == ()

    def test_exact_lookup_is_case_sensitive(self, indexes):
        assert indexes.lookup_exact("NumPy.Array") == ()

    def test_alias_does_not_shadow_another_id(self):
        shadow = DocRecord(id="np.array", kind=RecordKind.CLASS, summary="A different object")
        indexes = CorpusIndexer().build(RecordStore("numpy", [ARRAY, shadow]))
        assert indexes.lookup_exact("np.array") == ("np.array", "numpy.array")

    def test_prefix_keys_are_sorted_and_lowercased(self, indexes):
        assert indexes.prefix_keys == ("np.array", "numpy.array", "numpy.zeros")

    def test_prefix_scan_ignores_case(self, indexes):
        assert list(indexes.scan_prefix("NUMPY.")) == [
            ("numpy.array", "numpy.array"),
            ("numpy.zeros", "numpy.zeros"),
        ]

    def test_prefix_scan_keeps_original_key_case(self):
        record = DocRecord(id="scipy.fft.FFT", kind=RecordKind.CLASS)
        indexes = CorpusIndexer().build(RecordStore("scipy", [record]))
        assert list(indexes.scan_prefix("scipy.fft.f")) == [("scipy.fft.FFT", "scipy.fft.FFT")]

    def test_prefix_scan_without_match(self, indexes):
        assert list(indexes.scan_prefix("scipy")) == []

    def test_postings_weighted_by_tf_idf(self, indexes):
        postings = indexes.postings_for("array")
        assert [posting.record_id for posting in postings] == ["numpy.array", "numpy.zeros"]
        assert postings[0].weight == pytest.approx(3.0)
        assert postings[1].weight == pytest.approx(2.0)

    def test_rare_terms_weigh_more(self, indexes):
        (posting,) = indexes.postings_for("zeros")
        assert posting.weight == pytest.approx(2 * (math.log(1.5) + 1))

    def test_equal_weights_order_by_id(self, indexes):
        assert [posting.record_id for posting in indexes.postings_for("numpy")] == ["numpy.array", "numpy.zeros"]

    def test_stopwords_are_not_indexed(self, indexes):
        assert indexes.postings_for("of") == ()
        assert "an" not in indexes.vocabulary

    def test_vocabulary_is_sorted(self, indexes):
        assert list(indexes.vocabulary) == sorted(indexes.vocabulary)
        assert indexes.record_count == 2

    def test_build_freezes_the_store(self):
        store = RecordStore("numpy", [ARRAY])
        CorpusIndexer().build(store)
        assert store.frozen

    def test_empty_store_builds(self):
        indexes = CorpusIndexer().build(RecordStore("numpy"))
        assert indexes.record_count == 0
        assert indexes.vocabulary == ()

    def test_failure_raises_build_error(self):
        class ExplodingAnalyzer:
            def terms(self, text):
                raise RuntimeError("tokenizer crashed")

        with pytest.raises(BuildError) as exc_info:
            CorpusIndexer(analyzer=ExplodingAnalyzer()).build(RecordStore("numpy", [ARRAY]))

        assert exc_info.value.reason == "index_failed"
        assert exc_info.value.library == "numpy"
        assert exc_info.value.detail == "RuntimeError"

    def test_indexes_are_read_only(self, indexes):
        with pytest.raises(TypeError):
            indexes.exact["new"] = ("x",)
