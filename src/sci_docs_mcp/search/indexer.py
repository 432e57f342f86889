"""Index construction for one corpus generation.

The indexer turns a frozen RecordStore into two search structures:

- an exact-name map from every record id and declared alias to record ids,
  with a sorted, lower-cased key list for case-insensitive prefix scans
- a keyword index from analyzed tokens to TF-IDF weighted postings

Builds are all-or-nothing. Any failure raises ``BuildError`` and nothing
partially built escapes, so the previously serving generation stays intact.
"""

from __future__ import annotations

from bisect import bisect_left
from collections import Counter, defaultdict
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from itertools import islice
import logging
import time
from types import MappingProxyType

from sci_docs_mcp.domain.model import DocRecord
from sci_docs_mcp.errors import BuildError
from sci_docs_mcp.search.analyzers import KeywordAnalyzer, get_analyzer
from sci_docs_mcp.search.models import Posting
from sci_docs_mcp.search.record_store import RecordStore
from sci_docs_mcp.search.stats import compute_term_stats, tf_idf


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorpusIndexes:
    """Immutable search structures derived from one record store."""

    exact: Mapping[str, tuple[str, ...]]
    prefix_keys: tuple[str, ...]
    prefix_targets: Mapping[str, tuple[tuple[str, str], ...]]
    postings: Mapping[str, tuple[Posting, ...]]
    record_count: int
    vocabulary: tuple[str, ...] = field(default=())

    def lookup_exact(self, name: str) -> tuple[str, ...]:
        return self.exact.get(name, ())

    def scan_prefix(self, prefix: str) -> Iterator[tuple[str, str]]:
        """Yield ``(key, record_id)`` for keys starting with ``prefix``, ignoring case."""
        lowered = prefix.lower()
        start = bisect_left(self.prefix_keys, lowered)
        for key in islice(self.prefix_keys, start, None):
            if not key.startswith(lowered):
                break
            yield from self.prefix_targets[key]

    def postings_for(self, term: str) -> tuple[Posting, ...]:
        return self.postings.get(term, ())


class CorpusIndexer:
    """Build CorpusIndexes for a complete record store."""

    def __init__(self, analyzer: KeywordAnalyzer | None = None) -> None:
        self.analyzer = analyzer or get_analyzer("keyword")

    def record_terms(self, record: DocRecord) -> Counter[str]:
        """Return term frequencies for the indexed fields of one record."""
        counts: Counter[str] = Counter()
        counts.update(self.analyzer.terms(record.summary))
        if record.signature:
            counts.update(self.analyzer.terms(record.signature))
        for tag in sorted(record.tags):
            counts.update(self.analyzer.terms(tag))
        counts.update(self.analyzer.terms(record.id))
        return counts

    def build(self, store: RecordStore) -> CorpusIndexes:
        try:
            return self._build(store)
        except BuildError:
            raise
        except Exception as exc:
            raise BuildError(
                f"Index build failed for {store.library}: {exc}",
                library=store.library,
                reason="index_failed",
                detail=exc.__class__.__name__,
            ) from exc

    def _build(self, store: RecordStore) -> CorpusIndexes:
        started = time.perf_counter()
        store.freeze()

        exact: dict[str, set[str]] = defaultdict(set)
        prefix: dict[str, set[tuple[str, str]]] = defaultdict(set)
        term_counts: dict[str, Counter[str]] = {}

        for record in store.all():
            for name in record.exact_names():
                exact[name].add(record.id)
                prefix[name.lower()].add((name, record.id))
            term_counts[record.id] = self.record_terms(record)

        stats = compute_term_stats(term_counts.values())
        postings: dict[str, list[Posting]] = defaultdict(list)
        for record_id, counts in term_counts.items():
            for term, tf in counts.items():
                postings[term].append(Posting(record_id=record_id, weight=tf_idf(tf, stats.idf(term))))

        frozen_postings = {
            term: tuple(sorted(entries, key=lambda posting: posting.sort_key)) for term, entries in postings.items()
        }
        self._check_postings(store, frozen_postings)

        indexes = CorpusIndexes(
            exact=MappingProxyType({name: tuple(sorted(ids)) for name, ids in exact.items()}),
            prefix_keys=tuple(sorted(prefix)),
            prefix_targets=MappingProxyType({key: tuple(sorted(targets)) for key, targets in prefix.items()}),
            postings=MappingProxyType(frozen_postings),
            record_count=len(store),
            vocabulary=tuple(sorted(frozen_postings)),
        )
        logger.debug(
            "Indexed %d records for %s (%d names, %d terms) in %.3fs",
            len(store),
            store.library,
            len(indexes.exact),
            len(indexes.vocabulary),
            time.perf_counter() - started,
        )
        return indexes

    @staticmethod
    def _check_postings(store: RecordStore, postings: Mapping[str, tuple[Posting, ...]]) -> None:
        for term, entries in postings.items():
            for posting in entries:
                if posting.record_id not in store:
                    raise BuildError(
                        f"Posting for {term!r} references unknown record {posting.record_id!r}",
                        library=store.library,
                        reason="dangling_posting",
                    )
