"""Query planning and ranking over corpus generations.

The planner validates a query, resolves it against each library's
generation in preference order and returns deterministic, ranked hits:

- exact: exact-name lookup, score 1.0
- prefix: case-insensitive key prefix scan, shorter keys first
- keyword: summed TF-IDF weights of matched query tokens
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
import logging

from sci_docs_mcp.domain.model import DocRecord
from sci_docs_mcp.domain.search import MAX_QUERY_LIMIT, Query, QueryMode, QueryResult, RankedRecord
from sci_docs_mcp.errors import InvalidQuery
from sci_docs_mcp.search.analyzers import KeywordAnalyzer, get_analyzer
from sci_docs_mcp.search.fuzzy import closest_term
from sci_docs_mcp.search.generation import Generation
from sci_docs_mcp.search.models import Posting


logger = logging.getLogger(__name__)

# Fuzzy match weights are discounted to prefer exact token matches
_FUZZY_DISCOUNT = 0.8


class QueryPlanner:
    """Resolve queries against one generation per library."""

    def __init__(
        self,
        *,
        analyzer: KeywordAnalyzer | None = None,
        max_limit: int = MAX_QUERY_LIMIT,
        enable_fuzzy: bool = True,
    ) -> None:
        self.analyzer = analyzer or get_analyzer("keyword")
        self.max_limit = max_limit
        self.enable_fuzzy = enable_fuzzy

    def validate(self, query: Query) -> None:
        """Reject malformed queries before any generation is read."""
        if not query.text or not query.text.strip():
            raise InvalidQuery("Query text must not be empty", reason="empty_query")
        if query.limit < 1:
            raise InvalidQuery(f"Query limit must be at least 1, got {query.limit}", reason="limit_out_of_range")
        if query.limit > self.max_limit:
            raise InvalidQuery(
                f"Query limit {query.limit} exceeds the maximum of {self.max_limit}",
                reason="limit_out_of_range",
                detail=str(self.max_limit),
            )

    def execute(self, query: Query, generations: Sequence[Generation]) -> QueryResult:
        """Run a validated query; ``generations`` is in library preference order."""
        self.validate(query)
        text = query.text.strip()

        if query.mode is QueryMode.EXACT:
            ranked = self._exact(text, generations, query)
        elif query.mode is QueryMode.PREFIX:
            ranked = self._prefix(text, generations, query)
        else:
            ranked = self._keyword(text, generations, query)

        return QueryResult(
            hits=tuple(ranked[: query.limit]),
            total_matched=len(ranked),
            generation_served={generation.library: generation.number for generation in generations},
        )

    def query_terms(self, text: str) -> list[str]:
        """Analyze query text into unique terms, keeping first-seen order."""
        seen: set[str] = set()
        terms: list[str] = []
        for term in self.analyzer.terms(text):
            if term not in seen:
                seen.add(term)
                terms.append(term)
        return terms

    @staticmethod
    def _accepts(query: Query, record: DocRecord) -> bool:
        return query.kinds is None or record.kind in query.kinds

    def _exact(self, text: str, generations: Sequence[Generation], query: Query) -> list[RankedRecord]:
        ranked: list[RankedRecord] = []
        for generation in generations:
            for record_id in generation.indexes.lookup_exact(text):
                record = generation.store.get(record_id)
                if self._accepts(query, record):
                    ranked.append(RankedRecord(library=generation.library, record=record, score=1.0))
        return ranked

    def _prefix(self, text: str, generations: Sequence[Generation], query: Query) -> list[RankedRecord]:
        best: dict[tuple[int, str], str] = {}
        for rank, generation in enumerate(generations):
            for key, record_id in generation.indexes.scan_prefix(text):
                slot = (rank, record_id)
                current = best.get(slot)
                if current is None or (len(key), key) < (len(current), current):
                    best[slot] = key

        ordered = sorted(best.items(), key=lambda item: (len(item[1]), item[1], item[0][0], item[0][1]))
        ranked: list[RankedRecord] = []
        for (rank, record_id), key in ordered:
            generation = generations[rank]
            record = generation.store.get(record_id)
            if self._accepts(query, record):
                ranked.append(RankedRecord(library=generation.library, record=record, score=len(text) / len(key)))
        return ranked

    def _keyword(self, text: str, generations: Sequence[Generation], query: Query) -> list[RankedRecord]:
        terms = self.query_terms(text)
        if not terms:
            logger.debug("Keyword query %r has no searchable terms", text)
            return []

        candidates: list[tuple[float, str, int, RankedRecord]] = []
        for rank, generation in enumerate(generations):
            scores: dict[str, float] = defaultdict(float)
            for term in terms:
                postings, discount = self._resolve_postings(term, generation)
                for posting in postings:
                    scores[posting.record_id] += posting.weight * discount

            for record_id, score in scores.items():
                record = generation.store.get(record_id)
                if not self._accepts(query, record):
                    continue
                candidates.append(
                    (-score, record_id, rank, RankedRecord(library=generation.library, record=record, score=score))
                )

        candidates.sort(key=lambda item: item[:3])
        return [item[3] for item in candidates]

    def _resolve_postings(self, term: str, generation: Generation) -> tuple[tuple[Posting, ...], float]:
        postings = generation.indexes.postings_for(term)
        if postings or not self.enable_fuzzy:
            return postings, 1.0

        match = closest_term(term, generation.indexes.vocabulary)
        if match is None:
            return (), 1.0
        fuzzy_term, distance = match
        logger.debug("Fuzzy match %r -> %r (distance %d) in %s", term, fuzzy_term, distance, generation.library)
        return generation.indexes.postings_for(fuzzy_term), _FUZZY_DISCOUNT
