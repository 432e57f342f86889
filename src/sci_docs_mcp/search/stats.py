"""Statistical helpers for TF-IDF weighting.

The functions stay independent of the index structures so they can be unit
tested on their own and reused by the indexer and any diagnostics.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class CorpusTermStats:
    """Document frequencies gathered in one pass over a generation."""

    total_docs: int
    doc_freq: Mapping[str, int]

    def idf(self, term: str) -> float:
        return calculate_idf(self.doc_freq.get(term, 0), self.total_docs)


def compute_term_stats(term_counts: Iterable[Mapping[str, int]]) -> CorpusTermStats:
    """Return document frequencies from per-record term counts."""

    doc_freq: Counter[str] = Counter()
    total = 0
    for counts in term_counts:
        total += 1
        doc_freq.update(term for term, count in counts.items() if count > 0)
    return CorpusTermStats(total_docs=total, doc_freq=dict(doc_freq))


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Return smoothed inverse document frequency.

    ``ln((1 + N) / (1 + df)) + 1`` stays strictly positive, so a term present
    in every record still contributes to the score on a one-record corpus.
    """

    if total_docs <= 0:
        return 0.0
    df = max(0, min(doc_freq, total_docs))
    return math.log((1 + total_docs) / (1 + df)) + 1.0


def tf_idf(tf: int, idf: float) -> float:
    """Compute the posting weight for a term occurring ``tf`` times in a record."""

    if tf <= 0:
        return 0.0
    return tf * idf
