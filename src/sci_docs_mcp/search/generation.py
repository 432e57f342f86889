"""Immutable corpus snapshot served to queries."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from sci_docs_mcp.domain.model import ParseWarning
from sci_docs_mcp.search.indexer import CorpusIndexes
from sci_docs_mcp.search.record_store import RecordStore


@dataclass(frozen=True)
class Generation:
    """A record store and the indexes built from it, swapped in as one unit.

    Readers hold a reference to one Generation for the duration of a query;
    a rebuild never touches an existing Generation, it creates the next one.
    """

    library: str
    number: int
    store: RecordStore
    indexes: CorpusIndexes
    fetched_at: datetime
    content_hash: str
    warnings: tuple[ParseWarning, ...] = ()

    @property
    def record_count(self) -> int:
        return len(self.store)

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()

    def refreshed(self, fetched_at: datetime) -> Generation:
        """Return the same snapshot with a renewed fetch timestamp."""
        return replace(self, fetched_at=fetched_at)
