"""Domain models for queries, results and corpus status.

Value objects are frozen: a Query is built per request, a QueryResult per
answer, and neither is persisted.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sci_docs_mcp.domain.model import DocRecord, ParseWarning, RecordKind


DEFAULT_QUERY_LIMIT = 20
MAX_QUERY_LIMIT = 200


class QueryMode(str, Enum):
    """How the query text is resolved against the indexes."""

    EXACT = "exact"
    PREFIX = "prefix"
    KEYWORD = "keyword"


class Query(BaseModel):
    """Immutable search request.

    Limits and blank text are checked by the query planner so the caller gets
    ``InvalidQuery`` rather than a validation error from construction.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    mode: QueryMode = QueryMode.KEYWORD
    library_scope: tuple[str, ...] | None = None
    limit: int = DEFAULT_QUERY_LIMIT
    kinds: frozenset[RecordKind] | None = None

    @field_validator("library_scope", mode="before")
    @classmethod
    def _normalize_scope(cls, value: object) -> object:
        if isinstance(value, str):
            return (value,)
        if isinstance(value, (list, tuple)):
            ordered: list[str] = []
            for library in value:
                if library not in ordered:
                    ordered.append(library)
            return tuple(ordered)
        return value


class RankedRecord(BaseModel):
    """A record reference with its relevance score."""

    model_config = ConfigDict(frozen=True)

    library: str
    record: DocRecord
    score: float


class QueryResult(BaseModel):
    """Ranked answer to one query.

    ``generation_served`` names the generation read for every library that
    took part, so callers can tell which snapshot produced the hits.
    """

    model_config = ConfigDict(frozen=True)

    hits: tuple[RankedRecord, ...] = ()
    total_matched: int = 0
    generation_served: dict[str, int] = Field(default_factory=dict)

    @property
    def ids(self) -> list[str]:
        return [hit.record.id for hit in self.hits]


class CorpusState(str, Enum):
    """Freshness state of one library corpus."""

    COLD = "cold"
    FRESH = "fresh"
    STALE = "stale"
    REBUILDING = "rebuilding"


class CorpusStatus(BaseModel):
    """Health snapshot for one library."""

    model_config = ConfigDict(frozen=True)

    library: str
    state: CorpusState
    generation: int = 0
    fetched_at: datetime | None = None
    record_count: int = 0
    last_error: str | None = None


class IngestResult(BaseModel):
    """Outcome of an ingest call."""

    model_config = ConfigDict(frozen=True)

    library: str
    generation: int
    record_count: int
    warnings: tuple[ParseWarning, ...] = ()
    reused: bool = False
