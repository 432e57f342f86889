"""Domain layer - records, queries and results with no infrastructure dependencies.

Key principles:
1. No dependencies on parsers, indexes or the cache controller
2. Immutable value objects (records are shared across readers)
3. Type safety with Pydantic
"""

from sci_docs_mcp.domain.model import CodeExample, DocRecord, ParseOutcome, ParseWarning, RecordKind
from sci_docs_mcp.domain.search import (
    DEFAULT_QUERY_LIMIT,
    MAX_QUERY_LIMIT,
    CorpusState,
    CorpusStatus,
    IngestResult,
    Query,
    QueryMode,
    QueryResult,
    RankedRecord,
)


__all__ = [
    "DEFAULT_QUERY_LIMIT",
    "MAX_QUERY_LIMIT",
    "CodeExample",
    "CorpusState",
    "CorpusStatus",
    "DocRecord",
    "IngestResult",
    "ParseOutcome",
    "ParseWarning",
    "Query",
    "QueryMode",
    "QueryResult",
    "RankedRecord",
    "RecordKind",
]
