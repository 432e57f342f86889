"""In-memory record store for one corpus generation."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from sci_docs_mcp.domain.model import DocRecord
from sci_docs_mcp.errors import NotFound, SchemaError


class _RecordView:
    """Restartable view over the store; every ``iter()`` starts from the first record."""

    def __init__(self, records: dict[str, DocRecord]) -> None:
        self._records = records

    def __iter__(self) -> Iterator[DocRecord]:
        return iter(self._records.values())

    def __len__(self) -> int:
        return len(self._records)


class RecordStore:
    """Mapping from record id to DocRecord in insertion order.

    A store is written while its generation is being built and frozen before
    the indexer reads it. Replacing a record keeps its original position.
    """

    def __init__(self, library: str, records: Iterable[DocRecord] = ()) -> None:
        self.library = library
        self._records: dict[str, DocRecord] = {}
        self._frozen = False
        for record in records:
            self.put(record)

    def put(self, record: DocRecord) -> None:
        if self._frozen:
            raise SchemaError(
                f"Record store for {self.library} is frozen; cannot write {record.id}",
                reason="store_frozen",
            )
        existing = self._records.get(record.id)
        if existing is not None and existing.kind is not record.kind:
            raise SchemaError(
                f"{record.id} is already a {existing.kind.value}, cannot redefine it as {record.kind.value}",
                reason="kind_conflict",
                detail=record.source_ref or None,
            )
        self._records[record.id] = record

    def get(self, record_id: str) -> DocRecord:
        try:
            return self._records[record_id]
        except KeyError:
            raise NotFound(f"No record {record_id!r} in {self.library}", detail=record_id) from None

    def all(self) -> _RecordView:
        """Return a lazy, restartable sequence of records in insertion order."""
        return _RecordView(self._records)

    def ids(self) -> list[str]:
        return list(self._records)

    def freeze(self) -> RecordStore:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records
