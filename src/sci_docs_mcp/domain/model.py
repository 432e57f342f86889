"""Domain model - documentation records and parse outcomes.

Records are immutable value objects: a rebuild produces new records instead
of mutating the ones a serving generation still references. Pydantic gives
validation at construction and a field-for-field JSON mapping for the
protocol layer.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class RecordKind(str, Enum):
    """Kind of documented entity."""

    FUNCTION = "function"
    CLASS = "class"
    MODULE = "module"
    GUIDE = "guide"
    EXAMPLE = "example"


class CodeExample(BaseModel):
    """A code snippet plus the prose that introduces it."""

    model_config = ConfigDict(frozen=True)

    code: str
    description: str = ""


class DocRecord(BaseModel):
    """One documented entity, e.g. ``numpy.array``.

    ``id`` is library-qualified and unique within one record store. ``kind``
    never changes for an id inside a generation; a later generation may
    redefine it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    kind: RecordKind
    signature: str | None = None
    summary: str = ""
    body: str = ""
    examples: tuple[CodeExample, ...] = ()
    tags: frozenset[str] = frozenset()
    source_ref: str = ""
    aliases: tuple[str, ...] = ()

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("DocRecord id must not be blank")
        return stripped

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: object) -> object:
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(str(tag).strip() for tag in value if str(tag).strip())
        return value

    @field_validator("aliases", mode="before")
    @classmethod
    def _clean_aliases(cls, value: object) -> object:
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple)):
            seen: list[str] = []
            for alias in value:
                alias_text = str(alias).strip()
                if alias_text and alias_text not in seen:
                    seen.append(alias_text)
            return tuple(seen)
        return value

    @field_serializer("tags")
    def _serialize_tags(self, tags: frozenset[str]) -> list[str]:
        return sorted(tags)

    def exact_names(self) -> tuple[str, ...]:
        """Return the id followed by any aliases that differ from it."""
        return (self.id, *(alias for alias in self.aliases if alias != self.id))


class ParseWarning(BaseModel):
    """Non-fatal problem found while parsing one fragment of raw source."""

    model_config = ConfigDict(frozen=True)

    source_ref: str
    message: str
    fragment: str | None = None

    @field_validator("fragment")
    @classmethod
    def _trim_fragment(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value if len(value) <= 200 else f"{value[:197]}..."


class ParseOutcome(BaseModel):
    """Records produced from one raw source plus warnings for skipped fragments."""

    model_config = ConfigDict(frozen=True)

    records: tuple[DocRecord, ...] = ()
    warnings: tuple[ParseWarning, ...] = ()
