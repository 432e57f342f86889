"""Parser adapter contract shared by every documentation format.

A parser turns one raw source into records. It must be deterministic (same
bytes in, same records out) and total: a fragment that cannot be turned into
a record becomes a ``ParseWarning`` and the rest of the source still parses.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from sci_docs_mcp.domain.model import CodeExample, DocRecord, ParseOutcome, ParseWarning, RecordKind


logger = logging.getLogger(__name__)

_KIND_ALIASES: dict[str, RecordKind] = {
    "function": RecordKind.FUNCTION,
    "func": RecordKind.FUNCTION,
    "method": RecordKind.FUNCTION,
    "classmethod": RecordKind.FUNCTION,
    "staticmethod": RecordKind.FUNCTION,
    "builtin_function_or_method": RecordKind.FUNCTION,
    "ufunc": RecordKind.FUNCTION,
    "class": RecordKind.CLASS,
    "type": RecordKind.CLASS,
    "exception": RecordKind.CLASS,
    "module": RecordKind.MODULE,
    "package": RecordKind.MODULE,
    "guide": RecordKind.GUIDE,
    "tutorial": RecordKind.GUIDE,
    "example": RecordKind.EXAMPLE,
}

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


@runtime_checkable
class ParserAdapter(Protocol):
    """Capability a per-library parser provides to the engine."""

    name: str

    def parse(self, raw_source: str) -> ParseOutcome:  # pragma: no cover - interface definition
        ...


def resolve_kind(value: object) -> RecordKind | None:
    """Map a format-specific kind label onto RecordKind, or None when unknown."""
    if isinstance(value, RecordKind):
        return value
    if not isinstance(value, str):
        return None
    return _KIND_ALIASES.get(value.strip().lower())


def first_paragraph(text: str) -> str:
    """Return the first non-empty paragraph collapsed onto one line."""
    for paragraph in _PARAGRAPH_SPLIT.split(text.strip()):
        collapsed = " ".join(paragraph.split())
        if collapsed:
            return collapsed
    return ""


def as_string_list(value: object) -> list[str]:
    """Accept a comma-separated string or a list and return trimmed strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [str(value).strip()]


class OutcomeBuilder:
    """Collect records and warnings while walking one raw source."""

    def __init__(self, parser_name: str) -> None:
        self.parser_name = parser_name
        self._records: list[DocRecord] = []
        self._warnings: list[ParseWarning] = []

    def warn(self, source_ref: str, message: str, fragment: str | None = None) -> None:
        logger.debug("%s parser warning at %s: %s", self.parser_name, source_ref, message)
        self._warnings.append(ParseWarning(source_ref=source_ref, message=message, fragment=fragment))

    def add(self, *, source_ref: str, fragment: str | None = None, **fields: Any) -> DocRecord | None:
        """Validate and keep a record; a validation failure becomes a warning."""
        examples = fields.pop("examples", ())
        try:
            record = DocRecord(
                source_ref=source_ref,
                examples=tuple(
                    example if isinstance(example, CodeExample) else CodeExample(**example) for example in examples
                ),
                **fields,
            )
        except (ValidationError, TypeError) as exc:
            self.warn(source_ref, f"invalid record: {_describe_error(exc)}", fragment)
            return None
        self._records.append(record)
        return record

    def has_record(self, record_id: str) -> bool:
        return any(record.id == record_id for record in self._records)

    def build(self) -> ParseOutcome:
        return ParseOutcome(records=tuple(self._records), warnings=tuple(self._warnings))


def _describe_error(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "record"
        return f"{location}: {first.get('msg', 'invalid value')}"
    return str(exc)
