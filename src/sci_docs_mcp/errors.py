"""Error taxonomy for the documentation engine.

Every error carries a short machine-readable ``reason`` plus an optional
free-form ``detail`` so the protocol layer can map failures without parsing
messages.
"""

from __future__ import annotations


class DocsEngineError(Exception):
    """Base error for the documentation engine."""

    default_reason = "docs_engine_error"

    def __init__(self, message: str, *, reason: str | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason or self.default_reason
        self.detail = detail


class InvalidQuery(DocsEngineError):
    """Raised for malformed or over-limit queries, before any corpus is read."""

    default_reason = "invalid_query"


class NotFound(DocsEngineError, LookupError):
    """Raised when a record id or library is unknown."""

    default_reason = "not_found"


class SchemaError(DocsEngineError):
    """Raised when a record conflicts with the store it is written to."""

    default_reason = "schema_conflict"


class BuildError(DocsEngineError):
    """Raised when a generation could not be built.

    The previously serving generation (if any) is left untouched.
    """

    default_reason = "build_failed"

    def __init__(
        self,
        message: str,
        *,
        library: str,
        reason: str | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, reason=reason, detail=detail)
        self.library = library
