"""Service layer for dependency injection and better testability."""

from .cache_service import CorpusCacheController


__all__ = [
    "CorpusCacheController",
]
