"""Search data models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Posting:
    """A token occurrence in one record with its TF-IDF weight."""

    record_id: str
    weight: float

    @property
    def sort_key(self) -> tuple[float, str]:
        """Descending weight, then ascending id."""
        return (-self.weight, self.record_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"record_id": self.record_id, "weight": self.weight}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Posting:
        """Create from dictionary."""
        return cls(record_id=data["record_id"], weight=float(data.get("weight", 0.0)))
