from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True, slots=True)
class BookingSnapshot:
    """Last known state of one booking, as a flat mapping of named fields."""

    booking_id: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def status(self) -> str | None:
        return self.fields.get("status")

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def merge(self, updates: Mapping[str, Any]) -> BookingSnapshot:
        """Shallow merge: names in ``updates`` win, everything else is kept."""
        return BookingSnapshot(self.booking_id, {**self.fields, **updates})
