from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class NotificationTarget:
    screen: str
    params: Mapping[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        if self.params is None:
            return {"screen": self.screen}
        return {"screen": self.screen, "params": dict(self.params)}
