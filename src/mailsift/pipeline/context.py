"""Per-item context threaded through the stage graph.

An ItemContext is never mutated. Stages return a delta, and `merge` produces
a new context with a bumped version. Keys are never removed.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import date, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel


def to_jsonable(value: Any) -> Any:
    """Convert context values into plain JSON types."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if hasattr(value, "to_dict"):
        return to_jsonable(value.to_dict())
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    return value


@dataclass(frozen=True)
class ItemContext:
    """Immutable key/value record for one input item.

    Attributes:
        data: Values accumulated so far.
        version: Number of merges applied since the context was created.
    """

    data: Mapping[str, Any] = field(default_factory=dict)
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def merge(self, delta: Mapping[str, Any]) -> ItemContext:
        """Return a new context with `delta` applied (later write wins)."""
        return ItemContext(data={**self.data, **delta}, version=self.version + 1)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def has(self, key: str) -> bool:
        """Check if a key is defined. None counts as undefined, empty lists do not."""
        return self.data.get(key) is not None

    def missing(self, keys: tuple[str, ...] | list[str]) -> list[str]:
        """List the keys that are not defined, in the order given."""
        return [key for key in keys if not self.has(key)]

    def require(self, key: str) -> Any:
        """Get a defined value.

        Raises:
            KeyError: If the key is not defined.
        """
        if not self.has(key):
            raise KeyError(key)
        return self.data[key]

    def keys(self) -> list[str]:
        return list(self.data)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __contains__(self, key: object) -> bool:
        return key in self.data

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {key: to_jsonable(value) for key, value in self.data.items()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ItemContext:
        return cls(data=data)
