"""
Stable Billable Identifiers

Assigns small integers to identity keys so that report rows keep their
numbers from one run to the next.

================================================================================
ALLOCATION
================================================================================

- A key that already has an id keeps it. Existing mappings are never
  renumbered, only removed explicitly (remove / retain / clear_all).
- A new key gets the smallest unused integer in 1..bound, where
      bound = max(total_target_count, highest id assigned so far)
  so ids freed by removed keys are reused before the range grows.
- No free integer in range -> AllocationOverflowError(bound).

Ids are displayed zero-padded to the digit count of the total item count
(never narrower than the largest assigned id): 7 of 120 items -> "007".

================================================================================
PERSISTENCE
================================================================================

The state is stored as a YAML mapping:

    map:
      PIPE|STPG370|WELD|150: 1
      ELBOW|90 LR|WELD|150|90: 2
    maxId: 2
    nextId: 3

A missing file loads as an empty state.
================================================================================
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


class AllocationOverflowError(RuntimeError):
    """No free identifier is left in 1..bound."""

    def __init__(self, bound: int, key: str = ""):
        self.bound = bound
        self.key = key
        super().__init__(f"No free identifier in 1..{bound} for key '{key}'")


# =============================================================================
# STATE
# =============================================================================


@dataclass
class IdentifierState:
    """
    Persisted key -> id mapping.

    Attributes:
        map: Identity key -> assigned id
        max_id: Highest id assigned so far
        next_id: Smallest id not currently in use
    """
    map: dict[str, int] = field(default_factory=dict)
    max_id: int = 0
    next_id: int = 1

    def __post_init__(self):
        # Keys/values may come back from YAML as ints or strings
        self.map = {str(k): int(v) for k, v in (self.map or {}).items()}
        for key, value in self.map.items():
            if value < 1:
                raise ValueError(f"Identifier for '{key}' must be positive, got {value}")
        self.max_id = max([int(self.max_id), *self.map.values()])
        self.next_id = max(1, int(self.next_id))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> IdentifierState:
        """Build from the persisted {map, maxId, nextId} mapping."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"Identifier state must be a mapping, got {type(data).__name__}")
        return cls(
            map=data.get("map") or {},
            max_id=data.get("maxId", 0) or 0,
            next_id=data.get("nextId", 1) or 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "map": dict(sorted(self.map.items(), key=lambda kv: kv[1])),
            "maxId": self.max_id,
            "nextId": self.next_id,
        }


class IdentifierStore:
    """Load and save IdentifierState as YAML."""

    @staticmethod
    def load(path: str | Path) -> IdentifierState:
        path = Path(path)
        if not path.exists():
            return IdentifierState()
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Malformed identifier store {path}: {e}") from e
        return IdentifierState.from_dict(data)

    @staticmethod
    def save(path: str | Path, state: IdentifierState) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(state.to_dict(), f, default_flow_style=False, sort_keys=False, allow_unicode=True)


# =============================================================================
# ALLOCATOR
# =============================================================================


class IdentifierAllocator:
    """
    Allocate stable ids for identity keys.

    Usage:
        allocator = IdentifierAllocator(IdentifierStore.load("ids.yaml"))
        allocator.total_target_count = len(keys)
        for key in keys:
            label = allocator.format_id(allocator.get_or_create_id(key))
        IdentifierStore.save("ids.yaml", allocator.state)
    """

    def __init__(
        self,
        state: IdentifierState | None = None,
        total_target_count: int = 0,
        logger: logging.Logger | None = None,
    ):
        self.state = state if state is not None else IdentifierState()
        self.total_target_count = total_target_count
        self.log = logger or logging.getLogger(__name__)
        self._used: set[int] = set(self.state.map.values())
        self._floor = 1
        self._refresh_next_id()

    @property
    def bound(self) -> int:
        return max(self.total_target_count, self.state.max_id)

    def __contains__(self, key: str) -> bool:
        return key in self.state.map

    def __len__(self) -> int:
        return len(self.state.map)

    def get(self, key: str) -> int | None:
        return self.state.map.get(key)

    def _smallest_free(self) -> int:
        candidate = self._floor
        while candidate in self._used:
            candidate += 1
        self._floor = candidate
        return candidate

    def _refresh_next_id(self) -> None:
        self.state.next_id = self._smallest_free()

    def get_or_create_id(self, key: str) -> int:
        """
        Id for key, assigning the smallest free one if the key is new.

        Raises:
            AllocationOverflowError: If every id in 1..bound is taken
        """
        existing = self.state.map.get(key)
        if existing is not None:
            return existing

        candidate = self._smallest_free()
        bound = self.bound
        if candidate > bound:
            raise AllocationOverflowError(bound, key)

        self.state.map[key] = candidate
        self._used.add(candidate)
        self.state.max_id = max(self.state.max_id, candidate)
        self._refresh_next_id()
        self.log.debug("Assigned id %d to %s", candidate, key)
        return candidate

    def format_id(self, value: int) -> str:
        """Zero-pad value to the digit count of the total item count."""
        width = len(str(max(self.total_target_count, self.state.max_id, value, 1)))
        return str(value).zfill(width)

    def remove(self, key: str) -> int | None:
        """Forget key; its id becomes free for reuse. Returns the freed id."""
        value = self.state.map.pop(key, None)
        if value is not None:
            self._used.discard(value)
            self._floor = min(self._floor, value)
            self._refresh_next_id()
        return value

    def retain(self, keys: Iterable[str]) -> list[str]:
        """Remove every key not in keys. Returns the removed keys."""
        keep = set(keys)
        removed = [k for k in self.state.map if k not in keep]
        for key in removed:
            self.remove(key)
        return removed

    def clear_all(self) -> None:
        """Drop every mapping and start numbering from 1 again."""
        self.state.map.clear()
        self.state.max_id = 0
        self._used.clear()
        self._floor = 1
        self._refresh_next_id()
