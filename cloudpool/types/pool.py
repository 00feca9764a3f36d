"""Pool snapshot types."""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from cloudpool.clock import utc
from cloudpool.types.machine import Machine

__all__ = ["MachinePool", "PoolSizeSummary"]


@dataclass(frozen=True, slots=True)
class MachinePool:
    """The members of a pool as observed at ``timestamp``.

    Machines may be in any state, including terminal ones. Machine ids are
    unique within a snapshot.
    """

    machines: tuple[Machine, ...]
    timestamp: datetime

    def __post_init__(self) -> None:
        if self.machines is None:
            raise ValueError("machines cannot be None")
        if self.timestamp is None:
            raise ValueError("timestamp cannot be None")
        machines = tuple(self.machines)
        duplicates = [mid for mid, n in Counter(m.id for m in machines).items() if n > 1]
        if duplicates:
            raise ValueError(f"duplicate machine id(s) in pool: {', '.join(sorted(duplicates))}")
        object.__setattr__(self, "machines", machines)

    @classmethod
    def of(cls, machines: Iterable[Machine], timestamp: datetime) -> MachinePool:
        return cls(machines=tuple(machines), timestamp=timestamp)

    @classmethod
    def empty(cls, timestamp: datetime) -> MachinePool:
        return cls(machines=(), timestamp=timestamp)

    def __iter__(self) -> Iterator[Machine]:
        return iter(self.machines)

    def __len__(self) -> int:
        return len(self.machines)

    def get(self, machine_id: str) -> Machine | None:
        return next((m for m in self.machines if m.id == machine_id), None)

    @property
    def active_machines(self) -> list[Machine]:
        return [m for m in self.machines if m.is_active_member]

    @property
    def allocated_machines(self) -> list[Machine]:
        return [m for m in self.machines if m.is_allocated]

    @property
    def started_machines(self) -> list[Machine]:
        return [m for m in self.machines if m.is_started]

    def __str__(self) -> str:
        members = ", ".join(str(m) for m in self.machines)
        return f"MachinePool(timestamp={self.timestamp.isoformat()}, machines=[{members}])"

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "machines": [m.to_dict() for m in self.machines],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MachinePool:
        if data.get("timestamp") is None:
            raise ValueError("machine pool missing timestamp")
        if data.get("machines") is None:
            raise ValueError("machine pool missing machines")
        return cls(
            machines=tuple(Machine.from_dict(m) for m in data["machines"]),
            timestamp=utc(data["timestamp"]),
        )

    @classmethod
    def from_json(cls, raw: str) -> MachinePool:
        return cls.from_dict(json.loads(raw))


@dataclass(frozen=True, slots=True)
class PoolSizeSummary:
    """Desired size versus what the pool currently holds."""

    timestamp: datetime
    desired_size: int
    allocated: int
    active: int

    def __post_init__(self) -> None:
        if self.desired_size < 0:
            raise ValueError("desired_size must be >= 0")
        if self.allocated < 0:
            raise ValueError("allocated must be >= 0")
        if self.active < 0:
            raise ValueError("active must be >= 0")
        if self.active > self.allocated:
            raise ValueError("active cannot be greater than allocated")

    @classmethod
    def of(cls, pool: MachinePool, desired_size: int, timestamp: datetime) -> PoolSizeSummary:
        return cls(
            timestamp=timestamp,
            desired_size=desired_size,
            allocated=len(pool.allocated_machines),
            active=len(pool.active_machines),
        )
