"""Machine snapshot types.

A Machine is an immutable record of one pool member as observed by a
driver at a certain point in time. Fresh state means a fresh snapshot;
nothing here is ever updated in place.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from cloudpool.clock import utc

__all__ = [
    "MachineState",
    "ServiceState",
    "MembershipStatus",
    "Machine",
    "ALLOCATED_STATES",
    "STARTED_STATES",
]


class MachineState(StrEnum):
    """Execution state of a machine, as reported by the cloud."""

    REQUESTED = "REQUESTED"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    TERMINATING = "TERMINATING"
    TERMINATED = "TERMINATED"
    REJECTED = "REJECTED"


class ServiceState(StrEnum):
    """Operational state of the service on a machine.

    Purely informational (load balancers and the like may read it). It has
    no bearing on pool sizing.
    """

    UNKNOWN = "UNKNOWN"
    BOOTING = "BOOTING"
    IN_SERVICE = "IN_SERVICE"
    UNHEALTHY = "UNHEALTHY"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


ALLOCATED_STATES: frozenset[MachineState] = frozenset(
    {MachineState.REQUESTED, MachineState.PENDING, MachineState.RUNNING}
)
STARTED_STATES: frozenset[MachineState] = frozenset(
    {MachineState.PENDING, MachineState.RUNNING}
)


@dataclass(frozen=True, slots=True)
class MembershipStatus:
    """Pool membership policy for a machine.

    Attributes:
        active: Whether the machine counts towards the pool's active size.
            Inactive machines are either awaiting service or due for
            replacement.
        evictable: Whether the machine may be chosen for termination.
    """

    active: bool = True
    evictable: bool = True

    @classmethod
    def default(cls) -> MembershipStatus:
        return cls(active=True, evictable=True)

    @classmethod
    def blessed(cls) -> MembershipStatus:
        """Active and protected from termination."""
        return cls(active=True, evictable=False)

    @classmethod
    def awaiting_service(cls) -> MembershipStatus:
        """Out of the active set but kept running for an operator to look at."""
        return cls(active=False, evictable=False)

    @classmethod
    def disposable(cls) -> MembershipStatus:
        """Out of the active set and due for termination and replacement."""
        return cls(active=False, evictable=True)

    @property
    def is_disposable(self) -> bool:
        return not self.active and self.evictable

    def to_dict(self) -> dict[str, bool]:
        return {"active": self.active, "evictable": self.evictable}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MembershipStatus:
        try:
            active, evictable = data["active"], data["evictable"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"invalid membership status: {data!r}") from e
        if not isinstance(active, bool) or not isinstance(evictable, bool):
            raise ValueError(f"membership status flags must be booleans: {data!r}")
        return cls(active=active, evictable=evictable)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> MembershipStatus:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"membership status is not valid JSON: {raw!r}") from e
        return cls.from_dict(data)


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_time(value: str | None) -> datetime | None:
    return utc(value) if value is not None else None


@dataclass(frozen=True, slots=True)
class Machine:
    """A pool member.

    ``launch_time`` is absent for machines that have not been launched yet
    (typically REQUESTED placeholders for outstanding requests).
    ``metadata`` is opaque, driver-specific and JSON-compatible.
    """

    id: str
    machine_state: MachineState
    membership_status: MembershipStatus = field(default_factory=MembershipStatus.default)
    service_state: ServiceState = ServiceState.UNKNOWN
    cloud_provider: str | None = None
    region: str | None = None
    machine_size: str | None = None
    request_time: datetime | None = None
    launch_time: datetime | None = None
    public_ips: tuple[str, ...] = ()
    private_ips: tuple[str, ...] = ()
    metadata: Any = field(default=None, hash=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("machine: no id given")
        if self.machine_state is None:
            raise ValueError(f"machine {self.id}: no machine_state given")
        if self.membership_status is None:
            raise ValueError(f"machine {self.id}: no membership_status given")
        # Accept plain strings/lists from drivers and normalize them.
        object.__setattr__(self, "machine_state", MachineState(self.machine_state))
        object.__setattr__(self, "service_state", ServiceState(self.service_state))
        object.__setattr__(self, "public_ips", tuple(self.public_ips))
        object.__setattr__(self, "private_ips", tuple(self.private_ips))

    @property
    def is_allocated(self) -> bool:
        return self.machine_state in ALLOCATED_STATES

    @property
    def is_started(self) -> bool:
        return self.machine_state in STARTED_STATES

    @property
    def is_active_member(self) -> bool:
        """Allocated and marked active: counts towards the pool's active size."""
        return self.is_allocated and self.membership_status.active

    @property
    def is_evictable(self) -> bool:
        return self.membership_status.evictable

    def request_age(self, now: datetime) -> float | None:
        """Seconds since the machine was requested, if known."""
        if self.request_time is None:
            return None
        return (now - self.request_time).total_seconds()

    def with_metadata(self, metadata: Any) -> Machine:
        return replace(self, metadata=metadata)

    def with_membership_status(self, status: MembershipStatus) -> Machine:
        return replace(self, membership_status=status)

    def short(self) -> Machine:
        """Copy without metadata, for logging."""
        return replace(self, metadata=None)

    def __str__(self) -> str:
        launched = _format_time(self.launch_time) or "-"
        status = self.membership_status
        return (
            f"{self.id}({self.machine_state}, launched={launched}, "
            f"active={status.active}, evictable={status.evictable})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "machineState": str(self.machine_state),
            "membershipStatus": self.membership_status.to_dict(),
            "serviceState": str(self.service_state),
            "cloudProvider": self.cloud_provider,
            "region": self.region,
            "machineSize": self.machine_size,
            "requestTime": _format_time(self.request_time),
            "launchTime": _format_time(self.launch_time),
            "publicIps": list(self.public_ips),
            "privateIps": list(self.private_ips),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Machine:
        if "id" not in data:
            raise ValueError("machine missing id")
        if "machineState" not in data:
            raise ValueError(f"machine {data['id']} missing machineState")
        status = data.get("membershipStatus")
        return cls(
            id=data["id"],
            machine_state=MachineState(data["machineState"]),
            membership_status=(
                MembershipStatus.from_dict(status) if status is not None
                else MembershipStatus.default()
            ),
            service_state=ServiceState(data.get("serviceState", ServiceState.UNKNOWN)),
            cloud_provider=data.get("cloudProvider"),
            region=data.get("region"),
            machine_size=data.get("machineSize"),
            request_time=_parse_time(data.get("requestTime")),
            launch_time=_parse_time(data.get("launchTime")),
            public_ips=tuple(data.get("publicIps") or ()),
            private_ips=tuple(data.get("privateIps") or ()),
            metadata=data.get("metadata"),
        )
