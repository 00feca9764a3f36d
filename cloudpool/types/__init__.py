"""Pool data model: machines, pool snapshots and membership policy."""

from cloudpool.types.machine import (
    ALLOCATED_STATES,
    STARTED_STATES,
    Machine,
    MachineState,
    MembershipStatus,
    ServiceState,
)
from cloudpool.types.pool import MachinePool, PoolSizeSummary

__all__ = [
    "Machine",
    "MachineState",
    "ServiceState",
    "MembershipStatus",
    "MachinePool",
    "PoolSizeSummary",
    "ALLOCATED_STATES",
    "STARTED_STATES",
]
