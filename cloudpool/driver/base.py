"""Cloud pool driver protocol.

A driver hides everything cloud-specific from the pool updater: how pool
members are identified, how machines are started and terminated and how
membership status and service state are recorded (typically as tags).

Drivers must be configured before use and must be safe to call from
several threads.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cloudpool.config import CloudPoolConfig, ScaleOutConfig
    from cloudpool.types.machine import Machine, MembershipStatus, ServiceState

__all__ = ["CloudPoolDriver", "MEMBERSHIP_STATUS_TAG", "SERVICE_STATE_TAG"]

MEMBERSHIP_STATUS_TAG = "cloudpool:membership-status"
SERVICE_STATE_TAG = "cloudpool:service-state"


@runtime_checkable
class CloudPoolDriver(Protocol):
    @property
    def pool_name(self) -> str:
        """Logical name of the managed pool."""
        ...

    def configure(self, config: CloudPoolConfig) -> None:
        """Apply a pool configuration.

        Raises:
            ConfigurationError: If the driver section is invalid.
        """
        ...

    def list_machines(self) -> list[Machine]:
        """Return all pool members, in any machine state.

        Raises:
            CloudPoolDriverError: If the cloud could not be queried.
        """
        ...

    def start_machines(self, count: int, scale_out: ScaleOutConfig) -> list[Machine]:
        """Request ``count`` new machines launched as ``scale_out`` describes.

        Drivers for clouds that fulfil requests asynchronously may return
        REQUESTED placeholders.

        Raises:
            StartMachinesError: If the request failed part-way; carries the
                machines started before the failure.
        """
        ...

    def terminate_machines(self, machine_ids: Sequence[str]) -> None:
        """Terminate the given pool members.

        Raises:
            TerminateMachinesError: If any termination failed; carries the
                ids that were terminated and the error for each failure.
        """
        ...

    def attach_machine(self, machine_id: str) -> None:
        """Adopt an already running machine into the pool.

        Raises:
            NotFoundError: If the machine does not exist.
        """
        ...

    def detach_machine(self, machine_id: str) -> None:
        """Remove a member from the pool without terminating it.

        Raises:
            NotFoundError: If the machine is not a pool member.
        """
        ...

    def set_service_state(self, machine_id: str, state: ServiceState) -> None: ...

    def set_membership_status(self, machine_id: str, status: MembershipStatus) -> None: ...
