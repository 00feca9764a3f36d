"""Custom exception hierarchy for cloudpool.

All cloudpool-specific exceptions inherit from CloudPoolError, enabling
callers to catch every pool failure with a single except clause. Malformed
arguments to the planner and value types raise plain ValueError.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cloudpool.types.machine import Machine


class CloudPoolError(Exception):
    """Base exception for all cloudpool errors."""


class ConfigurationError(CloudPoolError, ValueError):
    """Raised for invalid configuration or missing required settings."""


class NotFoundError(CloudPoolError):
    """Raised when a machine is not a member of the pool."""

    def __init__(self, machine_id: str) -> None:
        self.machine_id = machine_id
        super().__init__(f"machine {machine_id} is not a pool member")


class NotEvictableError(CloudPoolError):
    """Raised when a protected machine is asked to leave the pool."""

    def __init__(self, machine_id: str) -> None:
        self.machine_id = machine_id
        super().__init__(
            f"machine {machine_id} cannot be evicted: prevented by its membership status"
        )


class PoolUnreachableError(CloudPoolError):
    """Raised when no usable pool snapshot can be obtained."""


class CloudPoolDriverError(CloudPoolError):
    """Raised by drivers when a cloud operation fails."""


class StartMachinesError(CloudPoolDriverError):
    """Raised when a start request fails part-way.

    Carries the machines that were started before the failure so that the
    caller can account for them.
    """

    def __init__(
        self,
        requested: int,
        started_machines: Sequence[Machine],
        cause: Exception,
    ) -> None:
        self.requested = requested
        self.started_machines = tuple(started_machines)
        self.cause = cause
        super().__init__(
            f"failed to start {requested - len(self.started_machines)} of "
            f"{requested} requested machine(s): {cause}"
        )


class TerminateMachinesError(CloudPoolDriverError):
    """Raised when some (or all) machines in a batch could not be terminated."""

    def __init__(
        self,
        terminated_machines: Sequence[str],
        termination_errors: Mapping[str, Exception],
    ) -> None:
        self.terminated_machines = tuple(terminated_machines)
        self.termination_errors = dict(termination_errors)
        total = len(self.terminated_machines) + len(self.termination_errors)
        causes = "".join(
            f"\n  {machine_id}: {error}" for machine_id, error in self.termination_errors.items()
        )
        super().__init__(
            f"only {len(self.terminated_machines)} out of {total} machine terminations "
            f"completed successfully: unable to terminate "
            f"{len(self.termination_errors)} machine(s):{causes}"
        )

    @property
    def termination_error_messages(self) -> dict[str, str]:
        return {machine_id: str(error) for machine_id, error in self.termination_errors.items()}
