"""In-process driver.

Keeps a fake cloud in memory. Useful for local experiments and for
exercising the pool updater without touching a real cloud. Membership
status and service state are stored as instance tags, the way a real
driver would persist them.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from cloudpool.clock import Clock, SystemClock
from cloudpool.core.exceptions import (
    CloudPoolDriverError,
    ConfigurationError,
    NotFoundError,
    StartMachinesError,
    TerminateMachinesError,
)
from cloudpool.driver.base import MEMBERSHIP_STATUS_TAG, SERVICE_STATE_TAG
from cloudpool.observability.logger import logger
from cloudpool.types.machine import Machine, MachineState, MembershipStatus, ServiceState

if TYPE_CHECKING:
    from cloudpool.config import CloudPoolConfig, ScaleOutConfig

__all__ = ["InMemoryDriver"]

log = logger.bind(component="driver", driver="memory")


@dataclass
class _Instance:
    machine: Machine
    member: bool = True
    tags: dict[str, str] = field(default_factory=dict)


class InMemoryDriver:
    """A thread-safe fake cloud.

    Failure injection:
        fail_list: When set, ``list_machines`` raises this many times before
            succeeding.
        start_limit: When set, ``start_machines`` starts at most this many
            machines and then fails.
        failing_terminations: Ids whose termination fails.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        machine_size: str = "small",
        region: str = "local",
    ) -> None:
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._instances: dict[str, _Instance] = {}
        self._ids = itertools.count(1)
        self._config: CloudPoolConfig | None = None
        self._machine_size = machine_size
        self._region = region
        self.fail_list = 0
        self.start_limit: int | None = None
        self.failing_terminations: set[str] = set()

    @property
    def pool_name(self) -> str:
        self._ensure_configured()
        assert self._config is not None
        return self._config.name

    def configure(self, config: CloudPoolConfig) -> None:
        driver_type = config.driver.get("type", "memory")
        if driver_type != "memory":
            raise ConfigurationError(
                f"driver type '{driver_type}' cannot be handled by the in-memory driver"
            )
        with self._lock:
            self._config = config
            self._machine_size = config.driver.get("machine_size", self._machine_size)
            self._region = config.driver.get("region", self._region)
        log.info("configured for pool {name}", name=config.name)

    def add_instance(self, machine: Machine, *, member: bool = True) -> None:
        """Seed the fake cloud with an existing instance."""
        tags = {
            MEMBERSHIP_STATUS_TAG: machine.membership_status.to_json(),
            SERVICE_STATE_TAG: str(machine.service_state),
        }
        with self._lock:
            self._instances[machine.id] = _Instance(machine=machine, member=member, tags=tags)

    def set_machine_state(self, machine_id: str, state: MachineState) -> None:
        """Simulate a cloud-side state change."""
        with self._lock:
            instance = self._get(machine_id, members_only=False)
            instance.machine = replace(instance.machine, machine_state=state)

    def list_machines(self) -> list[Machine]:
        self._ensure_configured()
        with self._lock:
            if self.fail_list > 0:
                self.fail_list -= 1
                raise CloudPoolDriverError("cloud API unavailable")
            return [self._to_machine(i) for i in self._instances.values() if i.member]

    def start_machines(self, count: int, scale_out: ScaleOutConfig) -> list[Machine]:
        self._ensure_configured()
        started: list[Machine] = []
        with self._lock:
            for _ in range(count):
                if self.start_limit is not None and len(started) >= self.start_limit:
                    raise StartMachinesError(
                        count, started, CloudPoolDriverError("capacity exhausted"),
                    )
                now = self._clock.now()
                machine = Machine(
                    id=f"i-{next(self._ids):06d}",
                    machine_state=MachineState.PENDING,
                    cloud_provider="memory",
                    region=self._region,
                    machine_size=scale_out.size or self._machine_size,
                    request_time=now,
                    launch_time=now,
                    metadata={"image": scale_out.image} if scale_out.image else None,
                )
                self._instances[machine.id] = _Instance(
                    machine=machine,
                    tags={
                        MEMBERSHIP_STATUS_TAG: MembershipStatus.default().to_json(),
                        SERVICE_STATE_TAG: str(ServiceState.UNKNOWN),
                    },
                )
                started.append(machine)
        log.debug("started {n} machine(s): {ids}", n=len(started), ids=[m.id for m in started])
        return started

    def terminate_machines(self, machine_ids: Sequence[str]) -> None:
        self._ensure_configured()
        terminated: list[str] = []
        errors: dict[str, Exception] = {}
        with self._lock:
            for machine_id in machine_ids:
                try:
                    instance = self._get(machine_id)
                    if machine_id in self.failing_terminations:
                        raise CloudPoolDriverError(f"refused to terminate {machine_id}")
                except (NotFoundError, CloudPoolDriverError) as e:
                    errors[machine_id] = e
                    continue
                instance.machine = replace(instance.machine, machine_state=MachineState.TERMINATED)
                terminated.append(machine_id)
        if errors:
            raise TerminateMachinesError(terminated, errors)

    def attach_machine(self, machine_id: str) -> None:
        self._ensure_configured()
        with self._lock:
            self._get(machine_id, members_only=False).member = True

    def detach_machine(self, machine_id: str) -> None:
        self._ensure_configured()
        with self._lock:
            self._get(machine_id).member = False

    def set_service_state(self, machine_id: str, state: ServiceState) -> None:
        self._ensure_configured()
        with self._lock:
            self._get(machine_id).tags[SERVICE_STATE_TAG] = str(state)

    def set_membership_status(self, machine_id: str, status: MembershipStatus) -> None:
        self._ensure_configured()
        with self._lock:
            self._get(machine_id).tags[MEMBERSHIP_STATUS_TAG] = status.to_json()

    def instances(self) -> Iterable[Machine]:
        """All instances known to the fake cloud, members or not."""
        with self._lock:
            return [self._to_machine(i) for i in self._instances.values()]

    def _get(self, machine_id: str, *, members_only: bool = True) -> _Instance:
        instance = self._instances.get(machine_id)
        if instance is None or (members_only and not instance.member):
            raise NotFoundError(machine_id)
        return instance

    def _to_machine(self, instance: _Instance) -> Machine:
        status = instance.tags.get(MEMBERSHIP_STATUS_TAG)
        return replace(
            instance.machine,
            membership_status=(
                MembershipStatus.from_json(status) if status else MembershipStatus.default()
            ),
            service_state=ServiceState(instance.tags.get(SERVICE_STATE_TAG, ServiceState.UNKNOWN)),
        )

    def _ensure_configured(self) -> None:
        if self._config is None:
            raise CloudPoolDriverError("driver has not been configured")
