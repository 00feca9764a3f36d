from __future__ import annotations

import pytest

from cloudpool.clock import FrozenClock
from cloudpool.config import CloudPoolConfig, ScaleOutConfig
from cloudpool.core.exceptions import (
    CloudPoolDriverError,
    ConfigurationError,
    NotFoundError,
    StartMachinesError,
    TerminateMachinesError,
)
from cloudpool.driver import MEMBERSHIP_STATUS_TAG, CloudPoolDriver, InMemoryDriver
from cloudpool.types.machine import Machine, MachineState, MembershipStatus, ServiceState

CONFIG = CloudPoolConfig(name="web", driver={"type": "memory", "machine_size": "large"})
DEFAULT_LAUNCH = ScaleOutConfig()


@pytest.fixture
def driver(clock: FrozenClock) -> InMemoryDriver:
    driver = InMemoryDriver(clock)
    driver.configure(CONFIG)
    return driver


def _running(id: str) -> Machine:
    return Machine(id=id, machine_state=MachineState.RUNNING)


class TestConfigure:
    def test_satisfies_protocol(self, driver: InMemoryDriver) -> None:
        assert isinstance(driver, CloudPoolDriver)

    def test_pool_name(self, driver: InMemoryDriver) -> None:
        assert driver.pool_name == "web"

    def test_rejects_other_driver_types(self, clock: FrozenClock) -> None:
        with pytest.raises(ConfigurationError, match="'aws'"):
            InMemoryDriver(clock).configure(CloudPoolConfig(name="web", driver={"type": "aws"}))

    def test_unconfigured_driver_refuses_work(self, clock: FrozenClock) -> None:
        with pytest.raises(CloudPoolDriverError, match="not been configured"):
            InMemoryDriver(clock).list_machines()


class TestStartMachines:
    def test_started_machines_are_pending_members(
        self, driver: InMemoryDriver, clock: FrozenClock
    ) -> None:
        started = driver.start_machines(2, DEFAULT_LAUNCH)
        assert [m.id for m in started] == ["i-000001", "i-000002"]
        for machine in started:
            assert machine.machine_state is MachineState.PENDING
            assert machine.launch_time == clock.now()
            assert machine.machine_size == "large"
            assert machine.metadata is None
        assert [m.id for m in driver.list_machines()] == ["i-000001", "i-000002"]

    def test_launch_settings(self, driver: InMemoryDriver) -> None:
        scale_out = ScaleOutConfig(size="xlarge", image="img-42")
        (machine,) = driver.start_machines(1, scale_out)
        assert machine.machine_size == "xlarge"
        assert machine.metadata == {"image": "img-42"}
        assert driver.list_machines()[0].machine_size == "xlarge"

    def test_start_limit(self, driver: InMemoryDriver) -> None:
        driver.start_limit = 1
        with pytest.raises(StartMachinesError) as exc_info:
            driver.start_machines(3, DEFAULT_LAUNCH)
        assert exc_info.value.requested == 3
        assert [m.id for m in exc_info.value.started_machines] == ["i-000001"]
        assert len(driver.list_machines()) == 1


class TestTerminateMachines:
    def test_marks_terminated(self, driver: InMemoryDriver) -> None:
        driver.add_instance(_running("a"))
        driver.terminate_machines(["a"])
        assert driver.list_machines()[0].machine_state is MachineState.TERMINATED

    def test_partial_failure(self, driver: InMemoryDriver) -> None:
        driver.add_instance(_running("a"))
        driver.add_instance(_running("b"))
        driver.failing_terminations = {"b"}
        with pytest.raises(TerminateMachinesError) as exc_info:
            driver.terminate_machines(["a", "b", "ghost"])
        error = exc_info.value
        assert error.terminated_machines == ("a",)
        assert set(error.termination_errors) == {"b", "ghost"}
        assert isinstance(error.termination_errors["ghost"], NotFoundError)
        assert "only 1 out of 3 machine terminations" in str(error)


class TestMembership:
    def test_detach_and_attach(self, driver: InMemoryDriver) -> None:
        driver.add_instance(_running("a"))
        driver.detach_machine("a")
        assert driver.list_machines() == []
        assert [m.id for m in driver.instances()] == ["a"]
        driver.attach_machine("a")
        assert [m.id for m in driver.list_machines()] == ["a"]

    def test_attach_unknown(self, driver: InMemoryDriver) -> None:
        with pytest.raises(NotFoundError):
            driver.attach_machine("ghost")

    def test_detach_non_member(self, driver: InMemoryDriver) -> None:
        driver.add_instance(_running("a"), member=False)
        with pytest.raises(NotFoundError):
            driver.detach_machine("a")

    def test_membership_status_is_stored_as_tag(self, driver: InMemoryDriver) -> None:
        driver.add_instance(_running("a"))
        driver.set_membership_status("a", MembershipStatus.awaiting_service())
        assert driver.list_machines()[0].membership_status == MembershipStatus.awaiting_service()

    def test_seeded_status_survives(self, driver: InMemoryDriver) -> None:
        driver.add_instance(_running("a").with_membership_status(MembershipStatus.blessed()))
        assert driver.list_machines()[0].membership_status == MembershipStatus.blessed()

    def test_service_state(self, driver: InMemoryDriver) -> None:
        driver.add_instance(_running("a"))
        driver.set_service_state("a", ServiceState.IN_SERVICE)
        assert driver.list_machines()[0].service_state is ServiceState.IN_SERVICE

    def test_cloud_side_state_change(self, driver: InMemoryDriver) -> None:
        driver.add_instance(Machine(id="a", machine_state=MachineState.PENDING))
        driver.set_machine_state("a", MachineState.RUNNING)
        assert driver.list_machines()[0].machine_state is MachineState.RUNNING

    def test_tag_name(self) -> None:
        assert MEMBERSHIP_STATUS_TAG == "cloudpool:membership-status"


class TestListFailures:
    def test_fail_list_counts_down(self, driver: InMemoryDriver) -> None:
        driver.fail_list = 1
        with pytest.raises(CloudPoolDriverError):
            driver.list_machines()
        assert driver.list_machines() == []
