"""Pool updater: drives a pool towards its desired size.

Each resize takes a fresh pool snapshot, asks a ResizePlanner for a plan and
executes it through the driver: new machines are requested first, then the
victims are terminated in plan order. Driver failures are logged and
reported in the ResizeResult rather than aborting the round; the next round
plans again from whatever state the cloud ends up in.

Pool updates are serialized with one lock. Changes to the desired size use
a second lock, so that a manual termination can tell whether somebody else
changed the desired size while it was in flight.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from cloudpool.clock import Clock, SystemClock
from cloudpool.config import CloudPoolConfig
from cloudpool.core.exceptions import (
    CloudPoolError,
    NotEvictableError,
    NotFoundError,
    PoolUnreachableError,
    StartMachinesError,
    TerminateMachinesError,
)
from cloudpool.driver.base import CloudPoolDriver
from cloudpool.fetcher import PoolFetcher
from cloudpool.observability.logger import logger
from cloudpool.plan import ResizePlan
from cloudpool.planner import ResizePlanner
from cloudpool.types.machine import Machine, MembershipStatus, ServiceState
from cloudpool.types.pool import MachinePool, PoolSizeSummary

__all__ = ["PoolUpdater", "ResizeResult"]


@dataclass(frozen=True, slots=True)
class ResizeResult:
    """What came of executing a ResizePlan.

    Attributes:
        plan: The executed plan.
        started: Machines that were started.
        terminated: Ids of machines that were terminated.
        start_error: Set if fewer machines than requested were started.
        termination_errors: Error per machine id that could not be terminated.
    """

    plan: ResizePlan
    started: tuple[Machine, ...] = ()
    terminated: tuple[str, ...] = ()
    start_error: Exception | None = None
    termination_errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.start_error is None and not self.termination_errors


class PoolUpdater:
    def __init__(
        self,
        driver: CloudPoolDriver,
        fetcher: PoolFetcher,
        config: CloudPoolConfig,
        clock: Clock | None = None,
    ) -> None:
        self._driver = driver
        self._fetcher = fetcher
        self._config = config
        self._clock = clock or SystemClock()
        self._desired_size: int | None = config.desired_size
        self._desired_lock = threading.RLock()
        self._update_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._log = logger.bind(component="updater", pool=config.name)

    @property
    def config(self) -> CloudPoolConfig:
        return self._config

    # -- desired size ---------------------------------------------------------

    def set_desired_size(self, desired_size: int) -> None:
        if desired_size < 0:
            raise ValueError("negative desired pool size")
        with self._desired_lock:
            self._log.info("set desired size to {n}", n=desired_size)
            self._desired_size = desired_size

    @property
    def desired_size(self) -> int:
        """The desired size, derived from the pool's active size if never set.

        Raises:
            PoolUnreachableError: If it had to be derived and the pool could
                not be fetched.
        """
        with self._desired_lock:
            if self._desired_size is None:
                self._log.debug("determining initial desired size ...")
                self._init_desired_size(self._fetcher.get())
            assert self._desired_size is not None
            return self._desired_size

    def _init_desired_size(self, pool: MachinePool) -> None:
        if self._desired_size is not None:
            return
        # inactive machines are to be replaced, they are not part of the desired size
        active = len(pool.active_machines)
        self._desired_size = active
        self._log.info(
            "initial desired size set to {active} (allocated: {allocated})",
            active=active,
            allocated=len(pool.allocated_machines),
        )

    # -- resizing -------------------------------------------------------------

    def resize(self) -> ResizeResult:
        """Run one reconciliation round.

        Raises:
            PoolUnreachableError: If no fresh pool snapshot could be fetched.
        """
        with self._update_lock:
            pool = self._fetcher.get(force_refresh=True)
            with self._desired_lock:
                self._init_desired_size(pool)
                target = self._desired_size
            assert target is not None
            return self._update(pool, target)

    def _update(self, pool: MachinePool, target: int) -> ResizeResult:
        self._log.info("updating pool size to desired size {n}", n=target)
        self._log.debug("current pool members: {members}", members=[str(m) for m in pool])

        planner = ResizePlanner(pool, self._config.victim_selection_policy)
        plan = planner.calculate_resize_plan(target)
        if plan.no_changes():
            self._log.info("pool is already properly sized ({n})", n=planner.active_size)
            return ResizeResult(plan=plan)

        started: tuple[Machine, ...] = ()
        start_error: Exception | None = None
        if plan.has_scale_out_actions():
            started, start_error = self._scale_out(plan.to_request)

        terminated: tuple[str, ...] = ()
        termination_errors: dict[str, Exception] = {}
        if plan.has_scale_in_actions():
            terminated, termination_errors = self._terminate(plan.termination_ids)

        return ResizeResult(
            plan=plan,
            started=started,
            terminated=terminated,
            start_error=start_error,
            termination_errors=termination_errors,
        )

    def _scale_out(self, count: int) -> tuple[tuple[Machine, ...], Exception | None]:
        self._log.info("placing {n} new machine request(s)", n=count)
        try:
            started = tuple(self._driver.start_machines(count, self._config.scale_out))
        except StartMachinesError as e:
            self._log.error(
                "only {ok} of {n} machine(s) started: {cause}",
                ok=len(e.started_machines),
                n=count,
                cause=e.cause,
            )
            return e.started_machines, e
        except CloudPoolError as e:
            self._log.error("failed to start {n} machine(s): {error}", n=count, error=e)
            return (), e
        except Exception as e:
            self._log.exception("unexpected error starting {n} machine(s): {error}", n=count, error=e)
            return (), e
        self._log.info(
            "{n} machine(s) were requested from cloud pool: {ids}",
            n=len(started),
            ids=[m.id for m in started],
        )
        return started, None

    def _terminate(self, victim_ids: list[str]) -> tuple[tuple[str, ...], dict[str, Exception]]:
        self._log.info("terminating {n} machine(s): {ids}", n=len(victim_ids), ids=victim_ids)
        try:
            self._driver.terminate_machines(victim_ids)
        except TerminateMachinesError as e:
            self._log.error(
                "{failed} out of {n} machine terminations failed: {errors}",
                failed=len(e.termination_errors),
                n=len(victim_ids),
                errors=e.termination_error_messages,
            )
            return e.terminated_machines, e.termination_errors
        except CloudPoolError as e:
            self._log.error("failed to terminate machines {ids}: {error}", ids=victim_ids, error=e)
            return (), {machine_id: e for machine_id in victim_ids}
        except Exception as e:
            self._log.exception(
                "unexpected error terminating machines {ids}: {error}", ids=victim_ids, error=e,
            )
            return (), {machine_id: e for machine_id in victim_ids}
        return tuple(victim_ids), {}

    # -- manual membership changes --------------------------------------------

    def _ensure_pool(self) -> MachinePool:
        try:
            return self._fetcher.get()
        except PoolUnreachableError as e:
            raise PoolUnreachableError(
                f"cannot complete operation: cloud pool is unreachable: {e}"
            ) from e

    def _ensure_member(self, pool: MachinePool, machine_id: str) -> Machine:
        machine = next((m for m in pool.allocated_machines if m.id == machine_id), None)
        if machine is None:
            raise NotFoundError(machine_id)
        return machine

    def _ensure_evictable(self, machine: Machine) -> None:
        if not machine.is_evictable:
            raise NotEvictableError(machine.id)

    def _decrement_unless_changed(self, before: int) -> None:
        with self._desired_lock:
            after = self.desired_size
            if after != before:
                self._log.debug(
                    "desired size changed during operation (was: {before}, is: {after}), "
                    "skipping decrement",
                    before=before,
                    after=after,
                )
                return
            self.set_desired_size(max(before - 1, 0))

    def terminate_machine(self, machine_id: str, *, decrement_desired_size: bool = False) -> None:
        """Terminate one pool member, optionally shrinking the desired size.

        Raises:
            NotFoundError: If the machine is not an allocated pool member.
            NotEvictableError: If its membership status protects it.
        """
        pool = self._ensure_pool()
        machine = self._ensure_member(pool, machine_id)
        self._ensure_evictable(machine)
        with self._update_lock:
            before = self.desired_size
            self._log.info("terminating {id}", id=machine_id)
            self._driver.terminate_machines([machine_id])
            if decrement_desired_size:
                self._decrement_unless_changed(before)

    def detach_machine(self, machine_id: str, *, decrement_desired_size: bool = False) -> None:
        """Remove a member from the pool but leave it running.

        Raises:
            NotFoundError: If the machine is not an allocated pool member.
            NotEvictableError: If its membership status protects it.
        """
        pool = self._ensure_pool()
        machine = self._ensure_member(pool, machine_id)
        self._ensure_evictable(machine)
        with self._update_lock:
            before = self.desired_size
            self._log.info("detaching {id} from pool", id=machine_id)
            self._driver.detach_machine(machine_id)
            if decrement_desired_size:
                self._decrement_unless_changed(before)

    def attach_machine(self, machine_id: str) -> None:
        """Adopt a running machine; the desired size grows by one."""
        self._ensure_pool()
        with self._update_lock:
            self._log.info("attaching {id} to pool", id=machine_id)
            self._driver.attach_machine(machine_id)
            with self._desired_lock:
                self.set_desired_size(self.desired_size + 1)

    def set_service_state(self, machine_id: str, state: ServiceState) -> None:
        self._log.info("service state {state} assigned to {id}", state=state, id=machine_id)
        self._driver.set_service_state(machine_id, state)

    def set_membership_status(self, machine_id: str, status: MembershipStatus) -> None:
        self._log.info(
            "membership status (active={active}, evictable={evictable}) assigned to {id}",
            active=status.active,
            evictable=status.evictable,
            id=machine_id,
        )
        self._driver.set_membership_status(machine_id, status)

    def pool_size(self) -> PoolSizeSummary:
        pool = self._ensure_pool()
        return PoolSizeSummary.of(pool, self.desired_size, self._clock.now())

    # -- periodic updates -----------------------------------------------------

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name=f"pool-update-{self._config.name}",
            daemon=True,
        )
        self._thread.start()
        self._log.debug(
            "started periodic pool updates every {s}s",
            s=self._config.pool_update.update_interval,
        )

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.wait(self._config.pool_update.update_interval):
            self.run_once()

    def run_once(self) -> ResizeResult | None:
        """One periodic tick; failures are logged and left to the next tick."""
        try:
            return self.resize()
        except CloudPoolError as e:
            self._log.warning("failed to resize machine pool: {error}", error=e)
            return None
        except Exception as e:
            self._log.exception("unexpected error while resizing machine pool: {error}", error=e)
            return None
