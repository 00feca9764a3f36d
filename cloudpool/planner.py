"""Resize planning.

A ResizePlanner turns a pool snapshot and a desired size into a ResizePlan.
The *active size* of the pool is the number of allocated machines with an
active membership status; that is the figure compared against the desired
size.

Machines are handled according to their membership status:

- disposable (inactive, evictable) machines are always terminated so that
  they get replaced,
- awaiting-service (inactive, not evictable) machines are left alone,
- blessed (active, not evictable) machines count as capacity but are never
  picked as victims.

When shrinking, REQUESTED machines go first (nothing has been launched for
them yet), then PENDING/RUNNING machines in the order given by the victim
selection policy. Running out of evictable candidates is not an error: the
plan simply terminates fewer machines and a later reconciliation round picks
up where this one left off.

The planner is a pure function of its inputs. It never mutates the pool and
returns equal plans for equal inputs.
"""

from __future__ import annotations

from cloudpool.observability.logger import logger
from cloudpool.plan import ResizePlan
from cloudpool.types.machine import Machine, MachineState
from cloudpool.types.pool import MachinePool
from cloudpool.victim import VictimSelectionPolicy

log = logger.bind(component="planner")

__all__ = ["ResizePlanner"]


class ResizePlanner:
    def __init__(self, pool: MachinePool, policy: VictimSelectionPolicy) -> None:
        if pool is None:
            raise ValueError("missing machine pool")
        if policy is None:
            raise ValueError("missing victim selection policy")
        self._pool = pool
        self._policy = policy

    @property
    def pool(self) -> MachinePool:
        return self._pool

    @property
    def policy(self) -> VictimSelectionPolicy:
        return self._policy

    @property
    def active_size(self) -> int:
        return len(self._pool.active_machines)

    def get_active_size(self) -> int:
        return self.active_size

    def calculate_resize_plan(self, desired_size: int) -> ResizePlan:
        """Calculate how to resize the pool to ``desired_size`` active machines.

        Raises:
            ValueError: If ``desired_size`` is negative.
        """
        if desired_size < 0:
            raise ValueError("desired pool size must be >= 0")

        active = self.active_size
        log.debug(
            "desired pool size: {desired} (allocated: {allocated}, active: {active})",
            desired=desired_size,
            allocated=len(self._pool.allocated_machines),
            active=active,
        )

        to_terminate = self._disposable_machines()
        if to_terminate:
            log.info(
                "scheduling disposable machine(s) for replacement: {ids}",
                ids=[m.id for m in to_terminate],
            )

        to_request = 0
        if desired_size > active:
            to_request = desired_size - active
        elif desired_size < active:
            to_terminate.extend(self._select_victims(active - desired_size))
        else:
            log.debug("desired size {n} equals active size, nothing to do", n=desired_size)

        plan = ResizePlan(to_request, to_terminate)
        log.debug("suggested resize plan: {plan}", plan=plan)
        return plan

    def _disposable_machines(self) -> list[Machine]:
        return [
            m for m in self._pool.allocated_machines
            if m.membership_status.is_disposable
        ]

    def _termination_candidates(self) -> list[Machine]:
        """Evictable machines that are still counted as active capacity."""
        return [m for m in self._pool.active_machines if m.is_evictable]

    def _select_victims(self, excess: int) -> list[Machine]:
        candidates = self._termination_candidates()
        log.debug(
            "need {excess} victim(s), {n} evictable candidate(s)",
            excess=excess,
            n=len(candidates),
        )
        if len(candidates) < excess:
            log.warning(
                "only {n} of {excess} excess machine(s) can be evicted; "
                "the rest are protected by their membership status",
                n=len(candidates),
                excess=excess,
            )

        requested = [m for m in candidates if m.machine_state == MachineState.REQUESTED]
        launched = [m for m in candidates if m.machine_state != MachineState.REQUESTED]
        ordered = self._policy.sort(requested) + self._policy.sort(launched)
        return ordered[:excess]
