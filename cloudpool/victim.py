"""Victim selection policies.

A policy decides in which order evictable machines are terminated when the
pool shrinks.

Example:
    # String shorthand, as found in configuration files
    policy = normalize_victim_policy("newest")

    # Order candidates, first victim first
    victims = policy.sort(candidates)[:excess]
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import StrEnum

from cloudpool.types.machine import Machine

type VictimPolicyLike = VictimSelectionPolicy | str | None

__all__ = ["VictimSelectionPolicy", "VictimPolicyLike", "normalize_victim_policy"]


def _oldest_first(machine: Machine) -> tuple[bool, float]:
    if machine.launch_time is None:
        return (True, 0.0)
    return (False, machine.launch_time.timestamp())


def _newest_first(machine: Machine) -> tuple[bool, float]:
    if machine.launch_time is None:
        return (True, 0.0)
    return (False, -machine.launch_time.timestamp())


class VictimSelectionPolicy(StrEnum):
    """Termination order over machines.

    - OLDEST: earliest ``launch_time`` first.
    - NEWEST: latest ``launch_time`` first.

    Machines without a ``launch_time`` go after launched ones under either
    policy. Sorting is stable, so ties keep snapshot order.
    """

    OLDEST = "OLDEST"
    NEWEST = "NEWEST"

    @property
    def key(self) -> Callable[[Machine], tuple[bool, float]]:
        match self:
            case VictimSelectionPolicy.OLDEST:
                return _oldest_first
            case VictimSelectionPolicy.NEWEST:
                return _newest_first

    def sort(self, machines: Iterable[Machine]) -> list[Machine]:
        return sorted(machines, key=self.key)


def normalize_victim_policy(config: VictimPolicyLike) -> VictimSelectionPolicy:
    """Normalize a configured policy to a VictimSelectionPolicy.

    Args:
        config: A policy, a case-insensitive policy name, or None for the
            default (OLDEST).

    Raises:
        ValueError: If the name does not match a policy.
    """
    match config:
        case None:
            return VictimSelectionPolicy.OLDEST
        case VictimSelectionPolicy():
            return config
        case str() as name:
            try:
                return VictimSelectionPolicy(name.strip().upper())
            except ValueError:
                valid = ", ".join(p.value for p in VictimSelectionPolicy)
                raise ValueError(
                    f"unknown victim selection policy '{name}'. Valid: {valid}"
                ) from None
        case _:
            raise ValueError(f"unsupported victim selection policy: {config!r}")
