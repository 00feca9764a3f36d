"""Resize plans: what a pool must do to reach its desired size."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from cloudpool.types.machine import Machine

__all__ = ["ResizePlan"]


@dataclass(frozen=True, slots=True, init=False)
class ResizePlan:
    """Outcome of a ResizePlanner calculation.

    Attributes:
        to_request: Number of additional machines to request.
        to_terminate: Machines to terminate, first victim first.
    """

    to_request: int = 0
    to_terminate: tuple[Machine, ...] = ()

    def __init__(self, to_request: int = 0, to_terminate: Iterable[Machine] | None = None) -> None:
        if to_request < 0:
            raise ValueError("negative number of additional machines to request")
        object.__setattr__(self, "to_request", to_request)
        object.__setattr__(self, "to_terminate", tuple(to_terminate or ()))

    def has_scale_out_actions(self) -> bool:
        return self.to_request > 0

    def has_scale_in_actions(self) -> bool:
        return len(self.to_terminate) > 0

    def no_changes(self) -> bool:
        return not self.has_scale_out_actions() and not self.has_scale_in_actions()

    @property
    def termination_ids(self) -> list[str]:
        return [m.id for m in self.to_terminate]

    def to_dict(self) -> dict[str, Any]:
        return {
            "toRequest": self.to_request,
            "toTerminate": [m.short().to_dict() for m in self.to_terminate],
        }

    def __str__(self) -> str:
        return f"ResizePlan(to_request={self.to_request}, to_terminate={self.termination_ids})"
