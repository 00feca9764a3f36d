from __future__ import annotations

import pytest

from cloudpool.plan import ResizePlan
from cloudpool.types.machine import Machine, MachineState


def _machine(id: str) -> Machine:
    return Machine(id=id, machine_state=MachineState.RUNNING, metadata={"big": "blob"})


class TestResizePlan:
    def test_empty_plan_has_no_changes(self) -> None:
        plan = ResizePlan()
        assert plan.no_changes()
        assert not plan.has_scale_out_actions()
        assert not plan.has_scale_in_actions()
        assert plan.to_terminate == ()

    def test_scale_out(self) -> None:
        plan = ResizePlan(to_request=2)
        assert plan.has_scale_out_actions()
        assert not plan.no_changes()

    def test_scale_in(self) -> None:
        plan = ResizePlan(0, [_machine("a"), _machine("b")])
        assert plan.has_scale_in_actions()
        assert plan.termination_ids == ["a", "b"]
        assert isinstance(plan.to_terminate, tuple)

    def test_negative_request(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            ResizePlan(to_request=-1)

    def test_none_terminations_become_empty(self) -> None:
        assert ResizePlan(1, None).to_terminate == ()

    def test_equality(self) -> None:
        assert ResizePlan(1, [_machine("a")]) == ResizePlan(1, (_machine("a"),))
        assert ResizePlan(1) != ResizePlan(2)

    def test_to_dict_omits_metadata(self) -> None:
        data = ResizePlan(0, [_machine("a")]).to_dict()
        assert data["toRequest"] == 0
        assert data["toTerminate"][0]["id"] == "a"
        assert data["toTerminate"][0]["metadata"] is None

    def test_str(self) -> None:
        assert str(ResizePlan(0, [_machine("a")])) == "ResizePlan(to_request=0, to_terminate=['a'])"
