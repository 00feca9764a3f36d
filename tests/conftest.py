from __future__ import annotations

from datetime import UTC, datetime

import pytest

from cloudpool.clock import FrozenClock

T0 = datetime(2026, 1, 1, 12, 50, tzinfo=UTC)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)
