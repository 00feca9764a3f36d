from __future__ import annotations

import pytest
from injector import Injector

from cloudpool.clock import Clock, FrozenClock
from cloudpool.config import CloudPoolConfig
from cloudpool.core.exceptions import ConfigurationError
from cloudpool.driver.base import CloudPoolDriver
from cloudpool.driver.memory import InMemoryDriver
from cloudpool.fetcher import CachingPoolFetcher, PoolFetcher
from cloudpool.module import CloudPoolModule
from cloudpool.updater import PoolUpdater

CONFIG = CloudPoolConfig(name="web", driver={"type": "memory"}, desired_size=2)


class TestCloudPoolModule:
    def test_wires_updater(self, clock: FrozenClock) -> None:
        driver = InMemoryDriver(clock)
        injector = Injector([CloudPoolModule(CONFIG, driver=driver, clock=clock)])

        updater = injector.get(PoolUpdater)
        assert updater.config is CONFIG
        assert injector.get(CloudPoolDriver) is driver
        assert injector.get(Clock) is clock
        assert isinstance(injector.get(PoolFetcher), CachingPoolFetcher)

        result = updater.resize()
        assert len(result.started) == 2
        assert driver.pool_name == "web"

    def test_singletons(self, clock: FrozenClock) -> None:
        injector = Injector([CloudPoolModule(CONFIG, clock=clock)])
        assert injector.get(PoolUpdater) is injector.get(PoolUpdater)
        assert injector.get(PoolFetcher) is injector.get(PoolFetcher)

    def test_default_driver_is_in_memory(self) -> None:
        injector = Injector([CloudPoolModule(CONFIG)])
        assert isinstance(injector.get(CloudPoolDriver), InMemoryDriver)

    def test_driver_rejects_config(self, clock: FrozenClock) -> None:
        config = CloudPoolConfig(name="web", driver={"type": "aws"})
        with pytest.raises(ConfigurationError):
            Injector([CloudPoolModule(config, clock=clock)])
