"""DI module for a managed pool.

Wires one pool's configuration and driver into the fetcher chain and the
pool updater:

- CloudPoolConfig, CloudPoolDriver and Clock (bound per pool)
- PoolFetcher: a CachingPoolFetcher over a RetryingPoolFetcher (singleton)
- PoolUpdater (singleton)
"""

from __future__ import annotations

from injector import Binder, InstanceProvider, Module, provider, singleton

from .clock import Clock, SystemClock
from .config import CloudPoolConfig
from .driver.base import CloudPoolDriver
from .driver.memory import InMemoryDriver
from .fetcher import CachingPoolFetcher, PoolFetcher, RetryingPoolFetcher
from .updater import PoolUpdater


class CloudPoolModule(Module):
    """Module binding a pool's configuration and driver.

    The driver is configured with the pool configuration when the module
    is installed.

    Usage:
        injector = Injector([CloudPoolModule(config, driver=InMemoryDriver())])
        updater = injector.get(PoolUpdater)
    """

    def __init__(
        self,
        config: CloudPoolConfig,
        driver: CloudPoolDriver | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._clock = clock or SystemClock()
        self._driver = driver or InMemoryDriver(self._clock)

    def configure(self, binder: Binder) -> None:
        """Configure bindings for pool-specific dependencies."""
        self._driver.configure(self._config)
        binder.bind(CloudPoolConfig, to=self._config)
        binder.bind(CloudPoolDriver, to=InstanceProvider(self._driver))
        binder.bind(Clock, to=InstanceProvider(self._clock))

    @singleton
    @provider
    def provide_fetcher(
        self,
        driver: CloudPoolDriver,
        config: CloudPoolConfig,
        clock: Clock,
    ) -> PoolFetcher:
        retrying = RetryingPoolFetcher(driver, config.pool_fetch.retries, clock)
        return CachingPoolFetcher(
            retrying, config.pool_fetch, clock, cache_file=config.pool_fetch.cache_file,
        )

    @singleton
    @provider
    def provide_updater(
        self,
        driver: CloudPoolDriver,
        fetcher: PoolFetcher,
        config: CloudPoolConfig,
        clock: Clock,
    ) -> PoolUpdater:
        return PoolUpdater(driver, fetcher, config, clock)


__all__ = ["CloudPoolModule"]
