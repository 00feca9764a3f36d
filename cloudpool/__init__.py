"""cloudpool - keep a pool of cloud machines at its desired size.

Example:

    from cloudpool import (
        CloudPoolModule, InMemoryDriver, PoolUpdater, resolve_pool_config,
    )
    from injector import Injector

    config = resolve_pool_config("web")
    injector = Injector([CloudPoolModule(config, driver=InMemoryDriver())])

    updater = injector.get(PoolUpdater)
    updater.set_desired_size(4)
    result = updater.resize()
"""

# Time
from cloudpool.clock import Clock, FrozenClock, SystemClock

# Configuration
from cloudpool.config import (
    CloudPoolConfig,
    PoolFetchConfig,
    PoolUpdateConfig,
    RetriesConfig,
    ScaleInConfig,
    ScaleOutConfig,
    load_config,
    resolve_pool_config,
)

# Errors
from cloudpool.core.exceptions import (
    CloudPoolDriverError,
    CloudPoolError,
    ConfigurationError,
    NotEvictableError,
    NotFoundError,
    PoolUnreachableError,
    StartMachinesError,
    TerminateMachinesError,
)

# Drivers
from cloudpool.driver import CloudPoolDriver, InMemoryDriver

# Fetching
from cloudpool.fetcher import CachingPoolFetcher, PoolFetcher, RetryingPoolFetcher

# Logging
from cloudpool.logging import LogConfig, setup_logging, teardown_logging

# Dependency injection
from cloudpool.module import CloudPoolModule

# Planning
from cloudpool.plan import ResizePlan
from cloudpool.planner import ResizePlanner

# Data model
from cloudpool.types import (
    Machine,
    MachinePool,
    MachineState,
    MembershipStatus,
    PoolSizeSummary,
    ServiceState,
)

# Pool updates
from cloudpool.updater import PoolUpdater, ResizeResult
from cloudpool.victim import VictimSelectionPolicy, normalize_victim_policy

__version__ = "0.1.0"

__all__ = [
    # Time
    "Clock",
    "SystemClock",
    "FrozenClock",
    # Configuration
    "CloudPoolConfig",
    "RetriesConfig",
    "PoolFetchConfig",
    "PoolUpdateConfig",
    "ScaleInConfig",
    "ScaleOutConfig",
    "load_config",
    "resolve_pool_config",
    # Errors
    "CloudPoolError",
    "ConfigurationError",
    "NotFoundError",
    "NotEvictableError",
    "PoolUnreachableError",
    "CloudPoolDriverError",
    "StartMachinesError",
    "TerminateMachinesError",
    # Drivers
    "CloudPoolDriver",
    "InMemoryDriver",
    # Fetching
    "PoolFetcher",
    "RetryingPoolFetcher",
    "CachingPoolFetcher",
    # Logging
    "LogConfig",
    "setup_logging",
    "teardown_logging",
    # DI
    "CloudPoolModule",
    # Planning
    "ResizePlan",
    "ResizePlanner",
    "VictimSelectionPolicy",
    "normalize_victim_policy",
    # Data model
    "Machine",
    "MachineState",
    "ServiceState",
    "MembershipStatus",
    "MachinePool",
    "PoolSizeSummary",
    # Pool updates
    "PoolUpdater",
    "ResizeResult",
]
