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

__all__ = [
    "CloudPoolError",
    "ConfigurationError",
    "NotFoundError",
    "NotEvictableError",
    "PoolUnreachableError",
    "CloudPoolDriverError",
    "StartMachinesError",
    "TerminateMachinesError",
]
