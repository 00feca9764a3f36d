"""Pool snapshot fetching.

Cloud APIs are eventually consistent and occasionally unavailable, so the
pool is read through two layers:

- RetryingPoolFetcher asks the driver for the pool members, retrying with
  exponential backoff.
- CachingPoolFetcher serves a recent snapshot and only goes back to the
  cloud once it is stale. A snapshot older than the reachability timeout is
  never served. With a cache file it also survives restarts: the last
  snapshot is written after each refresh and read back on construction.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cloudpool.clock import Clock, SystemClock
from cloudpool.config import PoolFetchConfig, RetriesConfig
from cloudpool.core.exceptions import CloudPoolDriverError, PoolUnreachableError
from cloudpool.driver.base import CloudPoolDriver
from cloudpool.observability.logger import logger
from cloudpool.types.pool import MachinePool

__all__ = ["PoolFetcher", "RetryingPoolFetcher", "CachingPoolFetcher"]

log = logger.bind(component="fetcher")


class PoolFetcher(Protocol):
    def get(self, *, force_refresh: bool = False) -> MachinePool: ...


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    log.warning(
        "failed to fetch pool (attempt {n}): {error}",
        n=state.attempt_number,
        error=error,
    )


class RetryingPoolFetcher:
    def __init__(
        self,
        driver: CloudPoolDriver,
        retries: RetriesConfig | None = None,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._driver = driver
        self._retries = retries or RetriesConfig()
        self._clock = clock or SystemClock()
        self._sleep = sleep

    def get(self, *, force_refresh: bool = False) -> MachinePool:
        retrying = Retrying(
            stop=stop_after_attempt(self._retries.max_attempts),
            wait=wait_exponential(
                multiplier=self._retries.initial_backoff,
                max=self._retries.max_backoff,
            ),
            retry=retry_if_exception_type(CloudPoolDriverError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            machines = retrying(self._driver.list_machines)
        except CloudPoolDriverError as e:
            raise PoolUnreachableError(
                f"failed to fetch pool after {self._retries.max_attempts} attempt(s): {e}"
            ) from e
        return MachinePool.of(machines, self._clock.now())


class CachingPoolFetcher:
    def __init__(
        self,
        delegate: PoolFetcher,
        config: PoolFetchConfig | None = None,
        clock: Clock | None = None,
        *,
        cache_file: Path | None = None,
    ) -> None:
        self._delegate = delegate
        self._config = config or PoolFetchConfig()
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._cache_file = cache_file
        self._cached: MachinePool | None = self._load()

    def _load(self) -> MachinePool | None:
        path = self._cache_file
        if path is None or not path.is_file():
            return None
        try:
            pool = MachinePool.from_json(path.read_text())
        except (OSError, KeyError, ValueError) as e:
            log.warning("ignoring unreadable pool cache {path}: {error}", path=path, error=e)
            return None
        log.debug("loaded pool snapshot from {path}", path=path)
        return pool

    def _save(self, pool: MachinePool) -> None:
        path = self._cache_file
        if path is None:
            return
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(pool.to_json())
            tmp.replace(path)
        except (OSError, TypeError, ValueError) as e:
            log.warning("failed to write pool cache {path}: {error}", path=path, error=e)

    def _age(self, pool: MachinePool) -> float:
        return (self._clock.now() - pool.timestamp).total_seconds()

    def get(self, *, force_refresh: bool = False) -> MachinePool:
        with self._lock:
            cached = self._cached
            if cached is not None and not force_refresh:
                if self._age(cached) < self._config.refresh_interval:
                    return cached
            try:
                pool = self._delegate.get(force_refresh=force_refresh)
            except PoolUnreachableError as e:
                return self._fallback(cached, force_refresh, e)
            self._cached = pool
            self._save(pool)
            return pool

    def _fallback(
        self, cached: MachinePool | None, force_refresh: bool, error: PoolUnreachableError,
    ) -> MachinePool:
        if force_refresh or cached is None:
            raise error
        age = self._age(cached)
        if age >= self._config.reachability_timeout:
            raise PoolUnreachableError(
                f"pool unreachable and cached snapshot is {age:.0f}s old "
                f"(limit: {self._config.reachability_timeout:.0f}s)"
            ) from error
        log.warning("pool unreachable, serving snapshot from {age:.0f}s ago", age=age)
        return cached
