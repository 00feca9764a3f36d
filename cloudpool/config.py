"""TOML-based pool configuration.

Loads ~/.cloudpool/defaults.toml (global) and cloudpool.toml (project),
merges them, and validates a named ``[pools.<name>]`` table into a
CloudPoolConfig.

Example cloudpool.toml::

    [pools.web]
    desired_size = 3

    [pools.web.driver]
    type = "memory"

    [pools.web.scale_out]
    size = "m5.large"
    image = "ami-0123456789"
    security_groups = ["web"]

    [pools.web.scale_in]
    victim_selection_policy = "NEWEST"

    [pools.web.pool_fetch]
    refresh_interval = 15
    retries = { max_attempts = 5, initial_backoff = 0.5 }
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from cloudpool.core.exceptions import ConfigurationError
from cloudpool.victim import VictimSelectionPolicy, normalize_victim_policy

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".cloudpool" / "defaults.toml"
PROJECT_CONFIG_NAME = "cloudpool.toml"

__all__ = [
    "RetriesConfig",
    "PoolFetchConfig",
    "PoolUpdateConfig",
    "ScaleInConfig",
    "ScaleOutConfig",
    "CloudPoolConfig",
    "load_config",
    "resolve_pool_config",
]


class RetriesConfig(BaseModel):
    """Exponential backoff settings for fetching the pool from the cloud."""

    max_attempts: int = Field(default=3, ge=1, description="Attempts, including the first")
    initial_backoff: float = Field(default=1.0, gt=0, description="First delay in seconds")
    max_backoff: float = Field(default=30.0, gt=0, description="Delay cap in seconds")

    model_config = {"extra": "forbid", "frozen": True}

    @model_validator(mode="after")
    def validate_backoff_range(self) -> Self:
        if self.max_backoff < self.initial_backoff:
            raise ValueError("max_backoff must be >= initial_backoff")
        return self


class PoolFetchConfig(BaseModel):
    retries: RetriesConfig = Field(default_factory=RetriesConfig)
    refresh_interval: float = Field(
        default=30.0, gt=0, description="Seconds between cached pool refreshes",
    )
    reachability_timeout: float = Field(
        default=300.0, gt=0,
        description="Age in seconds after which a cached pool is no longer served",
    )
    cache_file: Path | None = Field(
        default=None, description="File the last pool snapshot is persisted to across restarts",
    )

    model_config = {"extra": "forbid", "frozen": True}


class PoolUpdateConfig(BaseModel):
    update_interval: float = Field(
        default=60.0, gt=0, description="Seconds between periodic pool resizes",
    )

    model_config = {"extra": "forbid", "frozen": True}


class ScaleOutConfig(BaseModel):
    """How new machines are launched.

    Drivers decide which fields they require; ``extensions`` carries
    cloud-specific settings the common fields do not cover.
    """

    size: str | None = Field(default=None, description="Machine size, e.g. an instance type")
    image: str | None = Field(default=None, description="Image to boot from")
    key_pair: str | None = None
    security_groups: tuple[str, ...] = ()
    encoded_user_data: str | None = Field(
        default=None, description="Base64-encoded boot script",
    )
    extensions: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "forbid", "frozen": True}


class ScaleInConfig(BaseModel):
    victim_selection_policy: VictimSelectionPolicy = VictimSelectionPolicy.OLDEST

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("victim_selection_policy", mode="before")
    @classmethod
    def parse_policy(cls, value: Any) -> VictimSelectionPolicy:
        return normalize_victim_policy(value)


class CloudPoolConfig(BaseModel):
    """Configuration of one managed pool.

    ``driver`` is handed to the driver's ``configure`` untouched; its layout
    is up to the driver.
    """

    name: str = Field(min_length=1, description="Logical pool name")
    driver: dict[str, Any] = Field(default_factory=dict, description="Driver settings")
    desired_size: int | None = Field(
        default=None, ge=0, description="Initial desired size; derived from the pool if unset",
    )
    scale_out: ScaleOutConfig = Field(default_factory=ScaleOutConfig)
    scale_in: ScaleInConfig = Field(default_factory=ScaleInConfig)
    pool_fetch: PoolFetchConfig = Field(default_factory=PoolFetchConfig)
    pool_update: PoolUpdateConfig = Field(default_factory=PoolUpdateConfig)

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def victim_selection_policy(self) -> VictimSelectionPolicy:
        return self.scale_in.victim_selection_policy

    @classmethod
    def parse(cls, raw: RawConfig) -> CloudPoolConfig:
        """Validate a raw mapping, raising ConfigurationError on failure."""
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            name = raw.get("name", "<unnamed>") if isinstance(raw, dict) else "<unnamed>"
            raise ConfigurationError(f"invalid configuration for pool '{name}': {e}") from e


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"failed to parse {path}: {e}") from e


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("pools", {})
    return merged


def resolve_pool_config(
    name: str,
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> CloudPoolConfig:
    config = load_config(project_dir=project_dir, global_path=global_path)

    pools = config["pools"]
    if name not in pools:
        raise ConfigurationError(
            f"Pool '{name}' not found. Available: {', '.join(pools) or 'none'}"
        )

    raw_pool = dict(pools[name])
    raw_pool.setdefault("name", name)
    return CloudPoolConfig.parse(raw_pool)
