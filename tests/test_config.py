from pathlib import Path

import pytest

from cloudpool.config import (
    CloudPoolConfig,
    PoolFetchConfig,
    RetriesConfig,
    ScaleOutConfig,
    _deep_merge,
    load_config,
    resolve_pool_config,
)
from cloudpool.core.exceptions import ConfigurationError
from cloudpool.victim import VictimSelectionPolicy


class TestDeepMerge:
    def test_shallow_override(self):
        base = {"a": 1, "b": 2}
        override = {"b": 3}
        assert _deep_merge(base, override) == {"a": 1, "b": 3}

    def test_nested_merge(self):
        base = {"pools": {"web": {"driver": {"type": "memory", "region": "local"}}}}
        override = {"pools": {"web": {"driver": {"region": "remote"}}}}
        result = _deep_merge(base, override)
        assert result == {"pools": {"web": {"driver": {"type": "memory", "region": "remote"}}}}

    def test_override_adds_new_keys(self):
        base = {"pools": {"a": {"desired_size": 1}}}
        override = {"pools": {"b": {"desired_size": 2}}}
        result = _deep_merge(base, override)
        assert result == {"pools": {"a": {"desired_size": 1}, "b": {"desired_size": 2}}}

    def test_does_not_mutate_inputs(self):
        base = {"pools": {"a": {"desired_size": 1}}}
        _deep_merge(base, {"pools": {"a": {"desired_size": 2}}})
        assert base == {"pools": {"a": {"desired_size": 1}}}

    def test_empty_base(self):
        assert _deep_merge({}, {"a": 1}) == {"a": 1}

    def test_empty_override(self):
        assert _deep_merge({"a": 1}, {}) == {"a": 1}


class TestLoadConfig:
    def test_project_only(self, tmp_path: Path):
        (tmp_path / "cloudpool.toml").write_text("[pools.web]\ndesired_size = 1\n")
        result = load_config(project_dir=tmp_path, global_path=tmp_path / "nonexistent.toml")
        assert result["pools"]["web"]["desired_size"] == 1

    def test_global_only(self, tmp_path: Path):
        global_toml = tmp_path / "defaults.toml"
        global_toml.write_text('[pools.web.scale_in]\nvictim_selection_policy = "NEWEST"\n')
        result = load_config(project_dir=tmp_path / "noproject", global_path=global_toml)
        assert result["pools"]["web"]["scale_in"]["victim_selection_policy"] == "NEWEST"

    def test_merge_project_overrides_global(self, tmp_path: Path):
        global_toml = tmp_path / "defaults.toml"
        global_toml.write_text("[pools.web]\ndesired_size = 2\n[pools.web.pool_update]\nupdate_interval = 10\n")
        project_dir = tmp_path / "project"
        project_dir.mkdir()
        (project_dir / "cloudpool.toml").write_text("[pools.web]\ndesired_size = 8\n")
        result = load_config(project_dir=project_dir, global_path=global_toml)
        assert result["pools"]["web"]["desired_size"] == 8
        assert result["pools"]["web"]["pool_update"]["update_interval"] == 10

    def test_no_files_returns_empty_pools(self, tmp_path: Path):
        result = load_config(project_dir=tmp_path / "nope", global_path=tmp_path / "nope.toml")
        assert result == {"pools": {}}

    def test_malformed_toml(self, tmp_path: Path):
        (tmp_path / "cloudpool.toml").write_text("[pools.web\n")
        with pytest.raises(ConfigurationError, match="failed to parse"):
            load_config(project_dir=tmp_path, global_path=tmp_path / "nope.toml")


class TestResolvePoolConfig:
    def test_full_pool(self, tmp_path: Path):
        (tmp_path / "cloudpool.toml").write_text(
            "[pools.web]\n"
            "desired_size = 3\n"
            "\n"
            "[pools.web.driver]\n"
            'type = "memory"\n'
            'region = "local"\n'
            "\n"
            "[pools.web.scale_in]\n"
            'victim_selection_policy = "newest"\n'
            "\n"
            "[pools.web.pool_fetch]\n"
            "refresh_interval = 15\n"
            "retries = { max_attempts = 5, initial_backoff = 0.5 }\n"
            "\n"
            "[pools.web.pool_update]\n"
            "update_interval = 20\n"
        )
        config = resolve_pool_config("web", project_dir=tmp_path, global_path=tmp_path / "nope.toml")
        assert config.name == "web"
        assert config.desired_size == 3
        assert config.driver == {"type": "memory", "region": "local"}
        assert config.victim_selection_policy is VictimSelectionPolicy.NEWEST
        assert config.pool_fetch.refresh_interval == 15
        assert config.pool_fetch.retries.max_attempts == 5
        assert config.pool_fetch.retries.initial_backoff == 0.5
        assert config.pool_update.update_interval == 20

    def test_defaults(self, tmp_path: Path):
        (tmp_path / "cloudpool.toml").write_text("[pools.web]\n")
        config = resolve_pool_config("web", project_dir=tmp_path, global_path=tmp_path / "nope.toml")
        assert config.desired_size is None
        assert config.victim_selection_policy is VictimSelectionPolicy.OLDEST
        assert config.pool_fetch == PoolFetchConfig()
        assert config.pool_update.update_interval == 60
        assert config.scale_out == ScaleOutConfig()

    def test_pool_not_found(self, tmp_path: Path):
        (tmp_path / "cloudpool.toml").write_text("[pools.web]\n")
        with pytest.raises(ConfigurationError, match="Pool 'api' not found. Available: web"):
            resolve_pool_config("api", project_dir=tmp_path, global_path=tmp_path / "nope.toml")

    def test_unknown_policy(self, tmp_path: Path):
        (tmp_path / "cloudpool.toml").write_text(
            '[pools.web.scale_in]\nvictim_selection_policy = "RANDOM"\n'
        )
        with pytest.raises(ConfigurationError, match="unknown victim selection policy"):
            resolve_pool_config("web", project_dir=tmp_path, global_path=tmp_path / "nope.toml")

    def test_unknown_key(self, tmp_path: Path):
        (tmp_path / "cloudpool.toml").write_text("[pools.web]\nsize = 3\n")
        with pytest.raises(ConfigurationError, match="invalid configuration for pool 'web'"):
            resolve_pool_config("web", project_dir=tmp_path, global_path=tmp_path / "nope.toml")


class TestCloudPoolConfig:
    def test_negative_desired_size(self):
        with pytest.raises(ConfigurationError):
            CloudPoolConfig.parse({"name": "web", "desired_size": -1})

    def test_empty_name(self):
        with pytest.raises(ConfigurationError):
            CloudPoolConfig.parse({"name": ""})

    def test_backoff_range(self):
        with pytest.raises(ValueError, match="max_backoff"):
            RetriesConfig(initial_backoff=10, max_backoff=1)

    @pytest.mark.parametrize("interval", [0, -5])
    def test_non_positive_intervals(self, interval: float):
        with pytest.raises(ConfigurationError):
            CloudPoolConfig.parse({"name": "web", "pool_update": {"update_interval": interval}})

    def test_frozen(self):
        config = CloudPoolConfig(name="web")
        with pytest.raises(ValueError):
            config.name = "api"  # type: ignore[misc]


class TestScaleOutConfig:
    def test_from_toml(self, tmp_path: Path):
        (tmp_path / "cloudpool.toml").write_text(
            "[pools.web.scale_out]\n"
            'size = "m5.large"\n'
            'image = "ami-0123456789"\n'
            'key_pair = "ops"\n'
            'security_groups = ["web", "ssh"]\n'
            'encoded_user_data = "IyEvYmluL3NoCg=="\n'
            "\n"
            "[pools.web.scale_out.extensions]\n"
            "ebs_optimized = true\n"
        )
        config = resolve_pool_config("web", project_dir=tmp_path, global_path=tmp_path / "nope.toml")
        scale_out = config.scale_out
        assert scale_out.size == "m5.large"
        assert scale_out.image == "ami-0123456789"
        assert scale_out.key_pair == "ops"
        assert scale_out.security_groups == ("web", "ssh")
        assert scale_out.encoded_user_data == "IyEvYmluL3NoCg=="
        assert scale_out.extensions == {"ebs_optimized": True}

    def test_defaults(self):
        scale_out = CloudPoolConfig(name="web").scale_out
        assert scale_out.size is None
        assert scale_out.image is None
        assert scale_out.security_groups == ()
        assert scale_out.extensions == {}

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="invalid configuration for pool 'web'"):
            CloudPoolConfig.parse({"name": "web", "scale_out": {"instance_type": "m5.large"}})
