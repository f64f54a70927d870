"""Tests for configuration module."""

import json
import os
from unittest.mock import patch

import pytest

from helmsman.domain.exceptions import ConfigurationConflict
from helmsman.infrastructure.config import (
    ClusterConfig,
    FailoverConfig,
    HelmsmanConfig,
    PrometheusConfig,
    ThresholdsConfig,
    TrafficConfig,
    load_config,
)


class TestDefaultConfig:
    def test_defaults(self):
        config = load_config(path="/nonexistent/helmsman.json")
        assert config.log_level == "WARNING"
        assert config.prometheus.url == "http://prometheus.monitoring.svc.cluster.local:9090"
        assert config.thresholds.error_rate_pct == 0.5
        assert config.traffic.subsets == ("blue", "green")
        assert config.traffic.settle_delay_seconds == 10.0
        assert config.failover.scale_factor == 1.5
        assert config.failover.region_pools == {}
        assert config.cloudflare.api_url == "https://api.cloudflare.com/client/v4"

    def test_all_sections_present(self):
        config = load_config(path="/nonexistent/helmsman.json")
        assert isinstance(config, HelmsmanConfig)
        assert isinstance(config.prometheus, PrometheusConfig)
        assert isinstance(config.thresholds, ThresholdsConfig)
        assert isinstance(config.cluster, ClusterConfig)
        assert isinstance(config.traffic, TrafficConfig)
        assert isinstance(config.failover, FailoverConfig)


class TestFileConfig:
    def test_load_from_file(self, tmp_path):
        config_file = tmp_path / "helmsman.json"
        config_file.write_text(json.dumps({
            "log_level": "DEBUG",
            "prometheus": {"url": "http://localhost:9090"},
            "thresholds": {"latency_p95_ms": 250, "error_rate_pct": 1.0},
            "traffic": {"subsets": ["stable", "canary"], "baseline_version": "stable"},
            "failover": {"region_pools": {"singapore": "sg-pool", "jakarta": "jk-pool"}},
            "cluster": {"region_contexts": {"singapore": "gke-sg"}},
        }))

        config = load_config(path=str(config_file))
        assert config.log_level == "DEBUG"
        assert config.prometheus.url == "http://localhost:9090"
        assert config.thresholds.latency_p95_ms == 250.0
        assert isinstance(config.thresholds.latency_p95_ms, float)
        assert config.traffic.subsets == ("stable", "canary")
        assert config.traffic.baseline_version == "stable"
        assert config.failover.region_pools == {"singapore": "sg-pool", "jakarta": "jk-pool"}
        assert config.cluster.region_contexts == {"singapore": "gke-sg"}

    def test_partial_config(self, tmp_path):
        config_file = tmp_path / "helmsman.json"
        config_file.write_text(json.dumps({"failover": {"scale_factor": 2}}))

        config = load_config(path=str(config_file))
        assert config.failover.scale_factor == 2.0
        assert config.failover.max_attempts == 3

    def test_unknown_keys_ignored(self, tmp_path):
        config_file = tmp_path / "helmsman.json"
        config_file.write_text(json.dumps({"traffic": {"unknown_key": 1}}))

        config = load_config(path=str(config_file))
        assert config.traffic == TrafficConfig()

    def test_invalid_json_falls_back_to_defaults(self, tmp_path):
        config_file = tmp_path / "helmsman.json"
        config_file.write_text("{not json")

        config = load_config(path=str(config_file))
        assert config == HelmsmanConfig()


class TestEnvOverride:
    def test_env_overrides_file(self, tmp_path):
        config_file = tmp_path / "helmsman.json"
        config_file.write_text(json.dumps({"failover": {"scale_factor": 2}}))

        with patch.dict(os.environ, {"HELMSMAN_FAILOVER_SCALE_FACTOR": "3"}):
            config = load_config(path=str(config_file))
        assert config.failover.scale_factor == 3.0

    def test_env_types(self):
        env = {
            "HELMSMAN_FAILOVER_MAX_ATTEMPTS": "5",
            "HELMSMAN_TELEMETRY_INSECURE": "true",
            "HELMSMAN_TRAFFIC_SUBSETS": "v1, v2",
            "HELMSMAN_THRESHOLDS_AVAILABILITY_PCT": "99.5",
        }
        with patch.dict(os.environ, env):
            config = load_config(path="/nonexistent/helmsman.json")
        assert config.failover.max_attempts == 5
        assert config.telemetry.insecure is True
        assert config.traffic.subsets == ("v1", "v2")
        assert config.thresholds.availability_pct == 99.5

    def test_env_mapping(self):
        env = {"HELMSMAN_FAILOVER_REGION_POOLS": "singapore=sg-pool, jakarta=jk-pool"}
        with patch.dict(os.environ, env):
            config = load_config(path="/nonexistent/helmsman.json")
        assert config.failover.region_pools == {"singapore": "sg-pool", "jakarta": "jk-pool"}

    def test_env_log_level(self):
        with patch.dict(os.environ, {"HELMSMAN_LOG_LEVEL": "INFO"}):
            config = load_config(path="/nonexistent/helmsman.json")
        assert config.log_level == "INFO"

    def test_custom_prefix(self):
        with patch.dict(os.environ, {"HM_CLUSTER_NAMESPACE": "staging"}):
            config = load_config(path="/nonexistent/helmsman.json", env_prefix="HM")
        assert config.cluster.namespace == "staging"


class TestInvalidConfig:
    def test_bad_env_number_names_key(self):
        with patch.dict(os.environ, {"HELMSMAN_FAILOVER_MAX_ATTEMPTS": "three"}), \
             pytest.raises(ConfigurationConflict, match="failover.max_attempts"):
            load_config(path="/nonexistent/helmsman.json")

    def test_bad_file_number_names_key(self, tmp_path):
        config_file = tmp_path / "helmsman.json"
        config_file.write_text(json.dumps({"thresholds": {"latency_p95_ms": "fast"}}))
        with pytest.raises(ConfigurationConflict, match="thresholds.latency_p95_ms"):
            load_config(path=str(config_file))

    def test_section_must_be_object(self, tmp_path):
        config_file = tmp_path / "helmsman.json"
        config_file.write_text(json.dumps({"cluster": "gke-sg"}))
        with pytest.raises(ConfigurationConflict, match="'cluster' must be an object"):
            load_config(path=str(config_file))
