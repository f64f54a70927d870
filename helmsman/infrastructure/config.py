"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all Helmsman settings
- Falls back to sensible defaults when the config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Region maps (region -> pool, region -> kube context) accept either a JSON
  object or an "a=b,c=d" string so they can be set from the environment
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

from helmsman.domain.exceptions import ConfigurationConflict

logger = logging.getLogger(__name__)

_TOP_LEVEL_SCALARS = ("log_level",)


@dataclass(frozen=True)
class PrometheusConfig:
    """Metrics backend configuration."""
    url: str = "http://prometheus.monitoring.svc.cluster.local:9090"
    timeout_seconds: float = 10.0
    request_metric: str = "http_requests_total"
    duration_metric: str = "http_request_duration_seconds_bucket"


@dataclass(frozen=True)
class ThresholdsConfig:
    """SLO thresholds; see ThresholdSet for semantics."""
    error_rate_pct: float = 0.5
    latency_p95_ms: float = 300.0
    latency_p99_ms: float = 1000.0
    availability_pct: float = 99.9
    error_budget: float = 0.001
    fast_burn_multiple: float = 14.4
    slow_burn_multiple: float = 6.0
    monthly_budget_minutes: float = 43200.0


@dataclass(frozen=True)
class ClusterConfig:
    """Cluster control plane configuration."""
    namespace: str = "production"
    kubectl: str = "kubectl"
    timeout_seconds: float = 30.0
    region_contexts: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TrafficConfig:
    """Traffic shift configuration."""
    namespace: str = "production"
    baseline_version: str = "blue"
    settle_delay_seconds: float = 10.0
    tolerance_pct: float = 10.0
    verify_window: str = "1m"
    subsets: tuple[str, ...] = ("blue", "green")


@dataclass(frozen=True)
class FailoverConfig:
    """Failover pipeline configuration."""
    service: str = "order-service"
    namespace: str = "production"
    default_target_region: str = ""
    scale_factor: float = 1.5
    ready_timeout_seconds: float = 300.0
    call_timeout_seconds: float = 30.0
    max_attempts: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    region_pools: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CloudflareConfig:
    """Global load balancer configuration."""
    api_url: str = "https://api.cloudflare.com/client/v4"
    zone_id: str = ""
    load_balancer_id: str = ""
    api_token: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    """Notification configuration."""
    slack_webhook_url: str = ""
    pagerduty_api_key: str = ""
    pagerduty_service_id: str = ""


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class AuditConfig:
    """Failover record persistence."""
    db_path: str = "helmsman.db"
    incident_log_dir: str = "."


@dataclass(frozen=True)
class HelmsmanConfig:
    """Root configuration for the Helmsman application."""
    prometheus: PrometheusConfig = field(default_factory=PrometheusConfig)
    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    traffic: TrafficConfig = field(default_factory=TrafficConfig)
    failover: FailoverConfig = field(default_factory=FailoverConfig)
    cloudflare: CloudflareConfig = field(default_factory=CloudflareConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    log_level: str = "WARNING"


def _env_override(data: dict, prefix: str = "HELMSMAN") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern HELMSMAN_SECTION_KEY.
    For example: HELMSMAN_FAILOVER_SCALE_FACTOR=2,
    HELMSMAN_FAILOVER_REGION_POOLS=us-east=pool-east,us-west=pool-west
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in _TOP_LEVEL_SCALARS:
            data[name] = value
            continue
        parts = name.split("_", 1)
        if len(parts) == 2:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
        elif len(parts) == 1:
            data[parts[0]] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}


def _parse_mapping(value: str) -> dict[str, str]:
    """Parse "a=b,c=d" into {"a": "b", "c": "d"}."""
    result = {}
    for pair in value.split(","):
        if not pair.strip():
            continue
        key, sep, val = pair.partition("=")
        if not sep:
            raise ValueError(f"Expected key=value, got {pair!r}")
        result[key.strip()] = val.strip()
    return result


def _coerce(f: dataclasses.Field, val):
    """Convert a file or environment value to the field's declared type."""
    # Comma-separated strings become tuples for tuple fields
    if f.type == "tuple[str, ...]":
        if isinstance(val, str):
            return tuple(v.strip() for v in val.split(",") if v.strip())
        if isinstance(val, list):
            return tuple(val)
    elif f.type == "dict[str, str]":
        if isinstance(val, str):
            return _parse_mapping(val)
        if isinstance(val, dict):
            return {str(k): str(v) for k, v in val.items()}
    elif isinstance(val, str):
        if f.type == "int":
            return int(val)
        if f.type == "float":
            return float(val)
        if f.type == "bool":
            return val.lower() in ("true", "1", "yes")
    elif f.type == "float" and isinstance(val, int) and not isinstance(val, bool):
        return float(val)
    return val


def _build_sub_config(cls, data, section: str = ""):
    """Build a sub-config dataclass from a dict, ignoring unknown keys.

    Raises ConfigurationConflict naming the offending key when a value
    cannot be converted.
    """
    section = section or cls.__name__
    if not isinstance(data, dict):
        raise ConfigurationConflict(
            f"Config section {section!r} must be an object, got {data!r}"
        )
    filtered = {}
    for f in dataclasses.fields(cls):
        if f.name not in data:
            continue
        val = data[f.name]
        try:
            filtered[f.name] = _coerce(f, val)
        except (TypeError, ValueError) as e:
            raise ConfigurationConflict(
                f"Invalid value for {section}.{f.name}: {val!r} ({e})"
            ) from e

    try:
        return cls(**filtered)
    except (TypeError, ValueError) as e:
        raise ConfigurationConflict(f"Invalid config section {section!r}: {e}") from e


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "HELMSMAN",
) -> HelmsmanConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (HELMSMAN_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to helmsman.json in CWD.
        env_prefix: Environment variable prefix. Defaults to HELMSMAN.
    """
    config_path = Path(path) if path else Path("helmsman.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    return HelmsmanConfig(
        prometheus=_build_sub_config(PrometheusConfig, data.get("prometheus", {}), "prometheus"),
        thresholds=_build_sub_config(ThresholdsConfig, data.get("thresholds", {}), "thresholds"),
        cluster=_build_sub_config(ClusterConfig, data.get("cluster", {}), "cluster"),
        traffic=_build_sub_config(TrafficConfig, data.get("traffic", {}), "traffic"),
        failover=_build_sub_config(FailoverConfig, data.get("failover", {}), "failover"),
        cloudflare=_build_sub_config(CloudflareConfig, data.get("cloudflare", {}), "cloudflare"),
        notifications=_build_sub_config(
            NotificationsConfig, data.get("notifications", {}), "notifications"
        ),
        telemetry=_build_sub_config(TelemetryConfig, data.get("telemetry", {}), "telemetry"),
        audit=_build_sub_config(AuditConfig, data.get("audit", {}), "audit"),
        log_level=data.get("log_level", "WARNING"),
    )
