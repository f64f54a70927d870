"""
Configuration Snapshot Value Objects

Architectural Intent:
- Read-only diagnostic record of the configuration objects serving a
  workload in one region, captured during failover
- Secret values are never captured, only object names and data keys
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any

SERVICE_ACCOUNT_TOKEN = "kubernetes.io/service-account-token"


@dataclass(frozen=True)
class ConfigObject:
    kind: str  # "ConfigMap" or "Secret"
    name: str
    keys: tuple[str, ...] = ()
    type: str = ""

    @property
    def is_secret(self) -> bool:
        return self.kind == "Secret"

    @property
    def is_auto_generated(self) -> bool:
        return self.type == SERVICE_ACCOUNT_TOKEN


@dataclass(frozen=True)
class ConfigSnapshot:
    region: str
    namespace: str
    service: str
    objects: tuple[ConfigObject, ...] = ()
    captured_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def capture(
        region: str, namespace: str, service: str, objects: list[ConfigObject]
    ) -> "ConfigSnapshot":
        relevant = tuple(
            o for o in objects if service in o.name and not o.is_auto_generated
        )
        return ConfigSnapshot(region, namespace, service, relevant)

    @property
    def config_maps(self) -> tuple[ConfigObject, ...]:
        return tuple(o for o in self.objects if not o.is_secret)

    @property
    def secrets(self) -> tuple[ConfigObject, ...]:
        return tuple(o for o in self.objects if o.is_secret)

    def to_dict(self) -> dict[str, Any]:
        return {
            "region": self.region,
            "namespace": self.namespace,
            "service": self.service,
            "captured_at": self.captured_at.isoformat(),
            "config_maps": [o.name for o in self.config_maps],
            "secrets": [o.name for o in self.secrets],
        }
