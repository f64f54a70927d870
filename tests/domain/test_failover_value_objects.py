"""Tests for PoolSet, AlertRule, ConfigSnapshot and NotificationEvent."""

from datetime import datetime, UTC

import pytest

from helmsman.domain.value_objects.alert_rule import AlertRule
from helmsman.domain.value_objects.config_snapshot import (
    SERVICE_ACCOUNT_TOKEN,
    ConfigObject,
    ConfigSnapshot,
)
from helmsman.domain.value_objects.notification_event import NotificationEvent
from helmsman.domain.value_objects.pool_set import PoolSet


class TestPoolSet:
    def test_failover_replaces_failed_pool(self):
        result = PoolSet.of(["A", "B", "C"]).failover("A", "B")
        assert result.pools == ("B", "C")

    def test_target_appended_when_missing(self):
        result = PoolSet.of(["A", "C"]).failover("A", "B")
        assert result.pools == ("C", "B")

    def test_only_failed_pool_left(self):
        result = PoolSet.of(["A"]).failover("A", "B")
        assert result.pools == ("B",)
        assert "A" not in result

    def test_duplicates_and_blanks_dropped(self):
        assert PoolSet.of(["A", "", "A", "B"]).pools == ("A", "B")

    def test_idempotent(self):
        once = PoolSet.of(["A", "B", "C"]).failover("A", "B")
        assert once.failover("A", "B") == once

    def test_str(self):
        assert str(PoolSet.of(["B", "C"])) == "B,C"
        assert len(PoolSet.of(["B", "C"])) == 2


class TestAlertRule:
    def test_for_failover(self):
        at = datetime(2024, 3, 1, 12, 30, 5, tzinfo=UTC)
        rule = AlertRule.for_failover("Singapore", "jakarta", "apiserver down", at)

        assert rule.name == "failover-singapore-20240301123005"
        assert 'cluster="Singapore"' in rule.expr
        assert rule.labels["severity"] == "critical"
        assert rule.labels["failover_at"] == at.isoformat()
        assert "jakarta" in rule.annotations["description"]
        assert "apiserver down" in rule.annotations["description"]

    def test_to_dict(self):
        rule = AlertRule.for_failover("sg", "jk", "x", datetime(2024, 1, 1, tzinfo=UTC))
        data = rule.to_dict()
        assert data["alert"] == "ClusterFailover"
        assert data["for"] == "1m"
        assert data["expr"] == rule.expr


class TestConfigSnapshot:
    def test_capture_filters_by_service_and_drops_tokens(self):
        objects = [
            ConfigObject("ConfigMap", "order-service-config", ("app.yaml",)),
            ConfigObject("ConfigMap", "payment-service-config"),
            ConfigObject("Secret", "order-service-db", ("password",), "Opaque"),
            ConfigObject("Secret", "order-service-token-x7k", (), SERVICE_ACCOUNT_TOKEN),
        ]
        snapshot = ConfigSnapshot.capture("jakarta", "production", "order-service", objects)

        assert [o.name for o in snapshot.config_maps] == ["order-service-config"]
        assert [o.name for o in snapshot.secrets] == ["order-service-db"]

    def test_to_dict_lists_names_only(self):
        snapshot = ConfigSnapshot.capture(
            "jakarta",
            "production",
            "order-service",
            [ConfigObject("Secret", "order-service-db", ("password",))],
        )
        data = snapshot.to_dict()
        assert data["secrets"] == ["order-service-db"]
        assert data["config_maps"] == []
        assert "password" not in str(data)


class TestNotificationEvent:
    def test_title_required(self):
        with pytest.raises(ValueError):
            NotificationEvent(title="")

    def test_unknown_severity(self):
        with pytest.raises(ValueError):
            NotificationEvent(title="x", severity="urgent")
