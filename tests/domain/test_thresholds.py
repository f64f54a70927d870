"""Tests for ThresholdSet, MetricSample and SLOTarget value objects."""

import pytest

from helmsman.domain.exceptions import ConfigurationConflict
from helmsman.domain.value_objects.metric_sample import MetricSample
from helmsman.domain.value_objects.slo_target import SLOTarget, is_valid_name
from helmsman.domain.value_objects.thresholds import ThresholdSet


class TestThresholdSet:
    def test_defaults(self):
        t = ThresholdSet()
        assert t.error_rate_pct == 0.5
        assert t.latency_p95_ms == 300.0
        assert t.latency_p99_ms == 1000.0
        assert t.availability_pct == 99.9
        assert t.error_budget == 0.001
        assert t.fast_burn_multiple == 14.4
        assert t.slow_burn_multiple == 6.0
        assert t.monthly_budget_minutes == 43200.0

    def test_negative_value_rejected(self):
        with pytest.raises(ConfigurationConflict):
            ThresholdSet(latency_p95_ms=-1)

    def test_availability_above_100_rejected(self):
        with pytest.raises(ConfigurationConflict):
            ThresholdSet(availability_pct=100.1)

    @pytest.mark.parametrize("budget", [0, 1.5])
    def test_error_budget_must_be_fraction(self, budget):
        with pytest.raises(ConfigurationConflict):
            ThresholdSet(error_budget=budget)

    def test_fast_burn_must_exceed_slow_burn(self):
        with pytest.raises(ConfigurationConflict):
            ThresholdSet(fast_burn_multiple=6.0, slow_burn_multiple=6.0)

    def test_conflict_is_a_value_error(self):
        with pytest.raises(ValueError):
            ThresholdSet(error_budget=0)


class TestMetricSample:
    def test_absent_is_not_zero(self):
        sample = MetricSample.absent("5m")
        assert sample.present is False
        assert sample.value is None
        assert sample.or_default(100.0) == 100.0

    def test_zero_is_present(self):
        sample = MetricSample(value=0.0, window="5m")
        assert sample.present is True
        assert sample.or_default(100.0) == 0.0


class TestSLOTarget:
    def test_str_includes_cluster(self):
        assert str(SLOTarget("order-service", "production")) == "production/order-service"
        assert (
            str(SLOTarget("order-service", "production", cluster="jakarta"))
            == "jakarta:production/order-service"
        )

    @pytest.mark.parametrize("name", ["", "Order", "-svc", "svc_1", "a" * 254])
    def test_invalid_names(self, name):
        assert not is_valid_name(name)

    def test_invalid_deployment_rejected(self):
        with pytest.raises(ConfigurationConflict):
            SLOTarget("Order_Service")
