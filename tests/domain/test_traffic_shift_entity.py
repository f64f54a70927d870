"""
Traffic Shift Domain Tests

Architectural Intent:
- Unit tests for the TrafficSplit value object and the TrafficShift aggregate
- No mocks needed - pure state machine testing
"""

import pytest

from helmsman.domain.entities.traffic_shift import (
    DeviationReport,
    RouteConfiguredEvent,
    ShiftState,
    TrafficShift,
    TrafficShiftCompletedEvent,
    TrafficShiftFailedEvent,
    TrafficShiftStartedEvent,
    TrafficShiftVerifiedEvent,
)
from helmsman.domain.exceptions import ConfigurationConflict
from helmsman.domain.value_objects.traffic_split import (
    RoutingMechanism,
    TrafficSplit,
    validate_weights,
)

MESH = RoutingMechanism.MESH_WEIGHTED_ROUTE


class TestTrafficSplit:
    def test_weights_sum_to_100(self):
        split = TrafficSplit("order-service", "production", "blue", "green", 30)
        assert split.weights() == {"green": 30, "blue": 70}
        assert split.from_weight == 70
        assert not split.is_full_cutover

    def test_same_versions_rejected(self):
        with pytest.raises(ConfigurationConflict):
            TrafficSplit("order-service", "production", "blue", "blue", 50)

    @pytest.mark.parametrize("weight", [-1, 101, 50.5, True])
    def test_invalid_weight_rejected(self, weight):
        with pytest.raises(ConfigurationConflict):
            TrafficSplit("order-service", "production", "blue", "green", weight)

    def test_invalid_service_rejected(self):
        with pytest.raises(ConfigurationConflict):
            TrafficSplit("Order Service", "production", "blue", "green", 10)

    def test_str(self):
        split = TrafficSplit("order-service", "production", "blue", "green", 100)
        assert str(split) == "production/order-service: green=100% blue=0% via mesh"

    def test_with_mechanism(self):
        split = TrafficSplit("order-service", "production", "blue", "green", 10)
        assert split.with_mechanism(RoutingMechanism.INGRESS_CANARY).mechanism == (
            RoutingMechanism.INGRESS_CANARY
        )

    def test_validate_weights(self):
        validate_weights({"blue": 70, "green": 30})
        with pytest.raises(ConfigurationConflict):
            validate_weights({"blue": 70, "green": 20})
        with pytest.raises(ConfigurationConflict):
            validate_weights({"blue": 100})


class TestDeviationReport:
    def test_deviation_outside_tolerance(self):
        report = DeviationReport(expected_weight=30, observed_weight=45.0, tolerance=10)
        assert report.deviation == 15.0
        assert not report.within_tolerance

    def test_deviation_at_tolerance_is_outside(self):
        report = DeviationReport(expected_weight=30, observed_weight=40.0, tolerance=10)
        assert not report.within_tolerance

    def test_deviation_within_tolerance(self):
        report = DeviationReport(expected_weight=100, observed_weight=97.5, tolerance=10)
        assert report.within_tolerance


def _configuring(weight=100):
    return TrafficShift.start("order-service", "production", "green", weight).resolve(
        "blue", MESH
    )


class TestTrafficShift:
    """Tests for the TrafficShift aggregate."""

    def test_start(self):
        shift = TrafficShift.start("order-service", "production", "green", 100)
        assert shift.state == ShiftState.INITIALIZING
        assert shift.split is None
        assert isinstance(shift.domain_events[0], TrafficShiftStartedEvent)
        assert shift.domain_events[0].aggregate_id == shift.shift_id

    def test_resolve_moves_to_configuring(self):
        shift = _configuring()
        assert shift.state == ShiftState.CONFIGURING_ROUTE
        assert shift.split.weights() == {"green": 100, "blue": 0}

    def test_resolve_rejects_same_versions(self):
        shift = TrafficShift.start("order-service", "production", "green", 100)
        with pytest.raises(ConfigurationConflict):
            shift.resolve("green", MESH)

    def test_full_cutover_lifecycle(self):
        shift = _configuring().route_configured(applied=True)
        assert shift.state == ShiftState.AWAITING_CONVERGENCE
        assert shift.route_applied

        shift = shift.verify(DeviationReport(100, 99.0, 10))
        assert shift.state == ShiftState.VERIFIED
        assert not shift.is_terminal
        assert not shift.succeeded

        shift = shift.complete()
        assert shift.state == ShiftState.COMPLETED
        assert shift.is_terminal
        assert shift.succeeded
        assert [type(e) for e in shift.domain_events] == [
            TrafficShiftStartedEvent,
            RouteConfiguredEvent,
            TrafficShiftVerifiedEvent,
            TrafficShiftCompletedEvent,
        ]

    def test_partial_shift_is_terminal_when_verified(self):
        shift = _configuring(30).route_configured(True).verify(DeviationReport(30, 31.0, 10))
        assert shift.is_terminal
        assert shift.succeeded
        with pytest.raises(ValueError):
            shift.complete()

    def test_deviation_fails_shift(self):
        shift = _configuring(30).route_configured(True).verify(DeviationReport(30, 45.0, 10))
        assert shift.state == ShiftState.FAILED
        assert shift.failed_during == ShiftState.AWAITING_CONVERGENCE
        assert "deviation" in shift.error_message
        assert shift.deviation.deviation == 15.0
        assert isinstance(shift.domain_events[-1], TrafficShiftFailedEvent)
        assert not shift.can_resume

    def test_transitions_are_guarded(self):
        shift = TrafficShift.start("order-service", "production", "green", 100)
        with pytest.raises(ValueError, match="must be CONFIGURING_ROUTE"):
            shift.route_configured(True)
        with pytest.raises(ValueError, match="must be AWAITING_CONVERGENCE"):
            shift.verify(DeviationReport(100, 100.0, 10))

    def test_failed_route_write_can_resume(self):
        failed = _configuring().fail("webhook denied")
        assert failed.can_resume

        resumed = failed.resume()
        assert resumed.state == ShiftState.CONFIGURING_ROUTE
        assert resumed.error_message is None
        assert resumed.shift_id == failed.shift_id

    def test_resume_requires_route_failure(self):
        with pytest.raises(ValueError):
            _configuring().resume()

    def test_cancel(self):
        shift = _configuring().cancel()
        assert shift.state == ShiftState.CANCELLED
        with pytest.raises(ValueError):
            shift.cancel()
        with pytest.raises(ValueError):
            shift.fail("late")

    def test_states_never_mutate_in_place(self):
        original = _configuring()
        original.route_configured(True)
        assert original.state == ShiftState.CONFIGURING_ROUTE

    def test_to_dict(self):
        shift = _configuring(30).route_configured(True).verify(DeviationReport(30, 28.0, 10))
        data = shift.to_dict()
        assert data["state"] == "VERIFIED"
        assert data["mechanism"] == "mesh"
        assert data["from_version"] == "blue"
        assert data["observed_weight"] == 28.0
        assert data["deviation"] == 2.0
