"""Tests for sheetstore.backends.throttled module."""

from sheetstore.backends.throttled import ThrottledBackend
from sheetstore.core.protocols import GridBackend
from sheetstore.engine.quota import QuotaThrottle


class TestThrottledBackend:
    """Test quota reservation around backend calls."""

    def test_protocol_compliance(self, backend, throttle):
        """The wrapper is itself a GridBackend."""
        assert isinstance(ThrottledBackend(backend, throttle), GridBackend)

    def test_each_call_reserves_one_unit(self, backend, throttle):
        """Every delegated call costs one quota unit."""
        wrapped = ThrottledBackend(backend, throttle)
        ref = wrapped.create_container("x")
        wrapped.create_sheet(ref.container_id, "T")
        wrapped.write_range(ref.container_id, "T!A1:A1", [["a"]])
        wrapped.read_range(ref.container_id, "T!A1:A1")
        wrapped.clear_range(ref.container_id, "T!A1:A1")
        assert throttle.usage == 5
        assert backend.calls["write_range"] == 1

    def test_blocks_when_budget_is_spent(self, backend, clock):
        """Calls past the limit wait for the next window."""
        throttle = QuotaThrottle(limit=2, clock=clock, sleeper=clock.sleep)
        wrapped = ThrottledBackend(backend, throttle)
        wrapped.list_containers()
        wrapped.list_containers()
        wrapped.list_containers()
        assert clock.sleeps == [100]
        assert throttle.usage == 1

    def test_non_blocking_wrapper(self, backend, clock):
        """blocking=False on the wrapper passes through over budget."""
        throttle = QuotaThrottle(limit=1, clock=clock, sleeper=clock.sleep)
        wrapped = ThrottledBackend(backend, throttle, blocking=False)
        wrapped.list_containers()
        wrapped.list_containers()
        assert clock.sleeps == []
        assert throttle.usage == 2
