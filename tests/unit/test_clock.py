"""Tests for the injectable clocks."""

from datetime import datetime, timedelta, timezone

from inventory_kernel.domain import clock as clock_module
from inventory_kernel.domain.clock import DEFAULT_TEST_TIME, DeterministicClock, SystemClock


class TestDeterministicClock:

    def test_stable_until_moved(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now() == DEFAULT_TEST_TIME

    def test_advance_and_tick(self):
        clock = DeterministicClock()
        clock.advance(30)
        assert clock.now().second == 30
        assert clock.tick().second == 31

    def test_set_time(self):
        clock = DeterministicClock()
        clock.advance(5)
        target = datetime(2025, 6, 30, 8, 0, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target

    def test_step_gives_each_reading_its_own_time(self):
        clock = DeterministicClock(step_seconds=2)
        readings = [clock.now() for _ in range(3)]
        assert readings == [DEFAULT_TEST_TIME + timedelta(seconds=s) for s in (0, 2, 4)]


class TestSystemClock:

    def test_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None

    def test_never_goes_backwards(self, monkeypatch):
        later = datetime(2030, 1, 1, tzinfo=timezone.utc)
        earlier = later - timedelta(minutes=5)
        readings = iter([later, earlier])

        class _SteppedBack(datetime):
            @classmethod
            def now(cls, tz=None):
                return next(readings)

        monkeypatch.setattr(clock_module, "datetime", _SteppedBack)
        clock = SystemClock()

        assert clock.now() == later
        assert clock.now() == later
