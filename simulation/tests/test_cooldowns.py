"""Tests for the per-action cooldown tracker."""

import math

import pytest

from simulation.cooldowns import CooldownTracker


@pytest.fixture
def tracker(clock) -> CooldownTracker:
    return CooldownTracker(clock=clock)


class TestCooldownTracker:
    def test_unarmed_is_ready(self, tracker: CooldownTracker):
        assert not tracker.is_disabled("earn-money")
        assert tracker.remaining_fraction("earn-money") == 0.0

    def test_expires_after_duration(self, tracker: CooldownTracker, clock):
        tracker.arm("earn-money", 4000)
        assert tracker.is_disabled("earn-money")
        clock.advance(1000)
        assert tracker.remaining_fraction("earn-money") == pytest.approx(0.75)
        clock.advance(2999)
        assert tracker.is_disabled("earn-money")
        clock.advance(1)
        assert not tracker.is_disabled("earn-money")
        assert tracker.remaining_fraction("earn-money") == 0.0

    def test_permanent_never_expires(self, tracker: CooldownTracker, clock):
        tracker.arm("buy-vehicle", math.inf)
        clock.advance(1e12)
        assert tracker.is_disabled("buy-vehicle")
        assert tracker.remaining_fraction("buy-vehicle") == 0.0

    def test_rearm_restarts_timer(self, tracker: CooldownTracker, clock):
        tracker.arm("manage-pr", 4000)
        clock.advance(3000)
        tracker.arm("manage-pr", 4000)
        clock.advance(3000)
        assert tracker.is_disabled("manage-pr")

    def test_zero_duration_is_ready(self, tracker: CooldownTracker):
        tracker.arm("earn-money", 0)
        assert not tracker.is_disabled("earn-money")

    def test_ids_are_independent(self, tracker: CooldownTracker):
        tracker.arm("invest-stocks", 10000)
        assert not tracker.is_disabled("invest-etfs")

    def test_active_drops_expired(self, tracker: CooldownTracker, clock):
        tracker.arm("a", 100)
        tracker.arm("b", math.inf)
        clock.advance(100)
        assert set(tracker.active()) == {"b"}

    def test_reset_clears_everything(self, tracker: CooldownTracker):
        tracker.arm("a", 100)
        tracker.arm("b", math.inf)
        tracker.reset()
        assert not tracker.is_disabled("a")
        assert not tracker.is_disabled("b")
        assert tracker.active() == {}
