"""Shared fixtures: a controllable clock and scripted randomness."""

import random

import pytest


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class ScriptedRandom(random.Random):
    """Returns queued values from ``random()`` and a fixed ``uniform()`` draw."""

    def __init__(self, rolls, uniform: float = 0.25) -> None:
        super().__init__(0)
        self._rolls = list(rolls)
        self._uniform = uniform

    def random(self) -> float:
        return self._rolls.pop(0)

    def uniform(self, a: float, b: float) -> float:
        return self._uniform


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scripted_rng():
    """Factory: ``scripted_rng([0.1, 0.9], uniform=0.2)``."""
    return ScriptedRandom
