"""
Shared fixtures for pantheon tests.
"""

import itertools

import pytest

from pantheon.agents.lifecycle import AgentLifecycleManager
from pantheon.agents.policy import SafetyLimits, SafetyPolicyEvaluator
from pantheon.agents.registry import HierarchyRegistry
from pantheon.events import EventRecorder, ObservabilitySink


class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 0.0, ms: float = 0.0) -> None:
        self.now += seconds + ms / 1000.0


class SequentialIds:
    """Id factory producing label-1, label-2, ..."""

    def __init__(self):
        self._counter = itertools.count(1)

    def __call__(self, label: str) -> str:
        return f"{label}-{next(self._counter)}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ids() -> SequentialIds:
    return SequentialIds()


@pytest.fixture
def registry(clock: FakeClock) -> HierarchyRegistry:
    return HierarchyRegistry(clock=clock)


@pytest.fixture
def sink() -> ObservabilitySink:
    return ObservabilitySink()


@pytest.fixture
def recorder(sink: ObservabilitySink) -> EventRecorder:
    return EventRecorder(sink)


@pytest.fixture
def make_manager(registry, sink, ids):
    """Build a lifecycle manager over the shared registry with given limits."""

    def factory(**limits) -> AgentLifecycleManager:
        policy = SafetyPolicyEvaluator(registry, SafetyLimits(**limits))
        return AgentLifecycleManager(registry, policy, sink=sink, id_factory=ids)

    return factory


@pytest.fixture
def manager(make_manager) -> AgentLifecycleManager:
    return make_manager()
