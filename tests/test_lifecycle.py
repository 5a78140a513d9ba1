"""
Tests for the agent lifecycle manager.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from pantheon.agents.base import ROOT, CreateOptions
from pantheon.agents.lifecycle import CleanupTimer
from pantheon.agents.permissions import CapabilityScope
from pantheon.agents.policy import REASON_TOTAL
from pantheon.errors import (
    AgentCreationDenied,
    DelegationNotPermittedError,
    RecoverableAgentError,
    UnknownParentError,
)
from pantheon.events import EventType

DELEGATING = CreateOptions(allow_agent_creation=True)


class TestScenarios:
    """End-to-end admission scenarios."""

    def test_total_cap_scenario(self, make_manager, registry) -> None:
        manager = make_manager(max_total_agents=2, max_depth=3)

        a = manager.create_sub_agent(ROOT, "developer")
        assert a.depth == 1
        assert registry.count_active() == 1

        b = manager.create_sub_agent(ROOT, "developer")
        assert b.depth == 1
        assert registry.count_active() == 2

        with pytest.raises(AgentCreationDenied) as exc_info:
            manager.create_sub_agent(ROOT, "developer")
        assert exc_info.value.reason == "Maximum total agents reached"

        manager.release(a.id)
        assert registry.count_active() == 1

        d = manager.create_sub_agent(ROOT, "developer")
        assert d.depth == 1
        assert registry.count_active() == 2

    def test_depth_scenario(self, make_manager) -> None:
        manager = make_manager(max_depth=2)

        child = manager.create_sub_agent(ROOT, "orchestrator", DELEGATING)
        assert child.depth == 1
        grandchild = manager.create_sub_agent(child.id, "orchestrator", DELEGATING)
        assert grandchild.depth == 2

        with pytest.raises(AgentCreationDenied) as exc_info:
            manager.create_sub_agent(grandchild.id, "developer")
        assert "depth" in exc_info.value.reason

    @pytest.mark.parametrize("max_depth", [1, 2, 3, 4])
    def test_chain_succeeds_up_to_max_depth(self, make_manager, max_depth) -> None:
        manager = make_manager(max_depth=max_depth, max_total_agents=10)
        parent = ROOT
        for expected_depth in range(1, max_depth + 1):
            handle = manager.create_sub_agent(parent, "orchestrator", DELEGATING)
            assert handle.depth == expected_depth
            parent = handle.id

        with pytest.raises(AgentCreationDenied, match="depth"):
            manager.create_sub_agent(parent, "orchestrator", DELEGATING)

    def test_total_cap_precedence(self, make_manager) -> None:
        manager = make_manager(max_total_agents=1, max_depth=1)
        a = manager.create_sub_agent(ROOT, "orchestrator", DELEGATING)
        with pytest.raises(AgentCreationDenied) as exc_info:
            manager.create_sub_agent(a.id, "developer")
        assert exc_info.value.reason == REASON_TOTAL


class TestCreateSubAgent:
    """Tests for AgentLifecycleManager.create_sub_agent."""

    def test_denial_is_recoverable(self, make_manager) -> None:
        manager = make_manager(max_total_agents=0)
        with pytest.raises(RecoverableAgentError):
            manager.create_sub_agent(ROOT, "developer")

    def test_denial_message(self, make_manager) -> None:
        manager = make_manager(max_total_agents=0)
        with pytest.raises(AgentCreationDenied, match="Cannot create sub-agent: Maximum total agents reached"):
            manager.create_sub_agent(ROOT, "developer")

    def test_parent_without_delegate_capability(self, manager) -> None:
        worker = manager.create_sub_agent(ROOT, "developer")
        assert not worker.can_delegate
        with pytest.raises(DelegationNotPermittedError):
            manager.create_sub_agent(worker.id, "tester")

    def test_unknown_parent_is_defect(self, manager) -> None:
        with pytest.raises(UnknownParentError):
            manager.create_sub_agent("ghost", "developer")

    def test_handle_carries_persona(self, manager) -> None:
        handle = manager.create_sub_agent(ROOT, "developer")
        assert handle.persona.god == "hephaestus"
        assert handle.label == "developer"
        assert handle.parent_id == ROOT
        assert manager.get_handle(handle.id) is handle

    def test_metadata_passed_through(self, manager) -> None:
        handle = manager.create_sub_agent(
            ROOT, "developer", CreateOptions(metadata={"ticket": "42"})
        )
        assert handle.metadata == {"ticket": "42"}

    def test_pre_and_post_hooks_wrap_registration(self, manager, sink) -> None:
        calls = []
        sink.add_pre_hook("agent:create", lambda payload: calls.append(("pre", payload["label"])))
        sink.add_post_hook("agent:create", lambda payload, record: calls.append(("post", record.id)))

        handle = manager.create_sub_agent(ROOT, "developer")
        assert calls == [("pre", "developer"), ("post", handle.id)]


class TestCapabilityNarrowing:
    """Tests for capability derivation on creation."""

    def test_child_is_subset_of_parent(self, manager) -> None:
        parent = manager.create_sub_agent(ROOT, "orchestrator", DELEGATING)
        child = manager.create_sub_agent(parent.id, "developer")
        assert child.capabilities.is_subset_of(parent.capabilities)
        assert CapabilityScope.BASH_WRITE not in child.capabilities.scopes()

    def test_delegation_only_when_requested(self, manager) -> None:
        plain = manager.create_sub_agent(ROOT, "orchestrator")
        delegating = manager.create_sub_agent(ROOT, "orchestrator", DELEGATING)
        assert not plain.can_delegate
        assert delegating.can_delegate

    def test_explicit_capabilities_narrow_further(self, manager) -> None:
        handle = manager.create_sub_agent(
            ROOT, "developer", CreateOptions(capabilities=["read_files"])
        )
        assert handle.capabilities.scopes() == {CapabilityScope.READ_FILES}

    def test_grants_record_granting_agent(self, manager) -> None:
        parent = manager.create_sub_agent(ROOT, "orchestrator", DELEGATING)
        child = manager.create_sub_agent(parent.id, "tester")
        assert {g.granted_by for g in child.capabilities.grants} == {parent.id}

    def test_root_never_passes_all(self, manager) -> None:
        handle = manager.create_sub_agent(ROOT, "orchestrator", DELEGATING)
        assert CapabilityScope.ALL not in handle.capabilities.scopes()
        assert "--dangerously-skip-permissions" not in handle.capabilities.to_cli_flags()


class TestRelease:
    """Tests for release and sweeps."""

    def test_release_idempotent(self, manager, registry) -> None:
        handle = manager.create_sub_agent(ROOT, "developer")
        manager.release(handle.id)
        assert registry.count_active() == 0
        manager.release(handle.id)
        assert registry.count_active() == 0

    def test_release_unknown_is_noop(self, manager) -> None:
        manager.release("nobody")

    def test_cleanup_callbacks_run_once(self, manager) -> None:
        handle = manager.create_sub_agent(ROOT, "developer")
        seen = []
        handle.on_release(lambda h: seen.append(h.id))
        manager.release(handle.id)
        manager.release(handle.id)
        assert seen == [handle.id]

    def test_failing_callback_does_not_block_release(self, manager, registry) -> None:
        handle = manager.create_sub_agent(ROOT, "developer")

        def boom(_):
            raise RuntimeError("cleanup failed")

        handle.on_release(boom)
        manager.release(handle.id)
        assert not registry.get(handle.id).is_active

    def test_release_tree(self, manager, registry) -> None:
        a = manager.create_sub_agent(ROOT, "orchestrator", DELEGATING)
        b = manager.create_sub_agent(a.id, "orchestrator", DELEGATING)
        manager.create_sub_agent(b.id, "developer")
        other = manager.create_sub_agent(ROOT, "developer")

        assert manager.release_tree(a.id) == 3
        assert registry.count_active() == 1
        assert registry.get(other.id).is_active

    def test_release_tree_deepest_first(self, manager, registry) -> None:
        a = manager.create_sub_agent(ROOT, "orchestrator", DELEGATING)
        manager.create_sub_agent(a.id, "developer")
        manager.release_tree(a.id)
        deregistered = [e.depth for e in registry.audit_log() if e.action == "deregister"]
        assert deregistered == [2, 1]

    def test_release_expired(self, manager, registry, clock) -> None:
        old = manager.create_sub_agent(ROOT, "developer")
        clock.advance(seconds=400)
        fresh = manager.create_sub_agent(ROOT, "developer")

        assert manager.release_expired(300_000) == 1
        assert not registry.get(old.id).is_active
        assert registry.get(fresh.id).is_active

    def test_cleanup_inactive(self, manager, registry, clock, recorder) -> None:
        handle = manager.create_sub_agent(ROOT, "developer")
        manager.release(handle.id)
        clock.advance(seconds=3601)

        assert manager.cleanup_inactive() == 1
        assert handle.id not in registry
        assert manager.get_handle(handle.id) is None
        assert recorder.of_type(EventType.AGENTS_PURGED)[0].data == {"count": 1}

    def test_cleanup_timer_run_once(self, manager, registry, clock) -> None:
        handle = manager.create_sub_agent(ROOT, "developer")
        clock.advance(seconds=10)
        timer = CleanupTimer(manager, interval_s=60, retention_ms=1000, agent_timeout_ms=5000)

        # Expired agent is released and purged in the same sweep
        assert timer.run_once() == 1
        assert handle.id not in registry
        assert timer.last_run is not None

    def test_cleanup_timer_start_stop(self, manager) -> None:
        timer = CleanupTimer(manager, interval_s=3600, retention_ms=1000)
        timer.start()
        timer.stop()
        assert timer._timer is None


class TestEvents:
    """Tests for lifecycle events."""

    def test_created_and_released(self, manager, recorder) -> None:
        handle = manager.create_sub_agent(ROOT, "developer")
        manager.release(handle.id)
        manager.release(handle.id)
        assert recorder.types() == ["agent:created", "agent:released"]
        created = recorder.events[0].data
        assert created["agent_id"] == handle.id
        assert created["depth"] == 1
        assert created["total_agents"] == 1

    def test_denied_event(self, make_manager, recorder) -> None:
        manager = make_manager(max_total_agents=0)
        with pytest.raises(AgentCreationDenied):
            manager.create_sub_agent(ROOT, "developer")
        denied = recorder.of_type(EventType.AGENT_CREATION_DENIED)
        assert denied[0].data["reason"] == REASON_TOTAL

    def test_denied_event_emitted_outside_locks(self, make_manager, sink) -> None:
        manager = make_manager(max_total_agents=0)
        free = []

        def check_locks(event) -> None:
            def try_acquire() -> None:
                for lock in (manager._lock, manager.registry.lock):
                    acquired = lock.acquire(blocking=False)
                    if acquired:
                        lock.release()
                    free.append(acquired)

            thread = threading.Thread(target=try_acquire)
            thread.start()
            thread.join()

        sink.subscribe(EventType.AGENT_CREATION_DENIED, check_locks)
        with pytest.raises(AgentCreationDenied):
            manager.create_sub_agent(ROOT, "developer")
        assert free == [True, True]


class TestConcurrency:
    """Tests for concurrent admission."""

    def test_last_slot_admitted_once(self, make_manager, registry) -> None:
        manager = make_manager(max_total_agents=5, rate_limit_count=100)
        barrier = threading.Barrier(20)

        def attempt(_):
            barrier.wait()
            try:
                return manager.create_sub_agent(ROOT, "developer")
            except AgentCreationDenied:
                return None

        with ThreadPoolExecutor(max_workers=20) as pool:
            results = list(pool.map(attempt, range(20)))

        admitted = [r for r in results if r is not None]
        assert len(admitted) == 5
        assert registry.count_active() == 5
        assert len({h.id for h in admitted}) == 5


class TestInspect:
    """Tests for the inspection snapshot."""

    def test_snapshot_metrics(self, manager, clock) -> None:
        a = manager.create_sub_agent(ROOT, "orchestrator", DELEGATING)
        clock.advance(seconds=1)
        b = manager.create_sub_agent(a.id, "developer")
        clock.advance(seconds=1)
        c = manager.create_sub_agent(a.id, "tester")
        manager.release(c.id)

        snapshot = manager.inspect()
        assert snapshot.active_count == 2
        assert snapshot.total_records == 3
        assert snapshot.max_depth_observed == 2
        assert snapshot.depth_distribution == {1: 1, 2: 1}
        assert snapshot.creations_per_parent == {ROOT: 1, a.id: 2}
        assert snapshot.average_children_per_parent == 1.5
        assert snapshot.oldest_active.id == a.id
        assert snapshot.newest_active.id == b.id
        assert snapshot.tree.find(c.id).status == "inactive"

    def test_snapshot_to_dict(self, manager) -> None:
        manager.create_sub_agent(ROOT, "developer")
        data = manager.inspect().to_dict()
        assert data["active_count"] == 1
        assert data["tree"]["id"] == ROOT
        assert data["depth_distribution"] == {"1": 1}
