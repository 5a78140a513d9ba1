"""
Tests for the hierarchy registry.
"""

import pytest

from pantheon.agents.base import ROOT, AgentStatus
from pantheon.agents.registry import HierarchyRegistry
from pantheon.errors import DuplicateIdError, NotFoundError, UnknownParentError


class TestRegister:
    """Tests for HierarchyRegistry.register."""

    def test_top_level_agent_has_depth_one(self, registry) -> None:
        record = registry.register("a", ROOT, "developer")
        assert record.depth == 1
        assert record.parent_id == ROOT
        assert record.status == AgentStatus.ACTIVE
        assert record.is_top_level

    def test_child_depth_is_parent_plus_one(self, registry) -> None:
        registry.register("a", ROOT)
        registry.register("b", "a")
        record = registry.register("c", "b")
        assert record.depth == 3
        assert registry.get_depth("c") == 3

    def test_root_depth_is_zero(self, registry) -> None:
        assert registry.get_depth(ROOT) == 0

    def test_duplicate_id_rejected(self, registry) -> None:
        registry.register("a", ROOT)
        with pytest.raises(DuplicateIdError):
            registry.register("a", ROOT)

    def test_duplicate_of_inactive_record_rejected(self, registry) -> None:
        registry.register("a", ROOT)
        registry.deregister("a")
        with pytest.raises(DuplicateIdError):
            registry.register("a", ROOT)

    def test_root_id_reserved(self, registry) -> None:
        with pytest.raises(DuplicateIdError):
            registry.register(ROOT, ROOT)

    def test_unknown_parent_rejected(self, registry) -> None:
        with pytest.raises(UnknownParentError):
            registry.register("a", "ghost")

    def test_inactive_parent_rejected(self, registry) -> None:
        registry.register("a", ROOT)
        registry.deregister("a")
        with pytest.raises(UnknownParentError):
            registry.register("b", "a")

    def test_failed_register_leaves_no_record(self, registry) -> None:
        with pytest.raises(UnknownParentError):
            registry.register("a", "ghost")
        assert "a" not in registry
        assert registry.count_active() == 0
        assert registry.audit_log() == []

    def test_audit_log_appended(self, registry, clock) -> None:
        registry.register("a", ROOT)
        entry = registry.audit_log()[0]
        assert entry.action == "register"
        assert entry.agent_id == "a"
        assert entry.parent_id == ROOT
        assert entry.depth == 1
        assert entry.timestamp == clock.now


class TestDeregister:
    """Tests for HierarchyRegistry.deregister."""

    def test_marks_inactive(self, registry) -> None:
        registry.register("a", ROOT)
        assert registry.deregister("a") is True
        assert registry.get("a").status == AgentStatus.INACTIVE
        assert registry.count_active() == 0

    def test_idempotent(self, registry) -> None:
        registry.register("a", ROOT)
        registry.deregister("a")
        assert registry.deregister("a") is False
        assert registry.count_active() == 0

    def test_absent_is_noop(self, registry) -> None:
        assert registry.deregister("nobody") is False

    def test_depth_unchanged_by_unrelated_changes(self, registry) -> None:
        registry.register("a", ROOT)
        registry.register("b", "a")
        registry.register("x", ROOT)
        registry.deregister("a")
        registry.deregister("x")
        registry.register("y", ROOT)
        assert registry.get_depth("b") == 2


class TestQueries:
    """Tests for registry queries."""

    def test_get_depth_missing_raises(self, registry) -> None:
        with pytest.raises(NotFoundError):
            registry.get_depth("missing")

    def test_not_found_is_lookup_error(self, registry) -> None:
        with pytest.raises(LookupError):
            registry.get("missing")

    def test_children_include_inactive(self, registry) -> None:
        registry.register("a", ROOT)
        registry.register("b", "a")
        registry.register("c", "a")
        registry.deregister("b")
        assert registry.get_children("a") == {"b", "c"}
        assert registry.count_active_children("a") == 1

    def test_descendants_breadth_first(self, registry) -> None:
        registry.register("a", ROOT)
        registry.register("b", "a")
        registry.register("c", "b")
        registry.register("d", "a")
        assert registry.get_descendants("a") == ["b", "d", "c"]

    def test_count_created_since(self, registry, clock) -> None:
        registry.register("a", ROOT)
        clock.advance(seconds=10)
        registry.register("b", ROOT)
        assert registry.count_created_since(ROOT, clock.now - 5) == 1
        assert registry.creation_totals() == {ROOT: 2}

    def test_records_filtered_by_status(self, registry) -> None:
        registry.register("a", ROOT)
        registry.register("b", ROOT)
        registry.deregister("a")
        assert [r.id for r in registry.records(AgentStatus.ACTIVE)] == ["b"]
        assert len(registry.records()) == 2


class TestPurge:
    """Tests for purge_inactive_older_than."""

    def test_purges_old_inactive(self, registry, clock) -> None:
        registry.register("a", ROOT)
        registry.deregister("a")
        clock.advance(seconds=3601)
        assert registry.purge_inactive_older_than(3_600_000) == 1
        assert "a" not in registry

    def test_keeps_recent_inactive(self, registry, clock) -> None:
        registry.register("a", ROOT)
        registry.deregister("a")
        clock.advance(seconds=60)
        assert registry.purge_inactive_older_than(3_600_000) == 0
        assert "a" in registry

    def test_never_purges_active(self, registry, clock) -> None:
        registry.register("a", ROOT)
        clock.advance(seconds=100_000)
        assert registry.purge_inactive_older_than(0) == 0
        assert registry.get("a").is_active

    def test_children_keep_depth_after_parent_purged(self, registry, clock) -> None:
        registry.register("a", ROOT)
        registry.register("b", "a")
        registry.deregister("a")
        clock.advance(seconds=10)
        registry.purge_inactive_older_than(1000)
        assert registry.get_depth("b") == 2


class TestBuildTree:
    """Tests for the derived hierarchy tree."""

    def test_tree_shape(self, registry) -> None:
        registry.register("a", ROOT)
        registry.register("b", "a")
        registry.register("c", ROOT)
        tree = registry.build_tree()
        assert tree.id == ROOT
        assert [c.id for c in tree.children] == ["a", "c"]
        assert tree.find("b").depth == 2
        assert tree.descendant_count == 3

    def test_tree_can_hide_inactive(self, registry) -> None:
        registry.register("a", ROOT)
        registry.register("b", ROOT)
        registry.deregister("b")
        tree = registry.build_tree(include_inactive=False)
        assert [c.id for c in tree.children] == ["a"]

    def test_orphans_attached_to_root(self, registry, clock) -> None:
        registry.register("a", ROOT)
        registry.register("b", "a")
        registry.deregister("a")
        clock.advance(seconds=10)
        registry.purge_inactive_older_than(1000)
        tree = registry.build_tree()
        assert [c.id for c in tree.children] == ["b"]


class TestPurge:
    """Tests for HierarchyRegistry.purge_inactive_older_than bookkeeping."""

    def test_purge_drops_parent_bookkeeping(self, registry, clock) -> None:
        for i in range(50):
            registry.register(f"p{i}", ROOT)
            registry.register(f"c{i}", f"p{i}")
            registry.deregister(f"c{i}")
            registry.deregister(f"p{i}")
        clock.advance(seconds=10)

        assert registry.purge_inactive_older_than(1000) == 100
        assert registry.records() == []
        assert registry.get_children("p0") == set()
        assert registry.count_created_since("p0", 0) == 0
        assert registry.creation_totals() == {ROOT: 50}
        assert set(registry._creations) <= {ROOT}
        assert set(registry._children) == set()

    def test_purge_trims_creation_timestamps_to_window(self, registry, clock) -> None:
        registry.retain_creations_for(1000)
        registry.register("a", ROOT)
        registry.deregister("a")
        clock.advance(seconds=5)
        registry.purge_inactive_older_than(0)
        assert registry._creations == {}
        assert registry.creation_totals() == {ROOT: 1}

    def test_register_trims_creation_timestamps_to_window(self, registry, clock) -> None:
        registry.retain_creations_for(1000)
        registry.register("a", ROOT)
        clock.advance(seconds=5)
        registry.register("b", ROOT)
        assert len(registry._creations[ROOT]) == 1

    def test_widest_window_kept(self, registry, clock) -> None:
        registry.retain_creations_for(10_000)
        registry.retain_creations_for(1000)
        registry.register("a", ROOT)
        clock.advance(seconds=5)
        registry.register("b", ROOT)
        assert registry.count_created_since(ROOT, 0) == 2

    def test_audit_log_bounded(self, clock) -> None:
        registry = HierarchyRegistry(clock=clock, audit_size=5)
        for i in range(4):
            registry.register(f"a{i}", ROOT)
            registry.deregister(f"a{i}")
        log = registry.audit_log()
        assert len(log) == 5
        assert (log[-1].action, log[-1].agent_id) == ("deregister", "a3")
