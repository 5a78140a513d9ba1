"""
Hierarchy Registry - system of record for agent bookkeeping.

Maps agent identity to parent, depth, creation time and status. Every
mutation happens under one re-entrant lock so readers (the safety policy)
always see a consistent snapshot. Deletion is soft: `deregister` only
flips status, records disappear only through `purge_inactive_older_than`.
"""

import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import replace

from pantheon.agents.base import ROOT, AgentRecord, AgentStatus, AuditEntry, HierarchyNode
from pantheon.errors import DuplicateIdError, NotFoundError, UnknownParentError

# Upper bound on audit entries kept in memory
MAX_AUDIT_ENTRIES = 10_000


class HierarchyRegistry:
    """Exclusive owner of the AgentRecord collection."""

    def __init__(
        self,
        clock: Callable[[], float] | None = None,
        audit_size: int = MAX_AUDIT_ENTRIES,
    ):
        """
        Initialize an empty registry.

        Args:
            clock: Returns the current time in epoch seconds (default time.time)
            audit_size: Most recent audit entries to keep
        """
        self._clock = clock or time.time
        self._lock = threading.RLock()
        self._records: dict[str, AgentRecord] = {}
        self._children: dict[str, set[str]] = defaultdict(set)
        self._creations: dict[str, deque[float]] = defaultdict(deque)
        self._creation_window_s: float | None = None
        self._creation_totals: dict[str, int] = defaultdict(int)
        self._audit: deque[AuditEntry] = deque(maxlen=audit_size)

    @property
    def lock(self) -> threading.RLock:
        """Lock guarding all registry state; callers may hold it across reads."""
        return self._lock

    def now(self) -> float:
        return self._clock()

    def retain_creations_for(self, window_ms: float) -> None:
        """
        Keep creation timestamps for at least `window_ms`.

        Older timestamps are dropped on register and purge. Several callers
        may ask; the widest window wins. Until someone asks nothing is dropped.
        """
        with self._lock:
            window_s = window_ms / 1000.0
            if self._creation_window_s is None or window_s > self._creation_window_s:
                self._creation_window_s = window_s

    def _prune_creations(self, parent_id: str, now: float) -> None:
        if self._creation_window_s is None:
            return
        stamps = self._creations.get(parent_id)
        if stamps is None:
            return
        cutoff = now - self._creation_window_s
        while stamps and stamps[0] < cutoff:
            stamps.popleft()
        if not stamps:
            del self._creations[parent_id]

    # =========================================================================
    # Mutations
    # =========================================================================

    def register(self, agent_id: str, parent_id: str, label: str = "") -> AgentRecord:
        """
        Register a new active agent under `parent_id`.

        Raises:
            DuplicateIdError: `agent_id` is already present (any status)
            UnknownParentError: parent is neither ROOT nor an active agent
        """
        with self._lock:
            if agent_id == ROOT or agent_id in self._records:
                raise DuplicateIdError(agent_id)

            if parent_id == ROOT:
                depth = 1
            else:
                parent = self._records.get(parent_id)
                if parent is None or not parent.is_active:
                    raise UnknownParentError(parent_id)
                depth = parent.depth + 1

            now = self._clock()
            record = AgentRecord(
                id=agent_id,
                parent_id=parent_id,
                depth=depth,
                created_at=now,
                status=AgentStatus.ACTIVE,
                label=label,
            )

            self._records[agent_id] = record
            self._children[parent_id].add(agent_id)
            self._creations[parent_id].append(now)
            self._prune_creations(parent_id, now)
            self._creation_totals[parent_id] += 1
            self._audit.append(AuditEntry("register", agent_id, parent_id, depth, now))
            return record

    def deregister(self, agent_id: str) -> bool:
        """
        Mark an agent inactive.

        Idempotent: absent or already inactive agents are a no-op.

        Returns:
            True if the agent transitioned from active to inactive
        """
        with self._lock:
            record = self._records.get(agent_id)
            if record is None or not record.is_active:
                return False

            now = self._clock()
            self._records[agent_id] = replace(
                record, status=AgentStatus.INACTIVE, released_at=now
            )
            self._audit.append(
                AuditEntry("deregister", agent_id, record.parent_id, record.depth, now)
            )
            return True

    def purge_inactive_older_than(self, duration_ms: float) -> int:
        """
        Remove inactive records created before now - duration.

        Active records are never removed regardless of age.

        Returns:
            Number of records removed
        """
        with self._lock:
            now = self._clock()
            cutoff = now - duration_ms / 1000.0
            doomed = [
                r for r in self._records.values()
                if not r.is_active and r.created_at < cutoff
            ]

            for record in doomed:
                del self._records[record.id]
                siblings = self._children.get(record.parent_id)
                if siblings is not None:
                    siblings.discard(record.id)
                    if not siblings:
                        del self._children[record.parent_id]
                # Children of a purged record keep their own depth and parent id
                self._children.pop(record.id, None)
                self._creations.pop(record.id, None)
                self._creation_totals.pop(record.id, None)
                self._audit.append(
                    AuditEntry("purge", record.id, record.parent_id, record.depth, now)
                )

            for parent_id in list(self._creations):
                self._prune_creations(parent_id, now)
            return len(doomed)

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, agent_id: str) -> AgentRecord:
        with self._lock:
            record = self._records.get(agent_id)
            if record is None:
                raise NotFoundError(agent_id)
            return record

    def __contains__(self, agent_id: str) -> bool:
        with self._lock:
            return agent_id in self._records

    def get_depth(self, agent_id: str) -> int:
        """Depth of an agent; ROOT is depth 0."""
        if agent_id == ROOT:
            return 0
        return self.get(agent_id).depth

    def get_children(self, agent_id: str) -> set[str]:
        """Direct children regardless of status."""
        with self._lock:
            return set(self._children.get(agent_id, ()))

    def get_descendants(self, agent_id: str) -> list[str]:
        """All descendants, breadth first, regardless of status."""
        with self._lock:
            result: list[str] = []
            queue = deque(sorted(self._children.get(agent_id, ())))
            while queue:
                current = queue.popleft()
                result.append(current)
                queue.extend(sorted(self._children.get(current, ())))
            return result

    def count_active(self) -> int:
        with self._lock:
            return sum(1 for r in self._records.values() if r.is_active)

    def count_active_children(self, parent_id: str) -> int:
        with self._lock:
            return sum(
                1 for child in self._children.get(parent_id, ())
                if self._records[child].is_active
            )

    def count_created_since(self, parent_id: str, since: float) -> int:
        """Number of agents registered under `parent_id` at or after `since`."""
        with self._lock:
            return sum(1 for ts in self._creations.get(parent_id, ()) if ts >= since)

    def creation_totals(self) -> dict[str, int]:
        """Lifetime number of creations per parent."""
        with self._lock:
            return dict(self._creation_totals)

    def records(self, status: AgentStatus | None = None) -> list[AgentRecord]:
        with self._lock:
            records = sorted(self._records.values(), key=lambda r: (r.created_at, r.id))
        if status is not None:
            records = [r for r in records if r.status == status]
        return records

    def audit_log(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._audit)

    def build_tree(self, include_inactive: bool = True) -> HierarchyNode:
        """Project the records into a tree rooted at ROOT."""
        with self._lock:
            records = dict(self._records)
            children = {k: set(v) for k, v in self._children.items()}

        def build(record: AgentRecord) -> HierarchyNode:
            node = HierarchyNode(
                id=record.id,
                label=record.label,
                depth=record.depth,
                status=record.status.value,
            )
            for child_id in sorted(children.get(record.id, ())):
                child = records[child_id]
                if include_inactive or child.is_active:
                    node.children.append(build(child))
            return node

        # Records whose parent was purged hang off the root so they stay visible
        orphans = {
            r.id for r in records.values()
            if r.parent_id != ROOT and r.parent_id not in records
        }
        root = HierarchyNode(id=ROOT, label=ROOT, depth=0, status="root")
        for child_id in sorted(children.get(ROOT, set()) | orphans):
            child = records[child_id]
            if include_inactive or child.is_active:
                root.children.append(build(child))
        return root
