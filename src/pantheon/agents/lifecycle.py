"""
Agent Lifecycle Manager - the only entry point that creates or destroys agents.

Composes the hierarchy registry, the safety policy and the persona
registry. The admission check and the registration it guards run under a
single lock, so two callers racing for the last free slot can never both
be admitted.
"""

import logging
import threading
import time
import uuid
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pantheon.agents.base import (
    ROOT,
    AgentHandle,
    AgentRecord,
    AgentStatus,
    CreateOptions,
    HierarchyNode,
)
from pantheon.agents.permissions import ROOT_CAPABILITIES, CapabilityScope, CapabilitySet
from pantheon.agents.personas import PersonaConfig, PersonaRegistry
from pantheon.agents.policy import SafetyPolicyEvaluator
from pantheon.agents.registry import HierarchyRegistry
from pantheon.errors import (
    AgentCreationDenied,
    DelegationNotPermittedError,
    HierarchyIntegrityError,
    UnknownParentError,
)
from pantheon.events import EventType, ObservabilitySink

logger = logging.getLogger(__name__)


def default_id_factory(label: str) -> str:
    return f"{label or 'agent'}-{uuid.uuid4().hex[:12]}"


@dataclass
class HierarchySnapshot:
    """Read-only view of the hierarchy for debugging and tooling."""

    tree: HierarchyNode
    active_count: int
    total_records: int
    max_depth_observed: int
    depth_distribution: dict[int, int] = field(default_factory=dict)
    creations_per_parent: dict[str, int] = field(default_factory=dict)
    average_children_per_parent: float = 0.0
    oldest_active: AgentRecord | None = None
    newest_active: AgentRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tree": self.tree.to_dict(),
            "active_count": self.active_count,
            "total_records": self.total_records,
            "max_depth_observed": self.max_depth_observed,
            "depth_distribution": {str(k): v for k, v in sorted(self.depth_distribution.items())},
            "creations_per_parent": dict(sorted(self.creations_per_parent.items())),
            "average_children_per_parent": round(self.average_children_per_parent, 3),
            "oldest_active": self.oldest_active.to_dict() if self.oldest_active else None,
            "newest_active": self.newest_active.to_dict() if self.newest_active else None,
        }


class AgentLifecycleManager:
    """Creates, releases and sweeps agents."""

    def __init__(
        self,
        registry: HierarchyRegistry,
        policy: SafetyPolicyEvaluator,
        personas: PersonaRegistry | None = None,
        sink: ObservabilitySink | None = None,
        *,
        root_label: str = "orchestrator",
        root_capabilities: CapabilitySet = ROOT_CAPABILITIES,
        id_factory: Callable[[str], str] = default_id_factory,
    ):
        self.registry = registry
        self.policy = policy
        self.personas = personas or PersonaRegistry()
        self.sink = sink or ObservabilitySink()
        self._id_factory = id_factory
        self._lock = threading.RLock()

        root_persona = self.personas.get(root_label)
        self._root = AgentHandle(
            id=ROOT,
            parent_id=ROOT,
            depth=0,
            label=root_label,
            capabilities=root_capabilities,
            persona=root_persona,
        )
        self._handles: dict[str, AgentHandle] = {}

    @property
    def root_handle(self) -> AgentHandle:
        return self._root

    def get_handle(self, agent_id: str) -> AgentHandle | None:
        if agent_id == ROOT:
            return self._root
        with self._lock:
            return self._handles.get(agent_id)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_sub_agent(
        self,
        parent_id: str,
        label: str,
        options: CreateOptions | None = None,
    ) -> AgentHandle:
        """
        Create and register a new agent under `parent_id`.

        Raises:
            DelegationNotPermittedError: the parent lacks the delegation capability
            AgentCreationDenied: the safety policy refused the request
            HierarchyIntegrityError: unknown parent or id collision (a defect)
        """
        options = options or CreateOptions()
        denial: AgentCreationDenied | None = None

        with self._lock:
            parent = self.get_handle(parent_id)
            if parent is not None and not parent.can_delegate:
                logger.info(f"Agent {parent_id} tried to delegate without permission")
                raise DelegationNotPermittedError(parent_id)

            payload = {"parent_id": parent_id, "label": label}
            try:
                record = self.sink.run_hooked(
                    "agent:create",
                    payload,
                    lambda: self._admit_and_register(
                        parent_id, label, options.parent_allowed_labels
                    ),
                )
            except AgentCreationDenied as e:
                denial = e
            except HierarchyIntegrityError as e:
                logger.error(f"Hierarchy integrity error creating {label!r} under {parent_id}: {e}")
                raise
            else:
                handle = self._build_handle(record, parent, options)
                self._handles[record.id] = handle

        if denial is not None:
            self.sink.emit(
                EventType.AGENT_CREATION_DENIED,
                {"parent_id": parent_id, "label": label, "reason": denial.reason},
            )
            raise denial

        logger.debug(f"Created agent {record.id} ({label}) under {parent_id} at depth {record.depth}")
        self.sink.emit(
            EventType.AGENT_CREATED,
            {
                "agent_id": record.id,
                "parent_id": parent_id,
                "label": label,
                "depth": record.depth,
                "can_delegate": handle.can_delegate,
                "total_agents": self.registry.count_active(),
            },
        )
        return handle

    def _admit_and_register(
        self,
        parent_id: str,
        label: str,
        parent_allowed: tuple[str, ...] | None = None,
    ) -> AgentRecord:
        with self.registry.lock:
            if parent_id != ROOT and parent_id not in self.registry:
                raise UnknownParentError(parent_id)

            decision = self.policy.can_create(parent_id, label, parent_allowed)
            if not decision.allowed:
                logger.info(f"Denied agent {label!r} under {parent_id}: {decision.reason}")
                raise AgentCreationDenied(decision.reason or "denied", parent_id, label)

            agent_id = self._id_factory(label)
            return self.registry.register(agent_id, parent_id, label)

    def _build_handle(
        self,
        record: AgentRecord,
        parent: AgentHandle | None,
        options: CreateOptions,
    ) -> AgentHandle:
        persona: PersonaConfig = self.personas.get(record.label)
        parent_caps = parent.capabilities if parent else CapabilitySet()

        requested = set(persona.capabilities)
        if options.capabilities is not None:
            requested &= {CapabilityScope(c) for c in options.capabilities}

        capabilities = parent_caps.narrow(
            requested,
            granted_by=record.parent_id,
            allow_delegation=options.allow_agent_creation,
        )
        return AgentHandle(
            id=record.id,
            parent_id=record.parent_id,
            depth=record.depth,
            label=record.label,
            capabilities=capabilities,
            persona=persona,
            metadata=dict(options.metadata),
        )

    # =========================================================================
    # Release
    # =========================================================================

    def release(self, agent_id: str) -> None:
        """
        Deregister an agent and run its cleanup callbacks.

        Idempotent. Cleanup callbacks are best effort: failures are logged
        and never prevent deregistration.
        """
        transitioned = self.registry.deregister(agent_id)
        if not transitioned:
            return

        with self._lock:
            handle = self._handles.get(agent_id)

        if handle is not None:
            for callback in handle.cleanup_callbacks:
                try:
                    callback(handle)
                except Exception:
                    logger.exception(f"Cleanup callback failed for agent {agent_id}")

        logger.debug(f"Released agent {agent_id}")
        self.sink.emit(
            EventType.AGENT_RELEASED,
            {"agent_id": agent_id, "total_agents": self.registry.count_active()},
        )

    def release_tree(self, agent_id: str) -> int:
        """
        Release an agent together with all of its descendants.

        Descendants are released deepest first.

        Returns:
            Number of agents that transitioned to inactive
        """
        ids = [agent_id] + self.registry.get_descendants(agent_id)
        ids = [i for i in ids if i in self.registry]
        ids.sort(key=lambda i: self.registry.get_depth(i), reverse=True)

        released = 0
        for current in ids:
            if self.registry.get(current).is_active:
                self.release(current)
                released += 1
        return released

    def release_expired(self, max_age_ms: float) -> int:
        """
        Release active agents older than `max_age_ms` (idle timeout sweep).

        Returns:
            Number of agents released
        """
        cutoff = self.registry.now() - max_age_ms / 1000.0
        expired = [
            r for r in self.registry.records(AgentStatus.ACTIVE)
            if r.created_at < cutoff
        ]
        # Deepest first so parents outlive their children in the audit log
        for record in sorted(expired, key=lambda r: r.depth, reverse=True):
            logger.info(f"Agent {record.id} exceeded {max_age_ms}ms, releasing")
            self.release(record.id)
        return len(expired)

    def cleanup_inactive(self, retention_ms: float = 3_600_000) -> int:
        """
        Purge inactive records older than the retention window.

        Returns:
            Number of records removed
        """
        removed = self.registry.purge_inactive_older_than(retention_ms)
        if removed:
            with self._lock:
                for agent_id in [i for i in self._handles if i not in self.registry]:
                    del self._handles[agent_id]
            logger.info(f"Purged {removed} inactive agent record(s)")
            self.sink.emit(EventType.AGENTS_PURGED, {"count": removed})
        return removed

    # =========================================================================
    # Inspection
    # =========================================================================

    def inspect(self) -> HierarchySnapshot:
        """Current hierarchy tree plus aggregate metrics."""
        with self.registry.lock:
            records = self.registry.records()
            tree = self.registry.build_tree()
            creations = self.registry.creation_totals()
            children = {
                parent: self.registry.get_children(parent)
                for parent in [ROOT] + [r.id for r in records]
            }

        active = [r for r in records if r.is_active]
        depth_distribution = dict(Counter(r.depth for r in active))
        parents_with_children = [len(c) for c in children.values() if c]

        return HierarchySnapshot(
            tree=tree,
            active_count=len(active),
            total_records=len(records),
            max_depth_observed=max((r.depth for r in records), default=0),
            depth_distribution=depth_distribution,
            creations_per_parent=creations,
            average_children_per_parent=(
                sum(parents_with_children) / len(parents_with_children)
                if parents_with_children
                else 0.0
            ),
            oldest_active=min(active, key=lambda r: r.created_at, default=None),
            newest_active=max(active, key=lambda r: r.created_at, default=None),
        )


class CleanupTimer:
    """Periodically sweeps expired and inactive agents on a daemon thread."""

    def __init__(
        self,
        manager: AgentLifecycleManager,
        interval_s: float,
        retention_ms: float,
        agent_timeout_ms: float | None = None,
    ):
        self.manager = manager
        self.interval_s = interval_s
        self.retention_ms = retention_ms
        self.agent_timeout_ms = agent_timeout_ms
        self._timer: threading.Timer | None = None
        self._stopped = threading.Event()
        self.last_run: float | None = None

    def start(self) -> None:
        self._stopped.clear()
        self._schedule()

    def stop(self) -> None:
        self._stopped.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def run_once(self) -> int:
        if self.agent_timeout_ms:
            self.manager.release_expired(self.agent_timeout_ms)
        removed = self.manager.cleanup_inactive(self.retention_ms)
        self.last_run = time.time()
        return removed

    def _schedule(self) -> None:
        if self._stopped.is_set():
            return
        self._timer = threading.Timer(self.interval_s, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _tick(self) -> None:
        try:
            self.run_once()
        except Exception:
            logger.exception("Periodic agent cleanup failed")
        finally:
            self._schedule()
