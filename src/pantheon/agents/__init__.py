"""
Agent Safety & Hierarchy Manager.

Governs how many sub-agents may exist at once, how deeply they nest, how
fast they spawn, and how parent/child relationships are tracked and torn
down:

- HierarchyRegistry: system of record for agent bookkeeping
- SafetyPolicyEvaluator: admission rules over the registry
- AgentLifecycleManager: the only API that creates or releases agents

Capabilities flow downward only: a delegate never holds a privilege its
creator lacks.
"""

from pantheon.agents.base import (
    ROOT,
    AgentHandle,
    AgentRecord,
    AgentStatus,
    AuditEntry,
    CreateOptions,
    HierarchyNode,
)
from pantheon.agents.lifecycle import AgentLifecycleManager, CleanupTimer, HierarchySnapshot
from pantheon.agents.permissions import CapabilityGrant, CapabilityScope, CapabilitySet
from pantheon.agents.personas import DEFAULT_PERSONAS, PersonaConfig, PersonaRegistry
from pantheon.agents.policy import PolicyDecision, SafetyLimits, SafetyPolicyEvaluator
from pantheon.agents.registry import HierarchyRegistry

__all__ = [
    "DEFAULT_PERSONAS",
    "ROOT",
    "AgentHandle",
    "AgentLifecycleManager",
    "AgentRecord",
    "AgentStatus",
    "AuditEntry",
    "CapabilityGrant",
    "CapabilityScope",
    "CapabilitySet",
    "CleanupTimer",
    "CreateOptions",
    "HierarchyNode",
    "HierarchyRegistry",
    "HierarchySnapshot",
    "PersonaConfig",
    "PersonaRegistry",
    "PolicyDecision",
    "SafetyLimits",
    "SafetyPolicyEvaluator",
]
