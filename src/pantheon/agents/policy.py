"""
Safety Policy - admission rules for new agents.

The evaluator is a pure decision function over the hierarchy registry and
the limits it was built with. Denials are returned as values; only the
lifecycle manager turns them into exceptions.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pantheon.errors import ConfigError

if TYPE_CHECKING:
    from pantheon.agents.registry import HierarchyRegistry

# Denial reasons, also used as prefixes of AgentCreationDenied messages
REASON_TOTAL = "Maximum total agents reached"
REASON_DEPTH = "Maximum depth exceeded"
REASON_LABEL = "Label not permitted for this agent"
REASON_PER_PARENT = "Maximum agents per parent reached"
REASON_RATE = "Rate limit exceeded"


@dataclass(frozen=True)
class SafetyLimits:
    """Limits governing agent creation."""

    max_total_agents: int = 10  # Active agents across the whole hierarchy
    max_depth: int = 3  # Deepest allowed agent (root persona is depth 0)
    rate_window_ms: int = 60_000  # Sliding window for per-parent rate cap
    rate_limit_count: int = 10  # Creations allowed per parent per window
    allowed_labels: frozenset[str] = frozenset()  # Empty = unrestricted
    max_children_per_parent: int | None = None  # Active children per parent

    def __post_init__(self) -> None:
        if self.max_total_agents < 0:
            raise ConfigError("max_total_agents must be >= 0")
        if self.max_depth < 0:
            raise ConfigError("max_depth must be >= 0")
        if self.rate_window_ms < 0 or self.rate_limit_count < 0:
            raise ConfigError("rate limits must be >= 0")
        if self.max_children_per_parent is not None and self.max_children_per_parent < 0:
            raise ConfigError("max_children_per_parent must be >= 0")
        # Accept any iterable of labels
        object.__setattr__(self, "allowed_labels", frozenset(self.allowed_labels))


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of an admission check."""

    allowed: bool
    reason: str | None = None
    metrics: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.allowed


class SafetyPolicyEvaluator:
    """
    Decides whether a parent may create another agent.

    Checks run in a fixed order and the first failing one wins:
    total cap, depth, label allow-list, per-parent cap, rate limit.
    """

    def __init__(self, registry: HierarchyRegistry, limits: SafetyLimits | None = None):
        self._registry = registry
        self._limits = limits or SafetyLimits()
        registry.retain_creations_for(self._limits.rate_window_ms)

    @property
    def limits(self) -> SafetyLimits:
        return self._limits

    def can_create(
        self,
        parent_id: str,
        requested_label: str = "",
        parent_allowed: Collection[str] | None = None,
    ) -> PolicyDecision:
        """
        Check whether `parent_id` may create an agent labelled `requested_label`.

        `parent_allowed` is the creator's own label allow-list, checked in the
        same step as the global one. None means the creator adds no restriction;
        "*" permits any label.

        Raises:
            NotFoundError: `parent_id` is neither ROOT nor a known agent
        """
        limits = self._limits
        registry = self._registry

        with registry.lock:
            active = registry.count_active()
            if active >= limits.max_total_agents:
                return PolicyDecision(
                    False,
                    REASON_TOTAL,
                    {"total_agents": active},
                )

            depth = registry.get_depth(parent_id) + 1
            if depth > limits.max_depth:
                return PolicyDecision(
                    False,
                    REASON_DEPTH,
                    {"total_agents": active, "depth": depth},
                )

            if not self._label_permitted(requested_label, parent_allowed):
                return PolicyDecision(
                    False,
                    REASON_LABEL,
                    {"total_agents": active, "depth": depth},
                )

            children = registry.count_active_children(parent_id)
            if (
                limits.max_children_per_parent is not None
                and children >= limits.max_children_per_parent
            ):
                return PolicyDecision(
                    False,
                    REASON_PER_PARENT,
                    {"total_agents": active, "depth": depth, "child_count": children},
                )

            since = registry.now() - limits.rate_window_ms / 1000.0
            recent = registry.count_created_since(parent_id, since)
            if recent >= limits.rate_limit_count:
                return PolicyDecision(
                    False,
                    REASON_RATE,
                    {"total_agents": active, "depth": depth, "recent_creations": recent},
                )

        return PolicyDecision(
            True,
            None,
            {
                "total_agents": active,
                "depth": depth,
                "child_count": children,
                "recent_creations": recent,
            },
        )

    def _label_permitted(self, label: str, parent_allowed: Collection[str] | None) -> bool:
        allowed = self._limits.allowed_labels
        if allowed and label not in allowed:
            return False
        if parent_allowed is not None and "*" not in parent_allowed:
            return label in parent_allowed
        return True
