"""
Base data types for the agent hierarchy.

Defines agent records, handles and the derived hierarchy tree.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pantheon.agents.permissions import CapabilityScope, CapabilitySet

if TYPE_CHECKING:
    from pantheon.agents.personas import PersonaConfig

# Sentinel parent of every top-level agent. The top-level persona itself
# is identified by it and sits at depth 0.
ROOT = "root"


class AgentStatus(str, Enum):
    """Lifecycle status of a registered agent."""

    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class AgentRecord:
    """
    Bookkeeping for one live or recently live agent.

    Records are immutable; a status change replaces the record in the
    registry, so `depth` can never drift after registration.
    """

    id: str
    parent_id: str
    depth: int
    created_at: float
    status: AgentStatus = AgentStatus.ACTIVE
    label: str = ""
    released_at: float | None = None

    @property
    def is_active(self) -> bool:
        return self.status == AgentStatus.ACTIVE

    @property
    def is_top_level(self) -> bool:
        return self.parent_id == ROOT

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "depth": self.depth,
            "created_at": datetime.fromtimestamp(self.created_at).isoformat(),
            "status": self.status.value,
            "label": self.label,
        }


@dataclass(frozen=True)
class AuditEntry:
    """One line of the registry's append-only audit trail."""

    action: str  # register | deregister | purge
    agent_id: str
    parent_id: str
    depth: int
    timestamp: float


@dataclass
class CreateOptions:
    """Options for creating a sub-agent."""

    # Grant the new agent the capability to create its own sub-agents
    allow_agent_creation: bool = False

    # Narrow the persona's capabilities further (None = persona default)
    capabilities: Iterable[CapabilityScope | str] | None = None

    # Labels the creator itself may spawn, checked with the global allow-list
    # (None = no extra restriction, "*" = any label)
    parent_allowed_labels: tuple[str, ...] | None = None

    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentHandle:
    """
    What an agent holds after creation.

    The handle carries the agent's identity, position in the hierarchy and
    the capabilities it was granted. Holding DELEGATE is what allows the
    agent to act as a parent in `create_sub_agent`.
    """

    id: str
    parent_id: str
    depth: int
    label: str
    capabilities: CapabilitySet
    persona: "PersonaConfig | None" = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)
    _cleanup_callbacks: list[Callable[["AgentHandle"], Any]] = field(
        default_factory=list, compare=False, repr=False
    )

    @property
    def is_root(self) -> bool:
        return self.id == ROOT

    @property
    def can_delegate(self) -> bool:
        return self.capabilities.can_delegate

    def on_release(self, callback: Callable[["AgentHandle"], Any]) -> None:
        """Register a callback run (best effort) when the agent is released."""
        self._cleanup_callbacks.append(callback)

    @property
    def cleanup_callbacks(self) -> list[Callable[["AgentHandle"], Any]]:
        return list(self._cleanup_callbacks)

    def to_instruction_header(self) -> str:
        """Generate instruction header for the agent's prompt."""
        god = self.persona.god.title() if self.persona else self.label
        header = f"""# Agent: {god} ({self.label})

ID: {self.id}
Parent: {self.parent_id}
Depth: {self.depth}
Capabilities: {", ".join(self.capabilities.values()) or "None"}
May create sub-agents: {"yes" if self.can_delegate else "no"}
"""
        if self.persona:
            header += "\n" + self.persona.to_prompt()
        return header


@dataclass
class HierarchyNode:
    """Read-only projection of one agent in the hierarchy tree."""

    id: str
    label: str
    depth: int
    status: str
    children: list["HierarchyNode"] = field(default_factory=list)

    @property
    def descendant_count(self) -> int:
        return sum(1 + child.descendant_count for child in self.children)

    def find(self, agent_id: str) -> "HierarchyNode | None":
        if self.id == agent_id:
            return self
        for child in self.children:
            found = child.find(agent_id)
            if found:
                return found
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "depth": self.depth,
            "status": self.status,
            "descendant_count": self.descendant_count,
            "children": [c.to_dict() for c in self.children],
        }

    def render(self, indent: str = "") -> str:
        """Render as an indented text tree."""
        lines = [f"{indent}{self.id} [{self.label}] depth={self.depth} {self.status}"]
        for child in self.children:
            lines.append(child.render(indent + "  "))
        return "\n".join(lines)
