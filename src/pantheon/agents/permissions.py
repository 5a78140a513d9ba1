"""
Capability model for agent delegation.

A child agent never holds more than its creator: every capability set
handed to a delegate is the intersection of what its persona asks for and
what the parent holds, optionally narrowed further by the caller.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CapabilityScope(str, Enum):
    """Scope of capability grants."""

    # File operations
    READ_FILES = "read_files"
    WRITE_FILES = "write_files"
    EDIT_FILES = "edit_files"

    # Command execution
    BASH_SAFE = "bash_safe"  # Safe commands (git, npm, etc.)
    BASH_WRITE = "bash_write"  # Commands that modify files
    BASH_NETWORK = "bash_network"  # Network operations

    # Coordination
    TODO = "todo"
    MEMORY = "memory"

    # Creating further sub-agents
    DELEGATE = "delegate"

    # All capabilities (root persona only)
    ALL = "all"


# Every concrete scope, i.e. what ALL expands to
CONCRETE_SCOPES: frozenset[CapabilityScope] = frozenset(
    s for s in CapabilityScope if s is not CapabilityScope.ALL
)

SCOPE_TO_TOOLS: dict[CapabilityScope, list[str]] = {
    CapabilityScope.READ_FILES: ["Read", "Glob", "Grep"],
    CapabilityScope.WRITE_FILES: ["Write"],
    CapabilityScope.EDIT_FILES: ["Edit"],
    CapabilityScope.BASH_SAFE: ["Bash(git:*)", "Bash(npm:*)"],
    CapabilityScope.BASH_WRITE: ["Bash"],
    CapabilityScope.BASH_NETWORK: ["Bash(curl:*)", "WebFetch"],
    CapabilityScope.TODO: ["TodoWrite"],
    CapabilityScope.MEMORY: ["Memory"],
    CapabilityScope.DELEGATE: ["Task"],
}


@dataclass(frozen=True)
class CapabilityGrant:
    """
    A capability granted from parent to child agent.

    `granted_by` records which agent handed the scope down so that the
    provenance of a delegate's privileges can be inspected.
    """

    scope: CapabilityScope
    granted_by: str
    constraints: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_tools(self) -> list[str]:
        """Tool names this grant unlocks for a CLI backend."""
        return list(SCOPE_TO_TOOLS.get(self.scope, []))


@dataclass(frozen=True)
class CapabilitySet:
    """Immutable collection of capability grants held by one agent."""

    grants: tuple[CapabilityGrant, ...] = ()

    @classmethod
    def of(cls, scopes: Iterable[CapabilityScope | str], granted_by: str) -> "CapabilitySet":
        """Build a set from scope values, all granted by the same agent."""
        unique = []
        for scope in scopes:
            scope = CapabilityScope(scope)
            if scope not in unique:
                unique.append(scope)
        return cls(grants=tuple(CapabilityGrant(scope=s, granted_by=granted_by) for s in unique))

    def has(self, scope: CapabilityScope) -> bool:
        """Check if a specific capability is held."""
        return any(
            g.scope == scope or g.scope == CapabilityScope.ALL for g in self.grants
        )

    @property
    def can_delegate(self) -> bool:
        return self.has(CapabilityScope.DELEGATE)

    def scopes(self) -> frozenset[CapabilityScope]:
        """Concrete scopes held, with ALL expanded."""
        if any(g.scope == CapabilityScope.ALL for g in self.grants):
            return CONCRETE_SCOPES
        return frozenset(g.scope for g in self.grants)

    def narrow(
        self,
        requested: Iterable[CapabilityScope | str],
        *,
        granted_by: str,
        allow_delegation: bool = False,
    ) -> "CapabilitySet":
        """
        Derive a child's capability set.

        The result holds only scopes present both here and in `requested`.
        DELEGATE is never inherited implicitly: it is added only when
        `allow_delegation` is set and this set holds it. The result never
        contains ALL.
        """
        held = self.scopes()
        wanted = {CapabilityScope(s) for s in requested}
        if CapabilityScope.ALL in wanted:
            wanted = set(CONCRETE_SCOPES)
        wanted.discard(CapabilityScope.DELEGATE)

        kept = [s for s in CapabilityScope if s in wanted and s in held]
        if allow_delegation and CapabilityScope.DELEGATE in held:
            kept.append(CapabilityScope.DELEGATE)
        return CapabilitySet.of(kept, granted_by=granted_by)

    def is_subset_of(self, other: "CapabilitySet") -> bool:
        return self.scopes() <= other.scopes()

    def to_tools(self) -> list[str]:
        """Flatten grants into a de-duplicated tool list."""
        tools: list[str] = []
        for scope in sorted(self.scopes(), key=lambda s: s.value):
            for tool in SCOPE_TO_TOOLS.get(scope, []):
                if tool not in tools:
                    tools.append(tool)
        return tools

    def to_cli_flags(self) -> list[str]:
        """Convert capabilities to Claude Code CLI flags."""
        if any(g.scope == CapabilityScope.ALL for g in self.grants):
            return ["--dangerously-skip-permissions"]

        tools = self.to_tools()
        if not tools:
            return []
        return ["--allowedTools", ",".join(tools)]

    def values(self) -> list[str]:
        return sorted(s.value for s in self.scopes())


# Root persona holds everything, including delegation
ROOT_CAPABILITIES = CapabilitySet(
    grants=(CapabilityGrant(scope=CapabilityScope.ALL, granted_by="system"),)
)
