"""
Persona - the externally visible actor.

A persona wraps an agent handle together with the lifecycle manager and
the router. Its whole interface is `orchestrate` and `create_sub_agent`;
what distinguishes Zeus from Hephaestus is configuration (PersonaConfig),
not a subclass.
"""

import logging
from collections.abc import Iterable

from pantheon.agents.base import AgentHandle, CreateOptions
from pantheon.agents.lifecycle import AgentLifecycleManager
from pantheon.agents.permissions import CapabilityScope
from pantheon.agents.personas import PersonaConfig
from pantheon.orchestration.router import OrchestrationResult, OrchestrationRouter

logger = logging.getLogger(__name__)


class Persona:
    def __init__(
        self,
        handle: AgentHandle,
        lifecycle: AgentLifecycleManager,
        router: OrchestrationRouter,
    ):
        self.handle = handle
        self.lifecycle = lifecycle
        self.router = router
        self._delegates: list[Persona] = []

    def __repr__(self) -> str:
        return f"Persona(id={self.id!r}, label={self.label!r}, depth={self.depth})"

    @property
    def id(self) -> str:
        return self.handle.id

    @property
    def label(self) -> str:
        return self.handle.label

    @property
    def depth(self) -> int:
        return self.handle.depth

    @property
    def config(self) -> PersonaConfig | None:
        return self.handle.persona

    @property
    def delegates(self) -> list["Persona"]:
        return list(self._delegates)

    async def orchestrate(self, task: str) -> OrchestrationResult:
        """Run a task through the router; always completes or raises."""
        return await self.router.route(self, task)

    def create_sub_agent(
        self,
        label: str,
        *,
        allow_agent_creation: bool = False,
        capabilities: Iterable[CapabilityScope | str] | None = None,
    ) -> "Persona":
        """
        Create a delegate persona of type `label`.

        On top of the global allow-list, a persona may only create the
        persona types listed in its own `allowed_labels`. Both are checked in
        the policy's label step, after the total and depth caps.

        Raises:
            AgentCreationDenied: label not allowed, or the policy refused
            DelegationNotPermittedError: this persona may not delegate
        """
        allowed = self.config.allowed_labels if self.config is not None else None
        handle = self.lifecycle.create_sub_agent(
            self.id,
            label,
            CreateOptions(
                allow_agent_creation=allow_agent_creation,
                capabilities=capabilities,
                parent_allowed_labels=allowed,
            ),
        )
        delegate = Persona(handle, self.lifecycle, self.router)
        self._delegates.append(delegate)
        logger.debug(f"{self.label} created delegate {handle.id} ({label})")
        return delegate

    def release(self) -> None:
        """Release this persona's agent. Idempotent; a no-op for the root."""
        self.lifecycle.release(self.id)

    def dismiss(self) -> int:
        """
        Release every delegate this persona created, with their subtrees.

        Returns:
            Number of agents released
        """
        released = 0
        for delegate in self._delegates:
            released += self.lifecycle.release_tree(delegate.id)
        self._delegates.clear()
        return released
