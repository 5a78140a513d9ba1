"""
Runtime assembly.

Wires sink, registry, policy, personas, lifecycle, analyzer, backend and
router together from a PantheonConfig, and owns the optional periodic
cleanup timer.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from pantheon.agents.lifecycle import (
    AgentLifecycleManager,
    CleanupTimer,
    HierarchySnapshot,
    default_id_factory,
)
from pantheon.agents.personas import PersonaRegistry
from pantheon.agents.policy import SafetyPolicyEvaluator
from pantheon.agents.registry import HierarchyRegistry
from pantheon.backends.base import ExecutionBackend, LocalEchoBackend
from pantheon.config import PantheonConfig
from pantheon.events import ObservabilitySink
from pantheon.orchestration.complexity import ComplexityAnalyzer
from pantheon.orchestration.persona import Persona
from pantheon.orchestration.router import OrchestrationRouter
from pantheon.orchestration.workflows import WorkflowRunner

logger = logging.getLogger(__name__)


class Pantheon:
    """A configured agent hierarchy with hybrid orchestration."""

    def __init__(
        self,
        config: PantheonConfig | None = None,
        *,
        backend: ExecutionBackend | None = None,
        personas: PersonaRegistry | None = None,
        sink: ObservabilitySink | None = None,
        workflows: WorkflowRunner | None = None,
        clock: Callable[[], float] | None = None,
        id_factory: Callable[[str], str] = default_id_factory,
    ):
        self.config = config or PantheonConfig()

        if personas is None:
            personas = PersonaRegistry()
            if self.config.personas_file:
                personas.load_yaml(self.config.personas_file)
        self.personas = personas

        self.sink = sink or ObservabilitySink()
        self.registry = HierarchyRegistry(clock=clock)
        self.policy = SafetyPolicyEvaluator(self.registry, self.config.safety_limits())
        self.lifecycle = AgentLifecycleManager(
            self.registry,
            self.policy,
            self.personas,
            self.sink,
            id_factory=id_factory,
        )
        self.analyzer = ComplexityAnalyzer()
        self.backend = backend or LocalEchoBackend()
        self.router = OrchestrationRouter(
            analyzer=self.analyzer,
            lifecycle=self.lifecycle,
            backend=self.backend,
            workflows=workflows or WorkflowRunner(),
            sink=self.sink,
            threshold=self.config.complexity_threshold,
            mode=self.config.mode,
        )

        self._cleanup: CleanupTimer | None = None
        if self.config.cleanup_interval_s > 0:
            self._cleanup = CleanupTimer(
                self.lifecycle,
                interval_s=self.config.cleanup_interval_s,
                retention_ms=self.config.retention_ms,
                agent_timeout_ms=self.config.agent_timeout_ms,
            )

    def __enter__(self) -> "Pantheon":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()

    def start(self) -> None:
        self.sink.start()
        if self._cleanup is not None:
            self._cleanup.start()
            logger.debug(f"Cleanup sweep every {self.config.cleanup_interval_s}s")

    def shutdown(self) -> None:
        if self._cleanup is not None:
            self._cleanup.stop()
        self.sink.shutdown()

    def summon(self, label: str = "orchestrator") -> Persona:
        """
        Return a top-level persona.

        The persona acts as the hierarchy root: it is not a registered
        agent and does not count against max_total_agents.
        """
        root = self.lifecycle.root_handle
        if label != root.label:
            root = replace(root, label=label, persona=self.personas.get(label))
        return Persona(root, self.lifecycle, self.router)

    def inspect(self) -> HierarchySnapshot:
        return self.lifecycle.inspect()

    def sweep(self) -> int:
        """Run one cleanup sweep now. Returns the number of purged records."""
        self.lifecycle.release_expired(self.config.agent_timeout_ms)
        return self.lifecycle.cleanup_inactive(self.config.retention_ms)
