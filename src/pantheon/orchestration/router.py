"""
Orchestration Router - picks the deterministic or the delegated path.

Per task:

    analyze → overall ≤ threshold → deterministic workflow
            → overall > threshold → create delegate → backend.execute → release

Delegation is an optimisation, never a requirement. A denied delegate, or
a backend that fails after the delegate was created, falls back to the
deterministic workflow. The original execution error is raised only when
that fallback fails as well.
"""

import logging
import threading
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pantheon.agents.base import CreateOptions
from pantheon.agents.lifecycle import AgentLifecycleManager
from pantheon.backends.base import ExecutionBackend, ExecutionResult
from pantheon.errors import AgentCreationDenied, DelegationNotPermittedError
from pantheon.events import EventType, ObservabilitySink
from pantheon.orchestration.complexity import ComplexityAnalyzer, ComplexityScore
from pantheon.orchestration.workflows import WorkflowResult, WorkflowRunner

if TYPE_CHECKING:
    from pantheon.orchestration.persona import Persona

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 5
DEFAULT_WORKFLOW = "analysis-to-implementation"
DELEGATE_LABEL = "orchestrator"


class OrchestrationMode(str, Enum):
    """How the router chooses a path."""

    HYBRID = "hybrid"  # complexity threshold decides
    DETERMINISTIC = "deterministic"  # never delegate
    DELEGATED = "delegated"  # always try to delegate


class ExecutionPath(str, Enum):
    DETERMINISTIC = "deterministic"
    DELEGATED = "delegated"


@dataclass
class OrchestrationMetrics:
    """Observable counters; never consulted by the routing decision."""

    deterministic_runs: int = 0
    delegated_runs: int = 0
    sub_agents_created: int = 0
    fallbacks: int = 0
    failures: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class OrchestrationResult:
    """Outcome of one routed task."""

    task: str
    path: ExecutionPath
    complexity: ComplexityScore
    output: Any = None
    delegate_id: str | None = None
    fell_back: bool = False
    fallback_reason: str | None = None
    workflow: WorkflowResult | None = None
    execution: ExecutionResult | None = None

    @property
    def completed(self) -> bool:
        return self.workflow is not None or self.execution is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task,
            "path": self.path.value,
            "complexity": self.complexity.to_dict(),
            "output": self.output,
            "delegate_id": self.delegate_id,
            "fell_back": self.fell_back,
            "fallback_reason": self.fallback_reason,
            "workflow": self.workflow.to_dict() if self.workflow else None,
            "execution": self.execution.to_dict() if self.execution else None,
        }


@dataclass
class OrchestrationRouter:
    """Routes tasks between local workflows and delegated agents."""

    analyzer: ComplexityAnalyzer
    lifecycle: AgentLifecycleManager
    backend: ExecutionBackend
    workflows: WorkflowRunner = field(default_factory=WorkflowRunner)
    sink: ObservabilitySink | None = None
    threshold: int = DEFAULT_THRESHOLD
    mode: OrchestrationMode = OrchestrationMode.HYBRID
    metrics: OrchestrationMetrics = field(default_factory=OrchestrationMetrics)

    def __post_init__(self) -> None:
        self.mode = OrchestrationMode(self.mode)
        if self.sink is None:
            self.sink = self.lifecycle.sink
        self._metrics_lock = threading.Lock()

    def choose_path(self, score: ComplexityScore) -> ExecutionPath:
        if self.mode == OrchestrationMode.DETERMINISTIC:
            return ExecutionPath.DETERMINISTIC
        if self.mode == OrchestrationMode.DELEGATED:
            return ExecutionPath.DELEGATED
        if score.overall > self.threshold:
            return ExecutionPath.DELEGATED
        return ExecutionPath.DETERMINISTIC

    async def route(self, persona: "Persona", task: str) -> OrchestrationResult:
        """
        Execute `task` on behalf of `persona`.

        Never raises AgentCreationDenied or DelegationNotPermittedError;
        those only change the route.
        """
        score = self.analyzer.analyze(task)
        path = self.choose_path(score)
        logger.debug(f"Task scored {score.overall} for {persona.id}, taking {path.value} path")

        if path == ExecutionPath.DETERMINISTIC:
            return self._run_deterministic(persona, task, score)
        return await self._run_delegated(persona, task, score)

    # =========================================================================
    # Paths
    # =========================================================================

    def _run_deterministic(
        self,
        persona: "Persona",
        task: str,
        score: ComplexityScore,
        fallback_reason: str | None = None,
    ) -> OrchestrationResult:
        config = persona.config
        workflow_name = config.workflow if config else DEFAULT_WORKFLOW

        workflow = self.workflows.run(workflow_name, task, persona.id)
        self._count("deterministic_runs")
        self.sink.emit(
            EventType.ORCHESTRATION_DETERMINISTIC,
            {
                "agent_id": persona.id,
                "workflow": workflow.workflow,
                "complexity": score.overall,
                "fallback": fallback_reason is not None,
            },
        )
        return OrchestrationResult(
            task=task,
            path=ExecutionPath.DETERMINISTIC,
            complexity=score,
            output=workflow.output,
            fell_back=fallback_reason is not None,
            fallback_reason=fallback_reason,
            workflow=workflow,
        )

    async def _run_delegated(
        self,
        persona: "Persona",
        task: str,
        score: ComplexityScore,
    ) -> OrchestrationResult:
        self._count("delegated_runs")
        self.sink.emit(
            EventType.ORCHESTRATION_DELEGATED,
            {"agent_id": persona.id, "complexity": score.overall},
        )

        try:
            delegate = self.lifecycle.create_sub_agent(
                persona.id,
                DELEGATE_LABEL,
                CreateOptions(allow_agent_creation=True),
            )
        except (AgentCreationDenied, DelegationNotPermittedError) as e:
            return self._fall_back(persona, task, score, str(e))

        self._count("sub_agents_created")
        try:
            execution = await self.backend.execute(delegate, task)
        except Exception as e:
            self._count("failures")
            logger.warning(f"Delegate {delegate.id} failed: {e}")
            self.lifecycle.release(delegate.id)
            try:
                return self._fall_back(persona, task, score, f"Delegate execution failed: {e}")
            except Exception as fallback_error:
                logger.error(f"Fallback for {persona.id} failed as well: {fallback_error}")
                raise e from fallback_error
        finally:
            self.lifecycle.release(delegate.id)

        return OrchestrationResult(
            task=task,
            path=ExecutionPath.DELEGATED,
            complexity=score,
            output=execution.output,
            delegate_id=delegate.id,
            execution=execution,
        )

    def _fall_back(
        self,
        persona: "Persona",
        task: str,
        score: ComplexityScore,
        reason: str,
    ) -> OrchestrationResult:
        logger.info(f"Falling back to deterministic path for {persona.id}: {reason}")
        self._count("fallbacks")
        self.sink.emit(
            EventType.ORCHESTRATION_FALLBACK,
            {"agent_id": persona.id, "reason": reason, "complexity": score.overall},
        )
        return self._run_deterministic(persona, task, score, fallback_reason=reason)

    def _count(self, name: str) -> None:
        with self._metrics_lock:
            setattr(self.metrics, name, getattr(self.metrics, name) + 1)
