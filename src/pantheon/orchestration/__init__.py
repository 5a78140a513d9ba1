"""
Hybrid orchestration: complexity scoring, routing and personas.

Simple tasks run as deterministic workflows inside the calling persona;
complex ones are delegated to a freshly created sub-agent.
"""

from pantheon.orchestration.complexity import (
    ComplexityAnalyzer,
    ComplexityScore,
    ComplexityWeights,
)
from pantheon.orchestration.persona import Persona
from pantheon.orchestration.router import (
    ExecutionPath,
    OrchestrationMetrics,
    OrchestrationMode,
    OrchestrationResult,
    OrchestrationRouter,
)
from pantheon.orchestration.workflows import (
    WORKFLOWS,
    DeterministicWorkflow,
    StepContext,
    WorkflowResult,
    WorkflowRunner,
)

__all__ = [
    "WORKFLOWS",
    "ComplexityAnalyzer",
    "ComplexityScore",
    "ComplexityWeights",
    "DeterministicWorkflow",
    "ExecutionPath",
    "OrchestrationMetrics",
    "OrchestrationMode",
    "OrchestrationResult",
    "OrchestrationRouter",
    "Persona",
    "StepContext",
    "WorkflowResult",
    "WorkflowRunner",
]
