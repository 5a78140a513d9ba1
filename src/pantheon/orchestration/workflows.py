"""
Deterministic workflows - the fast, no-new-agent execution route.

A workflow is a fixed sequence of named steps. Each step is run by a step
handler; handlers are plain callables so personas can plug in their own
behaviour without subclassing.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pantheon.errors import ConfigError

StepHandler = Callable[["StepContext"], Any]


@dataclass(frozen=True)
class DeterministicWorkflow:
    """A named, fixed sequence of steps."""

    name: str
    steps: tuple[str, ...]
    description: str = ""


@dataclass
class StepContext:
    """What a step handler sees."""

    workflow: str
    step: str
    index: int
    task: str
    agent_id: str
    previous: list["StepResult"] = field(default_factory=list)


@dataclass
class StepResult:
    step: str
    output: Any
    duration_ms: float


@dataclass
class WorkflowResult:
    workflow: str
    task: str
    steps: list[StepResult] = field(default_factory=list)

    @property
    def output(self) -> Any:
        return self.steps[-1].output if self.steps else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow": self.workflow,
            "task": self.task,
            "steps": [
                {"step": s.step, "output": s.output, "duration_ms": round(s.duration_ms, 3)}
                for s in self.steps
            ],
        }


# Pre-defined workflow templates
WORKFLOWS: dict[str, DeterministicWorkflow] = {
    w.name: w
    for w in [
        DeterministicWorkflow(
            "analysis-to-implementation",
            ("analyze", "design", "implement", "test"),
            "Analyse requirements, design, implement and verify",
        ),
        DeterministicWorkflow(
            "security-review",
            ("threat-model", "audit", "remediate", "verify"),
            "Review code and configuration for security issues",
        ),
        DeterministicWorkflow(
            "rapid-prototype",
            ("scope", "implement", "demo"),
            "Build a minimal working prototype",
        ),
        DeterministicWorkflow(
            "ui-enhancement",
            ("audit-ui", "design", "implement", "review"),
            "Improve an existing user interface",
        ),
        DeterministicWorkflow(
            "full-stack-dev",
            ("plan", "architecture", "backend", "frontend", "test", "review"),
            "End-to-end feature development",
        ),
        DeterministicWorkflow(
            "product-planning",
            ("discover", "prioritize", "roadmap"),
            "Turn goals into a prioritised roadmap",
        ),
        DeterministicWorkflow(
            "design-system",
            ("inventory", "tokens", "components", "document"),
            "Establish a reusable design system",
        ),
    ]
}


def default_step_handler(ctx: StepContext) -> str:
    return f"{ctx.step} completed for: {ctx.task}"


class WorkflowRunner:
    """Executes deterministic workflows step by step."""

    def __init__(
        self,
        workflows: dict[str, DeterministicWorkflow] | None = None,
        step_handlers: dict[str, StepHandler] | None = None,
        default_handler: StepHandler = default_step_handler,
    ):
        self.workflows = dict(workflows or WORKFLOWS)
        self.step_handlers = dict(step_handlers or {})
        self.default_handler = default_handler

    def get(self, name: str) -> DeterministicWorkflow:
        workflow = self.workflows.get(name)
        if workflow is None:
            raise ConfigError(f"Unknown workflow: {name}")
        return workflow

    def register_step(self, step: str, handler: StepHandler) -> None:
        self.step_handlers[step] = handler

    def run(self, name: str, task: str, agent_id: str) -> WorkflowResult:
        """Run every step in order; a failing step aborts the workflow."""
        workflow = self.get(name)
        result = WorkflowResult(workflow=workflow.name, task=task)

        for index, step in enumerate(workflow.steps):
            handler = self.step_handlers.get(step, self.default_handler)
            ctx = StepContext(
                workflow=workflow.name,
                step=step,
                index=index,
                task=task,
                agent_id=agent_id,
                previous=list(result.steps),
            )
            started = time.perf_counter()
            output = handler(ctx)
            result.steps.append(
                StepResult(step, output, (time.perf_counter() - started) * 1000)
            )
        return result
