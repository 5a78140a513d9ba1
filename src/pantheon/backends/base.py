"""
Execution backend contract.

The router hands delegated tasks to a backend and awaits the result. A
backend signals failure by raising; whatever it returns is treated as a
completed execution.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pantheon.agents.base import AgentHandle


@dataclass
class ExecutionResult:
    """Result from a backend execution."""

    success: bool
    output: str
    error: str | None = None
    exit_code: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "exit_code": self.exit_code,
            "metadata": self.metadata,
        }


@runtime_checkable
class ExecutionBackend(Protocol):
    async def execute(self, handle: AgentHandle, task: str) -> ExecutionResult:
        """Run `task` as the agent described by `handle`; raise on failure."""
        ...


class LocalEchoBackend:
    """
    Backend that completes tasks without invoking any model.

    Useful for dry runs and for exercising the hierarchy end to end.
    """

    def __init__(self, delay_s: float = 0.0):
        self.delay_s = delay_s
        self.calls: list[tuple[str, str]] = []

    async def execute(self, handle: AgentHandle, task: str) -> ExecutionResult:
        self.calls.append((handle.id, task))
        if self.delay_s:
            await asyncio.sleep(self.delay_s)

        god = handle.persona.god.title() if handle.persona else handle.label
        return ExecutionResult(
            success=True,
            output=f"{god} ({handle.id}) handled: {task}",
            metadata={"agent_id": handle.id, "depth": handle.depth},
        )
