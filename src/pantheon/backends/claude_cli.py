"""
Claude Code CLI backend for delegated agents.

Runs a delegated task through the `claude` CLI with the agent's hierarchy
context and persona injected into the prompt, and with tool access derived
from the capabilities the agent was granted.
"""

import asyncio
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from pantheon.agents.base import AgentHandle
from pantheon.backends.base import ExecutionResult
from pantheon.errors import BackendExecutionError

logger = logging.getLogger(__name__)


@dataclass
class ClaudeCodeBackend:
    """
    Execution backend invoking Claude Code CLI.

    Handles:
    - Tool flags derived from the agent's capabilities
    - Persona and hierarchy context injection into prompts
    - Output capture; a failed run raises BackendExecutionError
    """

    # Working directory for CLI execution
    working_dir: Path | None = None

    # Model used when the persona names none
    default_model: str = "sonnet"

    # Timeout in seconds
    timeout: int = 300

    # Whether to use print mode (non-interactive)
    print_mode: bool = True

    executable: str = "claude"

    async def execute(self, handle: AgentHandle, task: str) -> ExecutionResult:
        cmd = self.build_command(handle, task)
        result = await asyncio.to_thread(self._run, cmd)
        if not result.success:
            raise BackendExecutionError(
                result.error or f"claude exited with {result.exit_code}",
                exit_code=result.exit_code,
            )
        return result

    def build_prompt(self, handle: AgentHandle, task: str) -> str:
        """Build full prompt with hierarchy and persona context."""
        parts = [handle.to_instruction_header()]

        parts.append("## Hierarchy Rules")
        parts.append(f"- Report results back to parent agent {handle.parent_id}")
        parts.append("- Do not interact directly with user")
        parts.append("- Stay within granted capability scope")
        if handle.can_delegate:
            parts.append("- You may create sub-agents with the Task tool when it helps")
        else:
            parts.append("- Do not create sub-agents")
        parts.append("- Complete task and return concise summary")
        parts.append("")

        parts.append("## Task")
        parts.append(task)
        return "\n".join(parts)

    def build_command(self, handle: AgentHandle, task: str) -> list[str]:
        """Build the claude CLI command."""
        cmd = [self.executable]

        if self.print_mode:
            cmd.append("--print")

        model = handle.persona.model if handle.persona else self.default_model
        cmd.extend(["--model", model or self.default_model])
        cmd.extend(handle.capabilities.to_cli_flags())
        cmd.append(self.build_prompt(handle, task))
        return cmd

    def _run(self, cmd: list[str]) -> ExecutionResult:
        """Execute the CLI command and capture output."""
        summary = " ".join(cmd[:-1])
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.working_dir,
            )
        except subprocess.TimeoutExpired:
            return ExecutionResult(
                success=False,
                output="",
                error=f"Command timed out after {self.timeout} seconds",
                exit_code=-1,
                metadata={"command": summary, "timeout": True},
            )
        except FileNotFoundError:
            return ExecutionResult(
                success=False,
                output="",
                error=f"{self.executable} command not found. Install with: npm install -g @anthropic-ai/claude-code",
                exit_code=-1,
                metadata={"command": summary, "not_found": True},
            )

        logger.debug(f"{summary} exited with {result.returncode}")
        return ExecutionResult(
            success=result.returncode == 0,
            output=result.stdout,
            error=result.stderr if result.returncode != 0 else None,
            exit_code=result.returncode,
            metadata={"command": summary},
        )
