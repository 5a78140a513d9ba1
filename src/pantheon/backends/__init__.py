"""
Execution backends for delegated agents.

- LocalEchoBackend: completes tasks without a model (dry runs, tests)
- ClaudeCodeBackend: runs tasks through the Claude Code CLI
"""

from pantheon.backends.base import ExecutionBackend, ExecutionResult, LocalEchoBackend
from pantheon.backends.claude_cli import ClaudeCodeBackend

BACKENDS = {
    "echo": LocalEchoBackend,
    "claude": ClaudeCodeBackend,
}

__all__ = [
    "BACKENDS",
    "ClaudeCodeBackend",
    "ExecutionBackend",
    "ExecutionResult",
    "LocalEchoBackend",
]
