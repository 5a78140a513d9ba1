"""
Error taxonomy for the agent hierarchy.

Two families matter to callers:

- RecoverableAgentError: expected refusals (policy denials, missing
  delegation capability). Orchestration reacts by changing route.
- HierarchyIntegrityError: programming defects (id collisions, stale
  parent references, lookups of unknown agents). These are logged loudly
  and propagated.
"""


class PantheonError(Exception):
    """Base class for all pantheon errors."""


class ConfigError(PantheonError, ValueError):
    """Invalid configuration value."""


# =========================================================================
# Recoverable
# =========================================================================


class RecoverableAgentError(PantheonError):
    """Expected, recoverable refusal to create an agent."""


class AgentCreationDenied(RecoverableAgentError):
    """The safety policy refused to admit a new agent."""

    def __init__(self, reason: str, parent_id: str | None = None, label: str = ""):
        self.reason = reason
        self.parent_id = parent_id
        self.label = label
        super().__init__(f"Cannot create sub-agent: {reason}")


class DelegationNotPermittedError(RecoverableAgentError):
    """The parent agent does not hold the delegation capability."""

    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        super().__init__(f"Agent {parent_id} is not permitted to create sub-agents")


# =========================================================================
# Defects
# =========================================================================


class HierarchyIntegrityError(PantheonError):
    """The hierarchy was asked to do something that indicates a bug."""


class DuplicateIdError(HierarchyIntegrityError):
    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(f"Agent id already registered: {agent_id}")


class UnknownParentError(HierarchyIntegrityError):
    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        super().__init__(f"Parent is not an active agent: {parent_id}")


class NotFoundError(HierarchyIntegrityError, LookupError):
    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(f"Unknown agent: {agent_id}")


# =========================================================================
# Backend
# =========================================================================


class BackendExecutionError(PantheonError):
    """An execution backend failed to run a delegated task."""

    def __init__(self, message: str, exit_code: int | None = None):
        self.exit_code = exit_code
        super().__init__(message)
