"""
Persona registry for the pantheon.

Each persona type ("orchestrator", "architect", "developer", ...) is plain
configuration: the god who plays it, the capabilities it asks for, the
persona types it may itself create and the deterministic workflow it runs
when it handles a task without delegating.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from pantheon.agents.permissions import CapabilityScope
from pantheon.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersonaConfig:
    """
    Configuration for one persona type.

    Combines a professional identity with the mythological god presenting
    it. Capabilities listed here are requests: the lifecycle manager
    intersects them with whatever the creating agent actually holds.
    """

    # Persona type, used as the agent label
    label: str

    # God playing this persona
    god: str

    # Professional identity (determines quality of work)
    professional: str

    traits: tuple[str, ...] = ()
    capabilities: tuple[CapabilityScope, ...] = ()
    tools: tuple[str, ...] = ()

    # Persona types this persona may create; ("*",) means any
    allowed_labels: tuple[str, ...] = ()

    # Deterministic workflow template name
    workflow: str = "analysis-to-implementation"

    # Preferred model for CLI backends
    model: str = "sonnet"

    def may_create(self, label: str) -> bool:
        return "*" in self.allowed_labels or label in self.allowed_labels

    def to_prompt(self) -> str:
        """Generate persona prompt for agent instructions."""
        traits_str = ", ".join(self.traits) if self.traits else "none"
        return f"""## Persona

God: {self.god.title()}
Professional Role: {self.professional}
Traits: {traits_str}

Maintain professional quality in all work while presenting
with the voice of {self.god.title()}.
"""

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "god": self.god,
            "professional": self.professional,
            "traits": list(self.traits),
            "capabilities": [c.value for c in self.capabilities],
            "tools": list(self.tools),
            "allowed_labels": list(self.allowed_labels),
            "workflow": self.workflow,
            "model": self.model,
        }

    @classmethod
    def from_dict(cls, label: str, data: dict[str, Any]) -> "PersonaConfig":
        """Create from a mapping, e.g. one entry of a personas YAML file."""
        try:
            capabilities = tuple(CapabilityScope(c) for c in data.get("capabilities", []))
        except ValueError as e:
            raise ConfigError(f"Persona {label!r}: {e}") from e

        return cls(
            label=label,
            god=data.get("god", label),
            professional=data.get("professional", label.title()),
            traits=tuple(data.get("traits", [])),
            capabilities=capabilities,
            tools=tuple(data.get("tools", [])),
            allowed_labels=tuple(data.get("allowed_labels", [])),
            workflow=data.get("workflow", "analysis-to-implementation"),
            model=data.get("model", "sonnet"),
        )


_FILES_RW = (
    CapabilityScope.READ_FILES,
    CapabilityScope.WRITE_FILES,
    CapabilityScope.EDIT_FILES,
)

# Pre-defined personas of the pantheon
DEFAULT_PERSONAS: dict[str, PersonaConfig] = {
    "orchestrator": PersonaConfig(
        label="orchestrator",
        god="zeus",
        professional="Senior Project Manager / Technical Architect",
        traits=("strategic", "decisive", "orchestrating"),
        capabilities=(*_FILES_RW, CapabilityScope.BASH_SAFE, CapabilityScope.TODO, CapabilityScope.MEMORY),
        tools=("Task", "TodoWrite", "Memory", "Read", "Write", "Edit", "Bash"),
        allowed_labels=("orchestrator", "architect", "developer", "designer", "tester", "security", "strategist"),
        workflow="analysis-to-implementation",
        model="opus",
    ),
    "meta-orchestrator": PersonaConfig(
        label="meta-orchestrator",
        god="janus",
        professional="Principal Engineer / Workflow Designer",
        traits=("adaptive", "exploratory", "systemic"),
        capabilities=(*_FILES_RW, CapabilityScope.BASH_SAFE, CapabilityScope.TODO, CapabilityScope.MEMORY),
        tools=("Task", "TodoWrite", "Memory", "Read", "Write"),
        allowed_labels=("*",),
        workflow="full-stack-dev",
        model="opus",
    ),
    "architect": PersonaConfig(
        label="architect",
        god="daedalus",
        professional="Software Architect",
        traits=("structured", "far-sighted", "pattern-minded"),
        capabilities=(*_FILES_RW, CapabilityScope.TODO, CapabilityScope.MEMORY),
        tools=("Read", "Write", "Edit", "TodoWrite", "Memory"),
        allowed_labels=("developer", "designer"),
        workflow="analysis-to-implementation",
    ),
    "developer": PersonaConfig(
        label="developer",
        god="hephaestus",
        professional="Senior Software Engineer",
        traits=("precise", "efficient", "detail-oriented"),
        capabilities=(*_FILES_RW, CapabilityScope.BASH_SAFE, CapabilityScope.BASH_WRITE, CapabilityScope.TODO),
        tools=("Read", "Write", "Edit", "Bash", "TodoWrite", "Memory"),
        allowed_labels=("reviewer", "tester"),
        workflow="rapid-prototype",
    ),
    "designer": PersonaConfig(
        label="designer",
        god="apollo",
        professional="UI/UX Designer",
        traits=("aesthetic", "empathetic", "user-focused"),
        capabilities=(*_FILES_RW, CapabilityScope.TODO),
        tools=("Read", "Write", "Edit", "TodoWrite", "Memory"),
        workflow="ui-enhancement",
    ),
    "tester": PersonaConfig(
        label="tester",
        god="themis",
        professional="QA Engineer",
        traits=("thorough", "critical", "quality-focused"),
        capabilities=(*_FILES_RW, CapabilityScope.BASH_SAFE, CapabilityScope.TODO),
        tools=("Read", "Write", "Edit", "Bash", "TodoWrite"),
        workflow="analysis-to-implementation",
    ),
    "reviewer": PersonaConfig(
        label="reviewer",
        god="argus",
        professional="Code Reviewer",
        traits=("watchful", "thorough"),
        capabilities=(CapabilityScope.READ_FILES, CapabilityScope.TODO),
        tools=("Read", "Grep", "TodoWrite"),
        workflow="security-review",
    ),
    "security": PersonaConfig(
        label="security",
        god="aegis",
        professional="Security Engineer",
        traits=("vigilant", "skeptical", "compliance-aware"),
        capabilities=(CapabilityScope.READ_FILES, CapabilityScope.TODO, CapabilityScope.MEMORY),
        tools=("Read", "Grep", "TodoWrite", "Memory"),
        workflow="security-review",
    ),
    "strategist": PersonaConfig(
        label="strategist",
        god="prometheus",
        professional="Product Strategist",
        traits=("visionary", "user-centric"),
        capabilities=(CapabilityScope.READ_FILES, CapabilityScope.WRITE_FILES, CapabilityScope.TODO, CapabilityScope.MEMORY),
        tools=("TodoWrite", "Memory", "Read", "Write"),
        allowed_labels=("analyst", "coordinator"),
        workflow="product-planning",
    ),
    "analyst": PersonaConfig(
        label="analyst",
        god="athena",
        professional="Technical Analyst",
        traits=("curious", "analytical", "comprehensive"),
        capabilities=(CapabilityScope.READ_FILES, CapabilityScope.TODO, CapabilityScope.MEMORY),
        tools=("Read", "TodoWrite", "Memory", "Grep"),
        workflow="analysis-to-implementation",
    ),
    "coordinator": PersonaConfig(
        label="coordinator",
        god="hermes",
        professional="Scrum Master",
        traits=("organized", "communicative"),
        capabilities=(CapabilityScope.READ_FILES, CapabilityScope.TODO, CapabilityScope.MEMORY),
        tools=("TodoWrite", "Memory", "Read"),
        workflow="product-planning",
    ),
}


@dataclass
class PersonaRegistry:
    """Resolves a persona label to its configuration."""

    personas: dict[str, PersonaConfig] = field(
        default_factory=lambda: dict(DEFAULT_PERSONAS)
    )

    def get(self, label: str) -> PersonaConfig:
        """
        Resolve a label.

        Unknown labels resolve to a minimal read-only persona so that a
        label allow-list, not this registry, decides what may be created.
        """
        persona = self.personas.get(label)
        if persona is None:
            logger.debug(f"No persona configured for {label!r}, using read-only default")
            return PersonaConfig(
                label=label,
                god=label,
                professional=label.title(),
                capabilities=(CapabilityScope.READ_FILES,),
            )
        return persona

    def __contains__(self, label: str) -> bool:
        return label in self.personas

    def labels(self) -> list[str]:
        return sorted(self.personas)

    def register(self, persona: PersonaConfig) -> None:
        self.personas[persona.label] = persona

    def update_from_dict(self, data: dict[str, Any]) -> None:
        """
        Merge persona definitions.

        Entries for known labels override only the keys they set.
        """
        for label, entry in (data or {}).items():
            entry = entry or {}
            if label in self.personas:
                merged = self.personas[label].to_dict()
                merged.update(entry)
                self.personas[label] = PersonaConfig.from_dict(label, merged)
            else:
                self.personas[label] = PersonaConfig.from_dict(label, entry)

    def load_yaml(self, path: Path) -> None:
        """Merge persona definitions from a YAML file."""
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        personas = data.get("personas", data)
        if not isinstance(personas, dict):
            raise ConfigError(f"{path}: expected a mapping of persona labels")
        self.update_from_dict(personas)
        logger.info(f"Loaded {len(personas)} persona definition(s) from {path}")

    @classmethod
    def from_yaml(cls, path: Path) -> "PersonaRegistry":
        registry = cls()
        registry.load_yaml(path)
        return registry

    def with_persona(self, label: str, **changes: Any) -> "PersonaRegistry":
        """Copy of this registry with one persona adjusted."""
        personas = dict(self.personas)
        personas[label] = replace(self.get(label), **changes)
        return PersonaRegistry(personas=personas)
