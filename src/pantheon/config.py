"""
Configuration - limits, routing threshold and housekeeping settings.

Sources, lowest to highest priority:
1. Built-in defaults
2. A YAML (or JSON) file: explicit path, else PANTHEON_CONFIG
3. PANTHEON_<FIELD> environment variables (e.g. PANTHEON_MAX_DEPTH=2)

An unreadable or malformed file falls back to defaults. Values that cannot
work (negative limits, unknown modes) raise ConfigError.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from pantheon.agents.policy import SafetyLimits
from pantheon.errors import ConfigError
from pantheon.orchestration.router import OrchestrationMode

logger = logging.getLogger(__name__)

ENV_PREFIX = "PANTHEON_"
CONFIG_ENV = "PANTHEON_CONFIG"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class PantheonConfig:
    """Runtime configuration."""

    # Safety limits
    max_total_agents: int = 10
    max_depth: int = 3
    max_children_per_parent: int | None = None
    rate_window_ms: int = 60_000
    rate_limit_count: int = 10
    allowed_labels: list[str] = field(default_factory=list)  # Empty = unrestricted

    # Routing
    complexity_threshold: int = 5
    orchestration_mode: str = OrchestrationMode.HYBRID.value

    # Housekeeping
    retention_ms: int = 3_600_000  # Keep inactive records for an hour
    agent_timeout_ms: int = 300_000  # Release agents older than five minutes
    cleanup_interval_s: float = 0  # 0 = no periodic sweep

    personas_file: str | None = None
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        for name in (
            "max_total_agents",
            "max_depth",
            "rate_window_ms",
            "rate_limit_count",
            "retention_ms",
            "agent_timeout_ms",
            "cleanup_interval_s",
        ):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0")
        if self.max_children_per_parent is not None and self.max_children_per_parent < 0:
            raise ConfigError("max_children_per_parent must be >= 0")
        if isinstance(self.allowed_labels, str):
            self.allowed_labels = [s.strip() for s in self.allowed_labels.split(",") if s.strip()]
        self.allowed_labels = list(self.allowed_labels or [])
        if not 0 <= self.complexity_threshold <= 10:
            raise ConfigError("complexity_threshold must be between 0 and 10")

        try:
            self.orchestration_mode = OrchestrationMode(self.orchestration_mode).value
        except ValueError:
            choices = ", ".join(m.value for m in OrchestrationMode)
            raise ConfigError(
                f"Unknown orchestration_mode {self.orchestration_mode!r} (expected one of {choices})"
            ) from None

        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Unknown log_level {self.log_level!r}")

    @property
    def mode(self) -> OrchestrationMode:
        return OrchestrationMode(self.orchestration_mode)

    def safety_limits(self) -> SafetyLimits:
        return SafetyLimits(
            max_total_agents=self.max_total_agents,
            max_depth=self.max_depth,
            rate_window_ms=self.rate_window_ms,
            rate_limit_count=self.rate_limit_count,
            allowed_labels=frozenset(self.allowed_labels),
            max_children_per_parent=self.max_children_per_parent,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Loading
# =============================================================================


def _read_file(path: Path) -> dict[str, Any]:
    """Read a config mapping; anything unusable yields an empty mapping."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring config file {path}: {e}")
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: expected a mapping")
        return {}

    # Allow the settings to sit under a top-level "pantheon" key
    data = data.get("pantheon", data)
    known = {f.name for f in fields(PantheonConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys in {path}: {', '.join(unknown)}")
    return {k: v for k, v in data.items() if k in known}


def _parse_env_value(name: str, raw: str) -> Any:
    if name == "allowed_labels":
        return [label.strip() for label in raw.split(",") if label.strip()]
    if name in ("orchestration_mode", "log_level", "personas_file"):
        return raw
    if name == "max_children_per_parent" and raw.strip().lower() in ("", "none"):
        return None
    try:
        return float(raw) if name == "cleanup_interval_s" else int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name.upper()} must be a number, got {raw!r}") from None


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides = {}
    for f in fields(PantheonConfig):
        raw = environ.get(ENV_PREFIX + f.name.upper())
        if raw is not None:
            overrides[f.name] = _parse_env_value(f.name, raw)
    return overrides


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> PantheonConfig:
    """
    Load configuration from file and environment.

    Args:
        path: Config file; defaults to $PANTHEON_CONFIG when set
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: a value is out of range or of the wrong kind
    """
    environ = os.environ if environ is None else environ

    if path is None and environ.get(CONFIG_ENV):
        path = environ[CONFIG_ENV]

    values: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path).expanduser()
        if config_path.exists():
            values.update(_read_file(config_path))
        else:
            logger.warning(f"Config file {config_path} not found, using defaults")

    values.update(_env_overrides(environ))

    try:
        return PantheonConfig(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
