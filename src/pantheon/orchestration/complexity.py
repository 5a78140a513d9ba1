"""
Complexity Analyzer - maps a task description to a bounded score.

The score is used only to choose between the deterministic and the
delegated orchestration path. Three sub-scores are extracted from keyword
signals and combined with non-negative weights:

    overall = clamp(round(technical×0.55 + uncertainty×0.30 + domains×0.55), 0, 10)

Non-negative weights keep the combination monotonic: raising any sub-score
never lowers the overall score. Everything here is pure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

MAX_SCORE = 10
MAX_DOMAINS = 6


@dataclass(frozen=True)
class ComplexityWeights:
    """Weights for the overall score. Must be non-negative."""

    technical: float = 0.55
    uncertainty: float = 0.30
    domain: float = 0.55

    def __post_init__(self) -> None:
        if min(self.technical, self.uncertainty, self.domain) < 0:
            raise ValueError("complexity weights must be non-negative")


DEFAULT_WEIGHTS = ComplexityWeights()


@dataclass(frozen=True)
class ComplexityScore:
    """Result of analysing one task."""

    technical: int = 0
    uncertainty: int = 0
    domain_count: int = 0
    overall: int = 0
    domains: tuple[str, ...] = ()
    signals: tuple[str, ...] = field(default=(), compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "technical": self.technical,
            "uncertainty": self.uncertainty,
            "domain_count": self.domain_count,
            "overall": self.overall,
            "domains": list(self.domains),
            "signals": list(self.signals),
        }


# (name, pattern, weight) - systems-oriented terms raise technical complexity
TECHNICAL_INDICATORS: list[tuple[str, re.Pattern[str], float]] = [
    ("architecture", re.compile(r"\barchitect\w*|\bdesign\w*|\bsystem\b|\bpatterns?\b"), 1.0),
    ("distributed", re.compile(r"distributed|micro-?services?|scalab\w+|\bclusters?\b"), 2.0),
    ("realtime", re.compile(r"real[- ]?time|streaming|websockets?|\blive\b"), 1.5),
    ("ml", re.compile(r"machine[- ]learning|\bml\b|\bai\b|neural|deep[- ]learning"), 2.0),
    ("security", re.compile(r"security|secure|encrypt\w*|compliance|\bauth\w*"), 1.5),
    ("integration", re.compile(r"integrat\w+|\bapis?\b|webhooks?|third[- ]party"), 1.5),
    ("pipeline", re.compile(r"pipelines?|big[- ]data|\betl\b|analytics"), 1.5),
    ("blockchain", re.compile(r"blockchain|crypto\w*|smart[- ]contracts?"), 1.5),
    ("scale", re.compile(r"\bcomplex\b|enterprise|large[- ]scale|mission[- ]critical"), 1.5),
]
TECHNICAL_BASE = 1.0

UNCERTAINTY_BASE = 3.0
HEDGING = re.compile(
    r"\bmaybe\b|\bpossibl[ey]\b|\bperhaps\b|\bexplore\b|\bcould\b|\bmight\b|"
    r"some kind of|\binvestigate\b|\bresearch\b|\bunsure\b|\bsomething\b"
)
NOVELTY = re.compile(r"\bnew\b|\binnovative\b|\bnovel\b|\bexperimental\b|\bpoc\b")
CONCRETE = re.compile(
    r"\bimplement\b|\bspecific\b|\bexact(?:ly)?\b|\bclear\b|\bdefined\b|"
    r"\bstandard\b|\bexisting\b|create specific"
)

DOMAIN_PATTERNS: dict[str, re.Pattern[str]] = {
    "frontend": re.compile(r"front[- ]?end|\bui\b|\bux\b|\breact\b"),
    "backend": re.compile(r"back[- ]?end|\bserver\b"),
    "mobile": re.compile(r"\bmobile\b|\bios\b|\bandroid\b"),
    "database": re.compile(r"databases?|\bsql\b|\bschema\b"),
    "infrastructure": re.compile(r"infrastructure|kubernetes|\bk8s\b"),
    "security": re.compile(r"security|compliance"),
    "ml": re.compile(r"\bml\b|machine[- ]learning|\bai\b"),
    "data": re.compile(r"\bdata\b|analytics|\betl\b"),
    "devops": re.compile(r"devops|ci/cd|deploy\w*|docker"),
    "cloud": re.compile(r"\bcloud\b|\baws\b|\bgcp\b|\bazure\b"),
    "iot": re.compile(r"\biot\b|embedded|sensors?"),
    "blockchain": re.compile(r"blockchain|smart[- ]contracts?"),
}


def _clamp(value: float, low: int = 0, high: int = MAX_SCORE) -> int:
    return int(min(max(round(value), low), high))


class ComplexityAnalyzer:
    """Scores free-text tasks for orchestration routing."""

    def __init__(self, weights: ComplexityWeights | None = None):
        self.weights = weights or DEFAULT_WEIGHTS

    def analyze(self, text: str | None) -> ComplexityScore:
        """
        Score a task description.

        Empty or missing text yields the minimum score rather than an error,
        so routing always has a defined path.
        """
        if not text or not text.strip():
            return ComplexityScore()

        normalized = text.lower()
        technical, signals = self._technical(normalized)
        uncertainty = self._uncertainty(normalized)
        domains = self._domains(normalized)

        return ComplexityScore(
            technical=technical,
            uncertainty=uncertainty,
            domain_count=len(domains),
            overall=self.combine(technical, uncertainty, len(domains)),
            domains=tuple(domains),
            signals=tuple(signals),
        )

    def combine(self, technical: int, uncertainty: int, domain_count: int) -> int:
        """Weighted, clamped combination of the sub-scores."""
        w = self.weights
        return _clamp(
            w.technical * technical + w.uncertainty * uncertainty + w.domain * domain_count
        )

    # =========================================================================
    # Sub-scores
    # =========================================================================

    def _technical(self, text: str) -> tuple[int, list[str]]:
        score = TECHNICAL_BASE
        signals = []
        for name, pattern, weight in TECHNICAL_INDICATORS:
            if pattern.search(text):
                score += weight
                signals.append(name)
        return _clamp(score), signals

    def _uncertainty(self, text: str) -> int:
        score = UNCERTAINTY_BASE

        # Vague requirements
        if HEDGING.search(text):
            score += 2

        # New or innovative work
        if NOVELTY.search(text):
            score += 2

        # Well-defined work
        if CONCRETE.search(text):
            score -= 2

        return _clamp(score)

    def _domains(self, text: str) -> list[str]:
        found = [name for name, pattern in DOMAIN_PATTERNS.items() if pattern.search(text)]
        return found[:MAX_DOMAINS]
