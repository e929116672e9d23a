"""
Rule-based behavioral pattern classification.

Assigns exactly one pattern per entity from its graph metrics. Rules are
evaluated in a fixed priority order so overlapping conditions always resolve
the same way:

1. HIGH_INFLUENCE_HUB       degree >= 8 and avg strength >= 4.0
2. RAPID_NETWORK_EXPANSION  degree in [4, 7], or 90-day new relationships >= threshold
3. NOCTURNAL_PATTERN        degree in [1, 3]
4. NONE                     anything else (including degree 0)

Every result carries why_flagged: the threshold crossed and the measured value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from backend_netrisk.analysis_engine.graph import GraphIndex
from backend_netrisk.config.settings import DEFAULT_RAPID_EXPANSION_NEW_RELATIONSHIPS

HUB_MIN_DEGREE = 8
HUB_MIN_AVG_STRENGTH = 4.0
RAPID_DEGREE_MIN = 4
RAPID_DEGREE_MAX = 7
NOCTURNAL_DEGREE_MIN = 1
NOCTURNAL_DEGREE_MAX = 3


class BehavioralPattern(str, Enum):
    HIGH_INFLUENCE_HUB = "HIGH_INFLUENCE_HUB"
    RAPID_NETWORK_EXPANSION = "RAPID_NETWORK_EXPANSION"
    NOCTURNAL_PATTERN = "NOCTURNAL_PATTERN"
    NONE = "NONE"


# Reported patterns, in priority order; NONE is never summarized.
FLAGGED_PATTERNS = (
    BehavioralPattern.HIGH_INFLUENCE_HUB,
    BehavioralPattern.RAPID_NETWORK_EXPANSION,
    BehavioralPattern.NOCTURNAL_PATTERN,
)


def fmt_number(value: float) -> str:
    """Compact number for explanations: 4.0 -> '4', 4.25 -> '4.25', 4.333 -> '4.33'."""
    return f"{round(value, 2):g}"


@dataclass(frozen=True)
class PatternResult:
    """Classification of one entity plus the metrics it was judged on."""

    entity_id: str
    pattern: BehavioralPattern
    degree: int
    avg_strength: float
    new_relationships_90d: int
    why_flagged: str

    @property
    def is_hub(self) -> bool:
        return self.pattern is BehavioralPattern.HIGH_INFLUENCE_HUB

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "pattern": self.pattern.value,
            "degree": self.degree,
            "avg_connection_strength": round(self.avg_strength, 2),
            "new_relationships_90_days": self.new_relationships_90d,
            "why_flagged": self.why_flagged,
        }


class PatternClassifier:
    """Classifies entities against a completed GraphIndex."""

    def __init__(
        self,
        graph: GraphIndex,
        rapid_expansion_new_relationships: int = DEFAULT_RAPID_EXPANSION_NEW_RELATIONSHIPS,
    ) -> None:
        self.graph = graph
        self.rapid_expansion_new_relationships = rapid_expansion_new_relationships

    def classify(self, entity_id: str) -> PatternResult:
        degree = self.graph.degree_of(entity_id)
        avg = self.graph.avg_strength(entity_id)
        new_rels = self.graph.new_relationships(entity_id)
        pattern, why = self._match(degree, avg, new_rels)
        return PatternResult(
            entity_id=entity_id,
            pattern=pattern,
            degree=degree,
            avg_strength=avg,
            new_relationships_90d=new_rels,
            why_flagged=why,
        )

    def _match(self, degree: int, avg: float, new_rels: int) -> tuple[BehavioralPattern, str]:
        if degree >= HUB_MIN_DEGREE and avg >= HUB_MIN_AVG_STRENGTH:
            return (
                BehavioralPattern.HIGH_INFLUENCE_HUB,
                f"degree={degree} ≥ {HUB_MIN_DEGREE} and "
                f"avg_strength={fmt_number(avg)} ≥ {fmt_number(HUB_MIN_AVG_STRENGTH)}",
            )

        reasons: list[str] = []
        if RAPID_DEGREE_MIN <= degree <= RAPID_DEGREE_MAX:
            reasons.append(f"degree={degree} in [{RAPID_DEGREE_MIN}, {RAPID_DEGREE_MAX}]")
        if new_rels >= self.rapid_expansion_new_relationships:
            reasons.append(
                f"new_relationships_90d={new_rels} ≥ {self.rapid_expansion_new_relationships}"
            )
        if reasons:
            return BehavioralPattern.RAPID_NETWORK_EXPANSION, " and ".join(reasons)

        if NOCTURNAL_DEGREE_MIN <= degree <= NOCTURNAL_DEGREE_MAX:
            return (
                BehavioralPattern.NOCTURNAL_PATTERN,
                f"degree={degree} in [{NOCTURNAL_DEGREE_MIN}, {NOCTURNAL_DEGREE_MAX}]",
            )

        if degree == 0:
            return BehavioralPattern.NONE, "degree=0: no relationships on record"
        return (
            BehavioralPattern.NONE,
            f"no pattern threshold crossed (degree={degree}, avg_strength={fmt_number(avg)}, "
            f"new_relationships_90d={new_rels})",
        )
