"""
Risk score computation: entity scores and district sub-scores.

Entity score is additive and explainable: a fixed base plus one bonus per
rule that fires, capped at 100. Every applied bonus is reported in
risk_factors so the score can be reconstructed from its parts.

District overall score is the rounded mean of five sub-scores; each
sub-score is clamped to 100 on its own before averaging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from backend_netrisk.analysis_engine.numeric import round_half_up
from backend_netrisk.analysis_engine.patterns import (
    HUB_MIN_DEGREE,
    BehavioralPattern,
    PatternResult,
)
from backend_netrisk.config.settings import DEFAULT_ACTIVITY_THRESHOLD

BASE_SCORE = 35
RAPID_EXPANSION_POINTS = 30
HIGH_INFLUENCE_POINTS = 25
NETWORK_SIZE_POINTS = 20
ACTIVITY_POINTS = 17
COORDINATION_BONUS = 2
SCORE_MIN = 0
SCORE_MAX = 100

RISK_CRITICAL = "CRITICAL"
RISK_HIGH = "HIGH"
RISK_MEDIUM = "MEDIUM"
RISK_LOW = "LOW"

# (tier, inclusive lower bound), checked top-down
RISK_TIERS = (
    (RISK_CRITICAL, 85),
    (RISK_HIGH, 70),
    (RISK_MEDIUM, 50),
    (RISK_LOW, 35),
)

# District sub-score weights: points per raw count
CASE_ACTIVITY_WEIGHT = 8
RECENT_ACTIVITY_WEIGHT = 25
SUPPLIER_PRESENCE_WEIGHT = 12
TRANSPORT_NETWORK_WEIGHT = 10
NETWORK_DENSITY_WEIGHT = 3

DISTRICT_HIGH_MIN = 70
DISTRICT_MEDIUM_MIN = 40


def risk_tier(score: float) -> str | None:
    """Map an entity score to its tier; None below the LOW floor (unclassified)."""
    for tier, floor in RISK_TIERS:
        if score >= floor:
            return tier
    return None


@dataclass(frozen=True)
class EntityScore:
    entity_id: str
    score: int
    risk_level: str | None
    risk_factors: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "calculated_risk_score": self.score,
            "risk_level": self.risk_level,
            "risk_factors": dict(self.risk_factors),
        }


def score_entity(
    result: PatternResult,
    recent_activities: int,
    activity_threshold: int = DEFAULT_ACTIVITY_THRESHOLD,
) -> EntityScore:
    """
    Compute the additive 0-100 risk score for one classified entity.

    Bonuses are independent: the network-size bonus stacks with the
    influence bonus, and the coordination bonus applies to hubs that also
    gained at least one relationship in the last 90 days.
    """
    factors: dict[str, int] = {"base_score": BASE_SCORE}
    if result.pattern is BehavioralPattern.RAPID_NETWORK_EXPANSION:
        factors["rapid_expansion_points"] = RAPID_EXPANSION_POINTS
    if result.pattern is BehavioralPattern.HIGH_INFLUENCE_HUB:
        factors["high_influence_points"] = HIGH_INFLUENCE_POINTS
    if result.degree >= HUB_MIN_DEGREE:
        factors["network_size_points"] = NETWORK_SIZE_POINTS
    if recent_activities >= activity_threshold:
        factors["activity_points"] = ACTIVITY_POINTS
    if result.is_hub and result.new_relationships_90d >= 1:
        factors["coordination_bonus"] = COORDINATION_BONUS

    score = max(SCORE_MIN, min(SCORE_MAX, sum(factors.values())))
    return EntityScore(
        entity_id=result.entity_id,
        score=score,
        risk_level=risk_tier(score),
        risk_factors=factors,
    )


def risk_distribution(scores: list[int]) -> dict[str, int]:
    """Count scores per tier; unclassified scores (<35) are left out."""
    out = {tier: 0 for tier, _ in RISK_TIERS}
    for s in scores:
        tier = risk_tier(s)
        if tier is not None:
            out[tier] += 1
    return out


def _sub_score(raw_count: int, weight: int) -> int:
    return min(SCORE_MAX, round_half_up(raw_count * weight))


@dataclass(frozen=True)
class DistrictScores:
    case_activity: int
    recent_activity: int
    supplier_presence: int
    transport_network: int
    network_density: int

    @property
    def overall(self) -> int:
        parts = (
            self.case_activity,
            self.recent_activity,
            self.supplier_presence,
            self.transport_network,
            self.network_density,
        )
        return round_half_up(sum(parts) / len(parts))

    @property
    def risk_level(self) -> str:
        overall = self.overall
        if overall >= DISTRICT_HIGH_MIN:
            return RISK_HIGH
        if overall >= DISTRICT_MEDIUM_MIN:
            return RISK_MEDIUM
        return RISK_LOW

    def to_dict(self) -> dict[str, int]:
        return {
            "overall": self.overall,
            "case_activity": self.case_activity,
            "recent_activity": self.recent_activity,
            "supplier_presence": self.supplier_presence,
            "transport_network": self.transport_network,
            "network_density": self.network_density,
        }


def score_district(
    total_cases: int,
    recent_cases: int,
    suppliers: int,
    transporters: int,
    total_entities: int,
) -> DistrictScores:
    """Five weighted sub-scores, each clamped to [0, 100] independently."""
    return DistrictScores(
        case_activity=_sub_score(total_cases, CASE_ACTIVITY_WEIGHT),
        recent_activity=_sub_score(recent_cases, RECENT_ACTIVITY_WEIGHT),
        supplier_presence=_sub_score(suppliers, SUPPLIER_PRESENCE_WEIGHT),
        transport_network=_sub_score(transporters, TRANSPORT_NETWORK_WEIGHT),
        network_density=_sub_score(total_entities, NETWORK_DENSITY_WEIGHT),
    )


def scoring_methodology() -> dict[str, Any]:
    """Static description of the scoring algorithm, returned with every bundle."""
    return {
        "algorithm_name": "Multi-Factor Network Risk Assessment (MFNRA)",
        "version": "2.1",
        "base_score": BASE_SCORE,
        "max_score": SCORE_MAX,
        "scoring_factors": [
            {
                "factor": "rapid_network_expansion",
                "weight": RAPID_EXPANSION_POINTS,
                "criteria": "pattern == RAPID_NETWORK_EXPANSION",
                "rationale": "Fast-growing networks signal recruitment or new supply routes.",
            },
            {
                "factor": "high_influence",
                "weight": HIGH_INFLUENCE_POINTS,
                "criteria": "pattern == HIGH_INFLUENCE_HUB",
                "rationale": "Strongly tied hubs coordinate network operations.",
            },
            {
                "factor": "network_size",
                "weight": NETWORK_SIZE_POINTS,
                "criteria": f"degree >= {HUB_MIN_DEGREE}",
                "rationale": "Broad reach widens the impact of an entity.",
            },
            {
                "factor": "recent_activity",
                "weight": ACTIVITY_POINTS,
                "criteria": "activities in last 30 days >= activity threshold",
                "rationale": "Current activity outweighs historic activity.",
            },
            {
                "factor": "coordination",
                "weight": COORDINATION_BONUS,
                "criteria": "hub with >= 1 new relationship in 90 days",
                "rationale": "A hub still adding ties is actively coordinating.",
            },
        ],
        "risk_classifications": {
            RISK_CRITICAL: "85-100: Immediate intervention required",
            RISK_HIGH: "70-84: Priority surveillance & enforcement",
            RISK_MEDIUM: "50-69: Enhanced monitoring",
            RISK_LOW: "35-49: Routine observation",
        },
    }
