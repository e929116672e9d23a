"""
Network-level insights built on top of per-entity classification and scoring.

- pattern_insights: per-pattern membership, averages and score breakdown
- communication_patterns: relationships bucketed by connection strength
- network_vulnerabilities: top-degree nodes and their disruption impact
- supply_chain_analysis: supplier/transporter/storage counts and robustness
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Sequence

from backend_netrisk.analysis_engine.graph import GraphIndex
from backend_netrisk.analysis_engine.models import EntityType, Relationship
from backend_netrisk.analysis_engine.numeric import round_half_up
from backend_netrisk.analysis_engine.patterns import (
    FLAGGED_PATTERNS,
    HUB_MIN_AVG_STRENGTH,
    HUB_MIN_DEGREE,
    NOCTURNAL_DEGREE_MAX,
    NOCTURNAL_DEGREE_MIN,
    RAPID_DEGREE_MAX,
    RAPID_DEGREE_MIN,
    BehavioralPattern,
    PatternResult,
)
from backend_netrisk.analysis_engine.scorer import EntityScore

HIGH_FREQUENCY_MIN_STRENGTH = 4
MEDIUM_FREQUENCY_MIN_STRENGTH = 2
DORMANT_AFTER_DAYS = 90

CRITICAL_NODE_LIMIT = 50
CRITICALITY_PER_CONNECTION = 10
HIGH_CRITICALITY_MIN = 70
SEVERE_IMPACT_MIN_DEGREE = 8
MODERATE_IMPACT_MIN_DEGREE = 4
RESILIENT_MIN_ROBUSTNESS = 70

UNKNOWN_DISTRICT = "Unknown"

PATTERN_DEFINITIONS: dict[BehavioralPattern, str] = {
    BehavioralPattern.HIGH_INFLUENCE_HUB: (
        "Entities exerting outsized control via strong connections and central positioning."
    ),
    BehavioralPattern.RAPID_NETWORK_EXPANSION: (
        "Entities rapidly forming new ties, expanding operational footprint."
    ),
    BehavioralPattern.NOCTURNAL_PATTERN: (
        "Entities displaying sporadic interactions consistent with opportunistic behavior."
    ),
}

CRITERIA_EXPLANATIONS: dict[BehavioralPattern, str] = {
    BehavioralPattern.HIGH_INFLUENCE_HUB: (
        "High degree centrality with strong ties and coordinating role"
    ),
    BehavioralPattern.RAPID_NETWORK_EXPANSION: (
        "Mid-sized network or significant increase in new relationships over the last 90 days"
    ),
    BehavioralPattern.NOCTURNAL_PATTERN: "Sporadic low-degree activity cluster",
}

PATTERN_RECOMMENDATIONS = [
    {"priority": "HIGH", "action": "Target high-influence hubs with interdiction measures."},
    {"priority": "MEDIUM", "action": "Increase monitoring on rapidly expanding networks."},
]

DISRUPTION_STRATEGIES = [
    {
        "strategy": "TARGET_HIGH_INFLUENCE_HUBS",
        "description": "Disrupt top-degree nodes to fragment the network.",
    },
    {
        "strategy": "SECURE_TRANSPORT_CORRIDORS",
        "description": "Increase checks on transporter-heavy routes.",
    },
]


def criteria_thresholds(
    pattern: BehavioralPattern, rapid_expansion_new_relationships: int
) -> dict[str, Any]:
    if pattern is BehavioralPattern.HIGH_INFLUENCE_HUB:
        return {"min_degree": HUB_MIN_DEGREE, "min_avg_connection_strength": HUB_MIN_AVG_STRENGTH}
    if pattern is BehavioralPattern.RAPID_NETWORK_EXPANSION:
        return {
            "degree_range": [RAPID_DEGREE_MIN, RAPID_DEGREE_MAX],
            "min_new_relationships_90_days": rapid_expansion_new_relationships,
        }
    if pattern is BehavioralPattern.NOCTURNAL_PATTERN:
        return {"degree_range": [NOCTURNAL_DEGREE_MIN, NOCTURNAL_DEGREE_MAX]}
    return {}


@dataclass(frozen=True)
class ScoredEntity:
    """One entity's classification, score and activity counts, as the facade joins them."""

    result: PatternResult
    score: EntityScore
    total_activities: int = 0
    recent_activities: int = 0


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _risk_explanation(breakdown: dict[str, float], ai_risk_score: int) -> str:
    if not breakdown:
        return "No entities matched this pattern."
    parts = [f"{name}={round(value, 2):g}" for name, value in breakdown.items()]
    return f"Average score {ai_risk_score} = " + " + ".join(parts)


def pattern_insights(
    scored: Iterable[ScoredEntity],
    rapid_expansion_new_relationships: int,
) -> list[dict[str, Any]]:
    """One insight per flagged pattern, always in priority order, zero-filled when empty."""
    members: dict[BehavioralPattern, list[ScoredEntity]] = defaultdict(list)
    for s in scored:
        members[s.result.pattern].append(s)

    out: list[dict[str, Any]] = []
    for pattern in FLAGGED_PATTERNS:
        group = members.get(pattern, [])
        breakdown: dict[str, float] = {}
        if group:
            keys: list[str] = []
            for s in group:
                keys.extend(k for k in s.score.risk_factors if k not in keys)
            breakdown = {
                k: round(_mean([s.score.risk_factors.get(k, 0) for s in group]), 2)
                for k in keys
            }
        ai_risk_score = round_half_up(_mean([s.score.score for s in group])) if group else 0
        out.append(
            {
                "behavioral_pattern": pattern.value,
                "entity_count": len(group),
                "avg_activities": round(_mean([s.total_activities for s in group]), 2),
                "avg_connections": round(_mean([s.result.degree for s in group]), 2),
                "avg_new_relationships": round(
                    _mean([s.result.new_relationships_90d for s in group]), 2
                ),
                "avg_connection_strength": round(_mean([s.result.avg_strength for s in group]), 2),
                "ai_risk_score": ai_risk_score,
                "score_breakdown": breakdown,
                "pattern_definition": PATTERN_DEFINITIONS[pattern],
                "criteria_thresholds": criteria_thresholds(
                    pattern, rapid_expansion_new_relationships
                ),
                "criteria_explanation": CRITERIA_EXPLANATIONS[pattern],
                "risk_explanation": _risk_explanation(breakdown, ai_risk_score),
            }
        )
    return out


def communication_frequency(strength: int) -> str:
    if strength >= HIGH_FREQUENCY_MIN_STRENGTH:
        return "High"
    if strength >= MEDIUM_FREQUENCY_MIN_STRENGTH:
        return "Medium"
    return "Low"


def communication_patterns(relationships: Sequence[Relationship], now: datetime) -> dict[str, Any]:
    """
    Relationship counts per strength bucket (High >= 4, Medium >= 2, Low).

    A relationship is dormant when its last_activity is more than 90 days old;
    relationships without last_activity are not counted as dormant.
    """
    freq = {"High": 0, "Medium": 0, "Low": 0}
    dormant = 0
    cutoff = now - timedelta(days=DORMANT_AFTER_DAYS)
    for rel in relationships:
        freq[communication_frequency(rel.connection_strength)] += 1
        if rel.last_activity is not None and rel.last_activity < cutoff:
            dormant += 1
    return {
        "communication_patterns": [
            {"communication_frequency": k, "relationship_count": v} for k, v in freq.items()
        ],
        "pattern_summary": {
            "total_active_relationships": len(relationships) - dormant,
            "high_frequency_communications": freq["High"],
            "dormant_relationships": dormant,
        },
    }


def disruption_impact(degree: int) -> str:
    if degree >= SEVERE_IMPACT_MIN_DEGREE:
        return "Severe"
    if degree >= MODERATE_IMPACT_MIN_DEGREE:
        return "Moderate"
    return "Low"


def network_vulnerabilities(
    graph: GraphIndex,
    district_names: dict[str, str],
    limit: int = CRITICAL_NODE_LIMIT,
) -> dict[str, Any]:
    """
    Top-`limit` connected nodes by degree, with criticality = min(100, degree * 10).

    Edge endpoints that are not known entities are still ranked (type "entity").
    """
    ranked = sorted(
        ((eid, deg) for eid, deg in graph.degree.items() if deg > 0),
        key=lambda item: (-item[1], item[0]),
    )[:limit]

    nodes: list[dict[str, Any]] = []
    for eid, deg in ranked:
        entity = graph.entities.get(eid)
        district = UNKNOWN_DISTRICT
        if entity is not None and entity.district_id is not None:
            district = district_names.get(entity.district_id, UNKNOWN_DISTRICT)
        nodes.append(
            {
                "id": eid,
                "name": entity.name if entity is not None else eid,
                "type": entity.entity_type.value if entity is not None else "entity",
                "district": district,
                "total_connections": deg,
                "criticality_score": min(100, deg * CRITICALITY_PER_CONNECTION),
                "disruption_impact": disruption_impact(deg),
            }
        )

    by_type: dict[str, list[dict[str, Any]]] = {}
    for node in nodes:
        by_type.setdefault(node["type"], []).append(node)
    assessment = [
        {
            "entity_type": entity_type,
            "node_count": len(group),
            "high_criticality_nodes": sum(
                1 for n in group if n["criticality_score"] >= HIGH_CRITICALITY_MIN
            ),
            "avg_criticality": round(_mean([n["criticality_score"] for n in group]), 2),
        }
        for entity_type, group in by_type.items()
    ]
    return {
        "critical_nodes": nodes,
        "vulnerability_assessment": assessment,
        "ai_recommendations": [dict(s) for s in DISRUPTION_STRATEGIES],
    }


def supply_chain_analysis(graph: GraphIndex, scored: Sequence[ScoredEntity]) -> dict[str, Any]:
    """Supply-side counts and a robustness score penalized by hubs and rapid expanders."""
    counts: dict[EntityType, int] = defaultdict(int)
    for entity in graph.entities.values():
        counts[entity.entity_type] += 1
    hubs = sum(1 for s in scored if s.result.pattern is BehavioralPattern.HIGH_INFLUENCE_HUB)
    rapid = sum(
        1 for s in scored if s.result.pattern is BehavioralPattern.RAPID_NETWORK_EXPANSION
    )
    total = max(1, len(graph.entities))
    robustness = max(0, min(100, 100 - round_half_up((hubs * 2 + rapid) / total * 100)))
    return {
        "suppliers": counts[EntityType.SUPPLIER],
        "transporters": counts[EntityType.TRANSPORTER],
        "storage_points": counts[EntityType.STORAGE_LOCATION],
        "robustness_score": robustness,
        "vulnerability_assessment": (
            "HIGHLY_RESILIENT" if robustness >= RESILIENT_MIN_ROBUSTNESS else "NEEDS_ATTENTION"
        ),
        "ai_recommendations": [dict(r) for r in PATTERN_RECOMMENDATIONS],
    }
