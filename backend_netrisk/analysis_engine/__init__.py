"""
Analysis engine package: graph metrics, pattern classification and risk scoring.

Consumes parsed entity/relationship/case/district snapshots and produces
behavioral patterns, explainable entity scores, district risk and hotspots.
"""

from backend_netrisk.analysis_engine.models import (
    CaseRecord,
    District,
    Entity,
    EntityType,
    Relationship,
    parse_timestamp,
)
from backend_netrisk.analysis_engine.graph import GraphIndex
from backend_netrisk.analysis_engine.patterns import (
    BehavioralPattern,
    PatternClassifier,
    PatternResult,
)
from backend_netrisk.analysis_engine.scorer import (
    DistrictScores,
    EntityScore,
    risk_distribution,
    risk_tier,
    score_district,
    score_entity,
)
from backend_netrisk.analysis_engine.temporal import TemporalWindower, WindowCounts
from backend_netrisk.analysis_engine.districts import (
    DistrictAggregate,
    DistrictAggregator,
    DistrictScope,
    filter_districts,
)
from backend_netrisk.analysis_engine.hotspots import AlertLevel, Hotspot, HotspotDetector

__all__ = [
    "CaseRecord",
    "District",
    "Entity",
    "EntityType",
    "Relationship",
    "parse_timestamp",
    "GraphIndex",
    "BehavioralPattern",
    "PatternClassifier",
    "PatternResult",
    "DistrictScores",
    "EntityScore",
    "risk_distribution",
    "risk_tier",
    "score_district",
    "score_entity",
    "TemporalWindower",
    "WindowCounts",
    "DistrictAggregate",
    "DistrictAggregator",
    "DistrictScope",
    "filter_districts",
    "AlertLevel",
    "Hotspot",
    "HotspotDetector",
]
