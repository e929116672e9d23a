"""
Hotspot detection: rank districts by recent case pressure and network size.

hotspot_score = clamp(0, 100, round(recent_cases * 2 + total_entities * 0.5))

Alert tiers: CRITICAL >= 85, HIGH >= 66, MEDIUM >= 33, else LOW. Each tier
maps to one fixed recommendation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from backend_netrisk.analysis_engine.districts import DistrictAggregate
from backend_netrisk.analysis_engine.numeric import clamp, round_half_up
from backend_netrisk.config.settings import DEFAULT_HOTSPOT_LIMIT
from backend_netrisk.netrisk_logging import get_logger

logger = get_logger(__name__)

RECENT_CASE_WEIGHT = 2.0
ENTITY_WEIGHT = 0.5


class AlertLevel(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# (level, inclusive lower bound), checked top-down
ALERT_TIERS = (
    (AlertLevel.CRITICAL, 85),
    (AlertLevel.HIGH, 66),
    (AlertLevel.MEDIUM, 33),
)

RECOMMENDATIONS: dict[AlertLevel, str] = {
    AlertLevel.CRITICAL: "Immediate task force deployment and targeted surveillance.",
    AlertLevel.HIGH: "Increase patrols and initiate targeted investigations.",
    AlertLevel.MEDIUM: "Monitor trends and allocate resources as needed.",
    AlertLevel.LOW: "Maintain routine monitoring.",
}


def hotspot_score(recent_cases: int, total_entities: int) -> int:
    raw = recent_cases * RECENT_CASE_WEIGHT + total_entities * ENTITY_WEIGHT
    return int(clamp(round_half_up(raw), 0, 100))


def alert_level(score: int) -> AlertLevel:
    for level, floor in ALERT_TIERS:
        if score >= floor:
            return level
    return AlertLevel.LOW


@dataclass(frozen=True)
class Hotspot:
    district_id: str
    district_name: str
    alert_level: AlertLevel
    hotspot_score: int
    recent_cases: int
    total_cases: int
    total_entities: int
    activity_increase_percent: int
    trend: str

    @property
    def recommendation(self) -> str:
        return RECOMMENDATIONS[self.alert_level]

    def to_dict(self) -> dict[str, Any]:
        return {
            "district_id": self.district_id,
            "district_name": self.district_name,
            "alert_level": self.alert_level.value,
            "hotspot_score": self.hotspot_score,
            "activity_metrics": {
                "recent_cases": self.recent_cases,
                "total_cases": self.total_cases,
                "total_entities": self.total_entities,
            },
            "comparison": {
                "activity_increase_percent": self.activity_increase_percent,
                "trend": self.trend,
            },
            "recommendation": self.recommendation,
        }


class HotspotDetector:
    """Scores every district aggregate and keeps the top `limit` as alerts."""

    def __init__(self, limit: int = DEFAULT_HOTSPOT_LIMIT) -> None:
        self.limit = limit

    def score(self, aggregate: DistrictAggregate) -> Hotspot:
        score = hotspot_score(aggregate.cases.last30, aggregate.total_entities)
        return Hotspot(
            district_id=aggregate.district.id,
            district_name=aggregate.district.name,
            alert_level=alert_level(score),
            hotspot_score=score,
            recent_cases=aggregate.cases.last30,
            total_cases=aggregate.cases.total,
            total_entities=aggregate.total_entities,
            activity_increase_percent=aggregate.cases.percent_change,
            trend=aggregate.cases.trend,
        )

    def detect(self, aggregates: Iterable[DistrictAggregate]) -> list[Hotspot]:
        """Score descending, district name ascending on ties, truncated to `limit`."""
        scored = [self.score(a) for a in aggregates]
        scored.sort(key=lambda h: (-h.hotspot_score, h.district_name))
        return scored[: self.limit]

    def report(self, aggregates: Iterable[DistrictAggregate]) -> dict[str, Any]:
        hotspots = self.detect(aggregates)
        summary = hotspot_summary(hotspots)
        logger.info("hotspots_detected", count=len(hotspots), **summary)
        return {"summary": summary, "hotspots": [h.to_dict() for h in hotspots]}


def hotspot_summary(hotspots: Iterable[Hotspot]) -> dict[str, int]:
    summary = {
        "critical_alerts": 0,
        "high_alerts": 0,
        "medium_alerts": 0,
        "low_alerts": 0,
        "districts_with_increased_activity": 0,
    }
    for h in hotspots:
        summary[f"{h.alert_level.value.lower()}_alerts"] += 1
        if h.activity_increase_percent > 0:
            summary["districts_with_increased_activity"] += 1
    return summary
