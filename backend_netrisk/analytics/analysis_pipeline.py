"""
Analysis pipeline: fetch snapshot -> scope -> graph -> classify/score -> aggregate.

Single entrypoint for the API server and the batch CLI. compute_bundle() is a
pure function of (snapshot, now, settings); AnalysisFacade adds concurrent
fetching, per-collection failure isolation and the optional authoritative
backend with local fallback.
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Protocol, Sequence

from backend_netrisk.analysis_engine.districts import (
    DistrictAggregate,
    DistrictAggregator,
    DistrictScope,
    coordinates,
)
from backend_netrisk.analysis_engine.graph import GraphIndex
from backend_netrisk.analysis_engine.hotspots import HotspotDetector
from backend_netrisk.analysis_engine.models import (
    COLLECTION_CASES,
    COLLECTION_DISTRICTS,
    COLLECTION_ENTITIES,
    COLLECTION_RELATIONSHIPS,
    CaseRecord,
    District,
    Entity,
    Relationship,
)
from backend_netrisk.analysis_engine.network_insights import (
    UNKNOWN_DISTRICT,
    ScoredEntity,
    communication_patterns,
    network_vulnerabilities,
    pattern_insights,
    supply_chain_analysis,
)
from backend_netrisk.analysis_engine.numeric import round_half_up
from backend_netrisk.analysis_engine.patterns import BehavioralPattern, PatternClassifier
from backend_netrisk.analysis_engine.scorer import (
    RISK_CRITICAL,
    RISK_HIGH,
    RISK_LOW,
    RISK_MEDIUM,
    risk_distribution,
    score_district,
    score_entity,
    scoring_methodology,
)
from backend_netrisk.analysis_engine.temporal import (
    TemporalWindower,
    WindowCounts,
    seasonal_patterns,
)
from backend_netrisk.config.settings import AnalysisSettings, get_settings
from backend_netrisk.core.exceptions import (
    AnalysisUnrecoverable,
    ComputationTimeout,
    InputMalformed,
    InputUnavailable,
)
from backend_netrisk.ingestion.sources import COLLECTIONS, DataSource, fetcher_for
from backend_netrisk.netrisk_logging import bind_run, get_logger

logger = get_logger(__name__)

CRITICAL_MIN_SCORE = 85

_PARSERS: dict[str, Callable[[dict[str, Any], int], Any]] = {
    COLLECTION_ENTITIES: Entity.from_row,
    COLLECTION_RELATIONSHIPS: Relationship.from_row,
    COLLECTION_CASES: CaseRecord.from_row,
    COLLECTION_DISTRICTS: District.from_row,
}


# -----------------------------------------------------------------------------
# Snapshot and data quality
# -----------------------------------------------------------------------------


@dataclass
class CollectionQuality:
    rows_read: int = 0
    rows_skipped: int = 0
    unavailable: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_read": self.rows_read,
            "rows_skipped": self.rows_skipped,
            "unavailable": self.unavailable,
            "error": self.error,
        }


@dataclass
class Snapshot:
    """Parsed input collections for one run plus how much of each survived parsing."""

    entities: list[Entity] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    cases: list[CaseRecord] = field(default_factory=list)
    districts: list[District] = field(default_factory=list)
    quality: dict[str, CollectionQuality] = field(
        default_factory=lambda: {c: CollectionQuality() for c in COLLECTIONS}
    )

    def data_quality(self) -> dict[str, Any]:
        return {c: q.to_dict() for c, q in self.quality.items()}


def parse_rows(collection: str, rows: Iterable[Any], quality: CollectionQuality) -> list[Any]:
    """Parse raw rows; malformed rows are skipped, counted and logged."""
    parser = _PARSERS[collection]
    out: list[Any] = []
    for idx, row in enumerate(rows):
        quality.rows_read += 1
        try:
            out.append(parser(row, idx))
        except InputMalformed as e:
            quality.rows_skipped += 1
            logger.debug("input_row_skipped", collection=collection, row_index=idx, reason=e.reason)
    if quality.rows_skipped:
        logger.warning(
            "input_rows_skipped",
            collection=collection,
            skipped=quality.rows_skipped,
            read=quality.rows_read,
        )
    return out


def build_snapshot(
    raw: dict[str, list[Any]],
    failures: dict[str, InputUnavailable] | None = None,
) -> Snapshot:
    """Parse raw collections; failed collections become empty and are marked unavailable."""
    snapshot = Snapshot()
    for collection, err in (failures or {}).items():
        snapshot.quality[collection].unavailable = True
        snapshot.quality[collection].error = err.message
    snapshot.entities = parse_rows(
        COLLECTION_ENTITIES, raw.get(COLLECTION_ENTITIES) or [], snapshot.quality[COLLECTION_ENTITIES]
    )
    snapshot.relationships = parse_rows(
        COLLECTION_RELATIONSHIPS,
        raw.get(COLLECTION_RELATIONSHIPS) or [],
        snapshot.quality[COLLECTION_RELATIONSHIPS],
    )
    snapshot.cases = parse_rows(
        COLLECTION_CASES, raw.get(COLLECTION_CASES) or [], snapshot.quality[COLLECTION_CASES]
    )
    snapshot.districts = parse_rows(
        COLLECTION_DISTRICTS,
        raw.get(COLLECTION_DISTRICTS) or [],
        snapshot.quality[COLLECTION_DISTRICTS],
    )
    return snapshot


def fetch_snapshot(
    source: DataSource,
    fetch_timeout_sec: float,
) -> tuple[dict[str, list[Any]], dict[str, InputUnavailable]]:
    """
    Fetch all four collections concurrently, bounded by one overall timeout.

    Returns (raw rows per collection, failures per collection). Raises
    AnalysisUnrecoverable only when every collection failed.
    """
    raw: dict[str, list[Any]] = {}
    failures: dict[str, InputUnavailable] = {}
    executor = ThreadPoolExecutor(max_workers=len(COLLECTIONS), thread_name_prefix="netrisk-fetch")
    futures = {executor.submit(fetcher_for(source, c)): c for c in COLLECTIONS}
    try:
        for fut in as_completed(futures, timeout=fetch_timeout_sec):
            collection = futures[fut]
            try:
                rows = fut.result()
                if not isinstance(rows, list):
                    raise TypeError(f"expected a list of rows, got {type(rows).__name__}")
                raw[collection] = rows
            except Exception as e:
                failures[collection] = InputUnavailable(collection, e)
    except FuturesTimeout:
        for fut, collection in futures.items():
            if collection not in raw and collection not in failures:
                failures[collection] = InputUnavailable(
                    collection, TimeoutError(f"fetch exceeded {fetch_timeout_sec}s")
                )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    for collection, err in failures.items():
        logger.warning("input_unavailable", collection=collection, error=err.message)
    if len(failures) == len(COLLECTIONS):
        ordered = [failures[c] for c in COLLECTIONS]
        raise AnalysisUnrecoverable(ordered) from ordered[0].cause
    return raw, failures


# -----------------------------------------------------------------------------
# Bundle
# -----------------------------------------------------------------------------


@dataclass
class AnalysisBundle:
    """Every output product of one run; each section is present even when empty."""

    pattern_insights: list[dict[str, Any]] = field(default_factory=list)
    detailed_entities: list[dict[str, Any]] = field(default_factory=list)
    district_risk: dict[str, Any] = field(default_factory=lambda: {"summary": {}, "districts": []})
    hotspots: dict[str, Any] = field(default_factory=lambda: {"summary": {}, "hotspots": []})
    temporal_patterns: dict[str, Any] = field(
        default_factory=lambda: {"monthly_trends": [], "seasonal_patterns": []}
    )
    communication_patterns: dict[str, Any] = field(default_factory=dict)
    network_vulnerabilities: dict[str, Any] = field(default_factory=dict)
    supply_chain_analysis: dict[str, Any] = field(default_factory=dict)
    risk_distribution: dict[str, int] = field(
        default_factory=lambda: {RISK_CRITICAL: 0, RISK_HIGH: 0, RISK_MEDIUM: 0, RISK_LOW: 0}
    )
    ai_methodology: dict[str, Any] = field(default_factory=scoring_methodology)
    generated_at: str = ""
    data_quality: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisBundle":
        """Build from a bundle-shaped dict; unknown keys are ignored, missing keys keep defaults."""
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def critical_entities(self, min_score: int = CRITICAL_MIN_SCORE) -> list[dict[str, Any]]:
        return [e for e in self.detailed_entities if e["calculated_risk_score"] >= min_score]

    def entities_by_pattern(self, pattern: str | BehavioralPattern) -> list[dict[str, Any]]:
        if not isinstance(pattern, BehavioralPattern):
            pattern = BehavioralPattern(pattern.strip().upper())
        value = pattern.value
        return [e for e in self.detailed_entities if e["pattern"] == value]


# -----------------------------------------------------------------------------
# Pure computation
# -----------------------------------------------------------------------------


def _scope_entities(entities: Sequence[Entity], scope: DistrictScope, has_district_rows: bool) -> list[Entity]:
    """
    Rewrite entity district ids to surviving scope ids.

    With district rows present, entities pointing at an unrecognized district are
    dropped; entities with no district at all are kept under "Unknown".
    """
    out: list[Entity] = []
    dropped = 0
    for e in entities:
        if e.district_id is None and e.district_name is None:
            out.append(e)
            continue
        resolved = scope.resolve(e.district_id, e.district_name)
        if resolved is None and has_district_rows:
            dropped += 1
            continue
        out.append(dataclasses.replace(e, district_id=resolved))
    if dropped:
        logger.info("entities_out_of_scope", dropped=dropped, kept=len(out))
    return out


def _score_all(
    classifier: PatternClassifier,
    entity_ids: Sequence[str],
    activity: dict[str, WindowCounts],
    settings: AnalysisSettings,
) -> list[ScoredEntity]:
    def score_one(entity_id: str) -> ScoredEntity:
        result = classifier.classify(entity_id)
        counts = activity.get(entity_id) or WindowCounts()
        score = score_entity(result, counts.last30, settings.activity_threshold)
        return ScoredEntity(
            result=result,
            score=score,
            total_activities=counts.total,
            recent_activities=counts.last30,
        )

    if len(entity_ids) <= settings.parallel_threshold:
        return [score_one(eid) for eid in entity_ids]
    with ThreadPoolExecutor(max_workers=settings.concurrency) as executor:
        return list(executor.map(score_one, entity_ids))


def _detailed_entity(s: ScoredEntity, graph: GraphIndex, district_names: dict[str, str]) -> dict[str, Any]:
    entity = graph.entities[s.result.entity_id]
    district = UNKNOWN_DISTRICT
    if entity.district_id is not None:
        district = district_names.get(entity.district_id, UNKNOWN_DISTRICT)
    return {
        "entity_id": entity.id,
        "name": entity.name,
        "type": entity.entity_type.value,
        "district": district,
        "pattern": s.result.pattern.value,
        "total_activities": s.total_activities,
        "recent_activities": s.recent_activities,
        "total_relationships": s.result.degree,
        "new_relationships_90_days": s.result.new_relationships_90d,
        "avg_connection_strength": round(s.result.avg_strength, 2),
        "calculated_risk_score": s.score.score,
        "risk_level": s.score.risk_level,
        "risk_factors": dict(s.score.risk_factors),
        "why_flagged": s.result.why_flagged,
    }


def _district_risk(aggregates: Sequence[DistrictAggregate]) -> dict[str, Any]:
    districts: list[dict[str, Any]] = []
    for agg in aggregates:
        scores = score_district(
            total_cases=agg.cases.total,
            recent_cases=agg.cases.last30,
            suppliers=agg.suppliers,
            transporters=agg.transporters,
            total_entities=agg.total_entities,
        )
        lat, lon = coordinates(agg.district)
        districts.append(
            {
                "id": agg.district.id,
                "name": agg.district.name,
                "latitude": lat,
                "longitude": lon,
                "risk_level": scores.risk_level,
                "risk_scores": scores.to_dict(),
                "metrics": {
                    "total_cases": agg.cases.total,
                    "total_entities": agg.total_entities,
                    "recent_cases": agg.cases.last30,
                    "previous_cases": agg.cases.prev30,
                },
                "trend": agg.cases.trend,
            }
        )
    overall = [d["risk_scores"]["overall"] for d in districts]
    summary = {
        "high_risk_districts": sum(1 for d in districts if d["risk_level"] == RISK_HIGH),
        "medium_risk_districts": sum(1 for d in districts if d["risk_level"] == RISK_MEDIUM),
        "low_risk_districts": sum(1 for d in districts if d["risk_level"] == RISK_LOW),
        "average_risk_score": round_half_up(sum(overall) / len(overall)) if overall else 0,
    }
    return {"summary": summary, "districts": districts}


def compute_bundle(
    snapshot: Snapshot,
    now: datetime,
    settings: AnalysisSettings | None = None,
    requested_districts: Sequence[str] | None = None,
) -> AnalysisBundle:
    """Compute every output product from a parsed snapshot. Deterministic for (snapshot, now)."""
    settings = settings or AnalysisSettings()
    start = time.monotonic()

    scope = DistrictScope.build(snapshot.districts, requested_districts)
    district_names = {d.id: d.name for d in scope.districts}
    entities = _scope_entities(snapshot.entities, scope, bool(snapshot.districts))
    entity_ids = {e.id for e in entities}
    relationships = [
        r
        for r in snapshot.relationships
        if r.source_entity_id in entity_ids and r.target_entity_id in entity_ids
    ]

    graph = GraphIndex.build(entities, relationships, now)
    windower = TemporalWindower(now)
    activity = windower.bucket_by(
        snapshot.cases,
        lambda c: c.entity_id if c.entity_id in entity_ids else None,
        lambda c: c.created_at,
    )

    classifier = PatternClassifier(graph, settings.rapid_expansion_new_relationships)
    scored = _score_all(classifier, [e.id for e in entities], activity, settings)
    detailed = [_detailed_entity(s, graph, district_names) for s in scored]
    detailed.sort(key=lambda d: (-d["calculated_risk_score"], d["entity_id"]))

    entity_district = {e.id: e.district_id for e in entities}
    aggregates = DistrictAggregator(scope, windower).aggregate(graph, snapshot.cases, entity_district)
    scoped_district_ids = set(district_names)

    def in_scope_case(c: CaseRecord) -> bool:
        resolved = scope.resolve(c.district_id) if c.district_id else None
        if resolved is None and c.entity_id is not None:
            resolved = entity_district.get(c.entity_id)
        return resolved in scoped_district_ids or c.entity_id in entity_ids

    monthly = windower.monthly_trends(c.created_at for c in snapshot.cases if in_scope_case(c))

    bundle = AnalysisBundle(
        pattern_insights=pattern_insights(scored, settings.rapid_expansion_new_relationships),
        detailed_entities=detailed,
        district_risk=_district_risk(aggregates),
        hotspots=HotspotDetector(settings.hotspot_limit).report(aggregates),
        temporal_patterns={
            "monthly_trends": monthly,
            "seasonal_patterns": seasonal_patterns(monthly),
        },
        communication_patterns=communication_patterns(relationships, now),
        network_vulnerabilities=network_vulnerabilities(graph, district_names),
        supply_chain_analysis=supply_chain_analysis(graph, scored),
        risk_distribution=risk_distribution([s.score.score for s in scored]),
        generated_at=now.isoformat(),
        data_quality=snapshot.data_quality(),
    )
    logger.info(
        "analysis_computed",
        entities=len(entities),
        relationships=len(relationships),
        cases=len(snapshot.cases),
        districts=len(scope.districts),
        duration_sec=round(time.monotonic() - start, 3),
    )
    return bundle


# -----------------------------------------------------------------------------
# Facade
# -----------------------------------------------------------------------------


class AuthoritativeBackend(Protocol):
    def analyze(self) -> dict[str, Any]: ...


class AnalysisFacade:
    """
    Runs the whole analysis against an injected data source.

    When an authoritative backend is configured it is asked first; if it does
    not answer within authoritative_timeout_sec the run falls back to the
    local computation once. Other backend errors propagate.
    """

    def __init__(
        self,
        source: DataSource,
        settings: AnalysisSettings | None = None,
        authoritative: AuthoritativeBackend | None = None,
        requested_districts: Sequence[str] | None = None,
    ) -> None:
        self.source = source
        self.settings = settings or get_settings()
        self.authoritative = authoritative
        self.requested_districts = requested_districts

    def run(self, now: datetime | None = None) -> AnalysisBundle:
        now = now or datetime.now(timezone.utc)
        log = bind_run(uuid.uuid4().hex[:12], __name__)
        log.info("analysis_pipeline_start", now=now.isoformat())

        if self.authoritative is not None:
            try:
                bundle = self._run_authoritative()
                log.info("analysis_pipeline_done", path="authoritative")
                return bundle
            except ComputationTimeout as e:
                log.warning(
                    "authoritative_timeout_fallback_local",
                    timeout_sec=e.timeout_sec,
                )

        raw, failures = fetch_snapshot(self.source, self.settings.fetch_timeout_sec)
        snapshot = build_snapshot(raw, failures)
        bundle = compute_bundle(snapshot, now, self.settings, self.requested_districts)
        log.info(
            "analysis_pipeline_done",
            path="local",
            entities=len(bundle.detailed_entities),
            unavailable=sorted(failures),
        )
        return bundle

    def _run_authoritative(self) -> AnalysisBundle:
        timeout = self.settings.authoritative_timeout_sec
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="netrisk-authoritative")
        try:
            future = executor.submit(self.authoritative.analyze)
            try:
                data = future.result(timeout=timeout)
            except FuturesTimeout as e:
                raise ComputationTimeout(timeout) from e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return AnalysisBundle.from_dict(data)

    def get_critical_entities(
        self, min_score: int = CRITICAL_MIN_SCORE, now: datetime | None = None
    ) -> list[dict[str, Any]]:
        return self.run(now).critical_entities(min_score)

    def get_entities_by_pattern(
        self, pattern: str | BehavioralPattern, now: datetime | None = None
    ) -> list[dict[str, Any]]:
        """Raises ValueError for an unknown pattern name."""
        return self.run(now).entities_by_pattern(pattern)

    def get_risk_distribution(self, now: datetime | None = None) -> dict[str, int]:
        return dict(self.run(now).risk_distribution)
