"""
Tests for the analysis pipeline (AnalysisFacade, compute_bundle, fetch_snapshot).

Uses the conftest snapshot: hub (97), rapid (65), nine neighbours and one
isolated entity (35), an out-of-state entity that must be dropped.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from backend_netrisk.analytics.analysis_pipeline import (
    AnalysisBundle,
    AnalysisFacade,
    build_snapshot,
    compute_bundle,
    fetch_snapshot,
)
from backend_netrisk.config.settings import AnalysisSettings
from backend_netrisk.core.exceptions import AnalysisUnrecoverable, ComputationTimeout
from backend_netrisk.ingestion.sources import InMemoryDataSource


class FailingSource(InMemoryDataSource):
    """In-memory source whose listed collections raise on fetch."""

    def __init__(self, failing: set[str], **rows):
        super().__init__(**rows)
        self.failing = failing

    def _maybe_fail(self, name: str, rows):
        if name in self.failing:
            raise ConnectionError(f"{name} backend down")
        return rows

    def fetch_entities(self):
        return self._maybe_fail("entities", super().fetch_entities())

    def fetch_relationships(self):
        return self._maybe_fail("relationships", super().fetch_relationships())

    def fetch_cases(self):
        return self._maybe_fail("cases", super().fetch_cases())

    def fetch_districts(self):
        return self._maybe_fail("districts", super().fetch_districts())


class BlockingCasesSource(InMemoryDataSource):
    """fetch_cases blocks until released, to exercise the fetch timeout."""

    def __init__(self, release: threading.Event, **rows):
        super().__init__(**rows)
        self.release = release

    def fetch_cases(self):
        self.release.wait(5)
        return super().fetch_cases()


@pytest.fixture
def bundle(data_source, settings, now) -> AnalysisBundle:
    return AnalysisFacade(data_source, settings=settings).run(now)


def _entity(bundle: AnalysisBundle, entity_id: str) -> dict:
    return next(e for e in bundle.detailed_entities if e["entity_id"] == entity_id)


def test_bundle_has_every_section(bundle):
    keys = set(bundle.to_dict())
    assert keys == {
        "pattern_insights",
        "detailed_entities",
        "district_risk",
        "hotspots",
        "temporal_patterns",
        "communication_patterns",
        "network_vulnerabilities",
        "supply_chain_analysis",
        "risk_distribution",
        "ai_methodology",
        "generated_at",
        "data_quality",
    }
    assert bundle.generated_at == "2025-06-15T12:00:00+00:00"


def test_entity_scores(bundle):
    hub = _entity(bundle, "hub")
    assert hub["pattern"] == "HIGH_INFLUENCE_HUB"
    assert hub["calculated_risk_score"] == 97
    assert hub["risk_level"] == "CRITICAL"
    assert hub["recent_activities"] == 3
    assert hub["total_relationships"] == 9
    assert hub["district"] == "Bangalore Urban"

    rapid = _entity(bundle, "rapid")
    assert rapid["pattern"] == "RAPID_NETWORK_EXPANSION"
    assert rapid["calculated_risk_score"] == 65
    assert rapid["district"] == "Bangalore Urban"

    iso = _entity(bundle, "iso")
    assert iso["pattern"] == "NONE"
    assert iso["calculated_risk_score"] == 35
    assert iso["district"] == "Unknown"

    assert _entity(bundle, "n1")["district"] == "Mysuru"
    assert all(e["entity_id"] != "out1" for e in bundle.detailed_entities)


def test_detailed_entities_sorted(bundle):
    ids = [e["entity_id"] for e in bundle.detailed_entities]
    assert ids[:4] == ["hub", "rapid", "iso", "n1"]
    assert len(ids) == 12
    assert all(0 <= e["calculated_risk_score"] <= 100 for e in bundle.detailed_entities)


def test_risk_distribution(bundle):
    assert bundle.risk_distribution == {"CRITICAL": 1, "HIGH": 0, "MEDIUM": 1, "LOW": 10}


def test_district_risk(bundle):
    districts = {d["id"]: d for d in bundle.district_risk["districts"]}
    assert list(districts) == ["d1", "d2"]

    d1 = districts["d1"]
    assert d1["risk_scores"] == {
        "overall": 27,
        "case_activity": 32,
        "recent_activity": 75,
        "supplier_presence": 12,
        "transport_network": 10,
        "network_density": 6,
    }
    assert d1["metrics"] == {"total_cases": 4, "total_entities": 2, "recent_cases": 3, "previous_cases": 0}
    assert d1["trend"] == "increasing"
    assert (d1["latitude"], d1["longitude"]) == (12.97, 77.59)

    d2 = districts["d2"]
    assert d2["risk_scores"]["overall"] == 7
    assert d2["trend"] == "decreasing"
    assert (d2["latitude"], d2["longitude"]) == (12.2958, 76.6394)

    assert bundle.district_risk["summary"] == {
        "high_risk_districts": 0,
        "medium_risk_districts": 0,
        "low_risk_districts": 2,
        "average_risk_score": 17,
    }


def test_hotspots(bundle):
    hotspots = bundle.hotspots["hotspots"]
    assert [(h["district_id"], h["hotspot_score"]) for h in hotspots] == [("d1", 7), ("d2", 5)]
    assert hotspots[0]["comparison"] == {"activity_increase_percent": 100, "trend": "increasing"}
    assert bundle.hotspots["summary"]["low_alerts"] == 2
    assert bundle.hotspots["summary"]["districts_with_increased_activity"] == 1


def test_temporal_patterns(bundle):
    monthly = bundle.temporal_patterns["monthly_trends"]
    assert monthly[-3:] == [
        {"month": "2025-04", "cases": 1, "moving_average": 0},
        {"month": "2025-05", "cases": 2, "moving_average": 1},
        {"month": "2025-06", "cases": 2, "moving_average": 2},
    ]
    seasons = {s["season"]: s["average_cases"] for s in bundle.temporal_patterns["seasonal_patterns"]}
    assert seasons == {"Winter": 0, "Summer": 1, "Monsoon": 1, "Post-monsoon": 0}


def test_pattern_insights(bundle):
    insights = {i["behavioral_pattern"]: i for i in bundle.pattern_insights}
    assert insights["HIGH_INFLUENCE_HUB"]["ai_risk_score"] == 97
    assert insights["HIGH_INFLUENCE_HUB"]["avg_activities"] == 3
    assert insights["RAPID_NETWORK_EXPANSION"]["entity_count"] == 1
    assert insights["NOCTURNAL_PATTERN"]["entity_count"] == 9
    assert insights["NOCTURNAL_PATTERN"]["avg_connections"] == 1.56


def test_network_sections(bundle):
    summary = bundle.communication_patterns["pattern_summary"]
    assert summary["high_frequency_communications"] == 9
    assert summary["total_active_relationships"] == 14
    nodes = bundle.network_vulnerabilities["critical_nodes"]
    assert nodes[0]["id"] == "hub"
    assert nodes[1]["id"] == "rapid"
    assert len(nodes) == 11
    assert bundle.supply_chain_analysis["suppliers"] == 1
    assert bundle.supply_chain_analysis["transporters"] == 1


def test_data_quality_counts_skipped_rows(bundle):
    cases = bundle.data_quality["cases"]
    assert cases == {"rows_read": 7, "rows_skipped": 1, "unavailable": False, "error": None}
    assert bundle.data_quality["entities"]["rows_read"] == 13


def test_run_is_deterministic(data_source, settings, now):
    facade = AnalysisFacade(data_source, settings=settings)
    assert facade.run(now).to_dict() == facade.run(now).to_dict()


def test_parallel_scoring_matches_serial(data_source, now):
    serial = AnalysisFacade(data_source, settings=AnalysisSettings()).run(now)
    parallel = AnalysisFacade(
        data_source, settings=AnalysisSettings(parallel_threshold=1, concurrency=4)
    ).run(now)
    assert parallel.detailed_entities == serial.detailed_entities


def test_single_collection_failure_degrades_to_empty(snapshot_rows, settings, now):
    source = FailingSource({"cases"}, **snapshot_rows)
    bundle = AnalysisFacade(source, settings=settings).run(now)
    assert bundle.data_quality["cases"]["unavailable"] is True
    assert "ConnectionError" in bundle.data_quality["cases"]["error"]
    assert _entity(bundle, "hub")["calculated_risk_score"] == 80
    assert all(d["metrics"]["total_cases"] == 0 for d in bundle.district_risk["districts"])


def test_missing_districts_zero_fills_canonical_set(snapshot_rows, settings, now):
    source = FailingSource({"districts"}, **snapshot_rows)
    bundle = AnalysisFacade(source, settings=settings).run(now)
    assert len(bundle.district_risk["districts"]) == 32
    assert len(bundle.hotspots["hotspots"]) == 15
    assert _entity(bundle, "out1")["district"] == "Unknown"


def test_all_collections_failed_is_unrecoverable(snapshot_rows, settings, now):
    source = FailingSource({"entities", "relationships", "cases", "districts"}, **snapshot_rows)
    with pytest.raises(AnalysisUnrecoverable) as exc:
        AnalysisFacade(source, settings=settings).run(now)
    assert len(exc.value.failures) == 4
    assert isinstance(exc.value.__cause__, ConnectionError)


def test_fetch_timeout_marks_collection_unavailable(snapshot_rows):
    release = threading.Event()
    source = BlockingCasesSource(release, **snapshot_rows)
    try:
        raw, failures = fetch_snapshot(source, fetch_timeout_sec=0.2)
    finally:
        release.set()
    assert set(failures) == {"cases"}
    assert "cases" not in raw
    assert len(raw["entities"]) == 13


def test_empty_snapshot_returns_shaped_bundle(now):
    bundle = compute_bundle(build_snapshot({}), now)
    assert bundle.detailed_entities == []
    assert len(bundle.pattern_insights) == 3
    assert bundle.risk_distribution == {"CRITICAL": 0, "HIGH": 0, "MEDIUM": 0, "LOW": 0}
    assert len(bundle.district_risk["districts"]) == 32
    assert bundle.district_risk["summary"]["average_risk_score"] == 0


def test_edge_to_out_of_scope_entity_is_dropped(snapshot_rows, settings, now):
    snapshot_rows["relationships"].append(
        {"source_entity_id": "out1", "target_entity_id": "iso", "connection_strength": 3}
    )
    bundle = AnalysisFacade(InMemoryDataSource(**snapshot_rows), settings=settings).run(now)
    iso = _entity(bundle, "iso")
    assert iso["total_relationships"] == 0
    assert iso["pattern"] == "NONE"
    node_ids = [n["id"] for n in bundle.network_vulnerabilities["critical_nodes"]]
    assert "out1" not in node_ids


def test_out_of_state_hub_does_not_leak(settings, now):
    rows = {
        "districts": [
            {"id": "u", "name": "Udupi", "state": "Karnataka"},
            {"id": "c", "name": "Chennai", "state": "Tamil Nadu"},
        ],
        "entities": [
            {"id": "a", "name": "Local", "entity_type": "person", "district_id": "u"},
            {"id": "out", "name": "Outsider", "entity_type": "supplier", "district_id": "c"},
        ],
        "relationships": [
            {"source_entity_id": "a", "target_entity_id": "out", "connection_strength": 5}
            for _ in range(9)
        ],
    }
    bundle = compute_bundle(build_snapshot(rows), now, settings)
    assert [e["entity_id"] for e in bundle.detailed_entities] == ["a"]
    local = _entity(bundle, "a")
    assert local["total_relationships"] == 0
    assert local["pattern"] != "HIGH_INFLUENCE_HUB"
    node_ids = [n["id"] for n in bundle.network_vulnerabilities["critical_nodes"]]
    assert "out" not in node_ids
    assert bundle.communication_patterns["pattern_summary"]["total_active_relationships"] == 0


def test_query_helpers(data_source, settings, now):
    facade = AnalysisFacade(data_source, settings=settings)
    assert [e["entity_id"] for e in facade.get_critical_entities(now=now)] == ["hub"]
    assert [e["entity_id"] for e in facade.get_critical_entities(60, now=now)] == ["hub", "rapid"]
    assert [e["entity_id"] for e in facade.get_entities_by_pattern("rapid_network_expansion", now=now)] == [
        "rapid"
    ]
    assert facade.get_risk_distribution(now=now)["LOW"] == 10
    with pytest.raises(ValueError):
        facade.get_entities_by_pattern("SIDEWAYS", now=now)


class SlowBackend:
    def __init__(self, release: threading.Event):
        self.release = release
        self.calls = 0

    def analyze(self):
        self.calls += 1
        self.release.wait(5)
        return {"detailed_entities": []}


def test_authoritative_timeout_falls_back_to_local(data_source, now):
    release = threading.Event()
    backend = SlowBackend(release)
    facade = AnalysisFacade(
        data_source,
        settings=AnalysisSettings(authoritative_timeout_sec=0.1),
        authoritative=backend,
    )
    try:
        bundle = facade.run(now)
    finally:
        release.set()
    assert backend.calls == 1
    assert _entity(bundle, "hub")["calculated_risk_score"] == 97


def test_authoritative_statement_timeout_falls_back(data_source, settings, now):
    class StatementTimeoutBackend:
        def analyze(self):
            raise ComputationTimeout(10)

    bundle = AnalysisFacade(data_source, settings=settings, authoritative=StatementTimeoutBackend()).run(now)
    assert len(bundle.detailed_entities) == 12


def test_authoritative_result_is_used(data_source, settings, now):
    class RemoteBackend:
        def analyze(self):
            return {"detailed_entities": [{"entity_id": "remote"}], "generated_at": "x", "extra": 1}

    with patch("backend_netrisk.analytics.analysis_pipeline.fetch_snapshot") as fetch:
        bundle = AnalysisFacade(data_source, settings=settings, authoritative=RemoteBackend()).run(now)
    fetch.assert_not_called()
    assert bundle.detailed_entities == [{"entity_id": "remote"}]
    assert len(bundle.pattern_insights) == 0
    assert bundle.ai_methodology["version"] == "2.1"


def test_authoritative_other_errors_propagate(data_source, settings, now):
    class BrokenBackend:
        def analyze(self):
            raise RuntimeError("bad response")

    with pytest.raises(RuntimeError, match="bad response"):
        AnalysisFacade(data_source, settings=settings, authoritative=BrokenBackend()).run(now)


def test_default_now_is_utc(data_source, settings):
    bundle = AnalysisFacade(data_source, settings=settings).run()
    generated = datetime.fromisoformat(bundle.generated_at)
    assert generated.tzinfo is not None
    assert abs((datetime.now(timezone.utc) - generated).total_seconds()) < 60
