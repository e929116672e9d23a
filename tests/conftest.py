"""
Pytest fixtures for NetRisk tests: a small scoped snapshot and an API client.

The snapshot has one influence hub, one rapid expander, nine low-degree
neighbours, one isolated entity and one entity in an out-of-state district.
Timestamps are relative to the `now` the rows are built for.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from backend_netrisk.config.settings import AnalysisSettings
from backend_netrisk.ingestion.sources import InMemoryDataSource

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _iso(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


def build_rows(now: datetime) -> dict[str, list[dict[str, Any]]]:
    old = _iso(now - timedelta(days=400))
    districts = [
        {"id": "d1", "name": "Bangalore Urban", "state": "Karnataka", "latitude": 12.97, "longitude": 77.59},
        {"id": "d2", "name": "Mysuru", "state": "Karnataka"},
        {"id": "d3", "name": "Bengaluru-Urban", "state": "Karnataka"},
        {"id": "d4", "name": "Chennai", "state": "Tamil Nadu"},
    ]
    entities = [
        {"id": "hub", "name": "Hub Supplier", "entity_type": "supplier", "district_id": "d1"},
        {"id": "rapid", "name": "Rapid Transporter", "entity_type": "transporter", "district_id": "d3"},
        {"id": "iso", "name": "Isolated", "entity_type": "vehicle"},
        {"id": "out1", "name": "Outsider", "entity_type": "person", "district_id": "d4"},
    ]
    entities += [
        {"id": f"n{i}", "name": f"Neighbour {i}", "entity_type": "person", "district_id": "d2"}
        for i in range(1, 10)
    ]
    relationships = [
        {
            "source_entity_id": "hub",
            "target_entity_id": f"n{i}",
            "connection_strength": 4,
            "relationship_type": "supply",
            "date_established": old,
        }
        for i in range(1, 10)
    ]
    relationships += [
        {
            "source_entity_id": "rapid",
            "target_entity_id": f"n{i}",
            "connection_strength": 2,
            "relationship_type": "transport",
            "date_established": old,
        }
        for i in range(1, 6)
    ]
    cases = [
        {"id": "c1", "entity_id": "hub", "district_id": "d1", "created_at": _iso(now - timedelta(days=5))},
        {"id": "c2", "entity_id": "hub", "district_id": "d1", "created_at": _iso(now - timedelta(days=14))},
        {"id": "c3", "entity_id": "hub", "district_id": "d1", "created_at": _iso(now - timedelta(days=26))},
        {"id": "c4", "district_id": "d2", "created_at": _iso(now - timedelta(days=45))},
        {"id": "c5", "district_id": "d4", "created_at": _iso(now - timedelta(days=3))},
        {"id": "c6", "created_at": _iso(now - timedelta(days=3))},
        {"id": "c7", "district_id": "d3", "created_at": _iso(now - timedelta(days=75))},
    ]
    return {
        "entities": entities,
        "relationships": relationships,
        "cases": cases,
        "districts": districts,
    }


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def snapshot_rows(now):
    return build_rows(now)


@pytest.fixture
def data_source(snapshot_rows) -> InMemoryDataSource:
    return InMemoryDataSource(**snapshot_rows)


@pytest.fixture
def settings() -> AnalysisSettings:
    return AnalysisSettings()


@pytest.fixture
def client():
    """FastAPI TestClient whose facade reads the sample snapshot built for the current time."""
    from fastapi.testclient import TestClient

    from backend_netrisk.analytics.analysis_pipeline import AnalysisFacade
    from backend_netrisk.api_server.routes import get_facade
    from backend_netrisk.api_server.server import app

    rows = build_rows(datetime.now(timezone.utc))
    app.dependency_overrides[get_facade] = lambda: AnalysisFacade(
        InMemoryDataSource(**rows), settings=AnalysisSettings()
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
