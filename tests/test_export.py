"""
Tests for bundle export (JSON and CSV).
"""

from __future__ import annotations

import csv
import io
import json

import pytest

from backend_netrisk.analytics.analysis_pipeline import AnalysisBundle, AnalysisFacade
from backend_netrisk.analytics.export import CSV_HEADER, export_bundle, to_csv


@pytest.fixture
def bundle(data_source, settings, now) -> AnalysisBundle:
    return AnalysisFacade(data_source, settings=settings).run(now)


def test_csv_header_has_twelve_columns():
    assert len(CSV_HEADER) == 12
    assert CSV_HEADER[0] == "Entity ID"
    assert CSV_HEADER[-1] == "Why Flagged"


def test_csv_one_row_per_entity(bundle):
    rows = list(csv.reader(io.StringIO(export_bundle(bundle, "csv"))))
    assert rows[0] == CSV_HEADER
    assert len(rows) == 1 + len(bundle.detailed_entities)
    hub = rows[1]
    assert hub[0] == "hub"
    assert hub[4] == "HIGH_INFLUENCE_HUB"
    assert hub[5] == "97"


def test_csv_empty_is_header_only():
    assert to_csv([]) == ",".join(CSV_HEADER) + "\n"


def test_csv_quotes_commas_and_quotes():
    entity = {
        "entity_id": "e1",
        "name": 'Acme, "Ltd"',
        "why_flagged": "degree=9 ≥ 8 and avg_strength=4 ≥ 4",
    }
    text = to_csv([entity])
    assert '"Acme, ""Ltd"""' in text
    row = list(csv.reader(io.StringIO(text)))[1]
    assert row[1] == 'Acme, "Ltd"'
    assert row[2] == ""
    assert row[11] == entity["why_flagged"]


def test_json_export_has_every_section(bundle):
    data = json.loads(export_bundle(bundle, "JSON"))
    assert set(data) == set(bundle.to_dict())
    assert data["risk_distribution"]["CRITICAL"] == 1


def test_unsupported_format_raises(bundle):
    with pytest.raises(ValueError, match="unsupported export format"):
        export_bundle(bundle, "xml")
