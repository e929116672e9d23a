"""
Tests for district scoping: alias table, allow-list filter, de-duplication, zero-fill, aggregation.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend_netrisk.analysis_engine.districts import (
    CANONICAL_DISTRICTS,
    KARNATAKA_CENTROID,
    CanonicalDistrict,
    DistrictAggregator,
    DistrictScope,
    build_alias_table,
    canonical_key,
    coordinates,
    filter_districts,
    normalize_name,
)
from backend_netrisk.analysis_engine.graph import GraphIndex
from backend_netrisk.analysis_engine.models import CaseRecord, District, Entity, EntityType
from backend_netrisk.analysis_engine.temporal import TemporalWindower
from backend_netrisk.core.exceptions import ConfigurationError

NOW = datetime(2025, 6, 15, tzinfo=timezone.utc)


def test_normalize_name():
    assert normalize_name("  Bengaluru-Urban ") == "bengaluru urban"
    assert normalize_name("Hubballi_Dharwad") == "hubballi dharwad"
    assert normalize_name("Uttara   Kannada") == "uttara kannada"
    assert normalize_name(None) == ""


@pytest.mark.parametrize(
    ("name", "key"),
    [
        ("Mysuru", "mysore"),
        ("BELGAUM", "belagavi"),
        ("hubballi_dharwad", "hubli_dharwad"),
        ("Bengaluru Urban", "bangalore_urban"),
        ("Kalaburagi", "gulbarga"),
        ("Chennai", None),
    ],
)
def test_canonical_key_aliases(name, key):
    assert canonical_key(name) == key


def test_alias_table_is_unique():
    table = build_alias_table(CANONICAL_DISTRICTS)
    assert len({table[normalize_name(d.name)] for d in CANONICAL_DISTRICTS}) == len(CANONICAL_DISTRICTS)


def test_alias_conflict_raises():
    districts = [
        CanonicalDistrict("a", "Alpha", 0.0, 0.0, ("shared",)),
        CanonicalDistrict("b", "Beta", 0.0, 0.0, ("Shared",)),
    ]
    with pytest.raises(ConfigurationError, match="shared"):
        build_alias_table(districts)


def test_filter_districts_rules():
    rows = [
        District("1", "Bangalore Urban", "Karnataka"),
        District("2", "Chennai", "Tamil Nadu"),
        District("3", "Bengaluru-Urban", None),
        District("4", "Vijayanagara", "karnataka "),
        District("5", "Mysuru", None),
        District("6", "Unknown Place", None),
    ]
    kept = filter_districts(rows)
    assert [d.id for d in kept] == ["1", "4", "5"]


def test_filter_districts_idempotent():
    rows = [
        District("1", "Mysore"),
        District("2", "mysuru"),
        District("3", "Udupi", "Karnataka"),
        District("4", "Goa", "Goa"),
    ]
    once = filter_districts(rows)
    assert filter_districts(once) == once


def test_scope_remaps_duplicate_ids():
    scope = DistrictScope.build([District("d1", "Belagavi"), District("d9", "Belgaum")])
    assert [d.id for d in scope.districts] == ["d1"]
    assert scope.resolve("d9") == "d1"
    assert scope.resolve(None, "belgaum") == "d1"
    assert scope.resolve("nope") is None


def test_scope_zero_fills_requested():
    scope = DistrictScope.build([District("d1", "Udupi")], requested=["Udupi", "Kodagu", "Atlantis"])
    assert [d.id for d in scope.districts] == ["d1", "canonical:kodagu"]
    synthetic = scope.by_id()["canonical:kodagu"]
    assert synthetic.name == "Kodagu"
    assert synthetic.state == "Karnataka"


def test_scope_without_rows_uses_every_canonical_district():
    scope = DistrictScope.build([])
    assert len(scope.districts) == len(CANONICAL_DISTRICTS)
    assert scope.resolve(None, "Coorg") == "canonical:kodagu"


def test_coordinates_fallbacks():
    assert coordinates(District("1", "Udupi", latitude=1.0, longitude=2.0)) == (1.0, 2.0)
    udupi = next(c for c in CANONICAL_DISTRICTS if c.key == "udupi")
    assert coordinates(District("1", "Udupi")) == (udupi.latitude, udupi.longitude)
    assert coordinates(District("1", "Vijayanagara", "Karnataka")) == KARNATAKA_CENTROID


def test_aggregator_counts_and_zero_fill():
    scope = DistrictScope.build(
        [District("d1", "Hassan"), District("d2", "Hassan"), District("d3", "Mandya")],
        requested=["Kolar"],
    )
    entities = [
        Entity("s1", "s1", EntityType.SUPPLIER, district_id="d1"),
        Entity("t1", "t1", EntityType.TRANSPORTER, district_id="d1"),
        Entity("p1", "p1", EntityType.PERSON, district_id="d3"),
    ]
    graph = GraphIndex.build(entities, [], NOW)
    cases = [
        CaseRecord("c1", "d1", None, NOW - timedelta(days=1)),
        CaseRecord("c2", "d2", None, NOW - timedelta(days=40)),
        CaseRecord("c3", None, "p1", NOW - timedelta(days=2)),
        CaseRecord("c4", "zz", None, NOW),
    ]
    entity_district = {e.id: e.district_id for e in entities}
    rows = DistrictAggregator(scope, TemporalWindower(NOW)).aggregate(graph, cases, entity_district)
    by_id = {r.district.id: r for r in rows}

    assert list(by_id) == ["d1", "d3", "canonical:kolar"]
    assert by_id["d1"].cases.total == 2
    assert by_id["d1"].cases.last30 == 1
    assert by_id["d1"].cases.prev30 == 1
    assert by_id["d1"].suppliers == 1
    assert by_id["d1"].transporters == 1
    assert by_id["d1"].total_entities == 2
    assert by_id["d3"].cases.last30 == 1
    assert by_id["canonical:kolar"].to_dict()["total_cases"] == 0
    assert by_id["canonical:kolar"].total_entities == 0
