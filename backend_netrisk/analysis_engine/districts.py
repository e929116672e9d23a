"""
District scoping: canonical allow-list, alias normalization, de-duplication, zero-fill.

A district record is in scope when its normalized name is a known Karnataka
district (official name or spelling variant) or its `state` normalizes to
"karnataka". Duplicates collapse onto the first record with the same
canonical key; ids of dropped duplicates are remapped to the survivor so
entities and cases that point at them still land in the right district.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from backend_netrisk.analysis_engine.graph import GraphIndex
from backend_netrisk.analysis_engine.models import CaseRecord, District, EntityType
from backend_netrisk.analysis_engine.temporal import TemporalWindower, WindowCounts
from backend_netrisk.core.exceptions import ConfigurationError
from backend_netrisk.netrisk_logging import get_logger

logger = get_logger(__name__)

ALLOWED_STATE = "karnataka"
KARNATAKA_CENTROID = (15.3173, 75.7139)
SYNTHETIC_ID_PREFIX = "canonical:"


@dataclass(frozen=True)
class CanonicalDistrict:
    key: str
    name: str
    latitude: float
    longitude: float
    aliases: tuple[str, ...] = ()


CANONICAL_DISTRICTS: tuple[CanonicalDistrict, ...] = (
    CanonicalDistrict("bangalore_urban", "Bangalore Urban", 12.9716, 77.5946, ("bengaluru urban",)),
    CanonicalDistrict("bangalore_rural", "Bangalore Rural", 13.2846, 77.3821, ("bengaluru rural",)),
    CanonicalDistrict("mysore", "Mysore", 12.2958, 76.6394, ("mysuru",)),
    CanonicalDistrict("davanagere", "Davanagere", 14.4644, 75.9176),
    CanonicalDistrict("hubli_dharwad", "Hubli-Dharwad", 15.3647, 75.124, ("hubballi dharwad",)),
    CanonicalDistrict("mangalore", "Mangalore", 12.9141, 74.856, ("mangaluru",)),
    CanonicalDistrict("belagavi", "Belagavi", 15.8497, 74.4977, ("belgaum",)),
    CanonicalDistrict("tumakuru", "Tumakuru", 13.3379, 77.1025, ("tumkur",)),
    CanonicalDistrict("udupi", "Udupi", 13.3409, 74.7421),
    CanonicalDistrict("shimoga", "Shimoga", 13.9299, 75.5681, ("shivamogga",)),
    CanonicalDistrict("chitradurga", "Chitradurga", 14.2251, 76.396),
    CanonicalDistrict("hassan", "Hassan", 13.0033, 76.0969),
    CanonicalDistrict("mandya", "Mandya", 12.5218, 76.8951),
    CanonicalDistrict("kolar", "Kolar", 13.1378, 78.1294),
    CanonicalDistrict("chikkaballapur", "Chikkaballapur", 13.4355, 77.7315, ("chikballapur",)),
    CanonicalDistrict("ramanagara", "Ramanagara", 12.7172, 77.2824),
    CanonicalDistrict("bidar", "Bidar", 17.9103, 77.5207),
    CanonicalDistrict("gulbarga", "Gulbarga", 17.3297, 76.8343, ("kalaburagi",)),
    CanonicalDistrict("raichur", "Raichur", 16.212, 77.3439),
    CanonicalDistrict("koppal", "Koppal", 15.35, 76.1547),
    CanonicalDistrict("gadag", "Gadag", 15.4167, 75.6333),
    CanonicalDistrict("haveri", "Haveri", 14.7951, 75.4065),
    CanonicalDistrict("dharwad", "Dharwad", 15.4589, 75.0078),
    CanonicalDistrict("uttara_kannada", "Uttara Kannada", 14.7937, 74.6857, ("karwar",)),
    CanonicalDistrict("bagalkote", "Bagalkote", 16.1651, 75.6946, ("bagalkot",)),
    CanonicalDistrict("vijayapur", "Vijayapur", 16.8302, 75.71, ("vijayapura",)),
    CanonicalDistrict("ballari", "Ballari", 15.1394, 76.9214, ("bellary",)),
    CanonicalDistrict("chikkamagaluru", "Chikkamagaluru", 13.3161, 75.772, ("chikmagalur",)),
    CanonicalDistrict("dakshina_kannada", "Dakshina Kannada", 12.8438, 75.2479, ("south kanara",)),
    CanonicalDistrict("kodagu", "Kodagu", 12.4244, 75.7382, ("coorg",)),
    CanonicalDistrict("chamarajanagar", "Chamarajanagar", 11.9258, 76.9437),
    CanonicalDistrict("yadgir", "Yadgir", 16.7524, 77.1427),
)

_SEPARATORS = re.compile(r"[-_]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str | None) -> str:
    """Lowercase, hyphens/underscores to spaces, collapse whitespace."""
    s = _SEPARATORS.sub(" ", (name or "").lower())
    return _WHITESPACE.sub(" ", s).strip()


def build_alias_table(districts: Iterable[CanonicalDistrict]) -> dict[str, str]:
    """
    Map every normalized official name and alias to its canonical key.

    Raises ConfigurationError when one alias would point at two districts.
    """
    table: dict[str, str] = {}
    for d in districts:
        for alias in (d.name, d.key, *d.aliases):
            norm = normalize_name(alias)
            existing = table.get(norm)
            if existing is not None and existing != d.key:
                raise ConfigurationError(
                    f"district alias {norm!r} maps to both {existing!r} and {d.key!r}"
                )
            table[norm] = d.key
    return table


ALIAS_TO_CANONICAL: dict[str, str] = build_alias_table(CANONICAL_DISTRICTS)
CANONICAL_BY_KEY: dict[str, CanonicalDistrict] = {d.key: d for d in CANONICAL_DISTRICTS}


def canonical_key(name: str | None) -> str | None:
    return ALIAS_TO_CANONICAL.get(normalize_name(name))


def is_allowed_state(state: str | None) -> bool:
    return (state or "").strip().lower() == ALLOWED_STATE


def is_recognized(district: District) -> bool:
    return canonical_key(district.name) is not None or is_allowed_state(district.state)


def dedupe_key(district: District) -> str:
    """Canonical key when known, otherwise the normalized name (state-only matches)."""
    return canonical_key(district.name) or normalize_name(district.name)


def filter_districts(districts: Iterable[District]) -> list[District]:
    """Keep recognized districts, first occurrence per canonical key. Idempotent."""
    seen: set[str] = set()
    out: list[District] = []
    for d in districts:
        if not is_recognized(d):
            continue
        key = dedupe_key(d)
        if key in seen:
            continue
        seen.add(key)
        out.append(d)
    return out


def synthesize_district(key: str) -> District:
    """Zero-data stand-in for a requested canonical district absent from the input."""
    c = CANONICAL_BY_KEY[key]
    return District(
        id=f"{SYNTHETIC_ID_PREFIX}{key}",
        name=c.name,
        state="Karnataka",
        latitude=c.latitude,
        longitude=c.longitude,
    )


@dataclass
class DistrictScope:
    """
    The in-scope district set for one run and the id remapping that goes with it.

    `districts` keeps input order; `id_map` sends every accepted raw id
    (including dropped duplicates) to the surviving district's id.
    """

    districts: list[District] = field(default_factory=list)
    id_map: dict[str, str] = field(default_factory=dict)
    key_map: dict[str, str] = field(default_factory=dict)
    """dedupe key -> surviving district id."""

    @classmethod
    def build(
        cls,
        districts: Sequence[District],
        requested: Sequence[str] | None = None,
    ) -> "DistrictScope":
        """
        Filter and de-duplicate `districts`, then zero-fill requested districts.

        `requested` names canonical districts (any alias) that must appear; when
        None and no district rows were supplied, every canonical district is requested.
        Unknown requested names are ignored with a warning.
        """
        scope = cls()
        for d in districts:
            if not is_recognized(d):
                continue
            key = dedupe_key(d)
            survivor_id = scope.key_map.get(key)
            if survivor_id is None:
                scope.key_map[key] = d.id
                scope.districts.append(d)
                survivor_id = d.id
            scope.id_map.setdefault(d.id, survivor_id)

        if requested is None and not districts:
            requested = [c.key for c in CANONICAL_DISTRICTS]
        for name in requested or ():
            key = canonical_key(name)
            if key is None:
                logger.warning("district_requested_unknown", district=name)
                continue
            if key in scope.key_map:
                continue
            synthetic = synthesize_district(key)
            scope.key_map[key] = synthetic.id
            scope.id_map[synthetic.id] = synthetic.id
            scope.districts.append(synthetic)
        return scope

    def resolve(self, district_id: str | None = None, district_name: str | None = None) -> str | None:
        """Surviving district id for a raw id or a district name; None when out of scope."""
        if district_id is not None and district_id in self.id_map:
            return self.id_map[district_id]
        if district_name:
            key = canonical_key(district_name) or normalize_name(district_name)
            return self.key_map.get(key)
        return None

    def by_id(self) -> dict[str, District]:
        return {d.id: d for d in self.districts}


def coordinates(district: District) -> tuple[float, float]:
    """Input coordinates, else the canonical table's, else the state centroid."""
    if district.latitude is not None and district.longitude is not None:
        return district.latitude, district.longitude
    key = canonical_key(district.name)
    if key is not None:
        c = CANONICAL_BY_KEY[key]
        return c.latitude, c.longitude
    return KARNATAKA_CENTROID


@dataclass
class DistrictAggregate:
    """Raw per-district counts that the district scorer and hotspot detector consume."""

    district: District
    cases: WindowCounts = field(default_factory=WindowCounts)
    total_entities: int = 0
    suppliers: int = 0
    transporters: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "district_id": self.district.id,
            "district_name": self.district.name,
            "total_cases": self.cases.total,
            "recent_cases": self.cases.last30,
            "previous_cases": self.cases.prev30,
            "total_entities": self.total_entities,
            "suppliers": self.suppliers,
            "transporters": self.transporters,
        }


class DistrictAggregator:
    """Counts entities and cases per in-scope district; every scoped district gets a row."""

    def __init__(self, scope: DistrictScope, windower: TemporalWindower) -> None:
        self.scope = scope
        self.windower = windower

    def aggregate(
        self,
        graph: GraphIndex,
        cases: Iterable[CaseRecord],
        entity_district: dict[str, str | None],
    ) -> list[DistrictAggregate]:
        """
        One aggregate per scoped district, in scope order, zero-filled when empty.

        Entities must already carry resolved district ids (see DistrictScope.resolve).
        A case without its own district falls back to its linked entity's district.
        """
        rows = {d.id: DistrictAggregate(district=d) for d in self.scope.districts}
        for district_id, row in rows.items():
            row.total_entities = graph.entity_count(district_id)
            row.suppliers = graph.type_count(district_id, EntityType.SUPPLIER)
            row.transporters = graph.type_count(district_id, EntityType.TRANSPORTER)

        def case_district(case: CaseRecord) -> str | None:
            resolved = self.scope.resolve(case.district_id) if case.district_id else None
            if resolved is None and case.entity_id is not None:
                resolved = entity_district.get(case.entity_id)
            return resolved

        per_district = self.windower.bucket_by(cases, case_district, lambda c: c.created_at)
        for district_id, counts in per_district.items():
            if district_id in rows:
                rows[district_id].cases = counts
        return list(rows.values())

