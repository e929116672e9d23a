"""
Data models for analysis engine input.

Entity, Relationship, CaseRecord and District are parsed from raw row dicts
(as returned by any data source). Parsers raise InputMalformed for rows that
miss required fields; the facade skips those rows and keeps going.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from backend_netrisk.analysis_engine.numeric import round_half_up
from backend_netrisk.core.exceptions import InputMalformed

COLLECTION_ENTITIES = "entities"
COLLECTION_RELATIONSHIPS = "relationships"
COLLECTION_CASES = "cases"
COLLECTION_DISTRICTS = "districts"

MIN_CONNECTION_STRENGTH = 1
MAX_CONNECTION_STRENGTH = 5


class EntityType(str, Enum):
    PERSON = "person"
    SUPPLIER = "supplier"
    TRANSPORTER = "transporter"
    STORAGE_LOCATION = "storage_location"
    VEHICLE = "vehicle"


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse an ISO-8601 string, datetime, date, or Unix seconds into an aware UTC datetime.

    Naive values are taken as UTC. Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _opt_id(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _require_id(row: dict[str, Any], key: str, collection: str, index: int | None) -> str:
    value = _opt_id(row.get(key))
    if value is None:
        raise InputMalformed(collection, f"missing {key}", row_index=index)
    return value


def _opt_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


@dataclass(frozen=True)
class Entity:
    """A tracked node in the network graph."""

    id: str
    name: str
    entity_type: EntityType
    district_id: str | None = None
    district_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any], index: int | None = None) -> "Entity":
        if not isinstance(row, dict):
            raise InputMalformed(COLLECTION_ENTITIES, "row is not an object", row_index=index)
        entity_id = _require_id(row, "id", COLLECTION_ENTITIES, index)
        raw_type = str(row.get("entity_type") or row.get("type") or "").strip().lower()
        raw_type = raw_type.replace(" ", "_").replace("-", "_")
        if not raw_type:
            raise InputMalformed(COLLECTION_ENTITIES, "missing entity_type", row_index=index)
        try:
            entity_type = EntityType(raw_type)
        except ValueError:
            raise InputMalformed(
                COLLECTION_ENTITIES, f"unknown entity_type {raw_type!r}", row_index=index
            ) from None
        name = str(row.get("name") or "").strip() or entity_id
        return cls(
            id=entity_id,
            name=name,
            entity_type=entity_type,
            district_id=_opt_id(row.get("district_id")),
            district_name=_opt_id(row.get("district_name")),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )


@dataclass(frozen=True)
class Relationship:
    """Multigraph edge between two entities; each row counts independently toward degree."""

    source_entity_id: str
    target_entity_id: str
    connection_strength: int
    relationship_type: str = ""
    id: str | None = None
    date_established: datetime | None = None
    last_activity: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any], index: int | None = None) -> "Relationship":
        if not isinstance(row, dict):
            raise InputMalformed(COLLECTION_RELATIONSHIPS, "row is not an object", row_index=index)
        source = _require_id(row, "source_entity_id", COLLECTION_RELATIONSHIPS, index)
        target = _require_id(row, "target_entity_id", COLLECTION_RELATIONSHIPS, index)
        strength = _opt_float(row.get("connection_strength"))
        if strength is None:
            raise InputMalformed(
                COLLECTION_RELATIONSHIPS, "missing or non-numeric connection_strength", row_index=index
            )
        strength_int = round_half_up(strength)
        strength_int = max(MIN_CONNECTION_STRENGTH, min(MAX_CONNECTION_STRENGTH, strength_int))
        return cls(
            source_entity_id=source,
            target_entity_id=target,
            connection_strength=strength_int,
            relationship_type=str(row.get("relationship_type") or "").strip(),
            id=_opt_id(row.get("id")),
            date_established=parse_timestamp(row.get("date_established")),
            last_activity=parse_timestamp(row.get("last_activity")),
        )


@dataclass(frozen=True)
class CaseRecord:
    """Timestamped case/activity record linked to a district, an entity, or both."""

    id: str | None
    district_id: str | None
    entity_id: str | None
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: dict[str, Any], index: int | None = None) -> "CaseRecord":
        if not isinstance(row, dict):
            raise InputMalformed(COLLECTION_CASES, "row is not an object", row_index=index)
        district_id = _opt_id(row.get("district_id"))
        entity_id = _opt_id(row.get("entity_id"))
        if district_id is None and entity_id is None:
            raise InputMalformed(
                COLLECTION_CASES, "needs district_id or entity_id linkage", row_index=index
            )
        return cls(
            id=_opt_id(row.get("id")),
            district_id=district_id,
            entity_id=entity_id,
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass(frozen=True)
class District:
    id: str
    name: str
    state: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any], index: int | None = None) -> "District":
        if not isinstance(row, dict):
            raise InputMalformed(COLLECTION_DISTRICTS, "row is not an object", row_index=index)
        district_id = _require_id(row, "id", COLLECTION_DISTRICTS, index)
        name = str(row.get("name") or row.get("district_name") or "").strip()
        if not name:
            raise InputMalformed(COLLECTION_DISTRICTS, "missing name", row_index=index)
        lat = _opt_float(row.get("latitude", row.get("lat")))
        lon = _opt_float(row.get("longitude", row.get("lon")))
        return cls(
            id=district_id,
            name=name,
            state=_opt_id(row.get("state")),
            latitude=lat,
            longitude=lon,
        )
