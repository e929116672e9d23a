"""
Data source interface for analysis snapshots.

A data source hands the facade raw row dicts for the four input collections.
Sources never parse or validate rows; that happens in the analysis engine so
every backend gets the same malformed-row handling.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from backend_netrisk.analysis_engine.models import (
    COLLECTION_CASES,
    COLLECTION_DISTRICTS,
    COLLECTION_ENTITIES,
    COLLECTION_RELATIONSHIPS,
)
from backend_netrisk.netrisk_logging import get_logger

logger = get_logger(__name__)

Row = dict[str, Any]

COLLECTIONS = (
    COLLECTION_ENTITIES,
    COLLECTION_RELATIONSHIPS,
    COLLECTION_CASES,
    COLLECTION_DISTRICTS,
)


@runtime_checkable
class DataSource(Protocol):
    """Anything that can fetch the four input collections as lists of row dicts."""

    def fetch_entities(self) -> list[Row]: ...

    def fetch_relationships(self) -> list[Row]: ...

    def fetch_cases(self) -> list[Row]: ...

    def fetch_districts(self) -> list[Row]: ...


def fetcher_for(source: DataSource, collection: str):
    """Bound fetch_* method for a collection name."""
    return {
        COLLECTION_ENTITIES: source.fetch_entities,
        COLLECTION_RELATIONSHIPS: source.fetch_relationships,
        COLLECTION_CASES: source.fetch_cases,
        COLLECTION_DISTRICTS: source.fetch_districts,
    }[collection]


class InMemoryDataSource:
    """Rows held in memory; used by tests and by callers that already have the data."""

    def __init__(
        self,
        entities: list[Row] | None = None,
        relationships: list[Row] | None = None,
        cases: list[Row] | None = None,
        districts: list[Row] | None = None,
    ) -> None:
        self.entities = list(entities or [])
        self.relationships = list(relationships or [])
        self.cases = list(cases or [])
        self.districts = list(districts or [])

    def fetch_entities(self) -> list[Row]:
        return list(self.entities)

    def fetch_relationships(self) -> list[Row]:
        return list(self.relationships)

    def fetch_cases(self) -> list[Row]:
        return list(self.cases)

    def fetch_districts(self) -> list[Row]:
        return list(self.districts)


class JsonFileDataSource:
    """
    Snapshot directory with one JSON array per collection.

    Layout: entities.json, relationships.json, cases.json, districts.json.
    A missing file raises FileNotFoundError, which the facade reports as an
    unavailable collection. A file may also hold {"data": [...]}.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _load(self, collection: str) -> list[Row]:
        path = self.directory / f"{collection}.json"
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
        if isinstance(payload, dict) and isinstance(payload.get("data"), list):
            payload = payload["data"]
        if not isinstance(payload, list):
            raise ValueError(f"{path.name} must contain a JSON array")
        logger.debug("snapshot_file_loaded", collection=collection, rows=len(payload))
        return payload

    def fetch_entities(self) -> list[Row]:
        return self._load(COLLECTION_ENTITIES)

    def fetch_relationships(self) -> list[Row]:
        return self._load(COLLECTION_RELATIONSHIPS)

    def fetch_cases(self) -> list[Row]:
        return self._load(COLLECTION_CASES)

    def fetch_districts(self) -> list[Row]:
        return self._load(COLLECTION_DISTRICTS)
