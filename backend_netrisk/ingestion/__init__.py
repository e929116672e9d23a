"""
Input ingestion: data sources that supply raw rows for an analysis snapshot.

get_data_source() picks one from the environment: NETRISK_SNAPSHOT_DIR (JSON
files), then NETRISK_REST_URL (PostgREST), then the SQL database.
"""

from __future__ import annotations

from backend_netrisk.config.env import get_env_str, get_snapshot_dir
from backend_netrisk.ingestion.rest_source import RestAuthoritativeBackend, RestDataSource
from backend_netrisk.ingestion.sources import (
    COLLECTIONS,
    DataSource,
    InMemoryDataSource,
    JsonFileDataSource,
)
from backend_netrisk.ingestion.sql_source import SqlDataSource


def get_data_source() -> DataSource:
    snapshot_dir = get_snapshot_dir()
    if snapshot_dir is not None:
        return JsonFileDataSource(snapshot_dir)
    if get_env_str("NETRISK_REST_URL"):
        return RestDataSource()
    return SqlDataSource()


__all__ = [
    "COLLECTIONS",
    "DataSource",
    "InMemoryDataSource",
    "JsonFileDataSource",
    "RestAuthoritativeBackend",
    "RestDataSource",
    "SqlDataSource",
    "get_data_source",
]
