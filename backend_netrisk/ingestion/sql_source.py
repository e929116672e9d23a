"""
SQLAlchemy-backed data source.

Reads the four input tables (network_entities, network_relationships,
cctns_case_data, districts) with per-table row limits. Uses NETRISK_DB_URL or
DATABASE_URL when set; otherwise falls back to a local SQLite file.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import Column, DateTime, Float, Integer, String, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_netrisk.config.env import get_database_url
from backend_netrisk.netrisk_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

DEFAULT_SQLITE_URL = "sqlite:///netrisk.db"

ENTITY_LIMIT = 50000
RELATIONSHIP_LIMIT = 100000
CASE_LIMIT = 50000
DISTRICT_LIMIT = 1000


# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class NetworkEntity(Base):
    __tablename__ = "network_entities"

    id = Column(String(64), primary_key=True)
    name = Column(String(256), nullable=True)
    entity_type = Column(String(32), nullable=False, index=True)
    district_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "entity_type": self.entity_type,
            "district_id": self.district_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class NetworkRelationship(Base):
    """One edge per row; parallel edges between the same pair are kept."""

    __tablename__ = "network_relationships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_entity_id = Column(String(64), nullable=False, index=True)
    target_entity_id = Column(String(64), nullable=False, index=True)
    relationship_type = Column(String(64), nullable=True)
    connection_strength = Column(Float, nullable=True)
    date_established = Column(DateTime(timezone=True), nullable=True)
    last_activity = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_entity_id": self.source_entity_id,
            "target_entity_id": self.target_entity_id,
            "relationship_type": self.relationship_type,
            "connection_strength": self.connection_strength,
            "date_established": self.date_established,
            "last_activity": self.last_activity,
        }


class CaseData(Base):
    __tablename__ = "cctns_case_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    district_id = Column(String(64), nullable=True, index=True)
    entity_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "district_id": self.district_id,
            "entity_id": self.entity_id,
            "created_at": self.created_at,
        }


class DistrictRow(Base):
    __tablename__ = "districts"

    id = Column(String(64), primary_key=True)
    name = Column(String(128), nullable=False)
    state = Column(String(64), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


# -----------------------------------------------------------------------------
# Engine and session
# -----------------------------------------------------------------------------


def make_engine(url: str | None = None) -> Engine:
    url = url or get_database_url() or DEFAULT_SQLITE_URL
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
    logger.info("sql_source_engine", url=url.split("?")[0].split("//")[-1])
    return engine


def init_db(engine: Engine) -> None:
    """Create the input tables if they do not exist. Safe to call on every startup."""
    Base.metadata.create_all(bind=engine)


class SqlDataSource:
    """Reads input collections through one SQLAlchemy engine; sessions are per fetch."""

    def __init__(self, engine: Engine | None = None, url: str | None = None) -> None:
        self.engine = engine if engine is not None else make_engine(url)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def _fetch(self, model: Any, limit: int) -> list[dict[str, Any]]:
        with self._session_scope() as session:
            rows = session.execute(select(model).limit(limit)).scalars().all()
            out = [r.to_dict() for r in rows]
        if len(out) >= limit:
            logger.warning("sql_source_limit_reached", table=model.__tablename__, limit=limit)
        return out

    def fetch_entities(self) -> list[dict[str, Any]]:
        return self._fetch(NetworkEntity, ENTITY_LIMIT)

    def fetch_relationships(self) -> list[dict[str, Any]]:
        return self._fetch(NetworkRelationship, RELATIONSHIP_LIMIT)

    def fetch_cases(self) -> list[dict[str, Any]]:
        return self._fetch(CaseData, CASE_LIMIT)

    def fetch_districts(self) -> list[dict[str, Any]]:
        return self._fetch(DistrictRow, DISTRICT_LIMIT)
