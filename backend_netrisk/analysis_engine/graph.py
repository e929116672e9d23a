"""
Entity relationship graph index: degree, adjacency, strengths, per-district type counts.

Built once per run from the scoped entity and relationship lists, in O(|E|).
Every relationship row increments both endpoints' degree (multi-edges each
count, a self-loop counts twice). Entities with no edges keep degree 0 and
stay eligible for classification and scoring.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from backend_netrisk.analysis_engine.models import Entity, EntityType, Relationship
from backend_netrisk.netrisk_logging import get_logger

logger = get_logger(__name__)

NEW_RELATIONSHIP_WINDOW_DAYS = 90


@dataclass
class GraphIndex:
    """Read-only view over one snapshot's graph; never mutated after build()."""

    entities: dict[str, Entity] = field(default_factory=dict)
    degree: dict[str, int] = field(default_factory=dict)
    strengths: dict[str, list[int]] = field(default_factory=dict)
    """Incident connection_strength values per entity, one per edge endpoint."""
    new_relationships_90d: dict[str, int] = field(default_factory=dict)
    adjacency: dict[str, set[str]] = field(default_factory=dict)
    type_counts_by_district: dict[str, dict[EntityType, int]] = field(default_factory=dict)
    edge_count: int = 0

    @classmethod
    def build(
        cls,
        entities: Iterable[Entity],
        relationships: Iterable[Relationship],
        now: datetime,
    ) -> "GraphIndex":
        index = cls()
        for entity in entities:
            index.entities[entity.id] = entity
            index.degree[entity.id] = 0
            index.strengths[entity.id] = []
            index.new_relationships_90d[entity.id] = 0
            index.adjacency[entity.id] = set()

        type_counts: dict[str, dict[EntityType, int]] = defaultdict(lambda: defaultdict(int))
        for entity in index.entities.values():
            if entity.district_id is not None:
                type_counts[entity.district_id][entity.entity_type] += 1
        index.type_counts_by_district = {d: dict(c) for d, c in type_counts.items()}

        window_start = now - timedelta(days=NEW_RELATIONSHIP_WINDOW_DAYS)
        for rel in relationships:
            is_new = (
                rel.date_established is not None
                and window_start <= rel.date_established <= now
            )
            for endpoint, other in (
                (rel.source_entity_id, rel.target_entity_id),
                (rel.target_entity_id, rel.source_entity_id),
            ):
                index.degree[endpoint] = index.degree.get(endpoint, 0) + 1
                index.strengths.setdefault(endpoint, []).append(rel.connection_strength)
                index.adjacency.setdefault(endpoint, set()).add(other)
                if is_new:
                    index.new_relationships_90d[endpoint] = (
                        index.new_relationships_90d.get(endpoint, 0) + 1
                    )
            index.edge_count += 1

        logger.debug(
            "graph_index_built",
            entities=len(index.entities),
            edges=index.edge_count,
            districts=len(index.type_counts_by_district),
        )
        return index

    def degree_of(self, entity_id: str) -> int:
        return self.degree.get(entity_id, 0)

    def avg_strength(self, entity_id: str) -> float:
        """Mean incident connection_strength; 0.0 for an isolated entity."""
        values = self.strengths.get(entity_id) or []
        if not values:
            return 0.0
        return sum(values) / len(values)

    def new_relationships(self, entity_id: str) -> int:
        return self.new_relationships_90d.get(entity_id, 0)

    def neighbors(self, entity_id: str) -> set[str]:
        return set(self.adjacency.get(entity_id) or ())

    def type_count(self, district_id: str, entity_type: EntityType) -> int:
        return self.type_counts_by_district.get(district_id, {}).get(entity_type, 0)

    def entity_count(self, district_id: str) -> int:
        return sum(self.type_counts_by_district.get(district_id, {}).values())
