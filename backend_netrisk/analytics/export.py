"""
Bundle export: JSON (whole bundle) or CSV (detailed_entities, one row per entity).
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any

from backend_netrisk.analytics.analysis_pipeline import AnalysisBundle

FORMAT_JSON = "json"
FORMAT_CSV = "csv"
SUPPORTED_FORMATS = (FORMAT_JSON, FORMAT_CSV)

CSV_COLUMNS: list[tuple[str, str]] = [
    ("Entity ID", "entity_id"),
    ("Name", "name"),
    ("Type", "type"),
    ("District", "district"),
    ("Pattern", "pattern"),
    ("Risk Score", "calculated_risk_score"),
    ("Total Activities", "total_activities"),
    ("Recent Activities", "recent_activities"),
    ("Total Relationships", "total_relationships"),
    ("New Relationships (90d)", "new_relationships_90_days"),
    ("Avg Connection Strength", "avg_connection_strength"),
    ("Why Flagged", "why_flagged"),
]
CSV_HEADER = [title for title, _ in CSV_COLUMNS]

MEDIA_TYPES = {FORMAT_JSON: "application/json", FORMAT_CSV: "text/csv"}


def to_json(bundle: AnalysisBundle) -> str:
    return json.dumps(bundle.to_dict(), indent=2, ensure_ascii=False)


def to_csv(entities: list[dict[str, Any]]) -> str:
    """Header row plus one row per entity; quoting handled by the csv module."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for e in entities:
        writer.writerow(["" if e.get(key) is None else e.get(key) for _, key in CSV_COLUMNS])
    return buf.getvalue()


def export_bundle(bundle: AnalysisBundle, fmt: str = FORMAT_JSON) -> str:
    """Serialize a bundle; raises ValueError for formats other than json/csv."""
    fmt = (fmt or "").strip().lower()
    if fmt == FORMAT_JSON:
        return to_json(bundle)
    if fmt == FORMAT_CSV:
        return to_csv(bundle.detailed_entities)
    raise ValueError(f"unsupported export format {fmt!r}; expected one of {SUPPORTED_FORMATS}")
