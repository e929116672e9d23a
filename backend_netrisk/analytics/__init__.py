"""
NetRisk analytics: orchestration of one analysis run and export of its bundle.

Modules: analysis_pipeline (AnalysisFacade, compute_bundle), export.
"""

from backend_netrisk.analytics.analysis_pipeline import (
    AnalysisBundle,
    AnalysisFacade,
    Snapshot,
    build_snapshot,
    compute_bundle,
    fetch_snapshot,
)
from backend_netrisk.analytics.export import export_bundle, to_csv, to_json

__all__ = [
    "AnalysisBundle",
    "AnalysisFacade",
    "Snapshot",
    "build_snapshot",
    "compute_bundle",
    "fetch_snapshot",
    "export_bundle",
    "to_csv",
    "to_json",
]
