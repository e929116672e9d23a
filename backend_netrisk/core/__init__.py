"""
Core utilities: exceptions and cross-cutting concerns.

Provides the typed error hierarchy shared by ingestion, analysis engine,
analytics facade, and API server.
"""

from backend_netrisk.core.exceptions import (
    AnalysisUnrecoverable,
    ComputationTimeout,
    ConfigurationError,
    InputMalformed,
    InputUnavailable,
    NetRiskError,
)

__all__ = [
    "NetRiskError",
    "ConfigurationError",
    "InputUnavailable",
    "InputMalformed",
    "ComputationTimeout",
    "AnalysisUnrecoverable",
]
