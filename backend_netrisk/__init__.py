"""
Backend NetRisk: network risk scoring and behavioral pattern detection.

Turns an entity/relationship graph plus case activity into behavioral
pattern memberships, explainable entity risk scores, district-level risk,
and time-windowed hotspot alerts. Modular architecture with clear separation
between ingestion, analysis engine, analytics facade, and API server.
"""

__version__ = "0.1.0"
