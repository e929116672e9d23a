"""
Configuration management for Backend NetRisk.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for thresholds and run limits.
"""

from backend_netrisk.config.settings import AnalysisSettings, get_settings  # noqa: F401

__all__ = ["AnalysisSettings", "get_settings"]
