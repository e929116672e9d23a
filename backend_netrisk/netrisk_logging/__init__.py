"""
Structured logging for Backend NetRisk.

Every module logs through get_logger(__name__); a run's events share a
run_id via bind_run().
"""

from backend_netrisk.netrisk_logging.logger import bind_run, configure_structlog, get_logger

__all__ = ["bind_run", "configure_structlog", "get_logger"]
