"""
Structured logging for analysis runs: event_type, run_id, collection, counts.

structlog renders one JSON object per event on stderr (stdout stays free for
CLI output). LOG_LEVEL and LOG_FORMAT (json | console) pick the defaults;
configure_structlog() can be called again, e.g. by the CLI's --log-level.

No backend_netrisk imports here so every package can log without cycles.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

import structlog

SERVICE_NAME = "netrisk"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "json"


def _level_value(level: str | None) -> int:
    name = (level or os.getenv("LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def _add_timestamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _add_service(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


LOGGER_NAME_KEY = "logger_name"


def _logger_name(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Module name carried as an initial value is rendered under `logger`."""
    name = event_dict.pop(LOGGER_NAME_KEY, None)
    if name is not None:
        event_dict.setdefault("logger", name)
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog's positional `event` becomes event_type, the key log queries group on."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_structlog(
    level: str | None = None,
    fmt: str | None = None,
    file: TextIO | None = None,
) -> None:
    """(Re)configure structlog. Arguments override LOG_LEVEL / LOG_FORMAT; file defaults to stderr."""
    fmt = (fmt or os.getenv("LOG_FORMAT") or DEFAULT_LOG_FORMAT).strip().lower()
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        _add_timestamp,
        _add_service,
        _logger_name,
        _event_type,
    ]
    if fmt == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_value(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=file or sys.stderr),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger with `logger` bound to the module name. Resolved lazily, so a
    later configure_structlog() also applies to module-level loggers.

        logger = get_logger(__name__)
        logger.info("graph_index_built", entities=120, edges=340)
    """
    return structlog.get_logger(name, **{LOGGER_NAME_KEY: name})


def bind_run(run_id: str, name: str = "backend_netrisk", **context: Any) -> structlog.BoundLogger:
    """Logger that stamps run_id (plus any extra context) on every event of one analysis run."""
    return get_logger(name).bind(run_id=run_id, **context)
