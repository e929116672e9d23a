"""
Run one network risk analysis over a JSON snapshot and write the bundle.

Snapshot directory layout: entities.json, relationships.json, cases.json,
districts.json (each a JSON array of rows). Missing files degrade to empty
collections; if all four are missing the run fails with exit code 2.

Usage (from project root):

    python -m backend_netrisk.tools.run_analysis --snapshot data/snapshot
    python -m backend_netrisk.tools.run_analysis --snapshot data/snapshot --format csv --output entities.csv
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

from backend_netrisk.analysis_engine.models import parse_timestamp
from backend_netrisk.analytics.analysis_pipeline import AnalysisFacade
from backend_netrisk.analytics.export import SUPPORTED_FORMATS, export_bundle
from backend_netrisk.config.env import get_snapshot_dir
from backend_netrisk.config.settings import get_settings
from backend_netrisk.core.exceptions import AnalysisUnrecoverable, ConfigurationError
from backend_netrisk.ingestion.sources import JsonFileDataSource
from backend_netrisk.netrisk_logging import configure_structlog, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_UNRECOVERABLE = 2


def _parse_now(raw: str | None) -> datetime:
    if not raw:
        return datetime.now(timezone.utc)
    now = parse_timestamp(raw)
    if now is None:
        raise ValueError(f"--now must be an ISO-8601 timestamp, got {raw!r}")
    return now


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Score entities, districts and hotspots from a JSON snapshot directory.",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Snapshot directory (default: NETRISK_SNAPSHOT_DIR)",
    )
    parser.add_argument(
        "--format",
        choices=SUPPORTED_FORMATS,
        default="json",
        help="json: whole bundle; csv: detailed entities only",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output file (default: stdout)",
    )
    parser.add_argument(
        "--now",
        default=None,
        help="Reference time for 30/60/90-day windows (ISO-8601, default: current UTC time)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level for stderr logs (default: LOG_LEVEL or INFO)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_level:
        configure_structlog(level=args.log_level)
    snapshot = args.snapshot or get_snapshot_dir()
    if snapshot is None:
        print("ERROR: --snapshot or NETRISK_SNAPSHOT_DIR is required", file=sys.stderr)
        return EXIT_USAGE
    try:
        now = _parse_now(args.now)
        facade = AnalysisFacade(JsonFileDataSource(snapshot), settings=get_settings())
        bundle = facade.run(now)
    except (ValueError, ConfigurationError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_USAGE
    except AnalysisUnrecoverable as e:
        logger.error("run_analysis_unrecoverable", snapshot=str(snapshot), error=e.message)
        print(f"ERROR: {e.message}", file=sys.stderr)
        return EXIT_UNRECOVERABLE

    body = export_bundle(bundle, args.format)
    if args.output is None:
        sys.stdout.write(body)
        if not body.endswith("\n"):
            sys.stdout.write("\n")
    else:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(body, encoding="utf-8")
        logger.info(
            "run_analysis_written",
            output=str(args.output),
            format=args.format,
            entities=len(bundle.detailed_entities),
        )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
