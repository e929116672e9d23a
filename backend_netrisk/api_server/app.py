"""
FastAPI/ASGI application entrypoint.

Run with: uvicorn backend_netrisk.api_server.app:app --host 0.0.0.0 --port 8000
or: netrisk-api (host/port from NETRISK_API_HOST / NETRISK_API_PORT).
"""

from __future__ import annotations

import os

from backend_netrisk.api_server.server import app
from backend_netrisk.config.env import load_netrisk_env
from backend_netrisk.netrisk_logging import get_logger

logger = get_logger(__name__)


def main() -> None:
    import uvicorn

    load_netrisk_env()
    host = os.getenv("NETRISK_API_HOST", "0.0.0.0")
    port = int(os.getenv("NETRISK_API_PORT", "8000"))
    logger.info("api_server_starting", host=host, port=port)
    uvicorn.run(app, host=host, port=port, log_level=os.getenv("LOG_LEVEL", "info").lower())


__all__ = ["app", "main"]


if __name__ == "__main__":
    main()
