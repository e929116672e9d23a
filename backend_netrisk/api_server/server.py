"""
FastAPI server: read-only network risk analysis API.

Mounts the analysis router under /api and maps engine errors to HTTP codes:
AnalysisUnrecoverable -> 503, ConfigurationError -> 500.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from backend_netrisk import __version__
from backend_netrisk.api_server.routes import router as analysis_router
from backend_netrisk.core.exceptions import AnalysisUnrecoverable, ConfigurationError
from backend_netrisk.netrisk_logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Backend NetRisk API",
    description="Network risk scores, behavioral patterns, district risk and hotspots.",
    version=__version__,
)

app.include_router(analysis_router, prefix="/api", tags=["Analysis"])


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness probe: API is up."""
    return {"status": "ok"}


@app.exception_handler(AnalysisUnrecoverable)
def analysis_unrecoverable_handler(request: Any, exc: AnalysisUnrecoverable) -> JSONResponse:
    logger.error("analysis_unrecoverable", error=exc.message)
    return JSONResponse(status_code=503, content={"detail": exc.to_dict()})


@app.exception_handler(ConfigurationError)
def configuration_error_handler(request: Any, exc: ConfigurationError) -> JSONResponse:
    logger.error("configuration_error", error=exc.message)
    return JSONResponse(status_code=500, content={"detail": exc.to_dict()})


@app.exception_handler(ValueError)
def value_error_handler(request: Any, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(HTTPException)
def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )
