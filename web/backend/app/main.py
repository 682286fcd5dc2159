"""FastAPI application for the jitphone transformation service.

Provides REST API endpoints wrapping the jitphone package for:
- Compiling dialect sources to adapted JavaScript
- Converting engine instruction listings
- Sandboxed execution and static analysis
- Format, profile and cache introspection
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure the jitphone package is importable by adding the project root to sys.path.
_project_root = str(Path(__file__).resolve().parents[3])
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jitphone import __version__
from jitphone.errors import JITPhoneError

from web.backend.app.routers import jit

logger = logging.getLogger(__name__)

app = FastAPI(
    title="jitphone API",
    description=(
        "REST API for jitphone. "
        "Compiles Objective-C and Swift style sources and engine instruction "
        "listings to JavaScript adapted for constrained hosts."
    ),
    version=__version__,
)

# ---------------------------------------------------------------------------
# CORS middleware (allow all origins for development)
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Error kinds -> HTTP status
# ---------------------------------------------------------------------------

STATUS_BY_KIND = {
    "unsupported_format": 400,
    "unknown_profile": 404,
    "size_limit": 413,
    "syntax": 422,
    "parse": 422,
}


@app.exception_handler(JITPhoneError)
async def jitphone_error_handler(request: Request, exc: JITPhoneError):
    status = STATUS_BY_KIND.get(exc.kind, 500)
    if status == 500:
        logger.error("Unhandled %s error on %s: %s", exc.kind, request.url.path, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"kind": "invalid_request", "message": str(exc)})


# ---------------------------------------------------------------------------
# Include routers
# ---------------------------------------------------------------------------
app.include_router(jit.router)


# ---------------------------------------------------------------------------
# Root and health-check endpoints
# ---------------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root():
    """Return basic API information."""
    return {
        "name": "jitphone API",
        "version": __version__,
        "description": "Source dialects and engine instructions to adapted JavaScript",
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


@app.get("/health", tags=["meta"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
