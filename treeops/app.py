"""
FastAPI application entry point for the operations backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from treeops.auth_routes import router as auth_router
from treeops.config import get_settings
from treeops.crew_routes import router as crew_router
from treeops.db import RecordNotFoundError
from treeops.maps_routes import router as maps_router
from treeops.routes import router

logger = logging.getLogger(__name__)


async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
    logger.info("Missing record: %s", exc)
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="TreeOps Backend (FastAPI)", version="0.1.0")
    app.add_exception_handler(RecordNotFoundError, record_not_found_handler)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(maps_router, prefix=f"{settings.api_prefix}/maps")
    app.include_router(crew_router, prefix=f"{settings.api_prefix}/crew")
    app.include_router(auth_router, prefix=f"{settings.api_prefix}/auth")
    return app


app = create_app()
