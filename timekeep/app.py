"""
Main Application Module

This module builds the FastAPI application: lifespan, CORS, request
logging and the API routers.

Features:
- Route management
- CORS configuration
- Error handling
- Request logging

Security:
- CORS policies
- Bearer token verification on every API router

Dependencies:
- FastAPI for routing
- CORS middleware
- Logging
- Database lifespan
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timekeep.shared import config
from timekeep.shared.database import lifespan

from timekeep.features.analytics.route_analytics import router as analytics_router
from timekeep.features.catalog.routes_catalog import router as catalog_router
from timekeep.features.entries.routes_entries import router as entries_router
from timekeep.features.export.routes_export import router as export_router
from timekeep.features.importer.routes_import import router as import_router
from timekeep.features.timer.routes_timer import router as timer_router

# Set up logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app(lifespan_handler=lifespan) -> FastAPI:
    """
    Build the application.

    Args:
        lifespan_handler: Startup/shutdown context; tests pass one backed by
            an in-memory store

    Returns:
        FastAPI: Configured application
    """
    app = FastAPI(title="timekeep", lifespan=lifespan_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*", "Authorization"],
        expose_headers=["Content-Disposition"],
    )

    logger.info("Mounting API routers...")
    app.include_router(catalog_router, prefix="/api")
    app.include_router(entries_router, prefix="/api")
    app.include_router(timer_router, prefix="/api")
    app.include_router(import_router, prefix="/api")
    app.include_router(export_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """
        Log HTTP requests and responses.

        Notes:
            - Unhandled errors become a 500 JSON response
        """
        logger.info(f"Incoming request: {request.method} {request.url}")
        try:
            response = await call_next(request)
            logger.info(f"Response status: {response.status_code}")
            return response
        except Exception as e:
            logger.exception(f"Request failed: {str(e)}")
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error"}
            )

    return app


app = create_app()
