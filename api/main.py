#!/usr/bin/env python3
"""
Price Archive API - archive upload and CSV export of price lists.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import logging

from core.config import settings
from api.middleware.logging import LoggingMiddleware
from api.routers import health, prices
from db.session import Database

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        database: Database to serve from; one is built from settings at startup if omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database()
        db.init_db()
        app.state.database = db
        logger.info(f"Database ready at {db.engine.url.render_as_string(hide_password=True)}")
        try:
            yield
        finally:
            if database is None:
                db.dispose()

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        description="Upload ZIP/TAR archives of price CSV files and export stored prices",
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)

    app.include_router(health.router, prefix=settings.api_v0_prefix)
    app.include_router(prices.router, prefix=settings.api_v0_prefix)
    logger.info(f"Routers included with API prefix {settings.api_v0_prefix}")

    @app.get("/healthz")
    async def root_health_check():
        """Root-level health endpoint for external monitors."""
        return await health.health_check()

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
