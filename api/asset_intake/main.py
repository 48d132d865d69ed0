# asset_intake/main.py
# Asset Intake API - serial patterns, SKU bindings, batch registration
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from asset_intake import __version__
from asset_intake.settings import Settings, settings as default_settings
from asset_intake.database import init_db, close_db, create_tables, check_db_health
from asset_intake.logging_setup import setup_logging
from asset_intake.services import build_services
from asset_intake.store import DocumentStore, build_store

from asset_intake.routers.serial_patterns import router as serial_patterns_router
from asset_intake.routers.sku_patterns import router as sku_patterns_router
from asset_intake.routers.bindings import router as bindings_router
from asset_intake.routers.intake import router as intake_router
from asset_intake.routers.assets import router as assets_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    """
    Build the API. A pre-built store skips the database lifecycle
    (used by tests with a JSON store in a temp dir).
    """
    settings = settings or default_settings
    setup_logging(settings)

    # ---------------------------------------------------------
    # Lifespan: database init/cleanup, service wiring
    # ---------------------------------------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        use_postgres = store is None and settings.USE_POSTGRES
        if use_postgres:
            await init_db()
            await create_tables()
            logger.info("PostgreSQL connected")
        app.state.services = build_services(store or build_store(settings))
        yield
        for batch in app.state.services.batches.values():
            await batch.settle()
        if use_postgres:
            await close_db()
            logger.info("PostgreSQL disconnected")

    app = FastAPI(
        title="Asset Intake API",
        version=__version__,
        description="Serial-to-SKU resolution and batch asset registration",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:8000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(serial_patterns_router)
    app.include_router(sku_patterns_router)
    app.include_router(bindings_router)
    app.include_router(intake_router)
    app.include_router(assets_router)

    @app.get("/health")
    async def health():
        """Health check endpoint with database status."""
        result = {
            "status": "ok",
            "version": __version__,
            "use_postgres": settings.USE_POSTGRES,
        }
        if settings.USE_POSTGRES and store is None:
            db_health = await check_db_health()
            result["database"] = db_health
            if db_health.get("status") != "healthy":
                result["status"] = "degraded"
        return result

    return app


app = create_app()
