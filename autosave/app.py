# app.py (Auto-Save Engine: rules, round-ups, goals and analytics)

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .api.dependencies import verify_api_key
from .api.v1 import router as v1_router
from .config import Settings, configure_logging, get_settings
from .db.database import build_engine, build_session_factory, create_db_and_tables
from .services.auto_save_service import AutoSaveService
from .services.destination_router import DestinationRouter
from .services.exceptions import AutoSaveError
from .services.sql_repository import SqlAutoSaveRepository

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, service: Optional[AutoSaveService] = None) -> FastAPI:
    """
    Builds the API. A prebuilt `service` skips database setup entirely, which
    is how tests run the HTTP layer against an in-memory repository.
    """
    settings = settings or get_settings()

    # --- Application Lifespan Context ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # STARTUP: engine, repository and the shared service
        engine = None
        if service is None:
            configure_logging(settings)
            logger.info("Application startup: connecting to %s", settings.database_url.split("@")[-1])
            engine = build_engine(settings)
            if settings.create_tables:
                await create_db_and_tables(engine)
            repository = SqlAutoSaveRepository(build_session_factory(engine))
            router = DestinationRouter.from_settings(repository, settings)
            app.state.auto_save_service = AutoSaveService(repository, router, settings=settings)

        yield

        # SHUTDOWN: let in-flight round-ups settle, then release connections
        logger.info("Application shutdown: draining background round-ups")
        await app.state.auto_save_service.drain()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Auto-Save Engine",
        description="Siphons small amounts from completed transactions into savings accounts, vaults and stocks.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if service is not None:
        app.state.auto_save_service = service

    @app.exception_handler(AutoSaveError)
    async def auto_save_error_handler(request: Request, exc: AutoSaveError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    # Root Endpoint (basic health check, no API key)
    @app.get("/", tags=["Health"])
    async def read_root():
        return {"message": "Auto-save engine is running. Access endpoints at /api/v1/...", "version": __version__}

    # Every versioned route requires the X-API-Key header
    app.include_router(v1_router, prefix="/api", dependencies=[Depends(verify_api_key)])

    return app


app = create_app()
