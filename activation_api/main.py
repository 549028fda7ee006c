# activation_api/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from activation_api import __version__
from activation_api.core.config import get_settings
from activation_api.core.log import setup_logging
from activation_api.routers import activate, status
from activation_api.services.code_store import CodeStore
from activation_api.services.database import (
    create_engine,
    create_session_factory,
    unconfigured_session_factory,
)
from activation_api.services.redemption import RedemptionEngine

logger = logging.getLogger(__name__)


def create_app(settings=None, session_factory=None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        factory = session_factory
        if factory is None:
            if settings.database_url:
                engine = create_engine(settings)
                factory = create_session_factory(engine)
            else:
                logger.error("POSTGRES_URL or DATABASE_URL is not set, storage calls will fail")
                factory = unconfigured_session_factory

        # One store handle per process, shared by every request
        app.state.code_store = CodeStore(factory)
        app.state.redemption_engine = RedemptionEngine(app.state.code_store)
        try:
            yield
        finally:
            if engine is not None:
                await engine.dispose()

    app = FastAPI(title="Activation Code API", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(status.router)
    app.include_router(activate.router)
    return app


app = create_app()
