import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import continuum
from continuum.api.http import health_router, streams_router, cards_router
from continuum.api.http.errors import register_exception_handlers
from continuum.core.config import Settings, get_settings
from continuum.core.db import Base, dispose_engine, get_engine
from continuum.core.logging import configure_logging
import continuum.db.models  # noqa: F401  регистрация таблиц в Base.metadata

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        if settings.create_tables_on_startup:
            async with get_engine().begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema ensured")
        yield
        await dispose_engine()

    app = FastAPI(
        title="Continuum",
        description="Timeline organizer: hierarchical streams of versioned cards",
        version=continuum.__version__,
        lifespan=lifespan
    )

    # Настройка CORS для работы с frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Подключаем роутеры
    app.include_router(health_router)
    app.include_router(streams_router)
    app.include_router(cards_router)

    @app.get("/")
    async def root():
        """Корневой эндпоинт"""
        return {
            "message": "Continuum API",
            "version": continuum.__version__,
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()
