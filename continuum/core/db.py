from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from continuum.core.config import get_settings

# Базовый класс для моделей
Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def setup_sqlite(engine: AsyncEngine) -> None:
    """Включение внешних ключей и BEGIN IMMEDIATE для SQLite.

    Без PRAGMA foreign_keys каскадное удаление не работает, а BEGIN IMMEDIATE
    сериализует пишущие транзакции между соединениями, так что два запроса не могут
    одновременно вычислить один и тот же номер версии карточки.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # Отключаем собственный BEGIN драйвера, транзакцию открываем сами
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """Создание асинхронного движка для SQLite (aiosqlite) или PostgreSQL (asyncpg)"""
    engine = create_async_engine(url, echo=echo, **kwargs)
    if is_sqlite(url):
        setup_sqlite(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.database_url, echo=settings.sql_echo)
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


# Функция для dependency injection в FastAPI
async def get_db() -> AsyncIterator[AsyncSession]:
    async with get_session_factory()() as session:
        yield session
