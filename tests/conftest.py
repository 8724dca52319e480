import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from continuum.core.config import Settings
from continuum.core.db import Base, build_engine, build_session_factory, get_db
from continuum.domains.cards.services import CardService
from continuum.domains.streams.services import StreamService
from continuum.main import create_app
import continuum.db.models  # noqa: F401


@pytest.fixture
async def engine():
    # Одно соединение на всю in-memory базу
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def stream_service(session):
    return StreamService(session)


@pytest.fixture
def card_service(session):
    return CardService(session, max_retries=3)


@pytest.fixture
def app(session_factory):
    app = create_app(Settings(create_tables_on_startup=False))

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


