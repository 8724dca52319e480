"""Заполнение базы демонстрационными потоками.

Запуск: ``python -m continuum.db.seed``. Существующие данные удаляются.
История карточек строится через CardService, поэтому версии непрерывны и
редактируемой остается только последняя карточка каждого потока.
"""
import asyncio
import logging
from typing import List, Optional, Tuple
import uuid

from continuum.core.config import get_settings
from continuum.core.db import Base, dispose_engine, get_engine, get_session_factory
from continuum.core.logging import configure_logging
from continuum.db.unit_of_work import UnitOfWork
from continuum.domains.cards.schemas import CardCreate, CardMetadata
from continuum.domains.cards.services import CardService
from continuum.domains.streams.schemas import StreamCreate
from continuum.domains.streams.services import StreamService
import continuum.db.models  # noqa: F401

logger = logging.getLogger(__name__)

# (content, status, tags)
SeedCard = Tuple[str, Optional[str], List[str]]

SEED_STREAMS: List[Tuple[str, List[SeedCard]]] = [
    ("Empty Backlog", []),
    ("Quick Note", [
        ("Remember to set up CI/CD pipeline for the staging environment.", "action-required", ["devops"]),
    ]),
    ("Blog Post Draft", [
        ("Outline: Introduction to immutable data patterns in frontend apps.", "completed", ["writing"]),
        ("First draft complete. Need to add code examples and proofread.", "in-progress", ["writing", "review"]),
    ]),
    ("Product Development", [
        ("Initial product brainstorm: build a timeline-based task organizer that preserves history.",
         "completed", ["planning"]),
        ("Refined the concept: streams as timelines, cards as immutable snapshots.",
         "completed", ["planning", "architecture"]),
        ("MVP development in progress. Core data model and API routes implemented.",
         "completed", ["development"]),
        ("Polishing remaining edge cases before the first release.", "in-progress", ["development"]),
    ]),
    ("Learning Goals", [
        ("Q1 focus: deepen understanding of async Python web frameworks.", "completed", ["learning"]),
        ("Explored SQLAlchemy 2.0 asyncio sessions and transaction strategies.", "completed", ["learning", "database"]),
        ("Learned about optimistic updates and rollback on the client side.", "completed", ["learning", "state"]),
        ("Studied SQLite locking modes and BEGIN IMMEDIATE.", "completed", ["learning", "database"]),
        ("Compared Alembic autogenerate with hand-written migrations.", "completed", ["learning", "database"]),
        ("Read up on pydantic v2 validators and serialization modes.", "waiting", ["learning"]),
        ("Currently studying accessibility patterns for dynamic content.", "monitor", ["learning", "a11y"]),
    ]),
]

SEED_SUBSTREAM = ("Release Checklist", "Product Development", [
    ("Write changelog and tag the release.", "to-update", ["release"]),
])


async def seed() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Seeding database %s", settings.database_url)

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with get_session_factory()() as session:
        async with UnitOfWork(session) as uow:
            removed = await uow.streams.delete_all()
        logger.info("Removed %d existing streams", removed)

        streams = StreamService(session)
        cards = CardService(session)
        created = {}

        for title, items in SEED_STREAMS:
            stream = await streams.create_stream(StreamCreate(title=title))
            created[title] = stream.id
            await _insert_cards(cards, stream.id, items)

        title, parent_title, items = SEED_SUBSTREAM
        substream = await streams.create_stream(
            StreamCreate(title=title, parent_stream_id=created[parent_title])
        )
        await _insert_cards(cards, substream.id, items)

    logger.info("Seeded %d streams", len(created) + 1)
    await dispose_engine()


async def _insert_cards(cards: CardService, stream_id: uuid.UUID, items: List[SeedCard]) -> None:
    for content, status, tags in items:
        metadata = CardMetadata(status=status, tags=tags) if status or tags else None
        await cards.create_card(CardCreate(stream_id=stream_id, content=content, metadata=metadata))


if __name__ == "__main__":
    asyncio.run(seed())
