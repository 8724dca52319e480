import logging
from typing import Awaitable, Callable, List, Optional, TypeVar
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from continuum.core.config import get_settings
from continuum.core.errors import ConflictError, NotFoundError
from continuum.db.unit_of_work import UnitOfWork
from continuum.domains.cards.entities import Card, CardDeletion
from continuum.domains.cards.schemas import CardCreate, CardUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CardService:
    """Журнал карточек: версионирование и правило единственной редактируемой карточки.

    Каждая мутация выполняется в одной транзакции. Строка потока блокируется
    (SELECT ... FOR UPDATE в PostgreSQL, BEGIN IMMEDIATE в SQLite), поэтому
    номера версий внутри потока выдаются последовательно. Если гонка всё же
    проигрывается на уникальном индексе (stream_id, version), операция
    повторяется целиком.
    """

    def __init__(self, session: AsyncSession, max_retries: Optional[int] = None):
        self.session = session
        self.uow = UnitOfWork(session)
        if max_retries is None:
            max_retries = get_settings().version_conflict_retries
        self.max_retries = max_retries

    async def create_card(self, card_data: CardCreate) -> Card:
        """Создание новой карточки в потоке"""
        card = await self._run_versioned(self._create_card, card_data)
        logger.info("Created card %s v%d in stream %s", card.id, card.version, card.stream_id)
        return card

    async def update_card(self, card_id: uuid.UUID, update_data: CardUpdate) -> Card:
        """Правка редактируемой карточки: старая версия уходит в историю, создается новая"""
        card = await self._run_versioned(self._update_card, card_id, update_data)
        logger.info("Card %s superseded by %s v%d", card_id, card.id, card.version)
        return card

    async def delete_card(self, card_id: uuid.UUID) -> CardDeletion:
        """Удаление редактируемой карточки с продвижением предыдущей версии"""
        async with self.uow as uow:
            card = await self._get_editable_locked(uow, card_id, "deleted")

            await uow.cards.delete(card.id)
            survivor = await uow.cards.get_highest(card.stream_id)
            if survivor:
                await uow.cards.set_editable(survivor.id)

        deletion = CardDeletion(
            card_id=card.id,
            stream_id=card.stream_id,
            promoted_card_id=survivor.id if survivor else None
        )
        logger.info(
            "Deleted card %s v%d from stream %s, promoted %s",
            card.id, card.version, card.stream_id, deletion.promoted_card_id
        )
        return deletion

    async def get_card(self, card_id: uuid.UUID) -> Card:
        """Получение карточки по id"""
        async with self.uow as uow:
            card = await uow.cards.get_by_id(card_id)
        if not card:
            raise NotFoundError(f"Card {card_id} not found")
        return card

    async def get_cards(self, stream_id: uuid.UUID) -> List[Card]:
        """Получение всех карточек потока от старой к новой"""
        async with self.uow as uow:
            if not await uow.streams.exists(stream_id):
                raise NotFoundError(f"Stream {stream_id} not found")
            return await uow.cards.get_by_stream(stream_id)

    async def get_latest_card(self, stream_id: uuid.UUID) -> Optional[Card]:
        """Получение редактируемой карточки потока"""
        async with self.uow as uow:
            if not await uow.streams.exists(stream_id):
                raise NotFoundError(f"Stream {stream_id} not found")
            return await uow.cards.get_editable(stream_id)

    async def _create_card(self, uow: UnitOfWork, card_data: CardCreate) -> Card:
        stream = await uow.streams.get_by_id(card_data.stream_id, for_update=True)
        if not stream:
            raise NotFoundError(f"Stream {card_data.stream_id} not found")

        next_version = await uow.cards.max_version(stream.id) + 1
        await uow.cards.retire_editable(stream.id)

        card = Card.create_card(
            stream_id=stream.id,
            content=card_data.content,
            version=next_version,
            metadata=card_data.metadata_for_storage()
        )
        return await uow.cards.add(card)

    async def _update_card(self, uow: UnitOfWork, card_id: uuid.UUID, update_data: CardUpdate) -> Card:
        card = await self._get_editable_locked(uow, card_id, "edited")

        new_card = card.next_version(
            content=update_data.content,
            metadata=update_data.resolve_metadata(card.metadata)
        )
        await uow.cards.retire_editable(card.stream_id)
        return await uow.cards.add(new_card)

    async def _get_editable_locked(self, uow: UnitOfWork, card_id: uuid.UUID, action: str) -> Card:
        card = await uow.cards.get_by_id(card_id)
        if not card:
            raise NotFoundError(f"Card {card_id} not found")

        await uow.streams.get_by_id(card.stream_id, for_update=True)
        # Перечитываем после блокировки: карточку могли успеть сменить
        card = await uow.cards.get_by_id(card_id)
        if not card:
            raise NotFoundError(f"Card {card_id} not found")
        if not card.is_editable:
            raise ConflictError(f"Only the latest card can be {action}")
        return card

    async def _run_versioned(self, operation: Callable[..., Awaitable[T]], *args) -> T:
        attempt = 0
        while True:
            try:
                async with self.uow as uow:
                    return await operation(uow, *args)
            except IntegrityError as error:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error("Version conflict persisted after %d retries: %s", self.max_retries, error)
                    raise ConflictError("Concurrent card modification, please retry") from error
                logger.warning("Version conflict, retrying (%d/%d)", attempt, self.max_retries)
