from typing import Optional, List, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, and_
import uuid

from continuum.db.models.card import Card as CardModel

if TYPE_CHECKING:
    from continuum.domains.cards.entities import Card


class CardRepository:
    """Репозиторий для работы с карточками потоков"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, card: "Card") -> "Card":
        """Добавление новой карточки.

        flush сразу отправляет INSERT, поэтому нарушение уникальности
        (stream_id, version) поднимается здесь, внутри транзакции.
        """
        db_card = CardModel(
            id=card.id,
            stream_id=card.stream_id,
            content=card.content,
            version=card.version,
            is_editable=card.is_editable,
            card_metadata=card.metadata,
            created_at=card.created_at
        )

        self.session.add(db_card)
        await self.session.flush()
        return self._to_domain(db_card)

    async def get_by_id(self, card_id: uuid.UUID) -> Optional["Card"]:
        """Получение карточки по id"""
        result = await self.session.execute(
            select(CardModel)
            .where(CardModel.id == card_id)
            .execution_options(populate_existing=True)
        )
        db_card = result.scalar_one_or_none()
        return self._to_domain(db_card) if db_card else None

    async def get_by_stream(self, stream_id: uuid.UUID) -> List["Card"]:
        """Получение карточек потока от старой к новой"""
        result = await self.session.execute(
            select(CardModel)
            .where(CardModel.stream_id == stream_id)
            .order_by(CardModel.version.asc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(card) for card in result.scalars().all()]

    async def get_editable(self, stream_id: uuid.UUID) -> Optional["Card"]:
        """Получение редактируемой карточки потока"""
        result = await self.session.execute(
            select(CardModel)
            .where(and_(CardModel.stream_id == stream_id, CardModel.is_editable.is_(True)))
            .order_by(CardModel.version.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        db_card = result.scalar_one_or_none()
        return self._to_domain(db_card) if db_card else None

    async def get_highest(self, stream_id: uuid.UUID) -> Optional["Card"]:
        """Получение карточки с наибольшей версией"""
        result = await self.session.execute(
            select(CardModel)
            .where(CardModel.stream_id == stream_id)
            .order_by(CardModel.version.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        db_card = result.scalar_one_or_none()
        return self._to_domain(db_card) if db_card else None

    async def max_version(self, stream_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.max(CardModel.version)).where(CardModel.stream_id == stream_id)
        )
        return result.scalar() or 0

    async def retire_editable(self, stream_id: uuid.UUID) -> int:
        """Снятие флага редактируемости со всех карточек потока"""
        result = await self.session.execute(
            update(CardModel)
            .where(and_(CardModel.stream_id == stream_id, CardModel.is_editable.is_(True)))
            .values(is_editable=False)
        )
        return result.rowcount

    async def set_editable(self, card_id: uuid.UUID) -> None:
        await self.session.execute(
            update(CardModel).where(CardModel.id == card_id).values(is_editable=True)
        )

    async def delete(self, card_id: uuid.UUID) -> bool:
        """Удаление карточки"""
        result = await self.session.execute(
            delete(CardModel).where(CardModel.id == card_id)
        )
        return result.rowcount > 0

    def _to_domain(self, db_card: CardModel) -> "Card":
        """Преобразование модели БД в доменную сущность"""
        from continuum.domains.cards.entities import Card

        return Card(
            id=db_card.id,
            stream_id=db_card.stream_id,
            content=db_card.content,
            version=db_card.version,
            is_editable=db_card.is_editable,
            metadata=db_card.card_metadata,
            created_at=db_card.created_at
        )
