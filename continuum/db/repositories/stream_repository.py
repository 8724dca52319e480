from typing import Optional, List, Dict, Any, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
import uuid

from continuum.db.models.stream import Stream as StreamModel

if TYPE_CHECKING:
    from continuum.domains.streams.entities import Stream


class StreamRepository:
    """Репозиторий для работы с потоками"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, stream: "Stream") -> "Stream":
        """Добавление нового потока"""
        db_stream = StreamModel(
            id=stream.id,
            title=stream.title,
            parent_stream_id=stream.parent_stream_id,
            order_index=stream.order_index,
            created_at=stream.created_at
        )

        self.session.add(db_stream)
        await self.session.flush()
        return self._to_domain(db_stream)

    async def get_by_id(self, stream_id: uuid.UUID, for_update: bool = False) -> Optional["Stream"]:
        """Получение потока по id.

        for_update блокирует строку потока до конца транзакции (PostgreSQL), этим
        сериализуются мутации карточек одного потока.
        """
        query = select(StreamModel).where(StreamModel.id == stream_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query.execution_options(populate_existing=True))
        db_stream = result.scalar_one_or_none()
        return self._to_domain(db_stream) if db_stream else None

    async def exists(self, stream_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(func.count(StreamModel.id)).where(StreamModel.id == stream_id)
        )
        return result.scalar() > 0

    async def get_all(self) -> List["Stream"]:
        """Получение всех потоков одним запросом"""
        result = await self.session.execute(
            select(StreamModel).order_by(
                StreamModel.order_index.asc(),
                StreamModel.created_at.asc(),
                StreamModel.id.asc()
            )
        )
        return [self._to_domain(stream) for stream in result.scalars().all()]

    async def get_children(self, parent_id: Optional[uuid.UUID]) -> List["Stream"]:
        """Получение прямых потомков (None - потоки верхнего уровня)"""
        result = await self.session.execute(
            select(StreamModel)
            .where(self._parent_clause(parent_id))
            .order_by(
                StreamModel.order_index.asc(),
                StreamModel.created_at.asc(),
                StreamModel.id.asc()
            )
        )
        return [self._to_domain(stream) for stream in result.scalars().all()]

    async def count_children(self, parent_id: Optional[uuid.UUID]) -> int:
        """Подсчет соседей для вычисления order_index"""
        result = await self.session.execute(
            select(func.count(StreamModel.id)).where(self._parent_clause(parent_id))
        )
        return result.scalar()

    async def get_parent_map(self) -> Dict[uuid.UUID, Optional[uuid.UUID]]:
        result = await self.session.execute(
            select(StreamModel.id, StreamModel.parent_stream_id)
        )
        return {row.id: row.parent_stream_id for row in result.all()}

    async def update(self, stream_id: uuid.UUID, values: Dict[str, Any]) -> Optional["Stream"]:
        """Частичное обновление потока"""
        if values:
            await self.session.execute(
                update(StreamModel).where(StreamModel.id == stream_id).values(**values)
            )
        return await self.get_by_id(stream_id)

    async def delete(self, stream_id: uuid.UUID) -> bool:
        """Удаление потока, потомки и карточки удаляются каскадом в БД"""
        result = await self.session.execute(
            delete(StreamModel).where(StreamModel.id == stream_id)
        )
        return result.rowcount > 0

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(StreamModel))
        return result.rowcount

    @staticmethod
    def _parent_clause(parent_id: Optional[uuid.UUID]):
        if parent_id is None:
            return StreamModel.parent_stream_id.is_(None)
        return StreamModel.parent_stream_id == parent_id

    def _to_domain(self, db_stream: StreamModel) -> "Stream":
        """Преобразование модели БД в доменную сущность"""
        from continuum.domains.streams.entities import Stream

        return Stream(
            id=db_stream.id,
            title=db_stream.title,
            parent_stream_id=db_stream.parent_stream_id,
            order_index=db_stream.order_index,
            created_at=db_stream.created_at
        )
