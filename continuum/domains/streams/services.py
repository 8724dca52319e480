import logging
from typing import List, Tuple
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from continuum.core.errors import ConflictError, NotFoundError
from continuum.db.unit_of_work import UnitOfWork
from continuum.domains.cards.entities import Card
from continuum.domains.streams.entities import Stream, StreamNode, assemble_tree, find_ancestors
from continuum.domains.streams.schemas import StreamCreate, StreamUpdate

logger = logging.getLogger(__name__)


class StreamService:
    """Сервис для работы с потоками и их деревом"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.uow = UnitOfWork(session)

    async def create_stream(self, stream_data: StreamCreate) -> Stream:
        """Создание потока в конце списка соседей"""
        async with self.uow as uow:
            parent_id = stream_data.parent_stream_id
            if parent_id is not None and not await uow.streams.exists(parent_id):
                raise NotFoundError(f"Parent stream {parent_id} not found")

            order_index = await uow.streams.count_children(parent_id)
            stream = Stream.create_stream(
                title=stream_data.title,
                order_index=order_index,
                parent_stream_id=parent_id
            )
            created = await uow.streams.add(stream)

        logger.info("Created stream %s (parent=%s, order=%d)", created.id, parent_id, order_index)
        return created

    async def get_stream(self, stream_id: uuid.UUID) -> Stream:
        """Получение потока по id"""
        async with self.uow as uow:
            stream = await uow.streams.get_by_id(stream_id)
        if not stream:
            raise NotFoundError(f"Stream {stream_id} not found")
        return stream

    async def get_stream_detail(self, stream_id: uuid.UUID) -> Tuple[Stream, List[Card], List[Stream]]:
        """Поток, его карточки и прямые потомки, прочитанные в одной транзакции"""
        async with self.uow as uow:
            stream = await uow.streams.get_by_id(stream_id)
            if not stream:
                raise NotFoundError(f"Stream {stream_id} not found")
            cards = await uow.cards.get_by_stream(stream_id)
            substreams = await uow.streams.get_children(stream_id)
        return stream, cards, substreams

    async def get_substreams(self, parent_id: uuid.UUID) -> List[Stream]:
        async with self.uow as uow:
            if not await uow.streams.exists(parent_id):
                raise NotFoundError(f"Stream {parent_id} not found")
            return await uow.streams.get_children(parent_id)

    async def get_stream_tree(self) -> List[StreamNode]:
        """Получение всего леса потоков"""
        async with self.uow as uow:
            streams = await uow.streams.get_all()
        return assemble_tree(streams)

    async def update_stream(self, stream_id: uuid.UUID, update_data: StreamUpdate) -> Stream:
        """Частичное обновление потока, включая перенос к другому родителю"""
        async with self.uow as uow:
            stream = await uow.streams.get_by_id(stream_id, for_update=True)
            if not stream:
                raise NotFoundError(f"Stream {stream_id} not found")

            values = {}
            if update_data.title is not None:
                values["title"] = update_data.title
            if update_data.order_index is not None:
                values["order_index"] = update_data.order_index

            new_parent = update_data.parent_stream_id
            if update_data.moves_stream and new_parent != stream.parent_stream_id:
                await self._check_new_parent(uow, stream, new_parent)
                values["parent_stream_id"] = new_parent
                if update_data.order_index is None:
                    values["order_index"] = await uow.streams.count_children(new_parent)

            updated = await uow.streams.update(stream_id, values)

        logger.info("Updated stream %s: %s", stream_id, sorted(values))
        return updated

    async def delete_stream(self, stream_id: uuid.UUID) -> None:
        """Удаление потока вместе с поддеревом и всеми карточками"""
        async with self.uow as uow:
            if not await uow.streams.delete(stream_id):
                raise NotFoundError(f"Stream {stream_id} not found")
        logger.info("Deleted stream %s with its subtree", stream_id)

    async def _check_new_parent(self, uow: UnitOfWork, stream: Stream, new_parent) -> None:
        if new_parent is None:
            return
        if new_parent == stream.id:
            raise ConflictError("A stream cannot be its own parent")
        if not await uow.streams.exists(new_parent):
            raise NotFoundError(f"Parent stream {new_parent} not found")

        parents = await uow.streams.get_parent_map()
        if stream.id in find_ancestors(new_parent, parents):
            raise ConflictError("A stream cannot be moved under its own descendant")
