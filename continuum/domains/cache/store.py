import logging
import uuid
from dataclasses import replace
from typing import Optional, Tuple

from continuum.domains.cache import state as transitions
from continuum.domains.cache.state import CardCacheState, StreamCacheState
from continuum.domains.cards.schemas import CardMetadata, CardResponse
from continuum.domains.streams.schemas import StreamNodeResponse, StreamResponse

logger = logging.getLogger(__name__)


class CardStore:
    """Оптимистичный кэш карточек по потокам.

    Протокол мутации: оптимистичная дельта -> вызов API -> при успехе
    временная запись заменяется ответом сервера, при ошибке снимается только
    своя дельта и исключение пробрасывается вызывающему.

    api - любой объект с методами get_cards, create_card, update_card и
    delete_card (например, ContinuumClient).
    """

    def __init__(self, api):
        self.api = api
        self.state = CardCacheState()

    def cards(self, stream_id: uuid.UUID) -> Tuple[CardResponse, ...]:
        return transitions.cards_for(self.state, stream_id)

    def latest(self, stream_id: uuid.UUID) -> Optional[CardResponse]:
        return next((card for card in self.cards(stream_id) if card.is_editable), None)

    async def fetch_cards(self, stream_id: uuid.UUID) -> bool:
        """Загрузка карточек потока.

        Возвращает False, если ответ устарел: пока шел запрос, по потоку началась
        или завершилась мутация.
        """
        started_at = transitions.mutation_version(self.state, stream_id)
        self.state = transitions.set_loading(self.state, stream_id, True)
        try:
            cards = await self.api.get_cards(stream_id)
        except Exception as error:
            self.state = transitions.with_error(
                transitions.set_loading(self.state, stream_id, False), str(error)
            )
            raise

        self.state = transitions.set_loading(self.state, stream_id, False)
        if transitions.mutation_version(self.state, stream_id) != started_at:
            logger.debug("Discarding stale card list for stream %s", stream_id)
            return False

        self.state = transitions.set_cards(self.state, stream_id, cards)
        return True

    async def create_card(
        self,
        stream_id: uuid.UUID,
        content: str,
        metadata: Optional[CardMetadata] = None
    ) -> CardResponse:
        placeholder_id = uuid.uuid4()
        self._begin_mutation(stream_id)
        self.state = transitions.optimistic_create(self.state, stream_id, content, metadata, placeholder_id)
        try:
            card = await self.api.create_card(stream_id, content, metadata)
        except Exception as error:
            undone = transitions.discard_placeholder(self.state, stream_id, placeholder_id)
            self._rollback(stream_id, error, undone)
            raise
        finally:
            self.state = transitions.bump_mutation_version(self.state, stream_id)

        self.state = transitions.reconcile_card(self.state, card, placeholder_id)
        return card

    async def update_card(
        self,
        stream_id: uuid.UUID,
        card_id: uuid.UUID,
        content: str,
        metadata: Optional[CardMetadata] = None,
        clear_metadata: bool = False
    ) -> CardResponse:
        """Правка карточки.

        metadata=None сохраняет метаданные текущей версии, clear_metadata=True
        очищает их.
        """
        if clear_metadata and metadata is not None:
            raise ValueError("metadata and clear_metadata are mutually exclusive")

        placeholder_id = uuid.uuid4()
        self._begin_mutation(stream_id)
        self.state = transitions.optimistic_update(
            self.state, stream_id, card_id, content, metadata, placeholder_id,
            keep_metadata=metadata is None and not clear_metadata
        )
        try:
            card = await self.api.update_card(card_id, content, metadata, clear_metadata=clear_metadata)
        except Exception as error:
            undone = transitions.discard_placeholder(self.state, stream_id, placeholder_id)
            self._rollback(stream_id, error, undone)
            raise
        finally:
            self.state = transitions.bump_mutation_version(self.state, stream_id)

        self.state = transitions.reconcile_card(self.state, card, placeholder_id)
        return card

    async def delete_card(self, stream_id: uuid.UUID, card_id: uuid.UUID):
        removed = next((card for card in self.cards(stream_id) if card.id == card_id), None)
        self._begin_mutation(stream_id)
        self.state = transitions.optimistic_delete(self.state, stream_id, card_id)
        try:
            deletion = await self.api.delete_card(card_id)
        except Exception as error:
            undone = transitions.restore_card(self.state, stream_id, removed) if removed else self.state
            self._rollback(stream_id, error, undone)
            raise
        finally:
            self.state = transitions.bump_mutation_version(self.state, stream_id)

        self.state = transitions.reconcile_delete(
            self.state, deletion.stream_id, card_id, deletion.promoted_card_id
        )
        return deletion

    def _begin_mutation(self, stream_id: uuid.UUID) -> None:
        self.state = transitions.bump_mutation_version(self.state, stream_id)

    def _rollback(self, stream_id: uuid.UUID, error: Exception, undone: CardCacheState) -> None:
        logger.warning("Rolling back optimistic change for stream %s: %s", stream_id, error)
        self.state = transitions.with_error(undone, str(error))


class StreamStore:
    """Кэш дерева потоков с оптимистичным переименованием и удалением.

    Чтение дерева отбрасывается, если за время запроса началась или
    завершилась мутация, как и у CardStore.
    """

    def __init__(self, api):
        self.api = api
        self.state = StreamCacheState()

    @property
    def streams(self) -> Tuple[StreamNodeResponse, ...]:
        return self.state.streams

    async def fetch_streams(self) -> bool:
        started_at = self.state.mutation_version
        self.state = replace(self.state, loading=True)
        try:
            tree = await self.api.get_stream_tree()
        except Exception as error:
            self.state = replace(self.state, loading=False, error=str(error))
            raise

        self.state = replace(self.state, loading=False)
        if self.state.mutation_version != started_at:
            logger.debug("Discarding stale stream tree")
            return False

        self.state = replace(self.state, streams=tuple(tree), error=None)
        return True

    async def add_stream(self, title: str, parent_stream_id: Optional[uuid.UUID] = None) -> StreamResponse:
        """Создание потока; дерево перечитывается, чтобы получить верную вложенность"""
        self._bump()
        try:
            stream = await self.api.create_stream(title, parent_stream_id)
        except Exception as error:
            self.state = replace(self.state, error=str(error))
            raise
        finally:
            self._bump()

        await self.fetch_streams()
        return stream

    async def update_stream(
        self,
        stream_id: uuid.UUID,
        title: Optional[str] = None,
        order_index: Optional[int] = None
    ) -> StreamResponse:
        previous = self._find(stream_id)
        self._bump()
        if title is not None:
            self._apply(stream_id, {"title": title})
        try:
            stream = await self.api.update_stream(stream_id, title=title, order_index=order_index)
        except Exception as error:
            if previous is not None:
                self._apply(stream_id, {"title": previous.title})
            self.state = replace(self.state, error=str(error))
            raise
        finally:
            self._bump()

        self._apply(stream_id, {"title": stream.title, "order_index": stream.order_index})
        # Порядок соседей меняется только на сервере
        if order_index is not None:
            await self.fetch_streams()
        return stream

    async def delete_stream(self, stream_id: uuid.UUID) -> None:
        previous = self.state.streams
        self._bump()
        self.state = replace(self.state, streams=transitions.remove_node_from_tree(previous, stream_id))
        try:
            await self.api.delete_stream(stream_id)
        except Exception as error:
            self.state = replace(self.state, streams=previous, error=str(error))
            raise
        finally:
            self._bump()

    def _bump(self) -> None:
        self.state = replace(self.state, mutation_version=self.state.mutation_version + 1)

    def _apply(self, stream_id: uuid.UUID, values: dict) -> None:
        self.state = replace(
            self.state,
            streams=transitions.update_node_in_tree(
                self.state.streams, stream_id, lambda node: node.model_copy(update=values)
            )
        )

    def _find(self, stream_id: uuid.UUID) -> Optional[StreamNodeResponse]:
        pending = list(self.state.streams)
        while pending:
            node = pending.pop()
            if node.id == stream_id:
                return node
            pending.extend(node.children)
        return None
