"""Чистые переходы состояния клиентского кэша.

Кэш - оптимистичное зеркало сервера. Каждая функция принимает состояние и
возвращает новое, не изменяя исходное. Откат неудачной мутации снимает
только ее собственную дельту: мутации, которые шли параллельно и уже
подтверждены сервером, в кэше сохраняются.

Счетчик мутаций потока (mutation_versions) растет при начале и при завершении
каждой мутации. Чтение, начатое при одном значении счетчика и вернувшееся при
другом, устарело и должно быть отброшено. Дерево потоков ведет такой же
счетчик, общий на все дерево.
"""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from continuum.domains.cards.schemas import CardMetadata, CardResponse
from continuum.domains.streams.schemas import StreamNodeResponse

CardList = Tuple[CardResponse, ...]


@dataclass(frozen=True)
class CardCacheState:
    cards_by_stream: Dict[uuid.UUID, CardList] = field(default_factory=dict)
    mutation_versions: Dict[uuid.UUID, int] = field(default_factory=dict)
    loading: Dict[uuid.UUID, bool] = field(default_factory=dict)
    placeholders: FrozenSet[uuid.UUID] = frozenset()
    error: Optional[str] = None


@dataclass(frozen=True)
class StreamCacheState:
    streams: Tuple[StreamNodeResponse, ...] = ()
    mutation_version: int = 0
    loading: bool = False
    error: Optional[str] = None


def cards_for(state: CardCacheState, stream_id: uuid.UUID) -> CardList:
    return state.cards_by_stream.get(stream_id, ())


def mutation_version(state: CardCacheState, stream_id: uuid.UUID) -> int:
    return state.mutation_versions.get(stream_id, 0)


def bump_mutation_version(state: CardCacheState, stream_id: uuid.UUID) -> CardCacheState:
    versions = dict(state.mutation_versions)
    versions[stream_id] = versions.get(stream_id, 0) + 1
    return replace(state, mutation_versions=versions)


def set_loading(state: CardCacheState, stream_id: uuid.UUID, loading: bool) -> CardCacheState:
    flags = dict(state.loading)
    flags[stream_id] = loading
    return replace(state, loading=flags)


def with_error(state, message: Optional[str]):
    return replace(state, error=message)


def _with_cards(state: CardCacheState, stream_id: uuid.UUID, cards: Iterable[CardResponse]) -> CardCacheState:
    by_stream = dict(state.cards_by_stream)
    by_stream[stream_id] = tuple(sorted(cards, key=lambda card: card.version))
    return replace(state, cards_by_stream=by_stream)


def set_cards(state: CardCacheState, stream_id: uuid.UUID, cards: Iterable[CardResponse]) -> CardCacheState:
    """Замена карточек потока авторитетным списком с сервера"""
    cards = tuple(cards)
    ids = {card.id for card in cards}
    stale = {card.id for card in cards_for(state, stream_id)} - ids
    state = _with_cards(state, stream_id, cards)
    return replace(state, placeholders=state.placeholders - stale, error=None)


def discard_placeholder(state: CardCacheState, stream_id: uuid.UUID, placeholder_id: uuid.UUID) -> CardCacheState:
    """Откат неудачного создания или правки.

    Убирается только своя временная карточка: подтвержденные за это время
    записи других мутаций остаются. Если редактируемых не осталось,
    редактируемой снова становится старшая версия.
    """
    cards = [card for card in cards_for(state, stream_id) if card.id != placeholder_id]
    if cards and not any(card.is_editable for card in cards):
        cards = cards[:-1] + [cards[-1].model_copy(update={"is_editable": True})]
    state = _with_cards(state, stream_id, cards)
    return replace(state, placeholders=state.placeholders - {placeholder_id})


def restore_card(state: CardCacheState, stream_id: uuid.UUID, card: CardResponse) -> CardCacheState:
    """Откат неудачного удаления: карточка возвращается на место"""
    current = cards_for(state, stream_id)
    if any(existing.id == card.id for existing in current):
        return state
    if card.is_editable:
        if any(existing.is_editable and existing.version > card.version for existing in current):
            card = card.model_copy(update={"is_editable": False})
        else:
            current = _retired(current)
    return _with_cards(state, stream_id, list(current) + [card])


def _retired(cards: Iterable[CardResponse]) -> List[CardResponse]:
    return [card.model_copy(update={"is_editable": False}) if card.is_editable else card for card in cards]


def _placeholder(
    stream_id: uuid.UUID,
    placeholder_id: uuid.UUID,
    content: str,
    version: int,
    metadata: Optional[CardMetadata],
    now: Optional[datetime]
) -> CardResponse:
    return CardResponse(
        id=placeholder_id,
        stream_id=stream_id,
        content=content,
        version=version,
        is_editable=True,
        metadata=metadata,
        created_at=now or datetime.now(timezone.utc),
    )


def optimistic_create(
    state: CardCacheState,
    stream_id: uuid.UUID,
    content: str,
    metadata: Optional[CardMetadata],
    placeholder_id: uuid.UUID,
    now: Optional[datetime] = None
) -> CardCacheState:
    """Добавление временной карточки следующей версии"""
    current = cards_for(state, stream_id)
    version = current[-1].version + 1 if current else 1
    cards = _retired(current) + [_placeholder(stream_id, placeholder_id, content, version, metadata, now)]
    state = _with_cards(state, stream_id, cards)
    return replace(state, placeholders=state.placeholders | {placeholder_id})


def optimistic_update(
    state: CardCacheState,
    stream_id: uuid.UUID,
    card_id: uuid.UUID,
    content: str,
    metadata: Optional[CardMetadata],
    placeholder_id: uuid.UUID,
    now: Optional[datetime] = None,
    keep_metadata: bool = False
) -> CardCacheState:
    """Правка как новая версия; если карточки нет в кэше, состояние не меняется"""
    current = cards_for(state, stream_id)
    target = next((card for card in current if card.id == card_id), None)
    if target is None:
        return state

    if keep_metadata:
        metadata = target.metadata
    cards = _retired(current) + [
        _placeholder(stream_id, placeholder_id, content, target.version + 1, metadata, now)
    ]
    state = _with_cards(state, stream_id, cards)
    return replace(state, placeholders=state.placeholders | {placeholder_id})


def optimistic_delete(state: CardCacheState, stream_id: uuid.UUID, card_id: uuid.UUID) -> CardCacheState:
    """Удаление карточки и продвижение последней оставшейся в редактируемые"""
    remaining = [card for card in cards_for(state, stream_id) if card.id != card_id]
    if remaining:
        remaining = _retired(remaining[:-1]) + [remaining[-1].model_copy(update={"is_editable": True})]
    return _with_cards(state, stream_id, remaining)


def reconcile_card(
    state: CardCacheState,
    card: CardResponse,
    placeholder_id: Optional[uuid.UUID] = None
) -> CardCacheState:
    """Замена временной карточки записью, которую вернул сервер"""
    cards = [
        existing for existing in cards_for(state, card.stream_id)
        if existing.id not in (placeholder_id, card.id)
    ]
    if card.is_editable:
        cards = _retired(cards)
    state = _with_cards(state, card.stream_id, cards + [card])
    placeholders = state.placeholders - {placeholder_id} if placeholder_id else state.placeholders
    return replace(state, placeholders=placeholders, error=None)


def reconcile_delete(
    state: CardCacheState,
    stream_id: uuid.UUID,
    card_id: uuid.UUID,
    promoted_card_id: Optional[uuid.UUID]
) -> CardCacheState:
    """Согласование кэша с результатом удаления на сервере"""
    cards = [card for card in cards_for(state, stream_id) if card.id != card_id]
    cards = [
        card.model_copy(update={"is_editable": card.id == promoted_card_id})
        if card.is_editable != (card.id == promoted_card_id) else card
        for card in cards
    ]
    state = _with_cards(state, stream_id, cards)
    return replace(state, error=None)


def update_node_in_tree(
    nodes: Iterable[StreamNodeResponse],
    stream_id: uuid.UUID,
    updater: Callable[[StreamNodeResponse], StreamNodeResponse]
) -> Tuple[StreamNodeResponse, ...]:
    """Рекурсивное обновление узла дерева потоков"""
    result = []
    for node in nodes:
        if node.id == stream_id:
            result.append(updater(node))
        else:
            children = list(update_node_in_tree(node.children, stream_id, updater))
            result.append(node.model_copy(update={"children": children}))
    return tuple(result)


def remove_node_from_tree(
    nodes: Iterable[StreamNodeResponse],
    stream_id: uuid.UUID
) -> Tuple[StreamNodeResponse, ...]:
    """Рекурсивное удаление узла вместе с поддеревом"""
    return tuple(
        node.model_copy(update={"children": list(remove_node_from_tree(node.children, stream_id))})
        for node in nodes
        if node.id != stream_id
    )
