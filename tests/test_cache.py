import asyncio
import uuid
from datetime import datetime, timezone

import pytest
import httpx
from httpx import ASGITransport

from continuum.core.errors import ConflictError, NotFoundError, StorageFailure
from continuum.domains.cache import state as transitions
from continuum.domains.cache.client import ContinuumClient
from continuum.domains.cache.state import CardCacheState
from continuum.domains.cache.store import CardStore, StreamStore
from continuum.domains.cards.schemas import CardDeleteResponse, CardMetadata, CardResponse
from continuum.domains.streams.schemas import StreamNodeResponse, StreamResponse

STREAM_ID = uuid.uuid4()


def card(version, editable=False, content=None, metadata=None):
    return CardResponse(
        id=uuid.uuid4(),
        stream_id=STREAM_ID,
        content=content or f"v{version}",
        version=version,
        is_editable=editable,
        metadata=metadata,
        created_at=datetime.now(timezone.utc),
    )


def history(count):
    return [card(version, editable=version == count) for version in range(1, count + 1)]


class FakeApi:
    """API, которым управляет тест: ответы и ошибки задаются заранее"""

    def __init__(self, cards=None):
        self.cards = list(cards or [])
        self.fail_with = None
        self.release = None
        self.held = {}

    async def get_cards(self, stream_id):
        # Снимок берется до ожидания: так моделируется ответ, устаревший в пути
        cards = list(self.cards)
        if self.release is not None:
            await self.release.wait()
        return cards

    async def create_card(self, stream_id, content, metadata=None):
        if content in self.held:
            gate, error = self.held.pop(content)
            await gate.wait()
            raise error
        self._maybe_fail()
        new = card(len(self.cards) + 1, editable=True, content=content, metadata=metadata)
        self.cards = [c.model_copy(update={"is_editable": False}) for c in self.cards] + [new]
        return new

    async def update_card(self, card_id, content, metadata=None, clear_metadata=False):
        self._maybe_fail()
        current = next(c for c in self.cards if c.id == card_id)
        if not clear_metadata:
            metadata = metadata or current.metadata
        return await self.create_card(STREAM_ID, content, metadata)

    async def delete_card(self, card_id):
        self._maybe_fail()
        self.cards = [c for c in self.cards if c.id != card_id]
        promoted = None
        if self.cards:
            self.cards[-1] = self.cards[-1].model_copy(update={"is_editable": True})
            promoted = self.cards[-1].id
        return CardDeleteResponse(id=card_id, stream_id=STREAM_ID, promoted_card_id=promoted)

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with


def editable_ids(cards):
    return [c.id for c in cards if c.is_editable]


def test_optimistic_create_retires_editable_and_appends_placeholder():
    state = transitions.set_cards(CardCacheState(), STREAM_ID, history(2))
    placeholder = uuid.uuid4()

    state = transitions.optimistic_create(state, STREAM_ID, "new", None, placeholder)

    cards = transitions.cards_for(state, STREAM_ID)
    assert [c.version for c in cards] == [1, 2, 3]
    assert editable_ids(cards) == [placeholder]
    assert placeholder in state.placeholders


def test_transitions_do_not_mutate_previous_state():
    before = transitions.set_cards(CardCacheState(), STREAM_ID, history(1))
    after = transitions.optimistic_create(before, STREAM_ID, "next", None, uuid.uuid4())

    assert len(transitions.cards_for(before, STREAM_ID)) == 1
    assert transitions.cards_for(before, STREAM_ID)[0].is_editable
    assert len(transitions.cards_for(after, STREAM_ID)) == 2


def test_reconcile_replaces_placeholder_with_server_record():
    state = transitions.set_cards(CardCacheState(), STREAM_ID, history(1))
    placeholder = uuid.uuid4()
    state = transitions.optimistic_create(state, STREAM_ID, "new", None, placeholder)
    authoritative = card(2, editable=True, content="new")

    state = transitions.reconcile_card(state, authoritative, placeholder)

    cards = transitions.cards_for(state, STREAM_ID)
    assert [c.id for c in cards][-1] == authoritative.id
    assert placeholder not in [c.id for c in cards]
    assert placeholder not in state.placeholders
    assert editable_ids(cards) == [authoritative.id]


def test_optimistic_delete_promotes_previous_card():
    cards = history(3)
    state = transitions.set_cards(CardCacheState(), STREAM_ID, cards)

    state = transitions.optimistic_delete(state, STREAM_ID, cards[-1].id)

    remaining = transitions.cards_for(state, STREAM_ID)
    assert [c.version for c in remaining] == [1, 2]
    assert editable_ids(remaining) == [cards[1].id]


def test_tree_helpers():
    leaf = StreamNodeResponse(
        id=uuid.uuid4(), title="leaf", order_index=0, created_at=datetime.now(timezone.utc), depth=1
    )
    root = StreamNodeResponse(
        id=uuid.uuid4(), title="root", order_index=0, created_at=datetime.now(timezone.utc),
        depth=0, children=[leaf]
    )

    renamed = transitions.update_node_in_tree(
        [root], leaf.id, lambda node: node.model_copy(update={"title": "renamed"})
    )
    assert renamed[0].children[0].title == "renamed"
    assert root.children[0].title == "leaf"

    pruned = transitions.remove_node_from_tree([root], leaf.id)
    assert pruned[0].children == []


async def test_store_create_reconciles_on_success():
    api = FakeApi(history(1))
    store = CardStore(api)
    await store.fetch_cards(STREAM_ID)

    created = await store.create_card(STREAM_ID, "second", CardMetadata(status="monitor"))

    cards = store.cards(STREAM_ID)
    assert [c.id for c in cards] == [c.id for c in api.cards]
    assert store.latest(STREAM_ID).id == created.id
    assert not store.state.placeholders


async def test_store_rolls_back_on_failure():
    api = FakeApi(history(2))
    store = CardStore(api)
    await store.fetch_cards(STREAM_ID)
    snapshot = store.cards(STREAM_ID)
    api.fail_with = ConflictError("Only the latest card can be edited")

    with pytest.raises(ConflictError):
        await store.update_card(STREAM_ID, snapshot[-1].id, "edited")

    assert store.cards(STREAM_ID) == snapshot
    assert store.state.error == "Only the latest card can be edited"
    assert not store.state.placeholders

    with pytest.raises(ConflictError):
        await store.delete_card(STREAM_ID, snapshot[-1].id)
    assert store.cards(STREAM_ID) == snapshot


async def test_store_update_keeps_metadata_when_omitted():
    first = card(1, editable=True, metadata=CardMetadata(tags=["keep"]))
    store = CardStore(FakeApi([first]))
    await store.fetch_cards(STREAM_ID)

    updated = await store.update_card(STREAM_ID, first.id, "edited")

    assert updated.metadata.tags == ["keep"]
    assert [c.version for c in store.cards(STREAM_ID)] == [1, 2]


async def test_stale_read_is_discarded():
    api = FakeApi(history(1))
    store = CardStore(api)
    await store.fetch_cards(STREAM_ID)

    gate = asyncio.Event()
    api.release = gate
    read = asyncio.create_task(store.fetch_cards(STREAM_ID))
    await asyncio.sleep(0)
    api.release = None

    # Мутация завершается, пока чтение еще не вернулось
    created = await store.create_card(STREAM_ID, "newer")
    gate.set()

    assert await read is False
    assert store.latest(STREAM_ID).id == created.id
    assert [c.version for c in store.cards(STREAM_ID)] == [1, 2]


async def test_fresh_read_after_mutation_is_applied():
    api = FakeApi(history(1))
    store = CardStore(api)
    await store.create_card(STREAM_ID, "second")

    assert await store.fetch_cards(STREAM_ID) is True
    assert [c.id for c in store.cards(STREAM_ID)] == [c.id for c in api.cards]


async def test_delete_reconciles_promoted_card():
    cards = history(2)
    store = CardStore(FakeApi(cards))
    await store.fetch_cards(STREAM_ID)

    deletion = await store.delete_card(STREAM_ID, cards[-1].id)

    assert deletion.promoted_card_id == cards[0].id
    assert editable_ids(store.cards(STREAM_ID)) == [cards[0].id]


async def test_failed_create_keeps_overlapping_confirmed_card():
    api = FakeApi(history(1))
    store = CardStore(api)
    await store.fetch_cards(STREAM_ID)

    gate = asyncio.Event()
    api.held["A"] = (gate, StorageFailure("write failed"))
    slow = asyncio.create_task(store.create_card(STREAM_ID, "A"))
    await asyncio.sleep(0)

    confirmed = await store.create_card(STREAM_ID, "B")
    gate.set()
    with pytest.raises(StorageFailure):
        await slow

    cards = store.cards(STREAM_ID)
    assert [(c.content, c.version) for c in cards] == [(c.content, c.version) for c in api.cards]
    assert editable_ids(cards) == [confirmed.id]
    assert not store.state.placeholders


def test_undone_delete_does_not_override_newer_editable_card():
    cards = history(2)
    state = transitions.set_cards(CardCacheState(), STREAM_ID, cards)
    state = transitions.optimistic_delete(state, STREAM_ID, cards[1].id)

    # Пока удаление шло, сервер подтвердил новую версию
    newer = card(3, editable=True)
    state = transitions.reconcile_card(state, newer)
    state = transitions.restore_card(state, STREAM_ID, cards[1])

    restored = transitions.cards_for(state, STREAM_ID)
    assert [c.version for c in restored] == [1, 2, 3]
    assert editable_ids(restored) == [newer.id]


def test_undone_delete_alone_restores_previous_cards():
    cards = history(2)
    state = transitions.set_cards(CardCacheState(), STREAM_ID, cards)
    deleted = transitions.optimistic_delete(state, STREAM_ID, cards[1].id)

    undone = transitions.restore_card(deleted, STREAM_ID, cards[1])

    assert transitions.cards_for(undone, STREAM_ID) == transitions.cards_for(state, STREAM_ID)


async def test_store_update_can_clear_metadata():
    first = card(1, editable=True, metadata=CardMetadata(tags=["drop"]))
    store = CardStore(FakeApi([first]))
    await store.fetch_cards(STREAM_ID)

    updated = await store.update_card(STREAM_ID, first.id, "bare", clear_metadata=True)

    assert updated.metadata is None
    assert store.latest(STREAM_ID).metadata is None
    with pytest.raises(ValueError):
        await store.update_card(STREAM_ID, updated.id, "both", CardMetadata(tags=["x"]), clear_metadata=True)


def node(title, order_index=0):
    return StreamNodeResponse(
        id=uuid.uuid4(), title=title, order_index=order_index,
        created_at=datetime.now(timezone.utc), depth=0
    )


class FakeStreamApi:
    """Плоское дерево потоков с задерживаемым чтением"""

    def __init__(self, nodes):
        self.nodes = list(nodes)
        self.release = None

    async def get_stream_tree(self):
        nodes = list(self.nodes)
        if self.release is not None:
            await self.release.wait()
        return nodes

    async def update_stream(self, stream_id, title=None, order_index=None):
        current = next(n for n in self.nodes if n.id == stream_id)
        updated = current.model_copy(update={"title": title.strip()} if title else {})
        self.nodes = [updated if n.id == stream_id else n for n in self.nodes]
        return StreamResponse(
            id=updated.id, title=updated.title, order_index=updated.order_index, created_at=updated.created_at
        )

    async def delete_stream(self, stream_id):
        self.nodes = [n for n in self.nodes if n.id != stream_id]


async def test_stale_tree_read_is_discarded():
    api = FakeStreamApi([node("Root")])
    store = StreamStore(api)
    assert await store.fetch_streams() is True
    root = store.streams[0]

    gate = asyncio.Event()
    api.release = gate
    read = asyncio.create_task(store.fetch_streams())
    await asyncio.sleep(0)
    api.release = None

    await store.delete_stream(root.id)
    gate.set()

    assert await read is False
    assert store.streams == ()
    assert not store.state.loading


async def test_rename_takes_title_from_server():
    api = FakeStreamApi([node("Root"), node("Other", 1)])
    store = StreamStore(api)
    await store.fetch_streams()

    stream = await store.update_stream(store.streams[0].id, title="  Trimmed ")

    assert stream.title == "Trimmed"
    assert [n.title for n in store.streams] == ["Trimmed", "Other"]


@pytest.fixture
async def api_client(app):
    async with ContinuumClient(base_url="http://test", transport=ASGITransport(app=app)) as client:
        yield client


async def test_client_against_app(api_client):
    stream = await api_client.create_stream("Alpha")
    first = await api_client.create_card(stream.id, "v1 text")
    second = await api_client.update_card(first.id, "v2 text", CardMetadata(status="completed"))

    assert second.version == 2

    third = await api_client.update_card(second.id, "v3 text", clear_metadata=True)
    assert third.metadata is None
    assert (await api_client.get_latest_card(stream.id)).id == third.id

    with pytest.raises(ConflictError):
        await api_client.update_card(first.id, "again")
    with pytest.raises(NotFoundError):
        await api_client.get_card(uuid.uuid4())

    tree = await api_client.get_stream_tree()
    assert [node.title for node in tree] == ["Alpha"]


async def test_stores_drive_the_real_api(api_client):
    streams = StreamStore(api_client)
    root = await streams.add_stream("Root")
    await streams.add_stream("Child", root.id)
    assert [node.title for node in streams.streams[0].children] == ["Child"]

    await streams.update_stream(root.id, title="  Renamed  ")
    assert streams.streams[0].title == "Renamed"

    cards = CardStore(api_client)
    await cards.create_card(root.id, "one")
    second = await cards.create_card(root.id, "two")
    assert [c.version for c in cards.cards(root.id)] == [1, 2]
    assert cards.latest(root.id).id == second.id

    await cards.delete_card(root.id, second.id)
    assert [c.version for c in cards.cards(root.id)] == [1]
    assert cards.latest(root.id).version == 1

    await streams.delete_stream(root.id)
    assert streams.streams == ()
    with pytest.raises(NotFoundError):
        await streams.delete_stream(root.id)
    assert streams.streams == ()


async def test_client_wraps_transport_errors():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with ContinuumClient(base_url="http://test", transport=httpx.MockTransport(refuse)) as client:
        with pytest.raises(StorageFailure):
            await client.get_stream_tree()
