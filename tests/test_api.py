import uuid


async def create_stream(client, title, parent_id=None):
    response = await client.post("/streams", json={"title": title, "parent_stream_id": parent_id})
    assert response.status_code == 201
    return response.json()


async def create_card(client, stream_id, content, **extra):
    response = await client.post("/cards", json={"stream_id": stream_id, "content": content, **extra})
    assert response.status_code == 201
    return response.json()


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}


async def test_card_lifecycle_scenario(client):
    alpha = await create_stream(client, "Alpha")

    v1 = await create_card(client, alpha["id"], "v1 text")
    assert (v1["version"], v1["is_editable"]) == (1, True)

    v2 = await create_card(client, alpha["id"], "v2 text")
    assert (v2["version"], v2["is_editable"]) == (2, True)

    old = (await client.get(f"/cards/{v1['id']}")).json()
    assert old["is_editable"] is False

    response = await client.delete(f"/cards/{v2['id']}")
    assert response.status_code == 200
    assert response.json() == {
        "deleted": True,
        "id": v2["id"],
        "stream_id": alpha["id"],
        "promoted_card_id": v1["id"],
    }

    cards = (await client.get(f"/streams/{alpha['id']}/cards")).json()
    assert [(c["version"], c["is_editable"]) for c in cards] == [(1, True)]


async def test_patch_card_appends_version(client):
    stream = await create_stream(client, "Notes")
    card = await create_card(
        client, stream["id"], "draft",
        metadata={"tags": ["x"], "status": "waiting", "due_date": "2026-11-01T09:00:00Z"},
    )

    response = await client.patch(f"/cards/{card['id']}", json={"content": "edited"})

    assert response.status_code == 201
    edited = response.json()
    assert edited["version"] == 2
    assert edited["metadata"]["status"] == "waiting"
    assert edited["metadata"]["tags"] == ["x"]

    latest = (await client.get(f"/streams/{stream['id']}/cards/latest")).json()
    assert latest["id"] == edited["id"]


async def test_editing_history_is_a_conflict(client):
    stream = await create_stream(client, "Notes")
    first = await create_card(client, stream["id"], "one")
    await create_card(client, stream["id"], "two")

    patch = await client.patch(f"/cards/{first['id']}", json={"content": "rewrite"})
    delete = await client.delete(f"/cards/{first['id']}")

    for response in (patch, delete):
        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "Conflict"


async def test_not_found_errors(client):
    missing = str(uuid.uuid4())

    responses = [
        await client.get(f"/cards/{missing}"),
        await client.patch(f"/cards/{missing}", json={"content": "x"}),
        await client.delete(f"/cards/{missing}"),
        await client.post("/cards", json={"stream_id": missing, "content": "x"}),
        await client.get(f"/streams/{missing}"),
        await client.get(f"/streams/{missing}/cards"),
        await client.delete(f"/streams/{missing}"),
    ]

    for response in responses:
        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "NotFound"


async def test_validation_errors_map_to_400(client):
    stream = await create_stream(client, "Valid")

    responses = [
        await client.post("/streams", json={"title": ""}),
        await client.post("/streams", json={"title": "t" * 201}),
        await client.post("/cards", json={"stream_id": stream["id"], "content": "  "}),
        await client.post("/cards", json={"stream_id": "not-a-uuid", "content": "x"}),
        await client.post(
            "/cards", json={"stream_id": stream["id"], "content": "x", "metadata": {"status": "archived"}}
        ),
        await client.patch(f"/streams/{stream['id']}", json={"order_index": -1}),
        await client.get("/cards/not-a-uuid"),
    ]

    for response in responses:
        assert response.status_code == 400
        body = response.json()
        assert body["error"]["kind"] == "ValidationError"
        assert body["error"]["details"]

    cards = (await client.get(f"/streams/{stream['id']}/cards")).json()
    assert cards == []


async def test_stream_tree_detail_and_delete(client):
    root = await create_stream(client, "Root")
    child = await create_stream(client, "Child", root["id"])
    await create_stream(client, "Grandchild", child["id"])
    await create_card(client, child["id"], "child card")

    tree = (await client.get("/streams")).json()
    assert len(tree) == 1
    assert tree[0]["depth"] == 0
    assert tree[0]["children"][0]["title"] == "Child"
    assert tree[0]["children"][0]["children"][0]["depth"] == 2

    detail = (await client.get(f"/streams/{child['id']}")).json()
    assert [card["content"] for card in detail["cards"]] == ["child card"]
    assert [sub["title"] for sub in detail["substreams"]] == ["Grandchild"]

    response = await client.delete(f"/streams/{root['id']}")
    assert response.status_code == 200
    assert response.json() == {"deleted": True, "id": root["id"]}
    assert (await client.get("/streams")).json() == []
    assert (await client.get(f"/streams/{child['id']}/cards")).status_code == 404


async def test_patch_stream_move_cycle_is_conflict(client):
    root = await create_stream(client, "Root")
    child = await create_stream(client, "Child", root["id"])

    response = await client.patch(f"/streams/{root['id']}", json={"parent_stream_id": child["id"]})
    assert response.status_code == 409

    renamed = await client.patch(f"/streams/{child['id']}", json={"title": "Renamed"})
    assert renamed.status_code == 200
    assert renamed.json()["title"] == "Renamed"
    assert renamed.json()["parent_stream_id"] == root["id"]


async def test_latest_card_of_empty_stream_is_null(client):
    stream = await create_stream(client, "Empty")

    response = await client.get(f"/streams/{stream['id']}/cards/latest")

    assert response.status_code == 200
    assert response.json() is None


async def test_created_at_is_the_same_on_write_and_read(client):
    stream = await create_stream(client, "Timestamps")
    card = await create_card(client, stream["id"], "first", metadata={"tags": ["t"], "status": "monitor"})

    assert (await client.get(f"/cards/{card['id']}")).json() == card
    assert (await client.get(f"/streams/{stream['id']}/cards")).json() == [card]

    detail = (await client.get(f"/streams/{stream['id']}")).json()
    assert detail["created_at"] == stream["created_at"]
    assert stream["created_at"].endswith("Z")
