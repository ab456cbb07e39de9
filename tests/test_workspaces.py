def test_default_workspace_is_created_lazily(client, owner, auth_headers):
    headers = auth_headers(owner)

    assert client.get("/workspaces", headers=headers).json() == []
    default = client.get("/workspaces/default", headers=headers).json()

    assert default["slug"] == "my-events"
    assert default["is_default"] is True
    assert [w["id"] for w in client.get("/workspaces", headers=headers).json()] == [default["id"]]


def test_workspaces_require_business_plan(client, make_user, auth_headers):
    basic = make_user(plan="BASIC")
    response = client.post("/workspaces", json={"name": "Clients"}, headers=auth_headers(basic))
    assert response.status_code == 403


def test_slug_collision_gets_suffix(client, owner, auth_headers):
    headers = auth_headers(owner)

    first = client.post("/workspaces", json={"name": "Summer Weddings"}, headers=headers).json()
    second = client.post("/workspaces", json={"name": "Summer Weddings"}, headers=headers).json()

    assert first["slug"] == "summer-weddings"
    assert first["is_default"] is True
    assert second["slug"].startswith("summer-weddings-")
    assert second["is_default"] is False

    response = client.put(f"/workspaces/{second['id']}", json={"slug": "summer-weddings"}, headers=headers)
    assert response.status_code == 409


def test_set_default_and_delete_rules(client, owner, make_event, auth_headers):
    headers = auth_headers(owner)
    first = client.post("/workspaces", json={"name": "A"}, headers=headers).json()
    second = client.post("/workspaces", json={"name": "B"}, headers=headers).json()

    assert client.delete(f"/workspaces/{first['id']}", headers=headers).status_code == 400

    switched = client.post(f"/workspaces/{second['id']}/default", headers=headers).json()
    assert switched["is_default"] is True
    listed = client.get("/workspaces", headers=headers).json()
    assert [w["is_default"] for w in listed] == [True, False]

    make_event(owner, workspace_id=first["id"])
    assert client.delete(f"/workspaces/{first['id']}", headers=headers).status_code == 400


def test_move_events_between_workspaces(client, owner, make_user, make_event, auth_headers):
    headers = auth_headers(owner)
    source = client.post("/workspaces", json={"name": "Source"}, headers=headers).json()
    target = client.post("/workspaces", json={"name": "Target"}, headers=headers).json()
    event = make_event(owner, workspace_id=source["id"])

    response = client.post(
        "/workspaces/move-events", json={"event_ids": [event.id], "workspace_id": target["id"]}, headers=headers
    )
    assert response.json() == {"success": True, "moved": 1}

    counts = {w["name"]: w["event_count"] for w in client.get("/workspaces", headers=headers).json()}
    assert counts == {"Source": 0, "Target": 1}
    assert client.delete(f"/workspaces/{source['id']}", headers=headers).status_code == 400

    other = make_event(make_user())
    response = client.post(
        "/workspaces/move-events", json={"event_ids": [other.id], "workspace_id": target["id"]}, headers=headers
    )
    assert response.status_code == 404
