def _create_task(client, event, headers, title, status="BACKLOG"):
    response = client.post(f"/events/{event.id}/tasks", json={"title": title, "status": status}, headers=headers)
    assert response.status_code == 201
    return response.json()


def _column(client, event, headers, status):
    tasks = client.get(f"/events/{event.id}/tasks", headers=headers).json()
    return [t["title"] for t in sorted(tasks, key=lambda t: t["position"]) if t["status"] == status]


def test_new_tasks_append_to_their_column(client, owner, make_event, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)

    first = _create_task(client, event, headers, "Book venue")
    second = _create_task(client, event, headers, "Pick DJ")
    other = _create_task(client, event, headers, "Send invites", status="TODO")

    assert (first["position"], second["position"], other["position"]) == (0, 1, 0)


def test_move_task_reorders_target_column(client, owner, make_event, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)
    _create_task(client, event, headers, "A", status="TODO")
    _create_task(client, event, headers, "B", status="TODO")
    moving = _create_task(client, event, headers, "C")

    response = client.put(f"/tasks/{moving['id']}/status", json={"status": "TODO", "position": 1}, headers=headers)

    assert response.json()["status"] == "TODO"
    assert _column(client, event, headers, "TODO") == ["A", "C", "B"]
    assert _column(client, event, headers, "BACKLOG") == []


def test_position_is_clamped(client, owner, make_event, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)
    _create_task(client, event, headers, "A", status="DONE")
    moving = _create_task(client, event, headers, "B")

    response = client.put(f"/tasks/{moving['id']}/status", json={"status": "DONE", "position": 99}, headers=headers)

    assert response.json()["position"] == 1


def test_update_and_validation(client, owner, make_event, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)
    task = _create_task(client, event, headers, "Draft")

    assert client.put(f"/tasks/{task['id']}", json={"title": "  Final  "}, headers=headers).json()["title"] == "Final"
    assert client.put(f"/tasks/{task['id']}", json={"title": " "}, headers=headers).status_code == 400
    assert client.put(f"/tasks/{task['id']}/status", json={"status": "LATER"}, headers=headers).status_code == 422
    assert client.post(f"/events/{event.id}/tasks", json={"title": ""}, headers=headers).status_code == 422


def test_notes_lifecycle(client, owner, make_event, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)
    task = _create_task(client, event, headers, "Flowers")

    note = client.post(f"/tasks/{task['id']}/notes", json={"content": "Ask about peonies"}, headers=headers)
    assert note.status_code == 201
    note_id = note.json()["id"]

    updated = client.put(f"/task-notes/{note_id}", json={"content": "Peonies booked"}, headers=headers)
    assert updated.json()["content"] == "Peonies booked"
    assert client.post(f"/tasks/{task['id']}/notes", json={"content": "  "}, headers=headers).status_code == 422

    tasks = client.get(f"/events/{event.id}/tasks", headers=headers).json()
    assert [n["content"] for n in tasks[0]["notes"]] == ["Peonies booked"]

    assert client.delete(f"/task-notes/{note_id}", headers=headers).status_code == 200
    assert client.delete(f"/tasks/{task['id']}", headers=headers).status_code == 200
    assert client.get(f"/events/{event.id}/tasks", headers=headers).json() == []


def test_outsider_cannot_touch_tasks(client, owner, make_user, make_event, auth_headers):
    event = make_event(owner)
    task = _create_task(client, event, auth_headers(owner), "Secret")
    outsider = auth_headers(make_user())

    assert client.get(f"/events/{event.id}/tasks", headers=outsider).status_code == 404
    assert client.delete(f"/tasks/{task['id']}", headers=outsider).status_code == 404
