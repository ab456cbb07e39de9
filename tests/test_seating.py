import pytest


def _create_table(client, event, headers, **fields):
    payload = {"name": "Table 1", "capacity": 4}
    payload.update(fields)
    response = client.post(f"/events/{event.id}/tables", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_create_table_includes_seat_layout(client, owner, make_event, auth_headers):
    event = make_event(owner)

    table = _create_table(client, event, auth_headers(owner), shape="rectangle", seat_arrangement="bride-side")

    assert table["capacity"] == 4
    assert table["seats_used"] == 0
    assert [s["side"] for s in table["seats"]] == ["bride", "bride", "groom", "groom"]


def test_unsupported_arrangement_falls_back_to_even(client, owner, make_event, auth_headers):
    event = make_event(owner)
    table = _create_table(client, event, auth_headers(owner), shape="circle", seat_arrangement="bride-side")
    assert table["seat_arrangement"] == "even"


@pytest.mark.parametrize("capacity", [0, 51])
def test_capacity_bounds(client, owner, make_event, auth_headers, capacity):
    event = make_event(owner)
    response = client.post(
        f"/events/{event.id}/tables", json={"name": "T", "capacity": capacity}, headers=auth_headers(owner)
    )
    assert response.status_code == 422


def test_assign_guests_reports_capacity_warning(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)
    table = _create_table(client, event, headers, capacity=3)
    couple = make_guest(event, name="Couple", rsvp_status="ACCEPTED", rsvp_count=2)
    family = make_guest(event, name="Family", expected_guests=2)

    response = client.post(f"/tables/{table['id']}/guests", json={"guest_ids": [couple.id]}, headers=headers)
    assert response.json() == {"success": True, "assigned": 1, "capacity_warning": False}

    response = client.post(f"/tables/{table['id']}/guests", json={"guest_ids": [family.id]}, headers=headers)
    assert response.json()["capacity_warning"] is True

    tables = client.get(f"/events/{event.id}/tables", headers=headers).json()
    assert tables[0]["seats_used"] == 4
    assert tables[0]["over_capacity"] is True


def test_declined_guest_takes_no_seat(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)
    table = _create_table(client, event, headers, capacity=1)
    declined = make_guest(event, rsvp_status="DECLINED", expected_guests=4)

    response = client.post(f"/tables/{table['id']}/guests", json={"guest_ids": [declined.id]}, headers=headers)
    assert response.json()["capacity_warning"] is False


def test_guest_from_other_event_is_rejected(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    other = make_event(owner, title="Other")
    headers = auth_headers(owner)
    table = _create_table(client, event, headers)
    stranger = make_guest(other)

    response = client.post(f"/tables/{table['id']}/guests", json={"guest_ids": [stranger.id]}, headers=headers)
    assert response.status_code == 400


def test_move_and_unseat_guest(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)
    first = _create_table(client, event, headers, name="First")
    second = _create_table(client, event, headers, name="Second")
    guest = make_guest(event)

    client.post(f"/tables/{first['id']}/guests", json={"guest_ids": [guest.id]}, headers=headers)
    response = client.post(f"/seating/guests/{guest.id}/move", json={"to_table_id": second["id"]}, headers=headers)
    assert response.status_code == 200

    tables = {t["name"]: t for t in client.get(f"/events/{event.id}/tables", headers=headers).json()}
    assert tables["First"]["guests"] == []
    assert [g["guest_id"] for g in tables["Second"]["guests"]] == [guest.id]

    assert client.delete(f"/seating/guests/{guest.id}", headers=headers).status_code == 200
    unseated = client.get(f"/events/{event.id}/seating/unseated", headers=headers).json()
    assert [g["id"] for g in unseated] == [guest.id]
    assert client.delete(f"/seating/guests/{guest.id}", headers=headers).status_code == 404


def test_seating_stats(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)
    table = _create_table(client, event, headers, capacity=10)
    seated = make_guest(event, rsvp_status="ACCEPTED", rsvp_count=3)
    make_guest(event, expected_guests=2)
    client.post(f"/tables/{table['id']}/guests", json={"guest_ids": [seated.id]}, headers=headers)

    stats = client.get(f"/events/{event.id}/seating/stats", headers=headers).json()

    assert stats == {
        "total_tables": 1,
        "total_capacity": 10,
        "seated_guests_count": 1,
        "unseated_guests_count": 1,
        "seated_by_party_size": 3,
        "unseated_by_party_size": 2,
        "capacity_used": 3,
        "capacity_remaining": 7,
    }


def test_auto_arrange_groups_guests(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)
    _create_table(client, event, headers, name="Old table")
    for i in range(3):
        make_guest(event, name=f"Family {i}", group_name="family", rsvp_status="ACCEPTED", rsvp_count=1)
    make_guest(event, name="Friend", group_name="friends")
    make_guest(event, name="Declined", group_name="friends", rsvp_status="DECLINED")

    response = client.post(
        f"/events/{event.id}/seating/auto-arrange", json={"table_size": 2}, headers=headers
    )

    assert response.json() == {"success": True, "tables_created": 3, "guests_seated": 4}
    tables = client.get(f"/events/{event.id}/tables", headers=headers).json()
    assert [t["name"] for t in tables] == ["1 - משפחה", "2 - משפחה", "3 - חברים"]
    assert [len(t["guests"]) for t in tables] == [2, 1, 1]
    assert tables[1]["position_x"] > tables[0]["position_x"]


def test_auto_arrange_with_no_matches(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    make_guest(event, rsvp_status="DECLINED")
    response = client.post(f"/events/{event.id}/seating/auto-arrange", json={}, headers=auth_headers(owner))
    assert response.status_code == 400


def test_venue_blocks_crud(client, owner, make_event, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)

    created = client.post(
        f"/events/{event.id}/venue-blocks", json={"name": "Dance floor", "type": "DANCE_FLOOR"}, headers=headers
    )
    assert created.status_code == 201
    block_id = created.json()["id"]

    updated = client.put(f"/venue-blocks/{block_id}", json={"width": 300, "color": "#ff0000"}, headers=headers)
    assert updated.json()["width"] == 300
    assert updated.json()["color"] == "#ff0000"

    assert client.post(
        f"/events/{event.id}/venue-blocks", json={"name": "Pool", "type": "POOL"}, headers=headers
    ).status_code == 422

    assert client.delete(f"/venue-blocks/{block_id}", headers=headers).status_code == 200
    assert client.get(f"/events/{event.id}/venue-blocks", headers=headers).json() == []


def test_seat_arrangements_endpoint(client):
    body = client.get("/seating/arrangements", params={"shape": "rectangle", "capacity": 6}).json()
    assert body["arrangements"] == ["even", "bride-side", "sides-only"]
    assert len(body["seats"]) == 6

