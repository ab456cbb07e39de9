from datetime import datetime

from rsvp_manager.models import EventCollaborator


def _add_collaborator(db, event, user, role):
    db.add(EventCollaborator(event_id=event.id, user_id=user.id, email=user.email, role=role, accepted_at=datetime.utcnow()))
    db.commit()


def test_create_guest_normalizes_phone(client, owner, make_event, auth_headers):
    event = make_event(owner)

    response = client.post(
        f"/events/{event.id}/guests",
        json={"name": "Avi", "phone_number": "058-400-3578", "side": "bride", "expected_guests": 2},
        headers=auth_headers(owner),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["phone_number"] == "+972584003578"
    assert body["rsvp"]["status"] == "PENDING"
    assert len(body["slug"]) == 12


def test_duplicate_phone_is_reported(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    existing = make_guest(event, name="Avi", phone="+972584003578")

    response = client.post(
        f"/events/{event.id}/guests",
        json={"name": "Avi's brother", "phone_number": "0584003578"},
        headers=auth_headers(owner),
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "DUPLICATE_PHONE"
    assert detail["duplicate_names"] == ["Avi"]
    assert detail["duplicate_guest_ids"] == [existing.id]


def test_duplicate_phone_can_be_allowed(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    make_guest(event, phone="+972584003578")

    response = client.post(
        f"/events/{event.id}/guests",
        json={"name": "Same phone", "phone_number": "0584003578", "allow_duplicate_phone": True},
        headers=auth_headers(owner),
    )
    assert response.status_code == 201


def test_invalid_side_is_rejected(client, owner, make_event, auth_headers):
    event = make_event(owner)
    response = client.post(
        f"/events/{event.id}/guests", json={"name": "X", "side": "left"}, headers=auth_headers(owner)
    )
    assert response.status_code == 422


def test_import_reports_duplicates(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    make_guest(event, name="Existing", phone="+972501111111")

    response = client.post(
        f"/events/{event.id}/guests/import",
        json={
            "guests": [
                {"name": "A", "phone_number": "050-111-1111"},
                {"name": "B", "phone_number": "0502222222"},
                {"name": "C", "phone_number": "+972502222222"},
            ]
        },
        headers=auth_headers(owner),
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "DUPLICATE_PHONES_IN_IMPORT"
    assert [d["existing_name"] for d in detail["duplicates_with_existing"]] == ["Existing"]
    assert [d["name"] for d in detail["duplicates_within_batch"]] == ["C"]


def test_import_creates_all_guests(client, owner, make_event, auth_headers):
    event = make_event(owner)
    response = client.post(
        f"/events/{event.id}/guests/import",
        json={"guests": [{"name": "A"}, {"name": "B", "phone_number": "0503333333"}]},
        headers=auth_headers(owner),
    )
    assert response.status_code == 201
    assert response.json()["imported"] == 2
    assert len(client.get(f"/events/{event.id}/guests", headers=auth_headers(owner)).json()) == 2


def test_free_plan_guest_limit(client, make_user, make_event, auth_headers):
    free_owner = make_user(plan="FREE")
    event = make_event(free_owner)
    headers = auth_headers(free_owner)

    response = client.post(
        f"/events/{event.id}/guests/import",
        json={"guests": [{"name": f"Guest {i}"} for i in range(50)]},
        headers=headers,
    )
    assert response.status_code == 201

    response = client.post(f"/events/{event.id}/guests", json={"name": "One too many"}, headers=headers)
    assert response.status_code == 403


def test_update_guest_sets_rsvp(client, owner, make_event, make_guest, auth_headers):
    guest = make_guest(make_event(owner))

    response = client.put(
        f"/guests/{guest.id}",
        json={"name": "Renamed", "rsvp_status": "ACCEPTED", "rsvp_guest_count": 3},
        headers=auth_headers(owner),
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"
    assert response.json()["rsvp"]["status"] == "ACCEPTED"
    assert response.json()["rsvp"]["guest_count"] == 3


def test_bulk_rsvp_update_and_stats(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    a = make_guest(event, phone="+972501111111", expected_guests=2)
    b = make_guest(event, phone=None, expected_guests=3)
    make_guest(event, phone="+972502222222")
    headers = auth_headers(owner)

    response = client.post(
        "/guests/rsvp-status", json={"guest_ids": [a.id, b.id], "status": "ACCEPTED", "guest_count": 2}, headers=headers
    )
    assert response.json() == {"success": True, "updated": 2}

    stats = client.get(f"/events/{event.id}/guests/stats", headers=headers).json()
    assert stats["total_guests"] == 3
    assert stats["by_status"]["ACCEPTED"] == 2
    assert stats["by_status"]["PENDING"] == 1
    assert stats["expected_heads"] == 6
    assert stats["confirmed_heads"] == 4
    assert stats["with_phone"] == 2


def test_viewer_cannot_add_or_delete(client, db, owner, make_user, make_event, make_guest, auth_headers):
    event = make_event(owner)
    guest = make_guest(event)
    viewer = make_user(plan="FREE")
    _add_collaborator(db, event, viewer, "VIEWER")
    headers = auth_headers(viewer)

    assert client.get(f"/events/{event.id}/guests", headers=headers).status_code == 200
    assert client.post(f"/events/{event.id}/guests", json={"name": "X"}, headers=headers).status_code == 404
    assert client.post("/guests/delete", json={"guest_ids": [guest.id]}, headers=headers).status_code == 403
    assert client.delete(f"/guests/{guest.id}", headers=headers).status_code == 404


def test_editor_can_delete(client, db, owner, make_user, make_event, make_guest, auth_headers):
    event = make_event(owner)
    guest = make_guest(event)
    editor = make_user(plan="FREE")
    _add_collaborator(db, event, editor, "EDITOR")

    response = client.delete(f"/guests/{guest.id}", headers=auth_headers(editor))

    assert response.status_code == 200
    assert client.get(f"/guests/{guest.id}", headers=auth_headers(owner)).status_code == 404


def test_outsider_sees_404(client, owner, make_user, make_event, make_guest, auth_headers):
    guest = make_guest(make_event(owner))
    outsider = make_user()
    assert client.get(f"/guests/{guest.id}", headers=auth_headers(outsider)).status_code == 404


def test_missing_token_is_401(client, owner, make_event):
    event = make_event(owner)
    assert client.get(f"/events/{event.id}/guests").status_code in (401, 403)
