from datetime import datetime, timedelta

from rsvp_manager.models import EventCollaborator, WeddingEvent, Workspace


def _event_payload(**fields):
    payload = {
        "title": "Dana & Noam",
        "date_time": (datetime.utcnow() + timedelta(days=90)).isoformat(),
        "location": "Haifa",
    }
    payload.update(fields)
    return payload


def test_create_event_lands_in_default_workspace(client, db, owner, auth_headers):
    response = client.post("/events", json=_event_payload(), headers=auth_headers(owner))

    assert response.status_code == 201
    body = response.json()
    assert body["role"] == "OWNER"
    assert body["guest_count"] == 0
    assert body["locale"] == "he"

    workspace = db.query(Workspace).filter(Workspace.owner_id == owner.id).one()
    assert workspace.is_default is True
    assert body["workspace_id"] == workspace.id

    event = db.query(WeddingEvent).filter(WeddingEvent.id == body["id"]).one()
    assert event.rsvp_settings.welcome_title == "Dana & Noam"


def test_free_plan_event_limit(client, make_user, auth_headers):
    free_owner = make_user(plan="FREE")
    headers = auth_headers(free_owner)

    assert client.post("/events", json=_event_payload(), headers=headers).status_code == 201
    response = client.post("/events", json=_event_payload(title="Second"), headers=headers)

    assert response.status_code == 403
    assert response.json()["detail"]["limit_reached"] is True


def test_account_without_owner_role_cannot_create_events(client, make_user, auth_headers):
    member = make_user(roles=["ROLE_MEMBER"])
    assert client.post("/events", json=_event_payload(), headers=auth_headers(member)).status_code == 403


def test_list_events_with_counts(client, owner, make_event, make_guest, auth_headers):
    event = make_event(owner)
    make_guest(event, rsvp_status="ACCEPTED", rsvp_count=2)
    make_guest(event)
    make_event(owner, title="Archived", is_archived=True)

    events = client.get("/events", headers=auth_headers(owner)).json()

    assert [e["title"] for e in events] == ["Dana & Noam"]
    assert events[0]["guest_count"] == 2
    assert events[0]["rsvp_counts"] == {"ACCEPTED": 1, "PENDING": 1}

    with_archived = client.get("/events", params={"include_archived": True}, headers=auth_headers(owner)).json()
    assert len(with_archived) == 2


def test_update_and_delete_event(client, owner, make_event, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)

    response = client.put(f"/events/{event.id}", json={"venue": "Garden", "locale": "en"}, headers=headers)
    assert response.json()["venue"] == "Garden"
    assert response.json()["locale"] == "en"
    assert client.put(f"/events/{event.id}", json={"title": " "}, headers=headers).status_code == 400

    assert client.delete(f"/events/{event.id}", headers=headers).status_code == 200
    assert client.get(f"/events/{event.id}", headers=headers).status_code == 404


def test_archived_event_is_hidden_except_from_platform_owner(client, owner, admin, make_event, auth_headers):
    event = make_event(owner, is_archived=True)

    assert client.get(f"/events/{event.id}", headers=auth_headers(owner)).status_code == 404
    assert client.get(f"/events/{event.id}", headers=auth_headers(admin)).status_code == 200


def test_invitation_flow(client, db, owner, make_user, make_event, auth_headers):
    event = make_event(owner)
    helper = make_user(email="helper@example.com")

    invite = client.post(
        f"/events/{event.id}/collaborators",
        json={"email": "Helper@Example.com", "role": "VIEWER"},
        headers=auth_headers(owner),
    )
    assert invite.status_code == 201
    token = invite.json()["invite_token"]
    assert invite.json()["email"] == "helper@example.com"

    # Not accepted yet
    assert client.get(f"/events/{event.id}", headers=auth_headers(helper)).status_code == 404

    accepted = client.post("/events/invitations/accept", json={"token": token}, headers=auth_headers(helper))
    assert accepted.status_code == 200
    assert accepted.json()["user_id"] == helper.id

    body = client.get(f"/events/{event.id}", headers=auth_headers(helper)).json()
    assert body["role"] == "VIEWER"

    # Tokens are single use
    again = client.post("/events/invitations/accept", json={"token": token}, headers=auth_headers(helper))
    assert again.status_code == 404


def test_invitation_for_other_email_is_refused(client, owner, make_user, make_event, auth_headers):
    event = make_event(owner)
    intruder = make_user(email="intruder@example.com")
    token = client.post(
        f"/events/{event.id}/collaborators", json={"email": "friend@example.com"}, headers=auth_headers(owner)
    ).json()["invite_token"]

    response = client.post("/events/invitations/accept", json={"token": token}, headers=auth_headers(intruder))
    assert response.status_code == 403


def test_invalid_invitation_token(client, owner, auth_headers):
    response = client.post("/events/invitations/accept", json={"token": "garbage"}, headers=auth_headers(owner))
    assert response.status_code == 400


def test_duplicate_and_owner_invites(client, owner, make_event, auth_headers):
    event = make_event(owner)
    headers = auth_headers(owner)

    assert client.post(
        f"/events/{event.id}/collaborators", json={"email": "owner@example.com"}, headers=headers
    ).status_code == 400
    assert client.post(
        f"/events/{event.id}/collaborators", json={"email": "a@example.com"}, headers=headers
    ).status_code == 201
    assert client.post(
        f"/events/{event.id}/collaborators", json={"email": "a@example.com"}, headers=headers
    ).status_code == 409


def _accepted(db, event, user, role="EDITOR"):
    collab = EventCollaborator(
        event_id=event.id, user_id=user.id, email=user.email, role=role, accepted_at=datetime.utcnow()
    )
    db.add(collab)
    db.commit()
    db.refresh(collab)
    return collab


def test_only_owner_manages_collaborators(client, db, owner, make_user, make_event, auth_headers):
    event = make_event(owner)
    editor = make_user()
    collab = _accepted(db, event, editor)

    assert client.post(
        f"/events/{event.id}/collaborators", json={"email": "x@example.com"}, headers=auth_headers(editor)
    ).status_code == 404
    assert client.delete(f"/events/{event.id}", headers=auth_headers(editor)).status_code == 404

    response = client.put(
        f"/events/{event.id}/collaborators/{collab.id}", json={"role": "VIEWER"}, headers=auth_headers(owner)
    )
    assert response.json()["role"] == "VIEWER"

    listed = client.get(f"/events/{event.id}/collaborators", headers=auth_headers(editor)).json()
    assert [c["email"] for c in listed] == [editor.email]
    assert listed[0]["invite_token"] is None

    assert client.delete(
        f"/events/{event.id}/collaborators/{collab.id}", headers=auth_headers(owner)
    ).status_code == 200
    assert client.get(f"/events/{event.id}", headers=auth_headers(editor)).status_code == 404


def test_collaborator_can_leave(client, db, owner, make_user, make_event, auth_headers):
    event = make_event(owner)
    helper = make_user()
    _accepted(db, event, helper)

    assert client.post(f"/events/{event.id}/leave", headers=auth_headers(helper)).status_code == 200
    assert client.post(f"/events/{event.id}/leave", headers=auth_headers(helper)).status_code == 404
