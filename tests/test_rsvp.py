from datetime import datetime, timedelta

from rsvp_manager.models import EventCollaborator, NotificationLog


def test_public_page_needs_no_auth(client, owner, make_event, make_guest):
    event = make_event(owner, title="Dana & Noam")
    guest = make_guest(event, name="Avi", expected_guests=2)

    response = client.get(f"/rsvp/{guest.slug}")

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Avi"
    assert body["expected_guests"] == 2
    assert body["event"]["title"] == "Dana & Noam"
    assert body["rsvp"] is None
    assert body["settings"]["accepting_responses"] is True


def test_unknown_slug_is_404(client):
    assert client.get("/rsvp/nope").status_code == 404


def test_accept_records_count_and_sends_confirmation(client, db, owner, make_event, make_guest):
    event = make_event(owner)
    guest = make_guest(event)

    response = client.post(f"/rsvp/{guest.slug}", json={"status": "ACCEPTED", "guest_count": 3})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["rsvp"]["status"] == "ACCEPTED"
    assert response.json()["rsvp"]["guest_count"] == 3

    logs = db.query(NotificationLog).filter(NotificationLog.guest_id == guest.id).all()
    assert [(log.type, log.status) for log in logs] == [("CONFIRMATION", "SENT")]


def test_accept_without_count_means_one(client, owner, make_event, make_guest):
    guest = make_guest(make_event(owner))
    response = client.post(f"/rsvp/{guest.slug}", json={"status": "ACCEPTED"})
    assert response.json()["rsvp"]["guest_count"] == 1


def test_decline_clears_count_and_can_be_changed(client, owner, make_event, make_guest):
    guest = make_guest(make_event(owner))
    client.post(f"/rsvp/{guest.slug}", json={"status": "ACCEPTED", "guest_count": 4})

    response = client.post(f"/rsvp/{guest.slug}", json={"status": "DECLINED", "guest_count": 4})

    assert response.json()["rsvp"]["status"] == "DECLINED"
    assert response.json()["rsvp"]["guest_count"] == 0


def test_message_is_stripped_of_markup(client, owner, make_event, make_guest):
    guest = make_guest(make_event(owner))
    response = client.post(
        f"/rsvp/{guest.slug}", json={"status": "MAYBE", "message": "<script>x</script><b>Mazal tov</b>"}
    )
    assert "<" not in response.json()["rsvp"]["message"]
    assert "Mazal tov" in response.json()["rsvp"]["message"]


def test_pending_is_not_a_valid_answer(client, owner, make_event, make_guest):
    guest = make_guest(make_event(owner))
    assert client.post(f"/rsvp/{guest.slug}", json={"status": "PENDING"}).status_code == 422
    assert client.post(f"/rsvp/{guest.slug}", json={"status": "ACCEPTED", "guest_count": 51}).status_code == 422


def test_closed_responses_return_410(client, db, owner, make_event, make_guest):
    event = make_event(owner)
    guest = make_guest(event)
    event.rsvp_settings.accepting_responses = False
    db.commit()

    response = client.post(f"/rsvp/{guest.slug}", json={"status": "ACCEPTED"})
    assert response.status_code == 410


def test_past_deadline_returns_410(client, db, owner, make_event, make_guest):
    event = make_event(owner)
    guest = make_guest(event)
    event.rsvp_settings.deadline = datetime.utcnow() - timedelta(hours=1)
    db.commit()

    response = client.post(f"/rsvp/{guest.slug}", json={"status": "DECLINED"})
    assert response.status_code == 410


def test_archived_event_page_is_gone(client, db, owner, make_event, make_guest):
    event = make_event(owner)
    guest = make_guest(event)
    event.is_archived = True
    event.is_active = False
    db.commit()

    assert client.get(f"/rsvp/{guest.slug}").status_code == 410


def test_submissions_are_rate_limited_per_guest(client, owner, make_event, make_guest):
    event = make_event(owner)
    guest = make_guest(event)
    other = make_guest(event, phone="+972509999999")

    for _ in range(30):
        assert client.post(f"/rsvp/{guest.slug}", json={"status": "MAYBE"}).status_code == 200

    assert client.post(f"/rsvp/{guest.slug}", json={"status": "MAYBE"}).status_code == 429
    assert client.post(f"/rsvp/{other.slug}", json={"status": "MAYBE"}).status_code == 200


def test_update_page_settings_sanitizes_html(client, owner, make_event, auth_headers):
    event = make_event(owner)

    response = client.put(
        f"/events/{event.id}/rsvp-settings",
        json={"welcome_message": "<p>Hi</p><script>alert(1)</script>", "theme_color": "#112233"},
        headers=auth_headers(owner),
    )

    assert response.status_code == 200
    assert "<script>" not in response.json()["welcome_message"]
    assert "<p>Hi</p>" in response.json()["welcome_message"]
    assert response.json()["theme_color"] == "#112233"


def test_invalid_theme_color_is_rejected(client, owner, make_event, auth_headers):
    event = make_event(owner)
    response = client.put(
        f"/events/{event.id}/rsvp-settings", json={"theme_color": "red"}, headers=auth_headers(owner)
    )
    assert response.status_code == 422


def test_viewer_can_read_but_not_change_settings(client, db, owner, make_user, make_event, auth_headers):
    event = make_event(owner)
    viewer = make_user(plan="FREE")
    db.add(
        EventCollaborator(
            event_id=event.id, user_id=viewer.id, email=viewer.email, role="VIEWER", accepted_at=datetime.utcnow()
        )
    )
    db.commit()

    assert client.get(f"/events/{event.id}/rsvp-settings", headers=auth_headers(viewer)).status_code == 200
    response = client.put(
        f"/events/{event.id}/rsvp-settings", json={"show_map": False}, headers=auth_headers(viewer)
    )
    assert response.status_code == 404
