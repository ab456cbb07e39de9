import json
from datetime import datetime

from rsvp_manager import storage
from rsvp_manager.domain.archives.service import create_event_snapshot, get_archive_key
from rsvp_manager.models import WeddingEvent
from rsvp_manager.models_archive import EventArchive
from rsvp_manager.models_seating import TableAssignment, WeddingTable
from rsvp_manager.models_suppliers import Supplier, SupplierPayment
from rsvp_manager.models_tasks import WeddingTask
from rsvp_manager.models_transportation import TransportationRegistration


def _populated_event(db, owner, make_event, make_guest):
    event = make_event(owner)
    accepted = make_guest(event, name="Avi", rsvp_status="ACCEPTED", rsvp_count=3)
    make_guest(event, name="Dana", phone="+972502222222", rsvp_status="DECLINED")
    make_guest(event, name="Noa", phone=None)

    table = WeddingTable(event_id=event.id, name="Family", capacity=10)
    table.assignments = [TableAssignment(guest_id=accepted.id, seat_number=1)]
    supplier = Supplier(event_id=event.id, name="Hall", category="VENUE", agreed_price=20000)
    supplier.payments = [SupplierPayment(amount=5000, method="CASH", paid_at=datetime.utcnow())]
    db.add_all(
        [
            table,
            supplier,
            WeddingTask(event_id=event.id, title="Book DJ", status="DONE"),
            WeddingTask(event_id=event.id, title="Seating", status="TODO"),
            TransportationRegistration(
                event_id=event.id, guest_id=accepted.id, full_name="Avi", phone_number="+972501234567", location="Haifa"
            ),
        ]
    )
    db.commit()
    db.refresh(event)
    return event


def test_snapshot_contents(db, owner, make_event, make_guest):
    event = _populated_event(db, owner, make_event, make_guest)

    snapshot = create_event_snapshot(event)

    assert snapshot["event"]["owner"]["email"] == "owner@example.com"
    assert snapshot["event"]["rsvp_settings"]["welcome_title"] == event.title
    assert {g["name"] for g in snapshot["guests"]} == {"Avi", "Dana", "Noa"}
    avi = next(g for g in snapshot["guests"] if g["name"] == "Avi")
    assert avi["table_assignment"] == {"table_id": snapshot["tables"][0]["id"], "table_name": "Family", "seat_number": 1}

    stats = snapshot["statistics"]
    assert stats["total_guests"] == 3
    assert stats["accepted_count"] == 1
    assert stats["declined_count"] == 1
    assert stats["pending_count"] == 1
    assert stats["total_expected_attendees"] == 3
    assert stats["total_supplier_cost"] == 20000
    assert stats["total_paid_amount"] == 5000
    assert (stats["total_tasks"], stats["completed_tasks"]) == (2, 1)
    assert stats["transportation_registrations"] == 1
    assert snapshot["transportation_registrations"][0]["guest_id"] == avi["id"]
    assert snapshot["transportation_registrations"][0]["location"] == "Haifa"

    assert snapshot["archive_metadata"]["version"] == "2.0"
    assert snapshot["archive_metadata"]["original_event_id"] == event.id
    json.dumps(snapshot)


def test_archive_requires_storage(client, owner, make_event, auth_headers, monkeypatch):
    monkeypatch.setattr(storage, "is_r2_configured", lambda: False)
    event = make_event(owner)

    assert client.post(f"/events/{event.id}/archive", headers=auth_headers(owner)).status_code == 503
    assert client.get("/archives/storage-status", headers=auth_headers(owner)).json()["configured"] is False


def test_archive_uploads_and_deletes_event(client, db, owner, make_event, make_guest, auth_headers, fake_r2):
    event = _populated_event(db, owner, make_event, make_guest)
    event_id = event.id
    headers = auth_headers(owner)

    response = client.post(f"/events/{event_id}/archive", headers=headers)

    assert response.status_code == 200
    archive = response.json()
    key = get_archive_key(owner.id, event_id)
    assert archive["r2_key"] == key == f"archives/events/{owner.id}/{event_id}.json"
    assert archive["guest_count"] == 3
    assert archive["archive_size"] == len(fake_r2[key])

    db.expire_all()
    assert db.query(WeddingEvent).filter(WeddingEvent.id == event_id).first() is None
    assert db.query(WeddingTable).count() == 0

    details = client.get(f"/archives/{archive['id']}", headers=headers).json()
    assert details["archive"]["event_title"] == "Dana & Noam"
    assert len(details["snapshot"]["guests"]) == 3

    download = client.get(f"/archives/{archive['id']}/download", headers=headers).json()
    assert download["url"].startswith(f"https://r2.example.com/{key}")
    assert download["expires_in"] == storage.PRESIGNED_URL_EXPIRATION

    status = client.get("/archives/storage-status", headers=headers).json()
    assert status == {"configured": True, "archive_count": 1, "total_size": len(fake_r2[key])}


def test_closed_event_can_still_be_archived(client, owner, make_event, auth_headers, fake_r2):
    event = make_event(owner, is_archived=True, is_active=False)
    assert client.post(f"/events/{event.id}/archive", headers=auth_headers(owner)).status_code == 200


def test_upload_failure_keeps_event(client, db, owner, make_event, auth_headers, fake_r2, monkeypatch):
    def broken_upload(key, body, content_type="application/octet-stream"):
        raise RuntimeError("bucket unavailable")

    monkeypatch.setattr(storage, "upload_bytes", broken_upload)
    event = make_event(owner)

    response = client.post(f"/events/{event.id}/archive", headers=auth_headers(owner))

    assert response.status_code == 502
    db.expire_all()
    assert db.query(WeddingEvent).filter(WeddingEvent.id == event.id).first() is not None
    assert db.query(EventArchive).count() == 0


def test_only_owner_can_archive(client, owner, make_user, make_event, auth_headers, fake_r2):
    event = make_event(owner)
    assert client.post(f"/events/{event.id}/archive", headers=auth_headers(make_user())).status_code == 404


def test_archives_are_private_and_deletable(client, owner, make_user, make_event, auth_headers, fake_r2):
    event = make_event(owner)
    headers = auth_headers(owner)
    archive_id = client.post(f"/events/{event.id}/archive", headers=headers).json()["id"]

    other = auth_headers(make_user())
    assert client.get(f"/archives/{archive_id}", headers=other).status_code == 404
    assert client.get("/archives", headers=other).json() == []

    assert [a["id"] for a in client.get("/archives", headers=headers).json()] == [archive_id]
    assert client.delete(f"/archives/{archive_id}", headers=headers).status_code == 200
    assert fake_r2 == {}
    assert client.get("/archives", headers=headers).json() == []


def test_corrupt_archive_download(client, owner, make_event, auth_headers, fake_r2):
    event = make_event(owner)
    headers = auth_headers(owner)
    archive_id = client.post(f"/events/{event.id}/archive", headers=headers).json()["id"]
    fake_r2[get_archive_key(owner.id, event.id)] = b"not json"

    assert client.get(f"/archives/{archive_id}", headers=headers).status_code == 502

