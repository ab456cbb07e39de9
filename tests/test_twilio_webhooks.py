import asyncio

import pytest

from rsvp_manager import config
from rsvp_manager.domain.messaging import job_processor
from rsvp_manager.models import GuestRsvp, NotificationLog
from rsvp_manager.models_messaging import BulkMessageJobItem, MessagingProviderSettings
from rsvp_manager.security_utils import encrypt_credential
from rsvp_manager.webhook_security import compute_twilio_signature

STATUS_URL = "/api/twilio/status"
WHATSAPP_URL = "/api/twilio/whatsapp"


def _log(db, guest, sid, message_type="INVITE", status="SENT"):
    log = NotificationLog(
        event_id=guest.event_id, guest_id=guest.id, type=message_type, status=status, provider_message_id=sid
    )
    db.add(log)
    db.commit()
    return log


def _rsvp(db, guest):
    return db.query(GuestRsvp).filter(GuestRsvp.guest_id == guest.id).first()


def test_status_callback_marks_delivered(client, db, owner, make_event, make_guest):
    guest = make_guest(make_event(owner))
    log = _log(db, guest, "SM100")

    response = client.post(STATUS_URL, data={"MessageSid": "SM100", "MessageStatus": "read"})

    assert response.json() == {"received": True, "found": True, "status": "DELIVERED"}
    db.refresh(log)
    assert log.twilio_status == "read"
    assert log.delivered_at is not None


def test_intermediate_status_keeps_current_status(client, db, owner, make_event, make_guest):
    guest = make_guest(make_event(owner))
    log = _log(db, guest, "SM101")

    client.post(STATUS_URL, data={"MessageSid": "SM101", "MessageStatus": "sent"})

    db.refresh(log)
    assert log.status == "SENT"
    assert log.twilio_status == "sent"


def test_failed_status_fails_bulk_item(client, db, owner, make_event, make_guest):
    event = make_event(owner)
    guest = make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    item = job.items[0]
    item.status = "SENT"
    item.provider_message_id = "SM102"
    db.commit()
    log = _log(db, guest, "SM102")

    response = client.post(
        STATUS_URL, data={"MessageSid": "SM102", "MessageStatus": "undelivered", "ErrorCode": "30006"}
    )

    assert response.json()["status"] == "UNDELIVERED"
    db.refresh(log)
    assert log.error_code == "30006"
    assert log.error_message == "Landline or unreachable carrier"
    item = db.query(BulkMessageJobItem).filter(BulkMessageJobItem.provider_message_id == "SM102").one()
    assert item.status == "FAILED"
    assert item.error == "Landline or unreachable carrier"
    assert item.processed_at is not None


def test_failed_status_updates_job_counters(client, db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    first = make_guest(event, phone="+972501111111")
    make_guest(event, phone="+972502222222")
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    asyncio.run(job_processor.process_job_chunk(db, job.id, service=fake_notifier()))
    db.refresh(job)
    assert (job.status, job.sent_count, job.failed_count) == ("COMPLETED", 2, 0)
    _log(db, first, f"SMINVITE{first.id}")

    client.post(STATUS_URL, data={"MessageSid": f"SMINVITE{first.id}", "MessageStatus": "failed"})

    db.refresh(job)
    assert job.sent_count == 1
    assert job.failed_count == 1
    assert job.processed_count == 2
    assert job_processor.get_job_status(db, job)["recent_failures"][0]["guest_id"] == first.id


def test_unknown_message_is_acknowledged(client):
    response = client.post(STATUS_URL, data={"MessageSid": "SM-unknown", "MessageStatus": "delivered"})
    assert response.json() == {"received": True, "found": False}


def test_missing_message_sid(client):
    assert client.post(STATUS_URL, data={"MessageStatus": "delivered"}).status_code == 400


def test_strict_mode_requires_valid_signature(client, db, owner, make_event, make_guest, monkeypatch):
    monkeypatch.setattr(config, "TWILIO_WEBHOOK_STRICT", True)
    db.add(MessagingProviderSettings(account_sid=encrypt_credential("AC1"), auth_token=encrypt_credential("tok")))
    db.commit()
    guest = make_guest(make_event(owner))
    _log(db, guest, "SM103")
    params = {"MessageSid": "SM103", "MessageStatus": "delivered"}

    assert client.post(STATUS_URL, data=params).status_code == 403
    assert client.post(STATUS_URL, data=params, headers={"X-Twilio-Signature": "bogus"}).status_code == 403

    signature = compute_twilio_signature("http://testserver" + STATUS_URL, params, "tok")
    response = client.post(STATUS_URL, data=params, headers={"X-Twilio-Signature": signature})
    assert response.json()["found"] is True


@pytest.mark.parametrize("payload,status", [("accept", "ACCEPTED"), ("decline", "DECLINED"), ("maybe", "MAYBE")])
def test_button_reply_sets_rsvp(client, db, owner, make_event, make_guest, payload, status):
    guest = make_guest(make_event(owner))
    _log(db, guest, "SM200")

    response = client.post(
        WHATSAPP_URL,
        data={"From": "whatsapp:+972501234567", "ButtonPayload": payload, "OriginalRepliedMessageSid": "SM200"},
    )

    assert response.json() == {"received": True}
    rsvp = _rsvp(db, guest)
    assert rsvp.status == status
    assert rsvp.guest_count == (1 if status == "ACCEPTED" else 0)


def test_reply_matched_by_phone_variation(client, db, owner, make_event, make_guest):
    event = make_event(owner)
    guest = make_guest(event, phone="0501234567")
    _log(db, guest, "SM201", message_type="REMINDER", status="DELIVERED")

    client.post(WHATSAPP_URL, data={"From": "whatsapp:+972501234567", "ButtonPayload": "Accept"})

    assert _rsvp(db, guest).status == "ACCEPTED"


def test_reply_skips_guests_whose_send_failed(client, db, owner, make_event, make_guest):
    new_guest = make_guest(make_event(owner, title="New"))
    old_guest = make_guest(make_event(owner, title="Old"))
    _log(db, new_guest, "SM202")
    _log(db, old_guest, "SM203", status="FAILED")

    client.post(WHATSAPP_URL, data={"From": "whatsapp:+972501234567", "ButtonPayload": "decline"})

    assert _rsvp(db, new_guest).status == "DECLINED"
    assert _rsvp(db, old_guest) is None


def test_guest_count_list_reply(client, db, owner, make_event, make_guest):
    guest = make_guest(make_event(owner), rsvp_status="ACCEPTED", rsvp_count=1)
    _log(db, guest, "SM204")
    data = {"From": "whatsapp:+972501234567", "OriginalRepliedMessageSid": "SM204"}

    client.post(WHATSAPP_URL, data={**data, "ListId": "4"})
    assert _rsvp(db, guest).guest_count == 4

    client.post(WHATSAPP_URL, data={**data, "ListId": "11"})
    db.expire_all()
    assert _rsvp(db, guest).guest_count == 4


def test_guest_count_ignored_without_acceptance(client, db, owner, make_event, make_guest):
    guest = make_guest(make_event(owner), rsvp_status="PENDING")
    _log(db, guest, "SM205")

    client.post(WHATSAPP_URL, data={"From": "whatsapp:+972501234567", "ListId": "3"})

    assert _rsvp(db, guest).guest_count == 0


def test_plain_message_and_unknown_sender(client):
    assert client.post(WHATSAPP_URL, data={"From": "whatsapp:+972509999999", "Body": "hi"}).json() == {
        "received": True
    }
    assert client.post(
        WHATSAPP_URL, data={"From": "whatsapp:+972509999999", "ButtonPayload": "accept"}
    ).json() == {"received": True}
