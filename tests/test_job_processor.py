import asyncio
from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from rsvp_manager import config
from rsvp_manager.database import SessionLocal
from rsvp_manager.domain.messaging import job_processor
from rsvp_manager.models import NotificationLog
from rsvp_manager.models_messaging import BulkMessageJob, BulkMessageJobItem


def run(coro):
    return asyncio.run(coro)


def _make_due(db, job):
    """Skip the retry backoff"""
    db.query(BulkMessageJobItem).filter(BulkMessageJobItem.job_id == job.id).update(
        {BulkMessageJobItem.next_attempt_at: datetime.utcnow() - timedelta(seconds=1)}
    )
    db.commit()


def test_invite_skips_guests_without_phone_and_already_invited(db, owner, make_event, make_guest):
    event = make_event(owner)
    fresh = make_guest(event, name="Fresh")
    make_guest(event, name="No phone", phone=None)
    invited = make_guest(event, name="Invited", phone="+972501111111")
    db.add(NotificationLog(event_id=event.id, guest_id=invited.id, type="INVITE", status="DELIVERED"))
    db.commit()

    job = job_processor.create_bulk_job(db, event, owner, "INVITE")

    assert job.total_count == 1
    assert [item.guest_id for item in job.items] == [fresh.id]
    assert job.status == "PENDING"


def test_failed_invite_is_still_eligible(db, owner, make_event, make_guest):
    event = make_event(owner)
    guest = make_guest(event)
    db.add(NotificationLog(event_id=event.id, guest_id=guest.id, type="INVITE", status="FAILED"))
    db.commit()

    assert [g.id for g in job_processor.get_eligible_guests(db, event.id, "INVITE")] == [guest.id]


def test_reminder_targets_pending_or_unanswered(db, owner, make_event, make_guest):
    event = make_event(owner)
    no_rsvp = make_guest(event, name="A", phone="+972501111111")
    pending = make_guest(event, name="B", phone="+972502222222", rsvp_status="PENDING")
    make_guest(event, name="C", phone="+972503333333", rsvp_status="ACCEPTED", rsvp_count=2)
    make_guest(event, name="D", phone="+972504444444", rsvp_status="DECLINED")

    eligible = job_processor.get_eligible_guests(db, event.id, "REMINDER")
    assert {g.id for g in eligible} == {no_rsvp.id, pending.id}


def test_guest_ids_narrow_the_selection(db, owner, make_event, make_guest):
    event = make_event(owner)
    first = make_guest(event, phone="+972501111111")
    make_guest(event, phone="+972502222222")

    job = job_processor.create_bulk_job(db, event, owner, "INVITE", guest_ids=[first.id])
    assert job.total_count == 1


def test_no_eligible_guests_is_rejected(db, owner, make_event, make_guest):
    event = make_event(owner)
    make_guest(event, phone=None)

    with pytest.raises(HTTPException) as exc:
        job_processor.create_bulk_job(db, event, owner, "INVITE")
    assert exc.value.status_code == 400


def test_chunk_sends_everything_and_completes(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    make_guest(event, phone="+972501111111")
    make_guest(event, phone="+972502222222")
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    service = fake_notifier()

    result = run(job_processor.process_job_chunk(db, job.id, service=service))

    assert result == {"processed": 2, "remaining": 0, "completed": True}
    db.refresh(job)
    assert job.status == "COMPLETED"
    assert job.sent_count == 2
    assert job.processed_count == 2
    assert job.started_at is not None and job.completed_at is not None
    assert all(item.provider_message_id.startswith("SMINVITE") for item in job.items)
    assert [kind for kind, _ in service.sent] == ["INVITE", "INVITE"]


def test_chunk_size_limits_work_per_call(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    for i in range(3):
        make_guest(event, phone=f"+97250111111{i}")
    job = job_processor.create_bulk_job(db, event, owner, "REMINDER")

    result = run(job_processor.process_job_chunk(db, job.id, chunk_size=2, service=fake_notifier()))

    assert result == {"processed": 2, "remaining": 1, "completed": False}
    db.refresh(job)
    assert job.status == "PROCESSING"


def test_failure_schedules_retry_with_backoff(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    guest = make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")

    before = datetime.utcnow()
    result = run(job_processor.process_job_chunk(db, job.id, service=fake_notifier(fail_for=[guest.id])))

    assert result == {"processed": 1, "remaining": 1, "completed": False}
    item = db.query(BulkMessageJobItem).filter(BulkMessageJobItem.job_id == job.id).one()
    assert item.status == "PENDING"
    assert item.attempts == 1
    assert item.error == "Recipient opted out"
    assert item.next_attempt_at >= before + timedelta(seconds=5)

    # Not due yet, nothing is picked up
    again = run(job_processor.process_job_chunk(db, job.id, service=fake_notifier(fail_for=[guest.id])))
    assert again["processed"] == 0


def test_item_fails_permanently_after_max_attempts(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    guest = make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    service = fake_notifier(fail_for=[guest.id])

    for _ in range(job_processor.RETRY_CONFIG["max_attempts"]):
        _make_due(db, job)
        result = run(job_processor.process_job_chunk(db, job.id, service=service))

    assert result["completed"] is True
    item = db.query(BulkMessageJobItem).filter(BulkMessageJobItem.job_id == job.id).one()
    assert item.status == "FAILED"
    assert item.attempts == 3
    db.refresh(job)
    assert job.status == "FAILED"
    assert job.failed_count == 1


def test_retry_then_success(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    guest = make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")

    run(job_processor.process_job_chunk(db, job.id, service=fake_notifier(fail_for=[guest.id])))
    _make_due(db, job)
    result = run(job_processor.process_job_chunk(db, job.id, service=fake_notifier()))

    assert result["completed"] is True
    db.refresh(job)
    assert job.status == "COMPLETED"
    assert job.sent_count == 1
    assert job.items[0].attempts == 2


def test_provider_exception_counts_as_failure(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    guest = make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")

    run(job_processor.process_job_chunk(db, job.id, service=fake_notifier(raise_for=[guest.id])))

    item = db.query(BulkMessageJobItem).filter(BulkMessageJobItem.job_id == job.id).one()
    assert item.status == "PENDING"
    assert "provider exploded" in item.error


def test_guest_without_phone_is_skipped(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    guest = make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    guest.phone_number = None
    db.commit()

    service = fake_notifier()
    result = run(job_processor.process_job_chunk(db, job.id, service=service))

    assert result["completed"] is True
    assert service.sent == []
    db.refresh(job)
    assert job.status == "COMPLETED"
    assert job.skipped_count == 1


def test_finished_job_is_not_processed(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    job_processor.cancel_bulk_job(db, job)

    service = fake_notifier()
    result = run(job_processor.process_job_chunk(db, job.id, service=service))

    assert result == {"processed": 0, "remaining": 0, "completed": True}
    assert service.sent == []


def test_cancel_skips_pending_items(db, owner, make_event, make_guest):
    event = make_event(owner)
    make_guest(event, phone="+972501111111")
    make_guest(event, phone="+972502222222")
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")

    job_processor.cancel_bulk_job(db, job)

    db.refresh(job)
    assert job.status == "CANCELLED"
    assert job.skipped_count == 2
    assert {item.status for item in job.items} == {"SKIPPED"}


def test_cannot_cancel_completed_job(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    run(job_processor.process_job_chunk(db, job.id, service=fake_notifier()))

    with pytest.raises(HTTPException) as exc:
        job_processor.cancel_bulk_job(db, job)
    assert exc.value.status_code == 400


def test_job_status_reports_progress_and_failures(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    ok = make_guest(event, name="Ok", phone="+972501111111")
    bad = make_guest(event, name="Bad", phone="+972502222222")
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    service = fake_notifier(fail_for=[bad.id])

    for _ in range(3):
        run(job_processor.process_job_chunk(db, job.id, service=service))
        _make_due(db, job)

    status = job_processor.get_job_status(db, job)
    assert status["progress"] == 100.0
    assert status["sent_count"] == 1
    assert status["failed_count"] == 1
    assert status["status"] == "COMPLETED"
    assert [f["guest_name"] for f in status["recent_failures"]] == ["Bad"]
    assert ok.id not in [f["guest_id"] for f in status["recent_failures"]]


def test_pending_jobs_loop_stops_at_first_incomplete_job(db, owner, make_event, make_guest, fake_notifier, monkeypatch):
    monkeypatch.setattr(config, "BULK_CHUNK_SIZE", 1)
    event = make_event(owner)
    make_guest(event, phone="+972501111111")
    make_guest(event, phone="+972502222222")
    first = job_processor.create_bulk_job(db, event, owner, "INVITE")
    second = job_processor.create_bulk_job(db, event, owner, "REMINDER")

    result = run(job_processor.process_pending_jobs(db, service=fake_notifier()))

    assert result == {"jobs_processed": 1, "messages_processed": 1}
    db.refresh(second)
    assert second.status == "PENDING"
    assert [j.id for j in job_processor.get_pending_jobs(db)] == [first.id, second.id]


def test_bulk_send_stats(db, owner, make_event, make_guest):
    event = make_event(owner)
    make_guest(event, phone="+972501111111")
    make_guest(event, phone=None)
    make_guest(event, phone="+972502222222", rsvp_status="ACCEPTED", rsvp_count=1)

    stats = job_processor.get_bulk_send_stats(db, event.id, "REMINDER")
    assert stats == {"type": "REMINDER", "total_guests": 3, "guests_with_phone": 2, "eligible": 1}


def test_list_jobs_newest_first(db, owner, make_event, make_guest):
    event = make_event(owner)
    make_guest(event)
    first = job_processor.create_bulk_job(db, event, owner, "INVITE")
    second = job_processor.create_bulk_job(db, event, owner, "REMINDER")

    assert [j.id for j in job_processor.list_jobs(db, event.id)] == [second.id, first.id]
    assert isinstance(first, BulkMessageJob)


def test_overlapping_runs_send_each_guest_once(db, owner, make_event, make_guest, fake_notifier, monkeypatch):
    monkeypatch.setattr(config, "BULK_MESSAGE_DELAY_SECONDS", 0.01)
    event = make_event(owner)
    guests = [make_guest(event, phone=f"+97250111111{i}") for i in range(4)]
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    service = fake_notifier()
    other = SessionLocal()

    async def both():
        return await asyncio.gather(
            job_processor.process_job_chunk(db, job.id, service=service),
            job_processor.process_pending_jobs(other, service=service),
        )

    try:
        chunk, cron = run(both())
    finally:
        other.close()

    assert sorted(guest_id for _, guest_id in service.sent) == sorted(g.id for g in guests)
    assert chunk["processed"] + cron["messages_processed"] == 4
    db.refresh(job)
    assert job.status == "COMPLETED"
    assert job.sent_count == 4
    assert all(item.attempts == 1 for item in job.items)


def test_item_taken_by_another_run_is_not_sent(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    item = job.items[0]
    db.query(BulkMessageJobItem).filter(BulkMessageJobItem.id == item.id).update(
        {BulkMessageJobItem.status: "PROCESSING", BulkMessageJobItem.claimed_at: datetime.utcnow()}
    )
    db.commit()
    service = fake_notifier()

    assert run(job_processor.process_item(db, item, job, service)) is None
    assert service.sent == []


def test_stale_processing_item_is_released_and_sent(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    guest = make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    db.query(BulkMessageJobItem).filter(BulkMessageJobItem.job_id == job.id).update(
        {
            BulkMessageJobItem.status: "PROCESSING",
            BulkMessageJobItem.attempts: 1,
            BulkMessageJobItem.claimed_at: datetime.utcnow() - timedelta(seconds=config.BULK_ITEM_STALE_SECONDS + 60),
        }
    )
    job.status = "PROCESSING"
    db.commit()
    service = fake_notifier()

    run(job_processor.process_pending_jobs(db, service=service))

    assert service.sent == [("INVITE", guest.id)]
    db.refresh(job)
    assert job.status == "COMPLETED"
    assert job.items[0].attempts == 2


def test_recently_claimed_item_is_left_alone(db, owner, make_event, make_guest):
    event = make_event(owner)
    make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    db.query(BulkMessageJobItem).filter(BulkMessageJobItem.job_id == job.id).update(
        {BulkMessageJobItem.status: "PROCESSING", BulkMessageJobItem.claimed_at: datetime.utcnow()}
    )
    db.commit()

    assert job_processor.release_stale_items(db) == 0


def test_stale_item_out_of_attempts_fails_the_job(db, owner, make_event, make_guest, fake_notifier):
    event = make_event(owner)
    make_guest(event)
    job = job_processor.create_bulk_job(db, event, owner, "INVITE")
    db.query(BulkMessageJobItem).filter(BulkMessageJobItem.job_id == job.id).update(
        {
            BulkMessageJobItem.status: "PROCESSING",
            BulkMessageJobItem.attempts: job_processor.RETRY_CONFIG["max_attempts"],
            BulkMessageJobItem.claimed_at: datetime.utcnow() - timedelta(hours=1),
        }
    )
    job.status = "PROCESSING"
    db.commit()
    service = fake_notifier()

    run(job_processor.process_pending_jobs(db, service=service))

    assert service.sent == []
    db.refresh(job)
    assert job.status == "FAILED"
    assert job.failed_count == 1
    assert job.items[0].error == "Worker stopped before the send finished"
