import os

# Configure before the app modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ.pop("REDIS_URL", None)

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from rsvp_manager import config, storage  # noqa: E402
from rsvp_manager.database import Base, SessionLocal, engine  # noqa: E402
from rsvp_manager.main import app  # noqa: E402
from rsvp_manager.models import (  # noqa: E402
    ROLE_PLATFORM_OWNER,
    ROLE_WEDDING_OWNER,
    Guest,
    GuestRsvp,
    RsvpPageSettings,
    User,
    WeddingEvent,
)
from rsvp_manager.rate_limiter import reset_rate_limits  # noqa: E402
from rsvp_manager.security_utils import create_access_token  # noqa: E402
from rsvp_manager.shared.validators import generate_guest_slug  # noqa: E402
from rsvp_manager.services.notification_service import NotificationResult  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema(monkeypatch):
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_rate_limits()
    monkeypatch.setattr(config, "BULK_MESSAGE_DELAY_SECONDS", 0)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(plan="BUSINESS", roles=None, status="ACTIVE", email=None):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            hashed_password="not-a-real-hash",
            roles=roles or [ROLE_WEDDING_OWNER],
            status=status,
            plan=plan,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def owner(make_user):
    return make_user(email="owner@example.com")


@pytest.fixture
def admin(make_user):
    return make_user(roles=[ROLE_PLATFORM_OWNER], email="admin@example.com")


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture
def make_event(db):
    def _make(user, title="Dana & Noam", days_ahead=60, **fields):
        event = WeddingEvent(
            owner_id=user.id,
            title=title,
            date_time=datetime.utcnow() + timedelta(days=days_ahead),
            location="Tel Aviv",
            **fields,
        )
        event.rsvp_settings = RsvpPageSettings(welcome_title=title)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    return _make


@pytest.fixture
def make_guest(db):
    def _make(event, name="Guest", phone="+972501234567", rsvp_status=None, rsvp_count=0, **fields):
        guest = Guest(
            event_id=event.id,
            name=name,
            phone_number=phone,
            slug=generate_guest_slug(),
            **fields,
        )
        if rsvp_status:
            guest.rsvp = GuestRsvp(status=rsvp_status, guest_count=rsvp_count)
        db.add(guest)
        db.commit()
        db.refresh(guest)
        return guest

    return _make


class FakeNotificationService:
    """Records sends; fail_for holds guest ids whose sends fail"""

    def __init__(self, fail_for=None, raise_for=None):
        self.fail_for = set(fail_for or [])
        self.raise_for = set(raise_for or [])
        self.sent = []
        self.texts = []

    async def _send(self, guest, kind):
        if guest.id in self.raise_for:
            raise RuntimeError("provider exploded")
        self.sent.append((kind, guest.id))
        if guest.id in self.fail_for:
            return NotificationResult(success=False, channel="WHATSAPP", error="Recipient opted out")
        return NotificationResult(success=True, channel="WHATSAPP", message_id=f"SM{kind}{guest.id}")

    async def send_invite(self, guest, event, channel=None):
        return await self._send(guest, "INVITE")

    async def send_reminder(self, guest, event, channel=None):
        return await self._send(guest, "REMINDER")

    async def send_confirmation(self, guest, event, rsvp_status, channel=None):
        return await self._send(guest, "CONFIRMATION")

    async def send_text(self, guest, event, template, channel=None, extra_context=None):
        self.texts.append({"guest_id": guest.id, "template": template, "channel": channel, "extra": extra_context})
        return await self._send(guest, "AUTOMATION")


@pytest.fixture
def fake_notifier():
    return FakeNotificationService


@pytest.fixture
def fake_r2(monkeypatch):
    """In-memory stand-in for the R2 bucket; returns the {key: bytes} store"""
    objects = {}

    def upload_bytes(key, body, content_type="application/octet-stream"):
        objects[key] = body

    def generate_presigned_url(key, expiration=storage.PRESIGNED_URL_EXPIRATION, download_name=None):
        return f"https://r2.example.com/{key}?signature=test"

    monkeypatch.setattr(storage, "is_r2_configured", lambda: True)
    monkeypatch.setattr(storage, "upload_bytes", upload_bytes)
    monkeypatch.setattr(storage, "download_bytes", lambda key: objects[key])
    monkeypatch.setattr(storage, "delete_object", lambda key: objects.pop(key, None) is not None)
    monkeypatch.setattr(storage, "generate_presigned_url", generate_presigned_url)
    return objects
