from datetime import datetime
from types import SimpleNamespace

from rsvp_manager.models import MessageTemplate
from rsvp_manager.services.template_renderer import (
    build_template_context,
    get_default_template,
    get_rsvp_link,
    get_template,
    normalize_locale,
    render_message,
    render_template_string,
)


def _event(locale="he", venue=None):
    return SimpleNamespace(
        id=1,
        title="Dana & Noam",
        date_time=datetime(2026, 6, 18, 19, 30),
        location="Tel Aviv",
        venue=venue,
        locale=locale,
    )


def _guest():
    return SimpleNamespace(name="Avi", slug="abc123XYZ789")


def test_render_replaces_known_and_keeps_unknown_placeholders():
    text = render_template_string("Hi {{guestName}}, {{unknown}}", {"guestName": "Avi"})
    assert text == "Hi Avi, {{unknown}}"


def test_context_date_format_follows_locale():
    he = build_template_context(_guest(), _event("he"))
    en = build_template_context(_guest(), _event("en"))
    assert he["eventDate"] == "18.06.2026"
    assert he["eventTime"] == "19:30"
    assert en["eventDate"] == "06/18/2026"
    assert en["eventTime"] == "07:30 PM"


def test_context_venue_falls_back_to_location():
    assert build_template_context(_guest(), _event())["eventVenue"] == "Tel Aviv"
    assert build_template_context(_guest(), _event(venue="Hall A"))["eventVenue"] == "Hall A"


def test_rsvp_link_uses_guest_slug():
    assert get_rsvp_link("abc").endswith("/rsvp/abc")


def test_unknown_locale_falls_back_to_hebrew():
    assert normalize_locale("fr") == "he"
    assert normalize_locale("en") == "en"


def test_confirmation_default_depends_on_rsvp_status():
    accepted = get_default_template("CONFIRMATION", "en", "ACCEPTED")
    declined = get_default_template("CONFIRMATION", "en", "DECLINED")
    maybe = get_default_template("CONFIRMATION", "en", "MAYBE")
    assert accepted["title"] == "RSVP Confirmed"
    assert "another occasion" in declined["message"]
    assert "{{rsvpLink}}" in maybe["message"]


def test_active_custom_template_wins(db, owner, make_event, make_guest):
    event = make_event(owner, locale="en")
    guest = make_guest(event, name="Avi")
    db.add(MessageTemplate(event_id=event.id, type="INVITE", locale="en", message="Yo {{guestName}}!"))
    db.commit()

    assert get_template(db, event.id, "INVITE", "en")["message"] == "Yo {{guestName}}!"
    assert render_message(db, guest, event, "INVITE") == "Yo Avi!"


def test_inactive_custom_template_is_ignored(db, owner, make_event):
    event = make_event(owner, locale="en")
    db.add(
        MessageTemplate(event_id=event.id, type="REMINDER", locale="en", message="custom", is_active=False)
    )
    db.commit()

    assert get_template(db, event.id, "REMINDER", "en")["title"] == "RSVP Reminder"


def test_custom_confirmation_only_applies_to_its_answer(db, owner, make_event, make_guest):
    event = make_event(owner, locale="en")
    guest = make_guest(event, name="Avi")
    db.add(
        MessageTemplate(
            event_id=event.id, type="CONFIRMATION_ACCEPTED", locale="en", message="See you there {{guestName}}!"
        )
    )
    db.commit()

    assert render_message(db, guest, event, "CONFIRMATION", "ACCEPTED") == "See you there Avi!"
    declined = render_message(db, guest, event, "CONFIRMATION", "DECLINED")
    assert "See you there" not in declined
    assert "another occasion" in declined
