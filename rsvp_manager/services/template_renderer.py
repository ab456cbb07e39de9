"""
Message template rendering

Guest messages are plain text with {{placeholder}} tokens. An event may
override the defaults per type and locale with an active MessageTemplate row.
"""

import re
from typing import Optional

from sqlalchemy.orm import Session

from ..config import APP_URL
from ..models import Guest, MessageTemplate, WeddingEvent

SUPPORTED_LOCALES = ("he", "en")
DEFAULT_LOCALE = "he"

PLACEHOLDERS = {
    "guestName": "Guest name",
    "eventTitle": "Event title",
    "rsvpLink": "Personal RSVP link",
    "eventDate": "Event date",
    "eventTime": "Event time",
    "eventLocation": "Event location",
    "eventVenue": "Venue name (falls back to location)",
    "tableName": "Assigned table",
    "transportationLink": "Transportation registration link",
}

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")

DEFAULT_TEMPLATES = {
    "he": {
        "INVITE": {
            "title": "הזמנה לאירוע",
            "message": (
                "שלום {{guestName}}!\n\n"
                "אתם מוזמנים ל{{eventTitle}}!\n\n"
                "נשמח מאוד אם תאשרו את הגעתכם בקישור הבא:\n"
                "{{rsvpLink}}\n\n"
                "מחכים לראותכם!"
            ),
        },
        "REMINDER": {
            "title": "תזכורת - אישור הגעה",
            "message": (
                "שלום {{guestName}}!\n\n"
                "רצינו להזכיר לכם לאשר את הגעתכם ל{{eventTitle}}.\n\n"
                "לאישור הגעה:\n"
                "{{rsvpLink}}\n\n"
                "תודה!"
            ),
        },
        "CONFIRMATION_ACCEPTED": {
            "title": "אישור הגעה התקבל",
            "message": (
                "שלום {{guestName}}!\n\n"
                "תודה שאישרתם את הגעתכם ל{{eventTitle}}!\n\n"
                "פרטי האירוע:\n"
                "תאריך: {{eventDate}}\n"
                "מיקום: {{eventLocation}}\n\n"
                "נתראה!"
            ),
        },
        "CONFIRMATION_DECLINED": {
            "title": "תודה על התשובה",
            "message": (
                "שלום {{guestName}}!\n\n"
                "קיבלנו את התשובה שלכם לגבי {{eventTitle}}.\n\n"
                "מקווים לראותכם בהזדמנות אחרת!"
            ),
        },
        "CONFIRMATION_MAYBE": {
            "title": "תודה על התשובה",
            "message": (
                "שלום {{guestName}}!\n\n"
                "קיבלנו את תשובתכם לגבי {{eventTitle}}.\n"
                "ניתן לעדכן את התשובה בכל עת בקישור:\n"
                "{{rsvpLink}}"
            ),
        },
    },
    "en": {
        "INVITE": {
            "title": "Event Invitation",
            "message": (
                "Hello {{guestName}}!\n\n"
                "You are invited to {{eventTitle}}!\n\n"
                "Please confirm your attendance using the link below:\n"
                "{{rsvpLink}}\n\n"
                "We look forward to seeing you!"
            ),
        },
        "REMINDER": {
            "title": "RSVP Reminder",
            "message": (
                "Hello {{guestName}}!\n\n"
                "This is a reminder to confirm your attendance at {{eventTitle}}.\n\n"
                "Please RSVP here:\n"
                "{{rsvpLink}}\n\n"
                "Thank you!"
            ),
        },
        "CONFIRMATION_ACCEPTED": {
            "title": "RSVP Confirmed",
            "message": (
                "Hello {{guestName}}!\n\n"
                "Thank you for confirming your attendance at {{eventTitle}}!\n\n"
                "Event details:\n"
                "Date: {{eventDate}}\n"
                "Location: {{eventLocation}}\n\n"
                "See you there!"
            ),
        },
        "CONFIRMATION_DECLINED": {
            "title": "Thank you for your response",
            "message": (
                "Hello {{guestName}}!\n\n"
                "We've received your response for {{eventTitle}}.\n\n"
                "We hope to see you at another occasion!"
            ),
        },
        "CONFIRMATION_MAYBE": {
            "title": "Thank you for your response",
            "message": (
                "Hello {{guestName}}!\n\n"
                "We've received your response for {{eventTitle}}.\n"
                "You can update it any time here:\n"
                "{{rsvpLink}}"
            ),
        },
    },
}

# Bodies for automation actions without a custom message
AUTOMATION_MESSAGES = {
    "he": {
        "TABLE_ASSIGNMENT": (
            "שלום {{guestName}}!\n\n"
            "מחכים לכם היום ב{{eventTitle}}!\n\n"
            "השולחן שלכם: {{tableName}}\n"
            "מיקום: {{eventVenue}}\n"
            "שעה: {{eventTime}}"
        ),
        "EVENT_DETAILS": (
            "שלום {{guestName}}!\n\n"
            "תזכורת: {{eventTitle}} מתקיים ב-{{eventDate}} בשעה {{eventTime}}.\n"
            "מיקום: {{eventVenue}}, {{eventLocation}}\n\n"
            "נתראה!"
        ),
    },
    "en": {
        "TABLE_ASSIGNMENT": (
            "Hello {{guestName}}!\n\n"
            "We're expecting you today at {{eventTitle}}!\n\n"
            "Your table: {{tableName}}\n"
            "Venue: {{eventVenue}}\n"
            "Time: {{eventTime}}"
        ),
        "EVENT_DETAILS": (
            "Hello {{guestName}}!\n\n"
            "A reminder: {{eventTitle}} is on {{eventDate}} at {{eventTime}}.\n"
            "Location: {{eventVenue}}, {{eventLocation}}\n\n"
            "See you there!"
        ),
    },
}


def normalize_locale(locale: Optional[str]) -> str:
    return locale if locale in SUPPORTED_LOCALES else DEFAULT_LOCALE


def get_rsvp_link(guest_slug: str) -> str:
    return f"{APP_URL}/rsvp/{guest_slug}"


def get_transportation_link(guest_slug: str) -> str:
    return f"{APP_URL}/transportation/{guest_slug}"


def build_template_context(
    guest: Guest, event: WeddingEvent, extra: Optional[dict[str, str]] = None
) -> dict[str, str]:
    locale = normalize_locale(event.locale)
    if locale == "en":
        event_date = event.date_time.strftime("%m/%d/%Y")
        event_time = event.date_time.strftime("%I:%M %p")
    else:
        event_date = event.date_time.strftime("%d.%m.%Y")
        event_time = event.date_time.strftime("%H:%M")

    context = {
        "guestName": guest.name,
        "eventTitle": event.title,
        "rsvpLink": get_rsvp_link(guest.slug),
        "eventDate": event_date,
        "eventTime": event_time,
        "eventLocation": event.location or "",
        "eventVenue": event.venue or event.location or "",
        "transportationLink": get_transportation_link(guest.slug),
    }
    if extra:
        context.update(extra)
    return context


def render_template_string(template: str, context: dict[str, str]) -> str:
    """Replace known {{placeholders}}; unknown ones are left untouched"""
    return _PLACEHOLDER_RE.sub(lambda m: context.get(m.group(1), m.group(0)), template)


# Keys of overridable templates; confirmations have one per RSVP answer
TEMPLATE_KEYS = ("INVITE", "REMINDER", "CONFIRMATION_ACCEPTED", "CONFIRMATION_DECLINED", "CONFIRMATION_MAYBE")


def default_template_key(message_type: str, rsvp_status: Optional[str] = None) -> str:
    if message_type != "CONFIRMATION":
        return message_type
    if rsvp_status == "ACCEPTED":
        return "CONFIRMATION_ACCEPTED"
    if rsvp_status == "MAYBE":
        return "CONFIRMATION_MAYBE"
    return "CONFIRMATION_DECLINED"


def get_default_template(message_type: str, locale: str, rsvp_status: Optional[str] = None) -> dict:
    defaults = DEFAULT_TEMPLATES[normalize_locale(locale)]
    return defaults.get(default_template_key(message_type, rsvp_status), defaults["INVITE"])


def get_template(
    db: Session, event_id: int, message_type: str, locale: str, rsvp_status: Optional[str] = None
) -> dict:
    """
    Active custom template for the event, else the built-in default.
    Confirmations are looked up by the guest's answer.
    """
    custom = (
        db.query(MessageTemplate)
        .filter(
            MessageTemplate.event_id == event_id,
            MessageTemplate.type == default_template_key(message_type, rsvp_status),
            MessageTemplate.locale == normalize_locale(locale),
            MessageTemplate.is_active.is_(True),
        )
        .first()
    )
    if custom:
        return {"title": custom.title, "message": custom.message}
    return get_default_template(message_type, locale, rsvp_status)


def render_message(
    db: Session, guest: Guest, event: WeddingEvent, message_type: str, rsvp_status: Optional[str] = None
) -> str:
    template = get_template(db, event.id, message_type, event.locale, rsvp_status)
    return render_template_string(template["message"], build_template_context(guest, event))
