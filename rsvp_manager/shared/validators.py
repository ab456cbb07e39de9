"""Shared validation utilities"""

import re
import secrets
import string
from typing import Optional

# Country calling codes and trunk prefixes for local numbers
COUNTRY_CODES = {
    "IL": {"code": "972", "local_prefix": "0"},
    "US": {"code": "1", "local_prefix": "1"},
    "UK": {"code": "44", "local_prefix": "0"},
}

DEFAULT_COUNTRY = "IL"

E164_PATTERN = re.compile(r"^\+[1-9]\d{7,14}$")

SLUG_ALPHABET = string.ascii_letters + string.digits
GUEST_SLUG_LENGTH = 12


def _clean_phone(phone: str) -> str:
    """Strip everything except digits, keeping a leading +"""
    has_plus = phone.strip().startswith("+")
    digits = re.sub(r"\D", "", phone)
    return f"+{digits}" if has_plus else digits


def is_valid_e164(phone: Optional[str]) -> bool:
    return bool(phone) and bool(E164_PATTERN.match(phone))


def format_to_e164(phone: Optional[str], country: str = DEFAULT_COUNTRY) -> str:
    """
    Convert a phone number in any common format to E.164.

    Examples (country IL):
        "+972 58 400 3578" -> "+972584003578"
        "058-400-3578"     -> "+972584003578"
        "00972584003578"   -> "+972584003578"
        "584003578"        -> "+972584003578"

    Returns an empty string for empty input. Numbers that cannot be
    interpreted are returned with a leading + so the provider can report
    a precise error.
    """
    if not phone:
        return ""

    cleaned = _clean_phone(phone)
    if is_valid_e164(cleaned):
        return cleaned

    config = COUNTRY_CODES.get(country) or COUNTRY_CODES[DEFAULT_COUNTRY]
    cleaned = cleaned.lstrip("+")

    # International dialing prefix
    if cleaned.startswith("00"):
        return f"+{cleaned[2:]}"

    if cleaned.startswith(config["code"]) and len(cleaned) > len(config["code"]) + 6:
        return f"+{cleaned}"

    if config["local_prefix"] == "0" and cleaned.startswith("0"):
        return f"+{config['code']}{cleaned[1:]}"

    if country == "IL" and len(cleaned) == 9 and cleaned.startswith("5"):
        return f"+972{cleaned}"

    if country == "US" and len(cleaned) == 10:
        return f"+1{cleaned}"

    if 7 <= len(cleaned) <= 15:
        candidate = f"+{config['code']}{cleaned}"
        if is_valid_e164(candidate):
            return candidate

    return f"+{cleaned}"


def get_country_from_e164(phone: str) -> Optional[str]:
    if not is_valid_e164(phone):
        return None
    number = phone[1:]
    # Longest calling code first
    if number.startswith("972"):
        return "IL"
    if number.startswith("44"):
        return "UK"
    if number.startswith("1"):
        return "US"
    return None


def format_for_display(phone: str) -> str:
    """Human friendly rendering, e.g. +972 58 400 3578 or +1 (415) 555-1234"""
    e164 = format_to_e164(phone)
    if not e164:
        return phone

    country = get_country_from_e164(e164)
    if country == "IL":
        match = re.match(r"^\+972(\d{2})(\d{3})(\d{4})$", e164)
        if match:
            return f"+972 {match.group(1)} {match.group(2)} {match.group(3)}"
    if country == "US":
        match = re.match(r"^\+1(\d{3})(\d{3})(\d{4})$", e164)
        if match:
            return f"+1 ({match.group(1)}) {match.group(2)}-{match.group(3)}"
    return e164


def normalize_phone(phone: Optional[str]) -> str:
    """Comparison key used for duplicate detection"""
    if not phone:
        return ""
    return re.sub(r"[\s\-().]", "", phone)


def build_phone_variations(phone: str) -> list[str]:
    """
    All stored formats a guest phone may have been saved in.
    Used to match inbound WhatsApp replies to guests.
    """
    cleaned = re.sub(r"[\s\-()]", "", phone or "")
    if not cleaned:
        return []

    variations = [cleaned]
    if cleaned.startswith("+"):
        without_plus = cleaned[1:]
        variations.append(without_plus)
        if without_plus.startswith("972"):
            variations.append("0" + without_plus[3:])
            variations.append(without_plus[3:])
    elif cleaned.startswith("972"):
        variations.append("+" + cleaned)
        variations.append("0" + cleaned[3:])
        variations.append(cleaned[3:])
    elif cleaned.startswith("0"):
        without_zero = cleaned[1:]
        variations.append("+972" + without_zero)
        variations.append("972" + without_zero)
        variations.append(without_zero)

    # Keep order, drop duplicates
    return list(dict.fromkeys(variations))


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Pydantic helper: accept any common format, store E.164.

    Raises:
        ValueError: If the number cannot be turned into E.164
    """
    if not phone or not phone.strip():
        return None
    formatted = format_to_e164(phone)
    if not is_valid_e164(formatted):
        raise ValueError("Invalid phone number")
    return formatted


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")
    return email


def generate_guest_slug(length: int = GUEST_SLUG_LENGTH) -> str:
    """Random alphanumeric id for public RSVP links"""
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug or "workspace"


def validate_choice(value: Optional[str], choices: tuple, field_name: str) -> Optional[str]:
    """Upper-case enum string check used by the schemas"""
    if value is None:
        return value
    if value not in choices:
        raise ValueError(f"Invalid {field_name}. Must be one of: {', '.join(choices)}")
    return value
