import pytest

from rsvp_manager.shared.validators import (
    build_phone_variations,
    format_for_display,
    format_to_e164,
    get_country_from_e164,
    is_valid_e164,
    normalize_phone,
    validate_phone,
)


@pytest.mark.parametrize(
    "raw",
    ["+972 58 400 3578", "058-400-3578", "00972584003578", "584003578", "972584003578", "(058) 4003578"],
)
def test_israeli_formats_become_e164(raw):
    assert format_to_e164(raw) == "+972584003578"


def test_other_countries():
    assert format_to_e164("07700 900123", "UK") == "+447700900123"
    assert format_to_e164("415-555-1234", "US") == "+14155551234"


def test_empty_phone():
    assert format_to_e164("") == ""
    assert format_to_e164(None) == ""


def test_is_valid_e164():
    assert is_valid_e164("+972584003578")
    assert not is_valid_e164("0584003578")
    assert not is_valid_e164("+0123456789")
    assert not is_valid_e164(None)


def test_country_detection():
    assert get_country_from_e164("+972584003578") == "IL"
    assert get_country_from_e164("+447700900123") == "UK"
    assert get_country_from_e164("+14155551234") == "US"
    assert get_country_from_e164("not a phone") is None


def test_display_format():
    assert format_for_display("0584003578") == "+972 58 400 3578"
    assert format_for_display("+14155551234") == "+1 (415) 555-1234"


def test_phone_variations_cover_stored_formats():
    variations = build_phone_variations("+972584003578")
    assert variations[0] == "+972584003578"
    assert "0584003578" in variations
    assert "972584003578" in variations
    assert "584003578" in variations
    assert len(variations) == len(set(variations))


def test_variations_from_local_number():
    assert "+972584003578" in build_phone_variations("058-400-3578")
    assert build_phone_variations("") == []


def test_normalize_phone_strips_formatting():
    assert normalize_phone("+972 (58) 400-3578") == "+972584003578"
    assert normalize_phone(None) == ""


def test_validate_phone():
    assert validate_phone("058-400-3578") == "+972584003578"
    assert validate_phone("  ") is None
    with pytest.raises(ValueError):
        validate_phone("12")
