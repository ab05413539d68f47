# Utility functions for booking functionality
import re
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Mapping, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import phonenumbers
from email_validator import validate_email, EmailNotValidError

from .config import TARGET_TIMEZONE
from .error_utils import BookingTimeError, BookingValidationError

EVENT_DURATION = timedelta(hours=1)

# Reminder overrides attached to every event: one day before by email, one hour before by popup
REMINDER_OVERRIDES = [
    {"method": "email", "minutes": 24 * 60},
    {"method": "popup", "minutes": 60},
]

NOTES_PLACEHOLDER = "No additional notes"

# Hour with an optional minute part. The minute is all digits or holds no digits at all ("3:xx"),
# so "1:30PM" and "1:30:45" never match.
CLOCK_PATTERN = re.compile(r'(\d{1,2})(?::(\d*|[^:\d]+))?')


def _parse_date(date_str: str) -> Tuple[int, int, int]:
    parts = date_str.strip().split('-')
    if len(parts) != 3:
        raise BookingTimeError(f"Invalid booking date: {date_str!r}")
    try:
        year, month, day = (int(part) for part in parts)
    except ValueError:
        raise BookingTimeError(f"Invalid booking date: {date_str!r}")
    return year, month, day


def _parse_time(time_str: str) -> Tuple[int, int]:
    """
    Converts "H:MM AM|PM" into a 24-hour (hour, minute) pair.
    Minute defaults to 0 when absent or non-numeric. A meridiem glued to the clock or a seconds field is rejected.
    Without a meridiem the hour is read as 24-hour clock.
    """
    parts = time_str.split()
    if not parts or len(parts) > 2:
        raise BookingTimeError(f"Invalid booking time: {time_str!r}")
    clock = parts[0]
    meridiem = parts[1].upper() if len(parts) == 2 else None

    match = CLOCK_PATTERN.fullmatch(clock)
    if match is None:
        raise BookingTimeError(f"Invalid booking time: {time_str!r}")
    hour = int(match.group(1))
    minute_str = match.group(2) or ''
    minute = int(minute_str) if minute_str.isdigit() else 0

    if meridiem is not None:
        if meridiem not in ("AM", "PM"):
            raise BookingTimeError(f"Invalid booking time: {time_str!r}")
        if not 1 <= hour <= 12:
            raise BookingTimeError(f"Hour out of range for 12-hour time: {time_str!r}")
        if meridiem == "PM" and hour != 12:
            hour += 12
        elif meridiem == "AM" and hour == 12:
            hour = 0
    return hour, minute


def _exists_in_zone(wall_clock: datetime, tz: ZoneInfo) -> bool:
    # A wall-clock time inside a DST gap does not survive a round trip through UTC
    aware = wall_clock.replace(tzinfo=tz)
    round_trip = aware.astimezone(dt_timezone.utc).astimezone(tz)
    return round_trip.replace(tzinfo=None) == wall_clock


def parse_booking_datetime(date_str: str, time_str: str, timezone: str = TARGET_TIMEZONE) -> datetime:
    """
    Normalizes a booking's date ("YYYY-MM-DD") and time ("H:MM AM|PM") into the event start.

    Returns a naive datetime holding the literal wall-clock time in *timezone*. It is deliberately not converted
    through the server's local zone: the zone is bound on the outbound event instead (see format_event_time).

    Raises BookingTimeError on anything that does not resolve to a real instant in *timezone*.
    """
    if not isinstance(date_str, str) or not date_str.strip():
        raise BookingTimeError("Booking date is required")
    if not isinstance(time_str, str) or not time_str.strip():
        raise BookingTimeError("Booking time is required")

    year, month, day = _parse_date(date_str)
    hour, minute = _parse_time(time_str)

    try:
        start = datetime(year, month, day, hour, minute)
    except ValueError as e:
        raise BookingTimeError(f"Invalid booking date/time: {date_str} {time_str} ({e})")

    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise BookingTimeError(f"Unknown timezone: {timezone}")
    try:
        exists = _exists_in_zone(start, tz)
    except OverflowError:
        raise BookingTimeError(f"Booking date/time out of range: {date_str} {time_str}")
    if not exists:
        raise BookingTimeError(f"{date_str} {time_str} does not exist in {timezone}")
    # The end must be representable too
    event_window(start)
    return start


def event_window(start: datetime) -> Tuple[datetime, datetime]:
    # timedelta arithmetic rolls 11:xx PM into the next day instead of producing hour 24
    try:
        return start, start + EVENT_DURATION
    except OverflowError:
        raise BookingTimeError(f"Booking ends past the supported calendar range: {start.isoformat()}")


def format_event_time(moment: datetime, timezone: str = TARGET_TIMEZONE) -> Dict[str, str]:
    """Google Calendar EventDateTime with the zone stated explicitly and no UTC offset in the string."""
    return {"dateTime": moment.strftime("%Y-%m-%dT%H:%M:%S"), "timeZone": timezone}


def build_event_description(booking: Mapping[str, Any]) -> str:
    return "\n".join([
        f"Client: {booking.get('name', '')}",
        f"Email: {booking.get('email', '')}",
        f"Phone: {booking.get('phone', '')}",
        f"Service: {booking.get('service', '')}",
        f"Notes: {booking.get('notes') or NOTES_PLACEHOLDER}",
        f"Booking ID: {booking.get('id', '')}",
    ])


def build_calendar_event(booking: Mapping[str, Any], timezone: str = TARGET_TIMEZONE) -> Dict[str, Any]:
    """
    Assembles the events.insert request body for a booking payload.
    Raises BookingTimeError if the booking's date/time can't be normalized.
    """
    start, end = event_window(parse_booking_datetime(booking.get('date'), booking.get('time'), timezone))
    return {
        "summary": f"{booking.get('service', '')} - {booking.get('name', '')}",
        "description": build_event_description(booking),
        "start": format_event_time(start, timezone),
        "end": format_event_time(end, timezone),
        "reminders": {"useDefault": False, "overrides": [dict(r) for r in REMINDER_OVERRIDES]},
    }


def sanitize_phone(phone: str, default_region: str = "PR") -> str:
    # Maximum allowed input length to avoid oversized input injections.
    MAX_PHONE_LENGTH = 50

    phone = (phone or "").strip()
    if not phone:
        raise BookingValidationError("Phone number is required")
    if len(phone) > MAX_PHONE_LENGTH:
        raise BookingValidationError("Phone number input is too long")

    # Allowed characters: an optional leading '+', digits, spaces, hyphens, dots and parentheses.
    allowed_pattern = re.compile(r'^\+?[0-9\-\(\)\.\s]+$')
    if not allowed_pattern.fullmatch(phone):
        raise BookingValidationError("Phone contains disallowed characters")

    try:
        # Numbers starting with '+' carry their own country code
        parsed_phone = phonenumbers.parse(phone, None if phone.startswith('+') else default_region)
    except phonenumbers.NumberParseException:
        raise BookingValidationError("Invalid phone number format")

    if not phonenumbers.is_possible_number(parsed_phone):
        raise BookingValidationError("Phone number is not valid")

    return phonenumbers.format_number(parsed_phone, phonenumbers.PhoneNumberFormat.E164)


def sanitize_email(email: str) -> str:
    # 254 characters is the usual maximum by RFC 5321 / 5322
    MAX_EMAIL_LENGTH = 254

    email = (email or "").strip()
    if not email:
        raise BookingValidationError("Email is required")
    if len(email) > MAX_EMAIL_LENGTH:
        raise BookingValidationError("Email input is too long")

    try:
        # No DNS lookups while the visitor waits on the form
        valid = validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise BookingValidationError(f"Invalid email format: {e}")
    return valid.normalized
