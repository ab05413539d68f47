"""
Visitor-side booking flow.

A booking is saved to local key-value storage first and then mirrored to the calendar through the sync
endpoint. The local save is the record of truth for the session: a failed sync is logged and nothing else.
"""
import json
import logging
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import requests

from .booking_utils import sanitize_email, sanitize_phone
from .error_utils import BookingValidationError
from .storage import BOOKINGS_KEY, KeyValueStorage

logger = logging.getLogger(__name__)

BOOKING_STATUSES = ("pending", "confirmed", "cancelled")
REQUIRED_FIELDS = ("name", "email", "phone", "service")

# Fixed per-request limit, a sync is a single attempt
SYNC_TIMEOUT = 10


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_booking_id(now: datetime = None) -> str:
    """Time-based id. Unique enough with one writer per store."""
    now = now or _utc_now()
    return f"booking_{int(now.timestamp() * 1000)}"


def _unique_booking_id(base: str, taken) -> str:
    # Two submits in the same millisecond get a counter suffix
    booking_id, counter = base, 1
    while booking_id in taken:
        booking_id = f"{base}_{counter}"
        counter += 1
    return booking_id


def _format_created_at(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@dataclass
class Booking:
    id: str
    date: str
    time: str
    name: str
    email: str
    phone: str
    service: str
    notes: Optional[str] = None
    status: str = "confirmed"
    created_at: str = field(default_factory=lambda: _format_created_at(_utc_now()))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['createdAt'] = data.pop('created_at')
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Booking":
        if data.get("status", "confirmed") not in BOOKING_STATUSES:
            raise ValueError(f"Unknown booking status: {data.get('status')}")
        return cls(
            id=data['id'],
            date=data['date'],
            time=data['time'],
            name=data.get('name', ''),
            email=data.get('email', ''),
            phone=data.get('phone', ''),
            service=data.get('service', ''),
            notes=data.get('notes'),
            status=data.get('status', 'confirmed'),
            created_at=data.get('createdAt', ''),
        )


def _date_key(value: Union[date, str]) -> str:
    # datetime is a date subclass; only the calendar day matters
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class BookingClient:

    def __init__(self, storage: KeyValueStorage, sync_url: str, session: requests.Session = None,
                 clock: Callable[[], datetime] = None):
        self.storage = storage
        self.sync_url = sync_url
        self.session = session or requests.Session()
        self._clock = clock or _utc_now
        self.bookings: List[Booking] = []
        # booking id -> calendar event id, kept for this session only
        self.event_ids: Dict[str, str] = {}
        self.load_bookings()

    def load_bookings(self) -> List[Booking]:
        try:
            stored = self.storage.get_item(BOOKINGS_KEY)
            self.bookings = [Booking.from_dict(item) for item in json.loads(stored)] if stored else []
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Error loading bookings: {e}")
            self.bookings = []
        return self.bookings

    def _save_bookings(self, updated: List[Booking]) -> None:
        # Persist the full list before the in-memory state changes
        self.storage.set_item(BOOKINGS_KEY, json.dumps([booking.to_dict() for booking in updated]))
        self.bookings = updated

    @staticmethod
    def _validate_form(form_data: Mapping[str, Any]) -> Dict[str, Any]:
        missing = [name for name in REQUIRED_FIELDS if not str(form_data.get(name) or '').strip()]
        if missing:
            raise BookingValidationError(f"Missing required fields: {', '.join(missing)}")
        notes = str(form_data.get('notes') or '').strip()
        return {
            "name": str(form_data['name']).strip(),
            "email": sanitize_email(str(form_data['email'])),
            "phone": sanitize_phone(str(form_data['phone'])),
            "service": str(form_data['service']).strip(),
            "notes": notes or None,
        }

    def submit_booking(self, selected_date: Union[date, str], selected_time: str,
                       form_data: Mapping[str, Any]) -> Booking:
        """
        Records a booking locally as confirmed, then tries to sync it.

        Raises BookingValidationError before anything is saved if the contact details are unusable.
        Sync failures never raise and never undo the save.
        """
        if not selected_date or not selected_time:
            raise BookingValidationError("A date and time must be selected")
        fields = self._validate_form(form_data)

        now = self._clock()
        booking = Booking(
            id=_unique_booking_id(generate_booking_id(now), {b.id for b in self.bookings}),
            date=_date_key(selected_date),
            time=selected_time,
            status="confirmed",
            created_at=_format_created_at(now),
            **fields,
        )
        self._save_bookings(self.bookings + [booking])
        logger.info(f"Booking {booking.id} saved for {booking.date} {booking.time}")

        self.sync_booking(booking)
        return booking

    def sync_booking(self, booking: Booking) -> Optional[Dict[str, Any]]:
        """Posts the booking to the sync endpoint once. Returns the response body on success, None otherwise."""
        try:
            response = self.session.post(self.sync_url, json={"booking": booking.to_dict()}, timeout=SYNC_TIMEOUT)
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Error syncing with calendar: {e}")
            return None

        if not isinstance(data, dict) or not data.get('success'):
            error = data.get('error') if isinstance(data, dict) else data
            logger.error(f"Failed to sync: {error}")
            return None

        logger.info(f"Successfully synced with calendar. Event link: {data.get('eventLink')}")
        if data.get('eventId'):
            self.event_ids[booking.id] = data['eventId']
        return data

    def bookings_for_date(self, day: Union[date, str]) -> List[Booking]:
        day_key = _date_key(day)
        return [b for b in self.bookings if b.date == day_key and b.status != 'cancelled']

    def cancel_booking(self, booking_id: str) -> Booking:
        """Marks a booking cancelled. Bookings are never removed from storage."""
        for index, booking in enumerate(self.bookings):
            if booking.id == booking_id:
                updated = list(self.bookings)
                updated[index] = Booking(**{**asdict(booking), 'status': 'cancelled'})
                self._save_bookings(updated)
                logger.info(f"Booking {booking_id} cancelled")
                return updated[index]
        raise KeyError(booking_id)
