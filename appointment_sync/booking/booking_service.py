from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from typing import Any, Dict, Mapping
import logging

from .booking_utils import build_calendar_event
from .config import SyncConfig
from .error_utils import CalendarSyncError, InvalidCredentialsError

logger = logging.getLogger(__name__)

# Define the required scope
SCOPES = ["https://www.googleapis.com/auth/calendar"]

PERMISSION_DENIED_MESSAGE = "Calendar access denied. Please ensure the calendar is shared with the service account."
CALENDAR_NOT_FOUND_MESSAGE = "Calendar not found. Please check the calendar ID."


def build_calendar_service(config: SyncConfig):
    """
    Authorizes the service account from the parsed credentials and builds the Calendar v3 client.
    google-auth rejects unusable private keys with ValueError, surfaced as InvalidCredentialsError.
    """
    try:
        creds = service_account.Credentials.from_service_account_info(config.credentials_info, scopes=SCOPES)
    except ValueError as e:
        logger.error(f"Service account credentials rejected: {e.args}")
        raise InvalidCredentialsError()
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def translate_provider_error(error: Exception) -> CalendarSyncError:
    """Maps a provider failure onto the message shown to the visitor."""
    if isinstance(error, HttpError):
        status = error.resp.status
        if status == 403:
            return CalendarSyncError(PERMISSION_DENIED_MESSAGE, status)
        if status == 404:
            return CalendarSyncError(CALENDAR_NOT_FOUND_MESSAGE, status)
        detail = getattr(error, "reason", None) or str(error)
        return CalendarSyncError(f"Failed to sync with calendar: {detail}", status)
    detail = str(error) or "Unknown error"
    return CalendarSyncError(f"Failed to sync with calendar: {detail}")


class BookingService:

    def __init__(self, config: SyncConfig, service_factory=build_calendar_service):
        self.config = config
        self._service_factory = service_factory
        self._service = None

    @property
    def service(self):
        # Built on first use, after the booking time has been validated
        if self._service is None:
            self._service = self._service_factory(self.config)
        return self._service

    def create_event(self, booking: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Inserts one calendar event for the booking. A single attempt, no retries, no dedup by booking id.

        Raises:
            BookingTimeError if the booking date/time can't be normalized
            InvalidCredentialsError if google-auth refuses the key
            CalendarSyncError for any provider or transport failure
        """
        event = build_calendar_event(booking, self.config.timezone)
        logger.info(f"Start datetime: {event['start']['dateTime']} End datetime: {event['end']['dateTime']} ({self.config.timezone})")
        service = self.service
        try:
            created = service.events().insert(calendarId=self.config.calendar_id, body=event).execute()
        except Exception as e:
            logger.error(f"Calendar sync error: {e}")
            raise translate_provider_error(e) from e
        logger.info(f"Event created successfully: {created.get('id')}")
        return created
