# Configuration for the booking sync endpoint, read once from the environment at startup.
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .error_utils import (ConfigurationError, InvalidCredentialsError, InvalidTimezoneError, MissingCalendarIdError,
                          MissingCredentialsError)

logger = logging.getLogger(__name__)

# Every booking is created in this zone. Puerto Rico has no DST.
TARGET_TIMEZONE = "America/Puerto_Rico"

# Fields google-auth needs to sign a service account token
REQUIRED_CREDENTIAL_FIELDS = ("client_email", "private_key")


@dataclass(frozen=True)
class SyncConfig:
    calendar_id: str
    credentials_info: Dict[str, Any]
    timezone: str = TARGET_TIMEZONE
    admin_password: Optional[str] = None

    @property
    def service_account_email(self) -> str:
        return self.credentials_info.get("client_email", "")


def parse_credentials(raw: str) -> Dict[str, Any]:
    """
    Parses the service account JSON blob.

    Raises InvalidCredentialsError if it is not a JSON object or lacks the fields the provider's auth scheme requires.
    """
    try:
        info = json.loads(raw)
    except ValueError:
        raise InvalidCredentialsError()
    if not isinstance(info, dict):
        raise InvalidCredentialsError()
    missing = [field for field in REQUIRED_CREDENTIAL_FIELDS if not info.get(field)]
    if missing:
        logger.error(f"Credentials missing required fields: {', '.join(missing)}")
        raise InvalidCredentialsError()
    return info


def load_sync_config(environ: Mapping[str, str] = None) -> SyncConfig:
    """
    Builds the SyncConfig from environment variables.
    Checked in order, each failure short-circuiting with its own ConfigurationError:
        1. GOOGLE_CALENDAR_ID present
        2. GOOGLE_CREDENTIALS present
        3. GOOGLE_CREDENTIALS parses with client_email and private_key
        4. BOOKING_TIMEZONE, when set, names a known zone
    """
    if environ is None:
        environ = os.environ

    calendar_id = environ.get("GOOGLE_CALENDAR_ID", "").strip()
    if not calendar_id:
        logger.error("Missing GOOGLE_CALENDAR_ID")
        raise MissingCalendarIdError()

    raw_credentials = environ.get("GOOGLE_CREDENTIALS", "").strip()
    if not raw_credentials:
        logger.error("Missing GOOGLE_CREDENTIALS")
        raise MissingCredentialsError()

    credentials_info = parse_credentials(raw_credentials)
    logger.info(f"Service account: {credentials_info['client_email']}")

    timezone = environ.get("BOOKING_TIMEZONE", "").strip() or TARGET_TIMEZONE
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.error(f"Unknown BOOKING_TIMEZONE: {timezone}")
        raise InvalidTimezoneError()

    return SyncConfig(
        calendar_id=calendar_id,
        credentials_info=credentials_info,
        timezone=timezone,
        admin_password=environ.get("ADMIN_PASSWORD") or None,
    )


def describe_config(environ: Mapping[str, str] = None) -> Dict[str, Any]:
    """Diagnostics summary of the sync configuration. Never raises."""
    if environ is None:
        environ = os.environ

    calendar_id = environ.get("GOOGLE_CALENDAR_ID", "").strip()
    raw_credentials = environ.get("GOOGLE_CREDENTIALS", "").strip()
    credentials_valid = False
    service_account = "NOT SET"
    error_details = ""

    if raw_credentials:
        try:
            info = json.loads(raw_credentials)
        except ValueError:
            error_details = "Failed to parse credentials JSON"
        else:
            if isinstance(info, dict) and all(info.get(field) for field in REQUIRED_CREDENTIAL_FIELDS):
                credentials_valid = True
                service_account = info["client_email"]
            else:
                error_details = "Credentials missing required fields"

    return {
        "hasCalendarId": bool(calendar_id),
        "hasCredentials": bool(raw_credentials),
        "credentialsValid": credentials_valid,
        "calendarId": calendar_id or "NOT SET",
        "serviceAccount": service_account,
        "errorDetails": error_details,
    }


def try_load_sync_config(environ: Mapping[str, str] = None):
    """Returns (config, None) or (None, ConfigurationError) so the app can start without valid config."""
    try:
        return load_sync_config(environ), None
    except ConfigurationError as e:
        logger.error(f"Booking sync disabled: {e.message}")
        return None, e
