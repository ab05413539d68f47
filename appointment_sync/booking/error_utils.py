# Custom exceptions to be used throughout the project.


class ConfigurationError(Exception):
    """
    Raised when the server-side configuration needed to reach the calendar provider is missing or unusable.
    Subclasses carry the operator-facing message returned by the booking endpoint so missing calendar ID,
    missing credentials and malformed credentials can be told apart.
    """
    default_message = "Server configuration error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingCalendarIdError(ConfigurationError):
    default_message = "Server configuration error: Missing calendar ID"


class MissingCredentialsError(ConfigurationError):
    default_message = "Server configuration error: Missing credentials"


class InvalidCredentialsError(ConfigurationError):
    default_message = "Server configuration error: Invalid credentials format"


class BookingTimeError(Exception):
    """
    To be raised when the booking date/time cannot be turned into an event start.
    May be raised under the following circumstances:
        1. date or time is missing
        2. date is not YYYY-MM-DD or not a real calendar day
        3. time is not H:MM AM|PM, or the hour is out of range for its meridiem
        4. the wall-clock time does not exist in the target timezone (DST gap)
    """
    def __init__(self, message):
        self.message = message
        super().__init__(message)


class BookingValidationError(Exception):
    """Contact details rejected before a booking is created."""
    def __init__(self, message):
        self.message = message
        super().__init__(message)


class CalendarSyncError(Exception):
    # status is the provider's HTTP status when there was one
    def __init__(self, message, status=None):
        self.message = message
        self.status = status
        super().__init__(message)


class InvalidTimezoneError(ConfigurationError):
    default_message = "Server configuration error: Invalid timezone"
