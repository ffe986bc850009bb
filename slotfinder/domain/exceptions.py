"""
Domain-specific exception hierarchy for the slot finder application.
"""


class SlotFinderError(Exception):
    """Base class for all application-level errors."""

    retryable = False


class InvalidRequestError(SlotFinderError, ValueError):
    """Raised when a request is rejected before any computation or external call."""


class InvalidWindowError(InvalidRequestError):
    """Raised when a query window is inverted, empty or incomplete."""


class InvalidDurationError(InvalidRequestError):
    """Raised when the slot duration is not a positive number of minutes."""


class InvalidLimitError(InvalidRequestError):
    """Raised when the result limit is not positive."""


class InvalidTimestampError(InvalidRequestError):
    """Raised when a boundary timestamp cannot be parsed."""


class InvalidTimezoneError(InvalidRequestError):
    """Raised when a time zone is not a known IANA identifier."""


class InvalidRangeError(InvalidRequestError):
    """Raised when a relative range token is not recognised."""


class MissingCalendarError(InvalidRequestError):
    """Raised when no calendar id is given and no default is configured."""


class CalendarAPIError(SlotFinderError):
    """Raised when calendar data cannot be fetched or written."""

    retryable = True


class UpstreamFetchError(CalendarAPIError):
    """Raised when the busy-interval query fails or times out."""


class EventCreationError(CalendarAPIError):
    """Raised when a calendar event cannot be created."""


class AuthenticationError(SlotFinderError):
    """Raised when authentication or token handling fails."""


class TokenRefreshError(AuthenticationError):
    """Raised when the token endpoint cannot be reached or times out."""

    retryable = True
