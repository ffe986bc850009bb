"""
Google Calendar API client for fetching busy times and creating events.
"""

from typing import Any, Dict, List, Optional, Protocol

import pendulum
import requests
from pendulum import DateTime
from requests.utils import quote
from rich.console import Console

from ..domain import timeutil
from ..domain.exceptions import EventCreationError, TokenRefreshError, UpstreamFetchError
from ..domain.models import TimeRange

console = Console()


class TokenProvider(Protocol):
    def get_access_token(self, force_refresh: bool = False) -> str:
        ...


class GoogleCalendarClient:
    """
    Client for Google Calendar API v3 operations.

    Uses the /freeBusy endpoint for busy intervals and
    /calendars/{id}/events for bookings.
    """

    CALENDAR_API_ENDPOINT = "https://www.googleapis.com/calendar/v3"

    def __init__(self, authenticator: TokenProvider, timeout: float = 30):
        """
        Initialize the Calendar API client.

        Args:
            authenticator: Object that hands out valid access tokens
            timeout: Seconds to wait for each API call
        """
        self.authenticator = authenticator
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.authenticator.get_access_token()}",
            "Content-Type": "application/json",
        }

    def get_busy(
        self,
        calendar_id: str,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
    ) -> List[TimeRange]:
        """
        Get busy times for a calendar.

        Issues a single freeBusy query; there is no retry.

        Args:
            calendar_id: Calendar identifier (usually an e-mail address)
            start_time: Start of the time window
            end_time: End of the time window
            timezone: IANA timezone identifier

        Returns:
            List of busy TimeRange objects sorted by start

        Raises:
            UpstreamFetchError: If the API call fails or reports a calendar error
            AuthenticationError: If the service account credentials are rejected
        """
        url = f"{self.CALENDAR_API_ENDPOINT}/freeBusy"

        payload = {
            "timeMin": timeutil.to_utc_iso(start_time),
            "timeMax": timeutil.to_utc_iso(end_time),
            "timeZone": timezone,
            "items": [{"id": calendar_id}],
        }

        try:
            response = requests.post(
                url,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()

        except TokenRefreshError as e:
            raise UpstreamFetchError(f"Failed to fetch free/busy from Google Calendar: {e}") from e
        except requests.exceptions.RequestException as e:
            raise UpstreamFetchError(f"Failed to fetch free/busy from Google Calendar: {e}") from e
        except ValueError as e:
            raise UpstreamFetchError(f"Google Calendar returned an unreadable free/busy response: {e}") from e

        return self._parse_freebusy_response(data, calendar_id, timezone)

    def _parse_freebusy_response(
        self,
        response_data: Dict[str, Any],
        calendar_id: str,
        timezone: str
    ) -> List[TimeRange]:
        """
        Parse the freeBusy API response into our domain model.

        Response format:
        {
            "kind": "calendar#freeBusy",
            "calendars": {
                "someone@example.com": {
                    "busy": [
                        {"start": "2024-11-25T15:00:00Z", "end": "2024-11-25T16:00:00Z"}
                    ],
                    "errors": [{"domain": "global", "reason": "notFound"}]
                }
            }
        }
        """
        calendar = response_data.get("calendars", {}).get(calendar_id, {})

        errors = calendar.get("errors") or []
        if errors:
            reasons = ", ".join(error.get("reason", "unknown") for error in errors)
            raise UpstreamFetchError(f"Google Calendar could not query '{calendar_id}': {reasons}")

        busy_ranges: List[TimeRange] = []

        for item in calendar.get("busy", []):
            try:
                start = self._parse_datetime(item["start"], timezone)
                end = self._parse_datetime(item["end"], timezone)

                busy_ranges.append(TimeRange(start=start, end=end))

            except (KeyError, ValueError) as e:
                console.print(
                    f"[yellow]Warning: Could not parse busy item: {e}[/yellow]"
                )
                continue

        busy_ranges.sort(key=lambda r: r.start)
        return busy_ranges

    def _parse_datetime(self, datetime_str: str, timezone: str) -> DateTime:
        """
        Parse a datetime string to a pendulum DateTime in the specified timezone.
        """
        dt = pendulum.parse(datetime_str)

        if isinstance(dt, DateTime):
            return dt.in_timezone(timezone)

        raise ValueError(f"Could not parse datetime: {datetime_str}")

    def create_event(
        self,
        calendar_id: str,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
        summary: str,
        description: str = "",
        attendees: Optional[List[Dict[str, str]]] = None,
    ) -> Dict[str, Any]:
        """
        Create a calendar event and notify attendees.

        Returns:
            The created event resource as returned by the API

        Raises:
            EventCreationError: If the API call fails
            AuthenticationError: If the service account credentials are rejected
        """
        url = f"{self.CALENDAR_API_ENDPOINT}/calendars/{quote(calendar_id, safe='')}/events"

        payload = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": timeutil.to_utc_iso(start_time), "timeZone": timezone},
            "end": {"dateTime": timeutil.to_utc_iso(end_time), "timeZone": timezone},
            "attendees": attendees or [],
            "reminders": {"useDefault": True},
        }

        try:
            response = requests.post(
                url,
                headers=self._headers(),
                params={"sendUpdates": "all"},
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

        except TokenRefreshError as e:
            raise EventCreationError(f"Failed to create event in Google Calendar: {e}") from e
        except requests.exceptions.RequestException as e:
            raise EventCreationError(f"Failed to create event in Google Calendar: {e}") from e
        except ValueError as e:
            raise EventCreationError(f"Google Calendar returned an unreadable event response: {e}") from e

    def test_connection(self, calendar_id: str) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching calendar metadata.

        Returns:
            Calendar resource data

        Raises:
            UpstreamFetchError: If connection test fails
        """
        url = f"{self.CALENDAR_API_ENDPOINT}/calendars/{quote(calendar_id, safe='')}"

        try:
            response = requests.get(url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            raise UpstreamFetchError(f"Connection test failed: {e}") from e
