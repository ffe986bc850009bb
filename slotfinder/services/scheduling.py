"""
Application services for offering and booking free slots.

The service coordinates fetching busy times via a calendar client adapter and
delegates the actual slot computation to the domain-level ``SlotFinder``.
This keeps the API and CLI thin and allows the calendar dependency to be
replaced via a simple protocol.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

from pendulum import DateTime

from ..domain import timeutil
from ..domain.exceptions import InvalidWindowError, MissingCalendarError
from ..domain.models import BusinessHours, FreeSlot, QueryWindow, SlotRequest, TimeRange
from ..domain.slot_finder import SlotFinder


class CalendarClientProtocol(Protocol):
    """Protocol describing the calendar client behaviour needed by the service."""

    def get_busy(
        self,
        calendar_id: str,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
    ) -> List[TimeRange]:
        """Return busy time ranges for one calendar."""

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
        """Create an event and return the provider's representation."""


@dataclass(frozen=True)
class SlotSearchResult:
    """Free slots plus the parameters they were computed for."""
    slots: List[FreeSlot]
    window: QueryWindow
    timezone: str
    duration_minutes: int
    range_name: str = "custom"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slots": [slot.to_dict() for slot in self.slots],
            "tz": self.timezone,
            "durationMin": self.duration_minutes,
            "window": {
                "fromISO": timeutil.to_utc_iso(self.window.start),
                "toISO": timeutil.to_utc_iso(self.window.end),
                "range": self.range_name,
            },
        }


@dataclass(frozen=True)
class BookingRequest:
    """
    A request to put an event on a calendar.

    The slot is not re-checked against fresh busy data.
    """
    calendar_id: str
    start: DateTime
    end: DateTime
    timezone: str
    summary: str
    description: str = ""
    attendees: List[Dict[str, str]] = field(default_factory=list)

    def __post_init__(self):
        if not self.calendar_id:
            raise MissingCalendarError("A calendar id is required")
        timeutil.ensure_timezone(self.timezone)
        if self.start >= self.end:
            raise InvalidWindowError(f"Event start {self.start} must be before event end {self.end}")

    @staticmethod
    def normalize_attendees(attendees: Optional[Sequence[Union[str, Dict[str, str]]]]) -> List[Dict[str, str]]:
        """Accept plain e-mail addresses as well as attendee objects."""
        normalized: List[Dict[str, str]] = []
        for attendee in attendees or []:
            if isinstance(attendee, str):
                normalized.append({"email": attendee})
            else:
                normalized.append(dict(attendee))
        return normalized


class SchedulingService:
    """
    Orchestrates busy-time retrieval, slot calculation and booking.

    Dependency inversion toward a protocol makes it easy to plug in the real
    Google Calendar adapter or the mock implementation in tests.
    """

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        business_hours: BusinessHours,
        clock: Optional[timeutil.Clock] = None,
        lead_minutes: int = 0,
    ) -> None:
        self._calendar_client = calendar_client
        self._business_hours = business_hours
        self._clock = clock or timeutil.utc_now
        self._lead_minutes = lead_minutes

    def _cutoff(self) -> DateTime:
        return timeutil.add_minutes(self._clock(), self._lead_minutes)

    def find_free_slots(
        self,
        request: SlotRequest,
        calendar_id: Optional[str],
        range_name: str = "custom",
    ) -> SlotSearchResult:
        """
        Retrieve busy data once and compute the free slots for it.

        Raises:
            MissingCalendarError: If no calendar id is given
            UpstreamFetchError: If the busy-interval query fails
        """
        if not calendar_id:
            raise MissingCalendarError("missing calendarId")

        busy = self.fetch_busy_times(calendar_id=calendar_id, request=request)

        finder = SlotFinder(business_hours=self._business_hours, clock=self._cutoff)
        slots = finder.find_slots(
            window=request.window,
            timezone=request.timezone,
            busy=busy,
            duration_minutes=request.duration_minutes,
            max_slots=request.max_slots,
        )

        # Drop slots that went stale while the list was being built
        cutoff = self._cutoff()
        slots = [slot for slot in slots if slot.start > cutoff]

        return SlotSearchResult(
            slots=slots,
            window=request.window,
            timezone=request.timezone,
            duration_minutes=request.duration_minutes,
            range_name=range_name,
        )

    def fetch_busy_times(self, *, calendar_id: str, request: SlotRequest) -> List[TimeRange]:
        """
        Fetch busy times for the request window, sorted by start.

        Slots on the last day may run until that day's close, so the query
        is extended to cover it.
        """
        return sorted(
            self._calendar_client.get_busy(
                calendar_id=calendar_id,
                start_time=request.window.start,
                end_time=self._fetch_end(request),
                timezone=request.timezone,
            ),
            key=lambda r: r.start,
        )

    def _fetch_end(self, request: SlotRequest) -> DateTime:
        last_day = timeutil.local_day_start(request.window.end, request.timezone)
        business = self._business_hours.window_for_day(last_day, request.timezone)
        if business.start < request.window.end:
            return max(request.window.end, business.end)
        return request.window.end

    def book_slot(self, request: BookingRequest) -> Dict[str, Any]:
        """Create the calendar event for a chosen slot."""
        return self._calendar_client.create_event(
            calendar_id=request.calendar_id,
            start_time=request.start,
            end_time=request.end,
            timezone=request.timezone,
            summary=request.summary,
            description=request.description,
            attendees=request.attendees,
        )
