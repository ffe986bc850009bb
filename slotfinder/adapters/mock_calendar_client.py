"""
Mock Google Calendar client for testing without service-account credentials.
"""

import json
from datetime import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import DateTime
from rich.console import Console

from ..domain import timeutil
from ..domain.models import TimeRange

console = Console()


class MockCalendarClient:
    """
    Mock client that simulates Google Calendar API responses.

    Busy data comes from ``mock_calendar_data.json`` next to this module
    unless explicit events are given. Each entry is relative to today in
    the requested time zone:

        {"calendarId": "*", "day_offset": 1, "start": "10:00", "end": "11:00"}

    ``calendarId`` of ``"*"`` applies to every calendar. Events created via
    ``create_event`` are kept in memory and reported as busy afterwards.
    """

    def __init__(
        self,
        events: Optional[List[Dict[str, Any]]] = None,
        busy: Optional[Dict[str, List[TimeRange]]] = None,
    ):
        """
        Initialize the mock client.

        Args:
            events: Relative event definitions (overrides the JSON file)
            busy: Absolute busy ranges per calendar id
        """
        self.calendar_events = events if events is not None else self._load_calendar_data()
        self.busy = {calendar_id: list(ranges) for calendar_id, ranges in (busy or {}).items()}
        self.created_events: List[Dict[str, Any]] = []
        self.busy_queries: List[Dict[str, Any]] = []

    def _load_calendar_data(self) -> List[Dict[str, Any]]:
        """Load mock calendar data from JSON file."""
        data_file = Path(__file__).parent / "mock_calendar_data.json"

        if not data_file.exists():
            return []

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            console.print(f"[yellow]Warning: Could not load mock calendar data: {e}[/yellow]")
            return []

    def _resolve_event(self, event: Dict[str, Any], timezone: str) -> TimeRange:
        today = pendulum.now(timezone).start_of("day").add(days=int(event.get("day_offset", 0)))
        start = time.fromisoformat(event["start"])
        end = time.fromisoformat(event["end"])
        return TimeRange(
            start=timeutil.at_local_time(today, start, timezone),
            end=timeutil.at_local_time(today, end, timezone),
        )

    def get_busy(
        self,
        calendar_id: str,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
    ) -> List[TimeRange]:
        """
        Return busy times overlapping the requested window.
        """
        self.busy_queries.append(
            {
                "calendar_id": calendar_id,
                "start": start_time,
                "end": end_time,
                "timezone": timezone,
            }
        )

        window = TimeRange(start=start_time, end=end_time)
        busy_ranges: List[TimeRange] = list(self.busy.get(calendar_id, []))

        for event in self.calendar_events:
            if event.get("calendarId", "*") not in ("*", calendar_id):
                continue

            try:
                busy_ranges.append(self._resolve_event(event, timezone))
            except (KeyError, ValueError) as e:
                console.print(f"[yellow]Warning: Skipping invalid mock event: {e}[/yellow]")
                continue

        return sorted(
            (r for r in busy_ranges if r.overlaps(window)),
            key=lambda r: r.start,
        )

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
        Record an event in memory and mark its time as busy.
        """
        event = {
            "id": f"mock-event-{len(self.created_events) + 1}",
            "status": "confirmed",
            "summary": summary,
            "description": description,
            "start": {"dateTime": timeutil.to_utc_iso(start_time), "timeZone": timezone},
            "end": {"dateTime": timeutil.to_utc_iso(end_time), "timeZone": timezone},
            "attendees": attendees or [],
        }
        self.created_events.append(event)
        self.busy.setdefault(calendar_id, []).append(TimeRange(start=start_time, end=end_time))
        return event

    def test_connection(self, calendar_id: str) -> Dict[str, Any]:
        """
        Mock connection test.
        """
        return {
            "id": calendar_id,
            "summary": "Mock Calendar",
            "timeZone": "America/Chicago",
        }

