"""
Core business logic for finding bookable time slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from typing import Iterator, List, Optional, Sequence

from pendulum import DateTime

from . import timeutil
from .exceptions import InvalidDurationError, InvalidLimitError, InvalidWindowError
from .models import BusinessHours, FreeSlot, QueryWindow, TimeRange


class SlotFinder:
    """
    Calculates duration-aligned free slots from busy times and business hours.

    Algorithm:
    1. Walk the civil days of the query window in the target time zone
    2. For each day, take the business-hours window and the busy times overlapping it
    3. Fill each gap before a busy block with back-to-back slots of the requested length
    4. Move the cursor past the busy block (never backwards)
    5. Fill the tail gap up to the end of business hours
    6. Stop as soon as the limit is reached

    Slots are anchored to the start of each gap, not to a clock grid, and a
    slot is only kept if it starts after "now".
    """

    def __init__(self, business_hours: BusinessHours, clock: Optional[timeutil.Clock] = None):
        self.business_hours = business_hours
        self.clock = clock or timeutil.utc_now

    def find_slots(
        self,
        window: QueryWindow,
        timezone: str,
        busy: Sequence[TimeRange],
        duration_minutes: int,
        max_slots: int,
    ) -> List[FreeSlot]:
        """
        Find free slots for a single calendar.

        Args:
            window: Global search range
            timezone: IANA zone the business hours are read in
            busy: Busy intervals, ideally sorted ascending by start
            duration_minutes: Exact length of every returned slot
            max_slots: Maximum number of slots to return

        Returns:
            List of FreeSlot objects in ascending start order
        """
        self._check_arguments(window, duration_minutes, max_slots)

        slots: List[FreeSlot] = []
        day = timeutil.local_day_start(window.start, timezone)

        while day < window.end and len(slots) < max_slots:
            business = self.business_hours.window_for_day(day, timezone)

            # Skip days that close before the window opens or open after it ends
            if business.end > window.start and business.start < window.end:
                for slot_range in self._free_ranges_for_day(business, busy, duration_minutes):
                    slots.append(FreeSlot(time_range=slot_range, timezone=timezone))
                    if len(slots) >= max_slots:
                        break

            day = timeutil.next_day(day)

        return slots

    def _free_ranges_for_day(
        self,
        business: TimeRange,
        busy: Sequence[TimeRange],
        duration_minutes: int,
    ) -> Iterator[TimeRange]:
        """
        Yield the slots of one business day, left to right.

        Example (30 min):
        Business: 09:00 - 17:00
        Busy: [10:00-10:45]
        Result: 09:00, 09:30, 10:45, 11:15, ... 16:15
        """
        todays_busy = sorted(
            (
                b for b in busy
                if b.end > b.start and b.end > business.start and b.start < business.end
            ),
            key=lambda b: b.start,
        )

        window_start = business.start

        for block in todays_busy:
            if block.start > window_start:
                yield from self._fill_gap(window_start, block.start, duration_minutes)

            if block.end > window_start:
                window_start = block.end

        if window_start < business.end:
            yield from self._fill_gap(window_start, business.end, duration_minutes)

    def _fill_gap(
        self,
        gap_start: DateTime,
        gap_end: DateTime,
        duration_minutes: int,
    ) -> Iterator[TimeRange]:
        """Yield whole slots inside [gap_start, gap_end) that start after now."""
        slot_start = gap_start
        slot_end = timeutil.add_minutes(slot_start, duration_minutes)

        while slot_end <= gap_end:
            if slot_start > self.clock():
                yield TimeRange(start=slot_start, end=slot_end)
            slot_start = slot_end
            slot_end = timeutil.add_minutes(slot_start, duration_minutes)

    @staticmethod
    def _check_arguments(window: QueryWindow, duration_minutes: int, max_slots: int) -> None:
        if window.start >= window.end:
            raise InvalidWindowError(f"Window start {window.start} must be before window end {window.end}")
        if duration_minutes <= 0:
            raise InvalidDurationError(f"Slot duration must be greater than zero, got {duration_minutes}")
        if max_slots <= 0:
            raise InvalidLimitError(f"Slot limit must be greater than zero, got {max_slots}")
