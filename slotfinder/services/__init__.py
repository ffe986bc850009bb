"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .scheduling import BookingRequest, CalendarClientProtocol, SchedulingService, SlotSearchResult
from .windows import resolve_window

__all__ = [
    "BookingRequest",
    "CalendarClientProtocol",
    "SchedulingService",
    "SlotSearchResult",
    "resolve_window",
]
