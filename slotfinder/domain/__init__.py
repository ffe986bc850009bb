"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import BusinessHours, FreeSlot, QueryWindow, SlotRequest, TimeRange
from .slot_finder import SlotFinder

__all__ = ["BusinessHours", "FreeSlot", "QueryWindow", "SlotRequest", "TimeRange", "SlotFinder"]
