"""
slotfinder - Offer and book free meeting slots on a Google Calendar.
"""

__version__ = "0.1.0"
