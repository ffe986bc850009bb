"""
Small time-arithmetic contract used by the domain layer.

Everything the slot finder needs from a date/time library goes through
these helpers: adding minutes, locating business-day boundaries in a zone,
stepping civil days and normalising boundary timestamps. The rest of the
package only compares instants with the regular operators.
"""

import re
from datetime import time
from typing import Callable, Union

import pendulum
from pendulum import DateTime

from .exceptions import InvalidTimestampError, InvalidTimezoneError

Clock = Callable[[], DateTime]

_EPOCH_MILLIS = re.compile(r"^\d{13}$")


def utc_now() -> DateTime:
    """Default clock: the current instant in UTC."""
    return pendulum.now("UTC")


def ensure_timezone(name: str) -> str:
    """
    Validate an IANA time zone name.

    Raises:
        InvalidTimezoneError: If the zone is unknown to the tz database
    """
    if not name:
        raise InvalidTimezoneError("Time zone must not be empty")
    try:
        pendulum.timezone(name)
    except (ValueError, KeyError) as e:
        raise InvalidTimezoneError(f"Unknown time zone: '{name}'") from e
    return name


def add_minutes(instant: DateTime, minutes: int) -> DateTime:
    """Return the instant shifted by an absolute number of minutes."""
    return instant.add(minutes=minutes)


def local_day_start(instant: DateTime, timezone: str) -> DateTime:
    """Midnight of the civil day containing ``instant`` in ``timezone``."""
    return instant.in_timezone(timezone).start_of("day")


def next_day(day: DateTime) -> DateTime:
    """Midnight of the following civil day, DST-aware."""
    return day.add(days=1).start_of("day")


def at_local_time(day: DateTime, at: time, timezone: str) -> DateTime:
    """The instant at which the wall clock in ``timezone`` shows ``at`` on ``day``."""
    return pendulum.datetime(
        day.year,
        day.month,
        day.day,
        at.hour,
        at.minute,
        tz=timezone,
    )


def to_utc_iso(instant: DateTime) -> str:
    """Format an instant as an ISO-8601 string in UTC."""
    return instant.in_timezone("UTC").to_iso8601_string()


def parse_instant(value: Union[str, int, DateTime], default_tz: str = "UTC") -> DateTime:
    """
    Parse a boundary timestamp into an aware DateTime.

    Accepts pendulum DateTimes, epoch milliseconds (13-digit int or string)
    and ISO-8601 strings. Strings without an offset are read in ``default_tz``.

    Raises:
        InvalidTimestampError: If the value cannot be interpreted
    """
    if isinstance(value, DateTime):
        return value

    if isinstance(value, bool):
        raise InvalidTimestampError(f"Could not parse timestamp: {value!r}")

    text = str(value).strip()

    if _EPOCH_MILLIS.match(text):
        return pendulum.from_timestamp(int(text) / 1000, tz="UTC")

    try:
        parsed = pendulum.parse(text, tz=default_tz)
    except (ValueError, TypeError, OverflowError) as e:
        raise InvalidTimestampError(f"Could not parse timestamp: {value!r}") from e

    if not isinstance(parsed, DateTime):
        raise InvalidTimestampError(f"Timestamp is not a date-time: {value!r}")

    return parsed


def normalize_timestamp(value: Union[str, int, DateTime]) -> str:
    """Normalise ISO-8601 or epoch-millisecond input to a UTC ISO-8601 string."""
    return to_utc_iso(parse_instant(value))
