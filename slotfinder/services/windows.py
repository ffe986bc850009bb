"""
Resolution of relative range tokens and boundary timestamps into query windows.
"""

from typing import Optional, Tuple, Union

from pendulum import DateTime

from ..domain import timeutil
from ..domain.exceptions import InvalidRangeError, InvalidWindowError
from ..domain.models import QueryWindow

RELATIVE_RANGES = ("week", "fortnight", "month")
CUSTOM_RANGE = "custom"

Timestamp = Union[str, int, DateTime]


def resolve_window(
    range_name: Optional[str],
    timezone: str,
    start: Optional[Timestamp] = None,
    end: Optional[Timestamp] = None,
    now: Optional[DateTime] = None,
    default_range: str = "month",
) -> Tuple[QueryWindow, str]:
    """
    Turn a range token or explicit bounds into a QueryWindow.

    Relative ranges start at the local midnight of today in ``timezone``:

    - ``week``: through the end of the day seven days from today
    - ``fortnight``: through the end of the day fourteen days from today
    - ``month``: through the end of the current month
    - ``custom``: ``start`` and ``end`` are both required

    Explicit bounds without a range token imply ``custom``; combining them
    with a relative range is rejected.

    Returns:
        Tuple of (window, effective range name)

    Raises:
        InvalidRangeError: If the range token is unknown or combined with from/to
        InvalidWindowError: If custom bounds are missing or inverted
        InvalidTimestampError: If a bound cannot be parsed
    """
    if range_name:
        range_name = range_name.strip().lower()
    elif start is not None or end is not None:
        range_name = CUSTOM_RANGE
    else:
        range_name = default_range

    if range_name == CUSTOM_RANGE:
        if start is None or end is None:
            raise InvalidWindowError("For range=custom you must supply both from and to")
        window = QueryWindow(
            start=timeutil.parse_instant(start),
            end=timeutil.parse_instant(end),
        )
        return window, range_name

    if range_name not in RELATIVE_RANGES:
        raise InvalidRangeError(
            f"Unknown range '{range_name}'. Use one of: {', '.join(RELATIVE_RANGES + (CUSTOM_RANGE,))}"
        )

    if start is not None or end is not None:
        raise InvalidRangeError(f"from/to are only accepted with range=custom, not range={range_name}")

    today = timeutil.local_day_start(now or timeutil.utc_now(), timezone)

    if range_name == "week":
        window_end = today.add(days=7).end_of("day")
    elif range_name == "fortnight":
        window_end = today.add(days=14).end_of("day")
    else:
        window_end = today.end_of("month")

    return QueryWindow(start=today, end=window_end), range_name
