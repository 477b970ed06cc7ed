"""Date manipulation utilities"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple


def day_bounds(
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Turn an inclusive date range into [start, end) datetime bounds.

    The end bound is midnight after `end`, so a payment made late on the
    last day still falls inside the range.
    """
    start_dt = datetime.combine(start, time.min) if start else None
    end_dt = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return start_dt, end_dt
