# lambdas/backup_report/time_window.py
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from models import TimeWindow

# Reports are cut on Turkey time (UTC+3). The offset is fixed, there is no DST.
DISPLAY_UTC_OFFSET = timedelta(hours=3)

# The window closes at 23:59:00, so events in the last minute of the day
# (23:59:01 - 23:59:59) fall outside every report.
START_OF_DAY = time(0, 0, 0)
END_OF_DAY = time(23, 59, 0)

WIRE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def compute_report_window(now: Optional[datetime] = None) -> TimeWindow:
    """
    Computes yesterday's window, 00:00:00 to 23:59:00 at UTC+3, in the
    UTC wire format the operation log API expects.

    Args:
        now: The invocation instant. Defaults to the current UTC time; a naive
            value is taken as UTC.

    Returns:
        A TimeWindow with start/end timestamps and the report date tag.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    # "Yesterday" is taken on the UTC calendar
    yesterday = (now.astimezone(timezone.utc) - timedelta(days=1)).date()

    start = datetime.combine(yesterday, START_OF_DAY, tzinfo=timezone.utc) - DISPLAY_UTC_OFFSET
    end = datetime.combine(yesterday, END_OF_DAY, tzinfo=timezone.utc) - DISPLAY_UTC_OFFSET

    return TimeWindow(
        start_time=start.strftime(WIRE_FORMAT),
        end_time=end.strftime(WIRE_FORMAT),
        date_tag=end.date().isoformat(),
    )
