import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(dt_value) -> Optional[datetime]:
    """
    Parse a datetime from a GitHub payload to naive UTC.

    Handles:
    - ISO string with timezone (e.g., "2024-01-01T00:00:00Z") -> naive UTC datetime
    - datetime object with timezone -> naive UTC datetime
    - datetime object without timezone -> returned as-is
    - None or invalid -> None
    """
    if dt_value is None:
        return None

    if isinstance(dt_value, datetime):
        if dt_value.tzinfo is not None:
            return dt_value.astimezone(timezone.utc).replace(tzinfo=None)
        return dt_value

    if isinstance(dt_value, str):
        try:
            dt = datetime.fromisoformat(dt_value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Failed to parse datetime string: {dt_value}")
            return None
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        return dt

    logger.warning(f"Unexpected datetime value type: {type(dt_value).__name__}")
    return None


def months_before(moment: datetime, months: int) -> datetime:
    """
    Calendar-month subtraction, clamping the day to the target month's length.

    2024-03-31 minus one month is 2024-02-29.
    """
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    if month == 12:
        next_month_first = datetime(year + 1, 1, 1)
    else:
        next_month_first = datetime(year, month + 1, 1)
    days_in_month = (next_month_first - datetime(year, month, 1)).days
    return moment.replace(year=year, month=month, day=min(moment.day, days_in_month))


def from_epoch(seconds: int) -> datetime:
    """Epoch seconds (e.g. X-RateLimit-Reset) as naive UTC."""
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc).replace(tzinfo=None)
