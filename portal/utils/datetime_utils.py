# portal/utils/datetime_utils.py
"""
Central date/time helpers shared by every service.

- All stored timestamps are timezone-aware UTC datetimes.
- Firestore reads/writes go through for_firestore/from_firestore.
- The event form edits a date and a time-of-day separately; combine_date_time
  and shift_time_of_day put them back together.
"""

import logging
import re
from datetime import datetime, date, timezone, time, timedelta
from typing import Any, Optional, Tuple
from dateutil import parser as dateutil_parser
from dateutil import tz as dateutil_tz

logger = logging.getLogger(__name__)

_TIME_OF_DAY_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


class DateTimeUtils:
    """Date/time utility functions used across the portal."""

    @staticmethod
    def now() -> datetime:
        """Current time as a UTC timezone-aware datetime."""
        return datetime.now(timezone.utc)

    @staticmethod
    def parse_iso_datetime(iso_string: str) -> datetime:
        """
        Parse an ISO-8601 string into a UTC datetime.

        Supported:
        - 2025-06-10T14:00:00Z
        - 2025-06-10T14:00:00+02:00
        - 2025-06-10T14:00:00.123456Z
        - 2025-06-10T14:00:00 (assumed UTC)
        """
        try:
            if not iso_string:
                raise ValueError("Cannot parse an empty string")

            if iso_string.endswith('Z'):
                iso_string = iso_string[:-1] + '+00:00'

            dt = dateutil_parser.isoparse(iso_string)

            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)

            return dt.astimezone(timezone.utc)

        except Exception as e:
            logger.error(f"ISO datetime parse failed: {iso_string} - {e}")
            raise ValueError(f"Invalid ISO datetime: {iso_string}")

    @staticmethod
    def parse_time_of_day(value: str) -> time:
        """Parse "HH:MM" (hour may be a single digit) into a time."""
        match = _TIME_OF_DAY_PATTERN.match(value.strip()) if isinstance(value, str) else None
        if not match:
            raise ValueError(f"Invalid time of day: {value}")
        return time(int(match.group(1)), int(match.group(2)))

    @staticmethod
    def format_time_of_day(t: time) -> str:
        return f"{t.hour:02d}:{t.minute:02d}"

    @staticmethod
    def combine_date_time(d: date, time_of_day: str) -> datetime:
        """Join a calendar date and an "HH:MM" string into a naive wall-clock datetime."""
        return datetime.combine(d, DateTimeUtils.parse_time_of_day(time_of_day))

    @staticmethod
    def shift_time_of_day(d: date, time_of_day: str, hours: int) -> Tuple[date, str]:
        """
        Move a (date, "HH:MM") pair by whole hours.
        The time of day wraps at 24h and the date rolls with it.
        """
        shifted = DateTimeUtils.combine_date_time(d, time_of_day) + timedelta(hours=hours)
        return shifted.date(), DateTimeUtils.format_time_of_day(shifted.time())

    @staticmethod
    def localize(naive: datetime, zone_name: Optional[str]) -> datetime:
        """Interpret a naive wall-clock datetime in zone_name and convert it to UTC."""
        zone = dateutil_tz.gettz(zone_name) if zone_name else None
        if zone is None:
            zone = timezone.utc
        return naive.replace(tzinfo=zone).astimezone(timezone.utc)

    @staticmethod
    def for_firestore(obj: Any) -> Any:
        """
        Convert date/time values before writing to Firestore.

        - date -> datetime at 00:00 UTC
        - naive datetime -> UTC datetime
        - dicts and lists are converted recursively
        """
        if isinstance(obj, date) and not isinstance(obj, datetime):
            return datetime.combine(obj, time.min).replace(tzinfo=timezone.utc)

        elif isinstance(obj, datetime):
            if obj.tzinfo is None:
                return obj.replace(tzinfo=timezone.utc)
            return obj.astimezone(timezone.utc)

        elif isinstance(obj, dict):
            return {k: DateTimeUtils.for_firestore(v) for k, v in obj.items()}

        elif isinstance(obj, (list, tuple)):
            return [DateTimeUtils.for_firestore(item) for item in obj]

        return obj

    @staticmethod
    def from_firestore(obj: Any) -> Any:
        """
        Normalise values read from Firestore.

        - Firestore timestamps -> UTC datetime
        - dicts and lists are converted recursively
        """
        try:
            if isinstance(obj, datetime):
                if obj.tzinfo is None:
                    return obj.replace(tzinfo=timezone.utc)
                return obj.astimezone(timezone.utc)

            elif hasattr(obj, 'timestamp') and callable(obj.timestamp):
                return datetime.fromtimestamp(obj.timestamp(), tz=timezone.utc)

            elif isinstance(obj, dict):
                return {k: DateTimeUtils.from_firestore(v) for k, v in obj.items()}

            elif isinstance(obj, list):
                return [DateTimeUtils.from_firestore(item) for item in obj]

            return obj

        except Exception as e:
            logger.error(f"Firestore read conversion failed: {obj} ({type(obj)}) - {e}")
            return obj
