"""
Parsers for the loosely typed values found in store exports.

These parsers handle the messy reality of records entered from different
screens of the shop application:
- ISO instants with a UTC offset next to naive local timestamps
- Date-only strings and day-first local formats
- Numbers stored as strings, nulls, or not at all
"""

from datetime import date, datetime, tzinfo
from typing import Any

import pandas as pd
import pytz
from dateutil import parser as dateutil_parser


class TimestampParser:
    """
    Parses stored timestamps into aware datetimes in the shop's local timezone.

    Instants carrying an offset (``2024-05-01T16:30:00Z``) are converted to
    local time. Naive values are already local wall-clock time and are only
    localized. Grouping by ``.date()`` of the result therefore gives the local
    calendar day, never a UTC-shifted one.
    """

    # Non-ISO formats seen in manual entry, tried after ISO parsing fails
    DATE_FORMATS = [
        "%d/%m/%Y %H:%M:%S",  # 25/08/2024 23:30:00
        "%d/%m/%Y %H:%M",     # 25/08/2024 23:30
        "%d/%m/%Y",           # 25/08/2024
        "%d-%m-%Y",           # 25-08-2024
        "%Y/%m/%d",           # 2024/08/25
    ]

    def __init__(self, timezone: str | tzinfo = "Asia/Ho_Chi_Minh"):
        """
        Args:
            timezone: IANA name or tzinfo of the shop's local time
        """
        self.tz = pytz.timezone(timezone) if isinstance(timezone, str) else timezone
        self._cache: dict[str, datetime | None] = {}

    def localize(self, value: datetime) -> datetime:
        """Express a datetime in local time, treating naive values as local."""
        if value.tzinfo is None:
            if hasattr(self.tz, "localize"):
                return self.tz.localize(value)
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def parse(self, value: Any) -> datetime | None:
        """Parse a stored timestamp. Returns None when it cannot be read."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return self.localize(value)
        if isinstance(value, date):
            return self.localize(datetime(value.year, value.month, value.day))
        if not isinstance(value, str):
            return None

        text = value.strip()
        if not text:
            return None
        if text in self._cache:
            return self._cache[text]

        result = self._parse_text(text)
        self._cache[text] = result
        return result

    def local_date(self, value: Any) -> date | None:
        """Local calendar day of a stored timestamp."""
        parsed = self.parse(value)
        return parsed.date() if parsed is not None else None

    def _parse_text(self, text: str) -> datetime | None:
        try:
            return self.localize(dateutil_parser.isoparse(text))
        except (ValueError, OverflowError):
            pass

        for fmt in self.DATE_FORMATS:
            try:
                return self.localize(datetime.strptime(text, fmt))
            except ValueError:
                continue
        return None


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce a stored numeric value to float, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if not isinstance(value, (int, float, str)):
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return default
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number):
        return default
    return float(number)


def to_text(value: Any) -> str:
    """Coerce a stored value to a stripped string ("" for nulls)."""
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip()
