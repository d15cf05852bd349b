"""
Local date-range resolution for report filters.

Ranges are inclusive pairs of local calendar dates. Records are matched by
comparing their local day (see ``TimestampParser``) against the bounds, so a
sale rung up at 23:30 local time never lands in the next day's bucket.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Any

from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

from .parsers import TimestampParser

logger = logging.getLogger(__name__)

SUPPORTED_DAY_WINDOWS = (3, 7)


class Preset(Enum):
    TODAY = "today"
    LAST_DAYS = "last-days"
    THIS_WEEK = "this-week"
    LAST_WEEK = "last-week"
    THIS_MONTH = "this-month"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CUSTOM = "custom"


@dataclass(frozen=True)
class DateRange:
    """Inclusive local date range. ``diagnostic`` is set when input was invalid."""

    start: date
    end: date
    label: str = ""
    diagnostic: str | None = None

    def contains(self, day: date | None) -> bool:
        if day is None:
            return False
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def is_fallback(self) -> bool:
        return self.diagnostic is not None


# Spellings used by the shop's filter dropdowns plus the long forms
_NAMED_PRESETS = {
    "today": (Preset.TODAY, None),
    "week": (Preset.THIS_WEEK, None),
    "this-week": (Preset.THIS_WEEK, None),
    "last-week": (Preset.LAST_WEEK, None),
    "month": (Preset.THIS_MONTH, None),
    "this-month": (Preset.THIS_MONTH, None),
    "year": (Preset.YEAR, None),
    "custom": (Preset.CUSTOM, None),
}
_DAYS_PATTERN = re.compile(r"^(?:last-)?(\d+)-?days$")
_MONTH_PATTERN = re.compile(r"^month-?(\d+)$")
_QUARTER_PATTERN = re.compile(r"^(?:q|quarter-)(\d+)$")


def parse_preset(text: str) -> tuple[Preset, int | None] | None:
    """
    Parse a filter name into a preset and its number.

    Examples: "today", "7days", "last-3-days", "week", "month", "month3",
    "month-3", "q2", "quarter-2", "year", "custom". Returns None when the
    text is not a known preset. Range checks on the number happen in
    ``resolve``.
    """
    key = text.strip().lower()
    if key in _NAMED_PRESETS:
        return _NAMED_PRESETS[key]
    for pattern, preset in (
        (_DAYS_PATTERN, Preset.LAST_DAYS),
        (_MONTH_PATTERN, Preset.MONTH),
        (_QUARTER_PATTERN, Preset.QUARTER),
    ):
        match = pattern.match(key)
        if match:
            return preset, int(match.group(1))
    return None


def month_range(year: int, month: int, label: str = "") -> DateRange:
    """Full calendar month."""
    start = date(year, month, 1)
    end = start + relativedelta(months=1, days=-1)
    return DateRange(start, end, label or f"{year}-{month:02d}")


def local_today(now: datetime | date, timezone: str | tzinfo | None = None) -> date:
    """Local calendar day of ``now``; aware values are converted first."""
    if isinstance(now, datetime):
        if timezone is not None and now.tzinfo is not None:
            return TimestampParser(timezone).localize(now).date()
        return now.date()
    return now


def _parse_bound(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return dateutil_parser.isoparse(str(value).strip()).date()
    except (ValueError, OverflowError):
        return None


def _this_month(today: date, diagnostic: str | None = None) -> DateRange:
    # Rolling filter stops at today so future days do not show as zero
    return DateRange(today.replace(day=1), today, "this-month", diagnostic)


def resolve(
    preset: str | Preset,
    now: datetime | date,
    custom_start: Any = None,
    custom_end: Any = None,
    timezone: str | tzinfo | None = None,
) -> DateRange:
    """
    Resolve a report filter into an inclusive local date range.

    Args:
        preset: filter name (see ``parse_preset``) or a ``Preset``
        now: current moment; aware values are converted to ``timezone``
        custom_start, custom_end: bounds for the custom preset (date,
            datetime or ISO string)
        timezone: shop timezone used to convert an aware ``now``

    Invalid input never raises: it falls back to this month and the returned
    range carries a ``diagnostic`` message.
    """
    today = local_today(now, timezone)

    if isinstance(preset, Preset):
        parsed: tuple[Preset, int | None] | None = (preset, None)
    else:
        parsed = parse_preset(str(preset))
    if parsed is None:
        message = f"Unknown date preset {preset!r}; using this month"
        logger.info(message)
        return _this_month(today, message)

    kind, number = parsed

    if kind is Preset.TODAY:
        return DateRange(today, today, "today")

    if kind is Preset.LAST_DAYS:
        window = number if number is not None else 7
        if window not in SUPPORTED_DAY_WINDOWS:
            message = f"Unsupported day window {window}; using this month"
            logger.info(message)
            return _this_month(today, message)
        return DateRange(today - timedelta(days=window - 1), today, f"last-{window}-days")

    if kind in (Preset.THIS_WEEK, Preset.LAST_WEEK):
        # isoweekday: Monday=1 .. Sunday=7, so Sunday belongs to the week that started 6 days ago
        monday = today - timedelta(days=today.isoweekday() - 1)
        if kind is Preset.THIS_WEEK:
            return DateRange(monday, today, "this-week")
        last_monday = monday - timedelta(days=7)
        return DateRange(last_monday, last_monday + timedelta(days=6), "last-week")

    if kind is Preset.THIS_MONTH:
        return _this_month(today)

    if kind is Preset.MONTH:
        if number is None or not 1 <= number <= 12:
            message = f"Month {number} out of range; using this month"
            logger.info(message)
            return _this_month(today, message)
        return month_range(today.year, number, f"month-{number}")

    if kind is Preset.QUARTER:
        if number is None or not 1 <= number <= 4:
            message = f"Quarter {number} out of range; using this month"
            logger.info(message)
            return _this_month(today, message)
        start = date(today.year, (number - 1) * 3 + 1, 1)
        end = start + relativedelta(months=3, days=-1)
        return DateRange(start, end, f"quarter-{number}")

    if kind is Preset.YEAR:
        return DateRange(date(today.year, 1, 1), today, "year")

    start, end = _parse_bound(custom_start), _parse_bound(custom_end)
    if start is None or end is None:
        message = f"Unreadable custom range {custom_start!r}..{custom_end!r}; using this month"
        logger.info(message)
        return _this_month(today, message)
    if end < start:
        message = f"Custom range ends ({end}) before it starts ({start}); using this month"
        logger.info(message)
        return _this_month(today, message)
    return DateRange(start, end, "custom")


def previous_range(
    preset: str | Preset, now: datetime | date, timezone: str | tzinfo | None = None
) -> DateRange:
    """
    Comparison period for a filter.

    - month filters: the full previous month
    - year: the full previous year
    - 7days: the seven days before the current window
    - anything else: the full previous month
    """
    today = local_today(now, timezone)
    parsed = (preset, None) if isinstance(preset, Preset) else parse_preset(str(preset))
    kind, number = parsed if parsed is not None else (None, None)

    if kind is Preset.YEAR:
        return DateRange(date(today.year - 1, 1, 1), date(today.year - 1, 12, 31), "previous-year")

    if kind is Preset.LAST_DAYS and number == 7:
        current_start = today - timedelta(days=6)
        return DateRange(
            current_start - timedelta(days=7),
            current_start - timedelta(days=1),
            "previous-7-days",
        )

    last_month = today.replace(day=1) - relativedelta(months=1)
    return month_range(last_month.year, last_month.month, "previous-month")
