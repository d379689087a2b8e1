"""
Date normalization for scraped event dates.

Every marketplace prints dates its own way ("Jan 17 2025 7:00 PM",
"Jan 17 Fri 7:00pm", "Dec 2510:00pm", "17 Jan 7:00 PM", "Tomorrow 8 PM",
ISO strings from APIs...). ``DateNormalizer`` reduces all of them to a naive
``datetime`` carrying the local wall-clock reading of the show, truncated to
the minute. No timezone conversion happens anywhere: the digits printed by
the source are the digits stored.

A string with no time of day normalizes to midnight.
"""
import re
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from dateutil import parser as date_parser

from ..core.exceptions import DateParseError
from ..core.logging import get_logger

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:00"

MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]
MONTHS: Dict[str, int] = {name[:3]: index for index, name in enumerate(MONTH_NAMES, start=1)}

_ISO_PREFIX_RE = re.compile(r"^\s*\d{4}-\d{2}-\d{2}")

# Noise removed before the dialect patterns run
_TICKETS_LEFT_RE = re.compile(r"(?:only\s+)?\d*\s*(?:tickets?\s+)?left\b", re.IGNORECASE)
_NON_ASCII_RE = re.compile(r"[^\x00-\x7f]+")
_WEEKDAY_RE = re.compile(r"(?<![a-z])(?:mon|tue|wed|thu|fri|sat|sun)[a-z]*\.?", re.IGNORECASE)
_MERIDIEM_RE = re.compile(r"(\d)\s*([ap])\.?\s?m\b\.?", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"[,@|•]+")
_SPACE_RE = re.compile(r"\s+")

_MONTH = r"(?P<month>[a-z]{3,9})\.?"
_DAY = r"(?P<day>\d{1,2})(?:st|nd|rd|th)?"
_TIME = r"(?:at\s+)?(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<ampm>[ap]m)"
_TIME_24 = r"(?:at\s+)?(?P<hour>\d{1,2})(?=:\d{2}|\s*[ap]m\b)(?::(?P<minute>\d{2}))?\s*(?P<ampm>[ap]m)?"

PATTERNS: Dict[str, re.Pattern] = {
    # "jan 17 2025 7:00 pm", "jan 17 2025 19:00"
    "month_day_year_time": re.compile(rf"{_MONTH}\s+{_DAY}\s+(?P<year>\d{{4}})\s+{_TIME_24}"),
    # "jan 17 7:00 pm"
    "month_day_time": re.compile(rf"{_MONTH}\s+{_DAY}\s+{_TIME}"),
    # "17 jan 7:00 pm", "17 jan 2025 7:00 pm"
    "day_month_time": re.compile(rf"{_DAY}\s+{_MONTH}(?:\s+(?P<year>\d{{4}}))?\s+{_TIME}"),
    # "7:00 pm jan 17 2025", "19:00 jan 17"
    "time_month_day": re.compile(
        r"(?P<hour>\d{1,2})(?=:\d{2}|\s*[ap]m\b)(?::(?P<minute>\d{2}))?\s*(?P<ampm>[ap]m)?"
        rf"\s+{_MONTH}\s+{_DAY}(?:\s+(?P<year>\d{{4}}))?"
    ),
    # "dec 2510:00 pm" (day and hour run together)
    "month_concatenated": re.compile(r"(?P<month>[a-z]{3,9})\s*(?P<digits>\d{2,4}):(?P<minute>\d{2})\s*(?P<ampm>[ap]m)"),
    # "01/17/2025", "01/17/2025 7:00 pm"
    "numeric_us": re.compile(
        r"(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4})"
        r"(?:\s+(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<ampm>[ap]m)?)?"
    ),
    # "today 7:00 pm", "tomorrow", "tonight 8 pm"
    "relative": re.compile(r"(?P<relative>today|tonight|tomorrow)(?:\s+" + _TIME + r")?"),
    # "jan 17 2025"
    "month_day_year": re.compile(rf"{_MONTH}\s+{_DAY}\s+(?P<year>\d{{4}})"),
    # "jan 17"
    "month_day": re.compile(rf"{_MONTH}\s+{_DAY}\b"),
}

SOURCE_DIALECTS: Dict[str, List[str]] = {
    "stubhub": ["month_day_year_time", "day_month_time", "month_day_time"],
    "vividseats": ["month_day_year_time", "month_day_time", "month_concatenated"],
}

GENERIC_DIALECT = [
    "numeric_us",
    "month_day_year_time",
    "month_day_time",
    "day_month_time",
    "time_month_day",
    "relative",
    "month_day_year",
    "month_day",
]


def format_timestamp(value: datetime) -> str:
    """Render a normalized date the way it is compared and logged."""
    return value.strftime(TIMESTAMP_FORMAT)


def same_day(a: datetime, b: datetime) -> bool:
    return (a.year, a.month, a.day) == (b.year, b.month, b.day)


def same_instant(a: datetime, b: datetime) -> bool:
    return same_day(a, b) and (a.hour, a.minute) == (b.hour, b.minute)


def has_time_of_day(value: datetime) -> bool:
    """Midnight is what date-only strings normalize to, so it means "unknown"."""
    return (value.hour, value.minute) != (0, 0)


def day_difference(a: datetime, b: datetime) -> float:
    """Absolute distance between two timestamps in (fractional) days."""
    return abs((a - b).total_seconds()) / 86400.0


def month_number(token: str) -> Optional[int]:
    """Map "Jan", "january", "SEPT" to 1..12; anything else is None."""
    token = token.lower().rstrip(".")
    index = MONTHS.get(token[:3])
    if index is None or len(token) < 3 or not MONTH_NAMES[index - 1].startswith(token):
        return None
    return index


def to_24_hour(hour: int, ampm: Optional[str]) -> int:
    if not ampm:
        return hour
    ampm = ampm.lower()
    if ampm == "pm" and hour < 12:
        return hour + 12
    if ampm == "am" and hour == 12:
        return 0
    return hour


def clean_date_text(text: str) -> str:
    """Strip decoration so the dialect patterns only see dates and times."""
    cleaned = _NON_ASCII_RE.sub(" ", text)
    cleaned = _TICKETS_LEFT_RE.sub(" ", cleaned)
    cleaned = _SEPARATOR_RE.sub(" ", cleaned)
    cleaned = _MERIDIEM_RE.sub(r"\1 \2m", cleaned)
    cleaned = _WEEKDAY_RE.sub(" ", cleaned)
    cleaned = _SPACE_RE.sub(" ", cleaned)
    return cleaned.strip().lower()


class DateNormalizer:
    """
    Parses marketplace date strings into comparable local timestamps.

    Args:
        clock: returns "now"; year inference and relative phrases depend on it,
            so tests pin it.
    """

    def __init__(self, clock: Callable[[], datetime] = None):
        self.clock = clock or datetime.now

    def normalize(self, text: str, source: str = None) -> datetime:
        """
        Parse ``text`` as printed by ``source``.

        Raises:
            DateParseError: no dialect recognised the string, or the one that
                did describes an impossible date or time.
        """
        if not text or not str(text).strip():
            raise DateParseError(text or "", source, "empty date")

        text = str(text)
        if _ISO_PREFIX_RE.match(text):
            try:
                parsed = date_parser.isoparse(text.strip())
            except ValueError:
                parsed = None
            if parsed is not None:
                return parsed.replace(tzinfo=None, second=0, microsecond=0)

        cleaned = clean_date_text(text)
        now = self.clock()
        for name in self.dialect_for(source):
            for match in PATTERNS[name].finditer(cleaned):
                parts = self._extract(name, match)
                if parts is None:
                    continue
                try:
                    result = self._resolve(name, parts, now)
                except ValueError as e:
                    # A pattern matched but the reading is impossible
                    raise DateParseError(text, source, str(e))
                logger.debug(
                    "Normalized date",
                    raw=text, source=source, dialect=name, value=format_timestamp(result),
                )
                return result

        raise DateParseError(text, source, "no known date format matched")

    def normalize_string(self, text: str, source: str = None) -> str:
        return format_timestamp(self.normalize(text, source))

    @staticmethod
    def dialect_for(source: Optional[str]) -> List[str]:
        """Source-specific patterns first, then the generic ones, without repeats."""
        ordered = list(SOURCE_DIALECTS.get((source or "").lower(), []))
        ordered += [name for name in GENERIC_DIALECT if name not in ordered]
        return ordered

    @staticmethod
    def _extract(name: str, match: re.Match) -> Optional[Dict[str, object]]:
        groups = match.groupdict()
        parts: Dict[str, object] = {
            "year": int(groups["year"]) if groups.get("year") else None,
            "minute": int(groups.get("minute") or 0),
            "ampm": groups.get("ampm"),
            "timed": bool(groups.get("hour") or groups.get("digits")),
        }

        if name == "relative":
            parts["relative"] = groups["relative"]
            parts["hour"] = int(groups["hour"]) if groups.get("hour") else 0
            return parts

        if name == "numeric_us":
            parts["month"] = int(groups["month"])
        else:
            parts["month"] = month_number(groups["month"])
            if parts["month"] is None:
                return None

        if name == "month_concatenated":
            split = _split_day_hour(groups["digits"])
            if split is None:
                return None
            parts["day"], parts["hour"] = split
        else:
            parts["day"] = int(groups["day"])
            parts["hour"] = int(groups["hour"]) if groups.get("hour") else 0

        return parts

    @staticmethod
    def _resolve(name: str, parts: Dict[str, object], now: datetime) -> datetime:
        hour = parts["hour"]
        if parts["ampm"] and not 1 <= hour <= 12:
            raise ValueError(f"hour {hour} out of range for 12-hour clock")
        hour = to_24_hour(hour, parts["ampm"])
        minute = parts["minute"]
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"invalid time of day {hour}:{minute:02d}")

        if name == "relative":
            day = now.date()
            if parts["relative"] == "tomorrow":
                day += timedelta(days=1)
            return datetime(day.year, day.month, day.day, hour, minute)

        if parts["year"] is not None:
            return datetime(parts["year"], parts["month"], parts["day"], hour, minute)

        # Year omitted: nearest occurrence that is not already in the past.
        # Without a time of day only the calendar date is compared.
        # Feb 29 may be up to eight years away.
        for year in range(now.year, now.year + 9):
            try:
                candidate = datetime(year, parts["month"], parts["day"], hour, minute)
            except ValueError:
                continue
            if parts["timed"]:
                in_past = candidate < now.replace(second=0, microsecond=0)
            else:
                in_past = candidate.date() < now.date()
            if not in_past:
                return candidate
        raise ValueError(f"no such day: month {parts['month']}, day {parts['day']}")


def _split_day_hour(digits: str) -> Optional[Tuple[int, int]]:
    """Split "2510" into (25, 10) or "110" into (1, 10), preferring a two-digit day."""
    for day_len in (2, 1):
        day, hour = digits[:day_len], digits[day_len:]
        if not hour or len(hour) > 2:
            continue
        if 1 <= int(day) <= 31 and 1 <= int(hour) <= 12:
            return int(day), int(hour)
    return None
