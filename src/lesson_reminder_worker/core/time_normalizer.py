'''
Turns the free-form lesson time labels ("7:00 PM", "7:00pm", "19:00") into
canonical 24-hour "HH:MM" strings and timezone-aware start instants.

A label is classified once into a TimeLabel tagged with its TimeFormat, so the
conversion itself never has to sniff the string again.
'''
import re
from datetime import date, datetime, time
from enum import Enum
from pydantic import BaseModel, ConfigDict
from pytz import timezone as pytz_timezone
from pytz.tzinfo import BaseTzInfo

from ..common.errors import TimeParseError

_TWELVE_HOUR_RE = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*([ap])\.?m\.?\s*$', re.IGNORECASE)
_TWENTY_FOUR_HOUR_RE = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*$')
_MERIDIEM_RE = re.compile(r'[ap]\.?m\b', re.IGNORECASE)


class TimeFormat(str, Enum):
    TWELVE_HOUR = "12h"
    TWENTY_FOUR_HOUR = "24h"


class TimeLabel(BaseModel):
    """A raw time label together with the format it was written in."""
    raw: str
    format: TimeFormat

    model_config = ConfigDict(frozen=True)


def classify(label: str) -> TimeLabel:
    """Tag a raw label as 12-hour (has an am/pm marker) or 24-hour."""
    if not isinstance(label, str):
        raise TimeParseError(label, "time label must be a string")
    if _MERIDIEM_RE.search(label):
        return TimeLabel(raw=label, format=TimeFormat.TWELVE_HOUR)
    return TimeLabel(raw=label, format=TimeFormat.TWENTY_FOUR_HOUR)


def _from_twelve_hour(label: TimeLabel) -> str:
    match = _TWELVE_HOUR_RE.match(label.raw)
    if not match:
        raise TimeParseError(label.raw, "expected 'H:MM am/pm'")

    hours, minutes = int(match.group(1)), int(match.group(2))
    marker = match.group(3).lower()
    if not 1 <= hours <= 12:
        raise TimeParseError(label.raw, "12-hour clock hour must be between 1 and 12")
    if minutes > 59:
        raise TimeParseError(label.raw, "minutes must be between 00 and 59")

    if marker == 'p' and hours != 12:
        hours += 12
    elif marker == 'a' and hours == 12:
        hours = 0
    return f"{hours:02d}:{minutes:02d}"


def _from_twenty_four_hour(label: TimeLabel) -> str:
    # Already canonical, only the shape is checked. Range errors surface
    # in lesson_start() when the instant is built.
    if not _TWENTY_FOUR_HOUR_RE.match(label.raw):
        raise TimeParseError(label.raw, "expected 'HH:MM' or 'H:MM am/pm'")
    return label.raw


def normalize(label: str | TimeLabel) -> str:
    """
    Converts a lesson time label to 24-hour "HH:MM".

    Examples:
        normalize("7:00 PM")  -> "19:00"
        normalize("12:00 AM") -> "00:00"
        normalize("12:30 PM") -> "12:30"
        normalize("09:05")    -> "09:05"

    Raises:
        TimeParseError: if the label is malformed.
    """
    if not isinstance(label, TimeLabel):
        label = classify(label)

    if label.format is TimeFormat.TWELVE_HOUR:
        return _from_twelve_hour(label)
    return _from_twenty_four_hour(label)


def to_time(label: str | TimeLabel) -> time:
    """Same as normalize() but returns a datetime.time."""
    canonical = normalize(label)
    hours, minutes = (int(part) for part in canonical.strip().split(':'))
    try:
        return time(hours, minutes)
    except ValueError as e:
        raw = label.raw if isinstance(label, TimeLabel) else label
        raise TimeParseError(raw, str(e)) from e


def lesson_start(lesson_date: date, label: str | TimeLabel, tz: str | BaseTzInfo) -> datetime:
    """Combines a calendar date and a time label into an aware datetime in `tz`."""
    if isinstance(tz, str):
        tz = pytz_timezone(tz)
    naive = datetime.combine(lesson_date, to_time(label))
    return tz.localize(naive)
