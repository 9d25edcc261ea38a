import re
from datetime import date, datetime, timedelta, timezone


DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")
_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


def is_valid_date(value):
    """True for YYYY-MM-DD strings naming a real calendar day."""
    if not isinstance(value, str) or not _DATE_PATTERN.fullmatch(value):
        return False
    try:
        return datetime.strptime(value, DATE_FORMAT).strftime(DATE_FORMAT) == value
    except ValueError:
        return False


def is_valid_time(value):
    """True for zero-padded 24-hour HH:MM strings."""
    if not isinstance(value, str) or not _TIME_PATTERN.fullmatch(value):
        return False
    try:
        return datetime.strptime(value, TIME_FORMAT).strftime(TIME_FORMAT) == value
    except ValueError:
        return False


def is_valid_datetime(date_value, time_value):
    return is_valid_date(date_value) and is_valid_time(time_value)


def is_valid_color(value):
    return isinstance(value, str) and bool(_COLOR_PATTERN.fullmatch(value))


def to_minutes(time_value):
    """HH:MM -> minutes since midnight; invalid input counts as 0."""
    if not is_valid_time(time_value):
        return 0
    hours, minutes = time_value.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(minutes):
    minutes = int(minutes)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value):
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), DATE_FORMAT).date()
    except (TypeError, ValueError):
        return None


def combine(date_value, time_value):
    """Join a date and HH:MM string into a naive datetime, or None."""
    if not is_valid_datetime(date_value, time_value):
        return None
    return datetime.strptime(f"{date_value} {time_value}", f"{DATE_FORMAT} {TIME_FORMAT}")


def minutes_between(start_date, start_time, end_date, end_time):
    start = combine(start_date, start_time)
    end = combine(end_date, end_time)
    if start is None or end is None:
        return None
    return int((end - start).total_seconds() // 60)


def days_between(first, second):
    d1 = parse_date(first)
    d2 = parse_date(second)
    if d1 is None or d2 is None:
        return 0
    return abs((d2 - d1).days)


def date_range(start, end):
    """Inclusive ISO dates from start to end; empty when end precedes start."""
    start_day = parse_date(start)
    end_day = parse_date(end)
    if start_day is None or end_day is None:
        return []
    span = (end_day - start_day).days
    return [(start_day + timedelta(days=offset)).strftime(DATE_FORMAT) for offset in range(span + 1)]


def is_within_working_hours(time_value, preferences):
    prefs = preferences or {}
    start = prefs.get("workingHoursStart")
    end = prefs.get("workingHoursEnd")
    if not start or not end:
        return True
    minutes = to_minutes(time_value)
    return to_minutes(start) <= minutes <= to_minutes(end)


def utc_timestamp():
    return datetime.now(timezone.utc).isoformat(timespec="seconds")
