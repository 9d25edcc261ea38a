import pytz

from datetime_utils import combine, is_valid_color, is_valid_date, is_valid_time
from services.errors import Result, ValidationError
from text_helpers import is_valid_email


TITLE_MAX_LENGTH = 255

TASK_PRIORITIES = ('high', 'medium', 'low')
TASK_STATUSES = ('pending', 'in_progress', 'completed', 'cancelled')
TASK_CATEGORIES = ('work', 'personal', 'health', 'other')

EVENT_TYPES = ('meeting', 'personal', 'focus_time', 'other')
EVENT_PLATFORMS = ('zoom', 'google_meet', 'teams', 'in_person', 'none')
EVENT_STATUSES = ('scheduled', 'in_progress', 'completed', 'cancelled')
ATTENDEE_STATUSES = ('pending', 'accepted', 'declined')

TIMEBLOCK_TYPES = ('focus', 'break', 'lunch', 'personal', 'blocked', 'unavailable')

WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
CALENDAR_VIEWS = ('month', 'week', 'day')

SCHEDULE_FIELDS = ('startDate', 'startTime', 'endDate', 'endTime')


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ["1", "true", "yes", "on"]


def normalize_tags(raw):
    if not raw:
        return []
    if isinstance(raw, list):
        return [str(t).strip() for t in raw if str(t).strip()]
    return [t.strip() for t in str(raw).split(",") if t.strip()]


def is_positive_int(value):
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value > 0
    text = str(value)
    return text.isascii() and text.isdigit() and int(text) > 0


def _fail(message):
    return Result.fail(ValidationError(message))


def _present(data, field):
    return data.get(field) is not None


def _check_enum(data, field, allowed, label):
    if _present(data, field) and data[field] not in allowed:
        return _fail(f"{label} must be one of: {', '.join(allowed)}")
    return None


def _check_title(data, entity, is_update, enforce_length=True):
    if not is_update and (not _present(data, 'title') or not str(data['title']).strip()):
        return _fail(f"{entity} title is required")
    if enforce_length and _present(data, 'title') and len(str(data['title'])) > TITLE_MAX_LENGTH:
        return _fail(f"{entity} title must be {TITLE_MAX_LENGTH} characters or less")
    return None


def _check_schedule(data, is_update):
    """Shared start/end rules for events and time blocks."""
    if not is_update and not all(_present(data, field) for field in SCHEDULE_FIELDS):
        return _fail('Start and end date/time are required')

    for field in ('startDate', 'endDate'):
        if _present(data, field) and not is_valid_date(data[field]):
            return _fail(f"Invalid {field} format. Use YYYY-MM-DD")
    for field in ('startTime', 'endTime'):
        if _present(data, field) and not is_valid_time(data[field]):
            return _fail(f"Invalid {field} format. Use HH:MM")

    if all(_present(data, field) for field in SCHEDULE_FIELDS):
        return check_interval(data)
    return None


def check_interval(record):
    """Reject records whose end does not come strictly after the start."""
    start = combine(record.get('startDate'), record.get('startTime'))
    end = combine(record.get('endDate'), record.get('endTime'))
    if start is not None and end is not None and end <= start:
        return _fail('End date/time must be after start date/time')
    return None


def _check_duration(data):
    if _present(data, 'duration') and not is_positive_int(data['duration']):
        return _fail('Duration must be a positive integer')
    return None


def _check_list(data, field):
    if _present(data, field) and not isinstance(data[field], list):
        return _fail(f"{field} must be an array")
    return None


def _check_attendees(data):
    if not _present(data, 'attendees'):
        return None
    attendees = data['attendees']
    if not isinstance(attendees, list):
        return _fail('Attendees must be an array')
    for attendee in attendees:
        if not isinstance(attendee, dict):
            return _fail('Invalid attendee format')
        if _present(attendee, 'email') and not is_valid_email(attendee['email']):
            return _fail('Invalid attendee email format')
        if _present(attendee, 'status') and attendee['status'] not in ATTENDEE_STATUSES:
            return _fail(f"Attendee status must be one of: {', '.join(ATTENDEE_STATUSES)}")
    return None


def _first_error(*checks):
    for check in checks:
        failure = check()
        if failure is not None:
            return failure
    return Result.ok()


def validate_task(data, is_update=False):
    if not isinstance(data, dict):
        return _fail('Invalid task payload')

    def check_due():
        if _present(data, 'dueDate') and not is_valid_date(data['dueDate']):
            return _fail('Invalid due date format. Use YYYY-MM-DD')
        if _present(data, 'dueTime') and not is_valid_time(data['dueTime']):
            return _fail('Invalid due time format. Use HH:MM')
        return None

    return _first_error(
        lambda: _check_title(data, 'Task', is_update),
        check_due,
        lambda: _check_enum(data, 'priority', TASK_PRIORITIES, 'Priority'),
        lambda: _check_enum(data, 'status', TASK_STATUSES, 'Status'),
        lambda: _check_enum(data, 'category', TASK_CATEGORIES, 'Category'),
    )


def validate_event(data, is_update=False):
    if not isinstance(data, dict):
        return _fail('Invalid event payload')
    return _first_error(
        lambda: _check_title(data, 'Event', is_update),
        lambda: _check_schedule(data, is_update),
        lambda: _check_enum(data, 'type', EVENT_TYPES, 'Type'),
        lambda: _check_enum(data, 'platform', EVENT_PLATFORMS, 'Platform'),
        lambda: _check_enum(data, 'status', EVENT_STATUSES, 'Status'),
        lambda: _check_duration(data),
        lambda: _check_attendees(data),
        lambda: _check_list(data, 'actionItems'),
        lambda: _check_list(data, 'reminders'),
    )


def validate_time_block(data, is_update=False):
    if not isinstance(data, dict):
        return _fail('Invalid time block payload')

    def check_color():
        if _present(data, 'color') and not is_valid_color(data['color']):
            return _fail('Invalid color format. Use hex format like #FF5733')
        return None

    return _first_error(
        lambda: _check_title(data, 'Time block', is_update, enforce_length=False),
        lambda: _check_enum(data, 'type', TIMEBLOCK_TYPES, 'Type'),
        lambda: _check_schedule(data, is_update),
        check_color,
        lambda: _check_duration(data),
        lambda: _check_list(data, 'recurringDays'),
    )


def validate_preferences(data):
    if not isinstance(data, dict):
        return _fail('Invalid preferences payload')

    if _present(data, 'timezone') and (
            not isinstance(data['timezone'], str) or data['timezone'] not in pytz.all_timezones_set):
        return _fail('Invalid timezone')

    for field in ('workingHoursStart', 'workingHoursEnd'):
        if _present(data, field) and not is_valid_time(data[field]):
            return _fail(f"Invalid {field} format. Use HH:MM")

    if _present(data, 'workingDays'):
        days = data['workingDays']
        if not isinstance(days, list):
            return _fail('workingDays must be an array')
        if any(day not in WEEKDAYS for day in days):
            return _fail('Invalid working day. Must be lowercase day name')

    failure = _check_enum(data, 'defaultView', CALENDAR_VIEWS, 'Default view')
    if failure is not None:
        return failure

    focus = data.get('focusTimePreferences')
    if focus is not None and not isinstance(focus, dict):
        return _fail('focusTimePreferences must be an object')
    if focus and _present(focus, 'focusBlockDuration') and not is_positive_int(focus['focusBlockDuration']):
        return _fail('Focus block duration must be a positive integer')

    return Result.ok()
