"""Calendar views and conflict lookups for the signed-in user."""

from datetime import date

from flask import jsonify, request

from datetime_utils import is_valid_date, is_valid_time, is_within_working_hours
from services.calendar_render import format_day_detail, render_month, rows
from services.conflict_service import find_conflicts
from services.entity_store import EventRepository, PreferencesRepository, TaskRepository, TimeBlockRepository
from services.errors import Result, ValidationError
from services.session_service import get_store, require_user_id
from services.validation_service import SCHEDULE_FIELDS, check_interval


def _collections(store, user_id):
    return (
        TaskRepository(store).list(user_id).data,
        EventRepository(store).list(user_id).data,
        TimeBlockRepository(store).list(user_id).data,
    )


def calendar_month():
    user_id = require_user_id()
    today = date.today()
    try:
        year = int(request.args.get('year') or today.year)
        month = int(request.args.get('month') or today.month)
    except (TypeError, ValueError):
        raise ValidationError('Invalid year or month')
    if not (1 <= month <= 12) or not (1 <= year <= 9999):
        raise ValidationError('Invalid year or month')
    if (year, month) in ((1, 1), (9999, 12)):
        raise ValidationError('Month is outside the supported range')

    tasks, events, time_blocks = _collections(get_store(), user_id)
    cells = render_month(year, month, tasks, events, time_blocks, today=today)
    return jsonify(Result.ok({'year': year, 'month': month, 'weeks': rows(cells)}).to_dict())


def calendar_day():
    user_id = require_user_id()
    day = request.args.get('date') or date.today().isoformat()
    if not is_valid_date(day):
        raise ValidationError('Invalid date format. Use YYYY-MM-DD')
    tasks, events, time_blocks = _collections(get_store(), user_id)
    return jsonify(Result.ok(format_day_detail(day, tasks, events, time_blocks)).to_dict())


def event_conflicts():
    user_id = require_user_id()
    params = {field: request.args.get(field) for field in SCHEDULE_FIELDS}
    if not all(params.values()):
        raise ValidationError('Start and end date/time are required')
    for field in ('startDate', 'endDate'):
        if not is_valid_date(params[field]):
            raise ValidationError(f"Invalid {field} format. Use YYYY-MM-DD")
    for field in ('startTime', 'endTime'):
        if not is_valid_time(params[field]):
            raise ValidationError(f"Invalid {field} format. Use HH:MM")
    failure = check_interval(params)
    if failure:
        return jsonify(failure.to_dict()), failure.status

    store = get_store()
    conflicts = find_conflicts(
        EventRepository(store),
        user_id,
        params['startDate'],
        params['startTime'],
        params['endDate'],
        params['endTime'],
        exclude_event_id=request.args.get('excludeId'),
    )
    preferences = PreferencesRepository(store).get(user_id).data
    return jsonify(Result.ok({
        'conflicts': conflicts,
        'hasConflicts': bool(conflicts),
        'withinWorkingHours': is_within_working_hours(params['startTime'], preferences),
    }).to_dict())
