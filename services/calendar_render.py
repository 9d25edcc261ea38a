"""Month grid and day-detail models built from cached entity collections."""

from datetime import date, timedelta

from datetime_utils import DATE_FORMAT, parse_date
from models import Event, Task, TimeBlock


GRID_CELLS = 42
INLINE_LIMIT = 3

KIND_EVENT = Event.kind
KIND_TASK = Task.kind
KIND_TIMEBLOCK = TimeBlock.kind

KIND_LABELS = {
    KIND_EVENT: '[meeting]',
    KIND_TASK: '[task]',
    KIND_TIMEBLOCK: '[focus]',
}


def grid_dates(year, month):
    """The 42 dates shown for a month: Sunday-first, padded with neighbouring months."""
    first = date(year, month, 1)
    lead = (first.weekday() + 1) % 7
    start = first - timedelta(days=lead)
    return [start + timedelta(days=offset) for offset in range(GRID_CELLS)]


def _item(kind, record):
    title = record.get('title') or ''
    return {
        'kind': kind,
        'id': record.get('id'),
        'title': title,
        'label': f"{KIND_LABELS[kind]} {title}",
        'record': record,
    }


def bucket_by_date(tasks, events, time_blocks):
    """Group items under their ISO day: events, then tasks, then time blocks."""
    buckets = {}
    sources = (
        (KIND_EVENT, events, 'startDate'),
        (KIND_TASK, tasks, 'dueDate'),
        (KIND_TIMEBLOCK, time_blocks, 'startDate'),
    )
    for kind, records, date_field in sources:
        for record in records or []:
            day_key = record.get(date_field)
            if day_key:
                buckets.setdefault(day_key, []).append(_item(kind, record))
    return buckets


def build_cell(day, items, in_current_month, today=None):
    today = today or date.today()
    overflow = max(0, len(items) - INLINE_LIMIT)
    return {
        'date': day.strftime(DATE_FORMAT),
        'day': day.day,
        'in_current_month': in_current_month,
        'is_today': day == today,
        'items': items,
        'visible_items': items[:INLINE_LIMIT],
        'overflow_count': overflow,
        'overflow_label': f"+{overflow} more" if overflow else None,
    }


def render_month(year, month, tasks, events, time_blocks, today=None):
    buckets = bucket_by_date(tasks, events, time_blocks)
    cells = []
    for day in grid_dates(year, month):
        key = day.strftime(DATE_FORMAT)
        cells.append(build_cell(day, buckets.get(key, []), day.month == month, today=today))
    return cells


def rows(cells):
    return [cells[index:index + 7] for index in range(0, len(cells), 7)]


def format_day_detail(day, tasks, events, time_blocks):
    """Everything scheduled on one day, grouped the way the day view lists it."""
    day = parse_date(day)
    if day is None:
        return None
    key = day.strftime(DATE_FORMAT)

    day_events = [e for e in events or [] if e.get('startDate') == key]
    day_tasks = [t for t in tasks or [] if t.get('dueDate') == key]
    day_blocks = [b for b in time_blocks or [] if b.get('startDate') == key]

    event_rows = [{
        'id': e.get('id'),
        'title': e.get('title') or '',
        'meta': f"{e.get('startTime') or ''} - {e.get('endTime') or ''}",
    } for e in day_events]

    task_rows = []
    for t in day_tasks:
        meta = t.get('status') or 'pending'
        if t.get('dueTime'):
            meta = f"{meta} {t['dueTime']}"
        task_rows.append({
            'id': t.get('id'),
            'title': t.get('title') or '',
            'priority': t.get('priority') or 'medium',
            'meta': meta,
        })

    block_rows = [{
        'id': b.get('id'),
        'title': b.get('title') or '',
        'meta': f"{b.get('startTime') or ''} - {b.get('endTime') or ''} ({b.get('type') or ''})",
    } for b in day_blocks]

    return {
        'date': key,
        'title': f"{day:%A}, {day:%B} {day.day}, {day.year}",
        'sections': [
            {'key': 'events', 'heading': 'Events & Meetings', 'items': event_rows, 'empty_text': 'No events'},
            {'key': 'tasks', 'heading': 'Tasks', 'items': task_rows, 'empty_text': 'No tasks'},
            {'key': 'timeblocks', 'heading': 'Focus & Time Blocks', 'items': block_rows, 'empty_text': 'No time blocks'},
        ],
    }
