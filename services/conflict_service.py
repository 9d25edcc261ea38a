from datetime_utils import combine


def intervals_overlap(start, end, other_start, other_end):
    """Half-open overlap: touching intervals do not conflict."""
    return start < other_end and end > other_start


def overlapping_events(events, start, end, exclude_event_id=None):
    conflicts = []
    for event in events:
        if event.get('status') == 'cancelled':
            continue
        if exclude_event_id and event.get('id') == exclude_event_id:
            continue
        event_start = combine(event.get('startDate'), event.get('startTime'))
        event_end = combine(event.get('endDate'), event.get('endTime'))
        if event_start is None or event_end is None:
            continue
        if intervals_overlap(start, end, event_start, event_end):
            conflicts.append(event)
    return conflicts


def find_conflicts(event_repository, user_id, start_date, start_time, end_date, end_time, exclude_event_id=None):
    """Return the user's non-cancelled events overlapping the given interval.

    Only reports; callers decide whether a conflict blocks anything.
    """
    start = combine(start_date, start_time)
    end = combine(end_date, end_time)
    if start is None or end is None:
        return []
    events = event_repository.list(user_id).data or []
    return overlapping_events(events, start, end, exclude_event_id=exclude_event_id)
