from datetime import datetime

from services.conflict_service import find_conflicts, intervals_overlap
from services.entity_store import EventRepository


def _add(repo, title, start, end, **extra):
    payload = {
        'title': title,
        'startDate': '2024-03-04',
        'startTime': start,
        'endDate': '2024-03-04',
        'endTime': end,
    }
    payload.update(extra)
    return repo.create('user_1', payload).data


def test_touching_intervals_do_not_overlap():
    ten, eleven, noon = datetime(2024, 3, 4, 10), datetime(2024, 3, 4, 11), datetime(2024, 3, 4, 12)
    assert not intervals_overlap(ten, eleven, eleven, noon)
    assert intervals_overlap(ten, noon, eleven, noon)


def test_find_conflicts(store):
    repo = EventRepository(store)
    standup = _add(repo, 'Standup', '10:00', '11:00')
    _add(repo, 'Cancelled sync', '10:00', '11:00', status='cancelled')

    assert find_conflicts(repo, 'user_1', '2024-03-04', '11:00', '2024-03-04', '12:00') == []

    conflicts = find_conflicts(repo, 'user_1', '2024-03-04', '10:30', '2024-03-04', '11:30')
    assert [c['id'] for c in conflicts] == [standup['id']]


def test_find_conflicts_excludes_the_event_being_edited(store):
    repo = EventRepository(store)
    standup = _add(repo, 'Standup', '10:00', '11:00')
    assert find_conflicts(
        repo, 'user_1', '2024-03-04', '10:15', '2024-03-04', '10:45', exclude_event_id=standup['id']
    ) == []


def test_find_conflicts_only_sees_own_events(store):
    repo = EventRepository(store)
    _add(repo, 'Standup', '10:00', '11:00')
    assert find_conflicts(repo, 'user_2', '2024-03-04', '10:00', '2024-03-04', '11:00') == []
