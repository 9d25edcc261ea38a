import json
import os

from json_store import TASKS_DOCUMENT, JsonDocumentStore
from services.entity_store import (
    EventRepository,
    PreferencesRepository,
    TaskRepository,
    TimeBlockRepository,
    UserRepository,
)


def _event_payload(**overrides):
    data = {
        'title': 'Planning',
        'startDate': '2024-03-04',
        'startTime': '10:00',
        'endDate': '2024-03-04',
        'endTime': '11:30',
    }
    data.update(overrides)
    return data


def test_create_task_with_defaults(store):
    result = TaskRepository(store).create('user_1', {'title': 'Pay rent', 'dueDate': '2024-03-01', 'priority': 'high'})
    assert result.success
    assert result.status == 201
    task = result.data
    assert task['id'].startswith('task_')
    assert task['userId'] == 'user_1'
    assert task['status'] == 'pending'
    assert task['priority'] == 'high'
    assert task['category'] == 'other'
    assert task['completedAt'] is None
    assert task['createdAt'] == task['updatedAt']

    with open(os.path.join(store.data_dir, 'tasks.json'), encoding='utf-8') as handle:
        on_disk = json.load(handle)
    assert on_disk['tasks'][0]['title'] == 'Pay rent'


def test_create_rejects_invalid_payload_without_writing(store):
    result = TaskRepository(store).create('user_1', {'title': ''})
    assert not result.success
    assert result.status == 400
    assert TaskRepository(store).list('user_1').data == []


def test_titles_are_escaped(store):
    task = TaskRepository(store).create('user_1', {'title': '<script>x</script>'}).data
    assert task['title'] == '&lt;script&gt;x&lt;/script&gt;'


def test_update_without_fields_only_touches_updated_at(store):
    repo = TaskRepository(store)
    task = repo.create('user_1', {'title': 'Pay rent', 'tags': 'home,bills'}).data
    updated = repo.update(task['id'], 'user_1', {'unknownField': 'ignored'}).data
    assert {k: v for k, v in updated.items() if k != 'updatedAt'} == {
        k: v for k, v in task.items() if k != 'updatedAt'
    }
    assert 'unknownField' not in updated


def test_update_ignores_blank_title(store):
    repo = TaskRepository(store)
    task = repo.create('user_1', {'title': 'Pay rent'}).data
    assert repo.update(task['id'], 'user_1', {'title': '  '}).data['title'] == 'Pay rent'


def test_completed_at_follows_status(store):
    repo = TaskRepository(store)
    task = repo.create('user_1', {'title': 'Pay rent'}).data

    done = repo.update(task['id'], 'user_1', {'status': 'completed'}).data
    assert done['completedAt']

    again = repo.update(task['id'], 'user_1', {'status': 'completed'}).data
    assert again['completedAt'] == done['completedAt']

    reopened = repo.update(task['id'], 'user_1', {'status': 'pending'}).data
    assert reopened['completedAt'] is None


def test_task_created_completed_has_completed_at(store):
    task = TaskRepository(store).create('user_1', {'title': 'Done', 'status': 'completed'}).data
    assert task['completedAt'] == task['createdAt']


def test_records_are_scoped_to_their_owner(store):
    repo = TaskRepository(store)
    task = repo.create('user_1', {'title': 'Mine'}).data
    assert repo.list('user_2').data == []
    assert repo.get(task['id'], 'user_2').not_found
    assert repo.update(task['id'], 'user_2', {'title': 'Stolen'}).status == 404
    assert repo.delete(task['id'], 'user_2').status == 404
    assert repo.get(task['id'], 'user_1').data['title'] == 'Mine'


def test_delete_twice_reports_not_found(store):
    repo = TaskRepository(store)
    task = repo.create('user_1', {'title': 'Pay rent'}).data
    first = repo.delete(task['id'], 'user_1')
    assert first.success
    assert first.data == {'id': task['id']}
    second = repo.delete(task['id'], 'user_1')
    assert not second.success
    assert second.error == 'Task not found'


def test_list_filters(store):
    repo = TaskRepository(store)
    repo.create('user_1', {'title': 'A', 'priority': 'high', 'dueDate': '2024-03-01'})
    repo.create('user_1', {'title': 'B', 'priority': 'low', 'dueDate': '2024-03-10'})
    repo.create('user_1', {'title': 'C', 'priority': 'high'})

    high = repo.list('user_1', {'priority': 'high'}).data
    assert sorted(t['title'] for t in high) == ['A', 'C']

    ranged = repo.list('user_1', {'dueDateFrom': '2024-03-02', 'dueDateTo': '2024-03-31'}).data
    assert [t['title'] for t in ranged] == ['B']

    assert len(repo.list('user_1', {'priority': ''}).data) == 3


def test_event_duration_is_derived(store):
    repo = EventRepository(store)
    event = repo.create('user_1', _event_payload()).data
    assert event['duration'] == 90
    assert event['hasNotes'] is False

    moved = repo.update(event['id'], 'user_1', {'endTime': '12:00', 'notes': 'Agenda'}).data
    assert moved['duration'] == 120
    assert moved['hasNotes'] is True


def test_event_explicit_duration_wins(store):
    repo = EventRepository(store)
    event = repo.create('user_1', _event_payload(duration=45)).data
    assert event['duration'] == 45
    assert repo.update(event['id'], 'user_1', {'title': 'Renamed'}).data['duration'] == 45


def test_event_update_rejects_inverted_interval(store):
    repo = EventRepository(store)
    event = repo.create('user_1', _event_payload()).data
    result = repo.update(event['id'], 'user_1', {'endTime': '09:00'})
    assert result.error == 'End date/time must be after start date/time'
    assert repo.get(event['id'], 'user_1').data['endTime'] == '11:30'


def test_time_block_defaults(store):
    block = TimeBlockRepository(store).create('user_1', _event_payload(title='Deep work')).data
    assert block['id'].startswith('timeblock_')
    assert block['type'] == 'blocked'
    assert block['status'] == 'active'
    assert block['color'] is None
    assert block['duration'] == 90


def test_corrupt_document_reads_as_empty(tmp_path):
    path = tmp_path / 'tasks.json'
    path.write_text('{not json', encoding='utf-8')
    store = JsonDocumentStore(str(tmp_path))
    assert store.read(TASKS_DOCUMENT) == []
    assert TaskRepository(store).list('user_1').data == []


def test_missing_document_is_created(tmp_path):
    store = JsonDocumentStore(str(tmp_path))
    assert store.read(TASKS_DOCUMENT) == []
    assert json.loads((tmp_path / 'tasks.json').read_text(encoding='utf-8')) == {'tasks': []}


def test_write_failure_is_reported(tmp_path):
    blocker = tmp_path / 'blocker'
    blocker.write_text('', encoding='utf-8')
    store = JsonDocumentStore(str(blocker / 'data'))
    result = TaskRepository(store).create('user_1', {'title': 'Pay rent'})
    assert not result.success
    assert result.status == 500
    assert result.error == 'Failed to create task'


def test_preferences_default_then_deep_merge(store):
    repo = PreferencesRepository(store)
    prefs = repo.get('user_1').data
    assert prefs['timezone'] == 'UTC'
    assert prefs['userId'] == 'user_1'

    merged = repo.upsert('user_1', {
        'timezone': 'Europe/Berlin',
        'workingDays': ['monday'],
        'focusTimePreferences': {'focusBlockDuration': 60},
    }).data
    assert merged['timezone'] == 'Europe/Berlin'
    assert merged['workingDays'] == ['monday']
    assert merged['focusTimePreferences']['focusBlockDuration'] == 60
    assert merged['focusTimePreferences']['breakDuration'] == 15
    assert repo.get('user_1').data['timezone'] == 'Europe/Berlin'


def test_preferences_reject_bad_timezone(store):
    result = PreferencesRepository(store).upsert('user_1', {'timezone': 'Nowhere/Land'})
    assert result.status == 400


def test_google_user_upsert(store):
    repo = UserRepository(store)
    profile = {'google_id': '123', 'email': 'ada@example.com', 'name': 'Ada'}
    user = repo.upsert_google_user(profile)
    assert user.id.startswith('user_')
    again = repo.upsert_google_user(profile)
    assert again.id == user.id
    assert repo.find_by_google_id('123').email == 'ada@example.com'
    assert repo.get(user.id).name == 'Ada'


def test_time_block_update_rejects_inverted_interval(store):
    repo = TimeBlockRepository(store)
    block = repo.create('user_1', _event_payload(title='Deep work', type='focus')).data

    result = repo.update(block['id'], 'user_1', {'endTime': '10:00'})
    assert result.status == 400
    assert result.error == 'End date/time must be after start date/time'

    result = repo.update(block['id'], 'user_1', {'startDate': '2024-03-05'})
    assert result.error == 'End date/time must be after start date/time'

    stored = repo.get(block['id'], 'user_1').data
    assert (stored['startDate'], stored['endTime'], stored['duration']) == ('2024-03-04', '11:30', 90)


def test_string_list_fields_are_rejected_not_split(store):
    events = EventRepository(store)
    result = events.create('user_1', _event_payload(actionItems='task_1'))
    assert result.status == 400
    assert events.list('user_1').data == []

    event = events.create('user_1', _event_payload(actionItems=['task_1'])).data
    assert event['actionItems'] == ['task_1']
    assert events.update(event['id'], 'user_1', {'reminders': 'soon'}).status == 400
    assert events.get(event['id'], 'user_1').data['reminders'] == []

    blocks = TimeBlockRepository(store)
    assert blocks.create('user_1', _event_payload(recurringDays='monday')).status == 400


def test_non_string_range_bounds_are_ignored(store):
    repo = TaskRepository(store)
    repo.create('user_1', {'title': 'A', 'dueDate': '2024-03-01'})
    assert len(repo.list('user_1', {'dueDateFrom': 5, 'dueDateTo': ['2024']}).data) == 1
