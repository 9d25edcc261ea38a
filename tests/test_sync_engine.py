from datetime import date

import pytest

from services import sync_engine
from services.api_client import SyncError
from services.calendar_controller import AppState, CalendarController
from services.sync_engine import (
    CAPTURE_POSITION,
    DATA_CHANGED,
    FETCH_ALL,
    FETCH_ENTITY,
    MANUAL,
    NOTIFY,
    PHASE_FAILED,
    PHASE_IDLE,
    PHASE_RETRYING,
    POLL_JOB_ID,
    REFRESH_FAILED,
    REFRESH_SUCCEEDED,
    RENDER,
    RESTORE_POSITION,
    RETRY_JOB_ID,
    SCHEDULE_RETRY,
    SYNC_ERROR_MESSAGE,
    TICK,
    VISIBILITY,
    Action,
    SyncEngine,
    SyncState,
    poll_interval_for,
    reduce_sync,
)


class FakeScheduler:
    def __init__(self):
        self.jobs = {}
        self.running = False

    def add_job(self, func, trigger, **kwargs):
        self.jobs[kwargs['id']] = (func, trigger, kwargs)

    def get_job(self, job_id):
        return self.jobs.get(job_id)

    def remove_job(self, job_id):
        del self.jobs[job_id]

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False


class FakeClient:
    def __init__(self, failures=0):
        self.failures = failures
        self.calls = []

    def _maybe_fail(self):
        if self.failures:
            self.failures -= 1
            raise SyncError('boom')

    def list_all(self):
        self.calls.append('all')
        self._maybe_fail()
        return {
            'tasks': [{'id': 't1', 'title': 'Pay rent', 'dueDate': '2024-03-04'}],
            'events': [],
            'timeBlocks': [],
        }

    def list_entities(self, entity):
        self.calls.append(entity)
        self._maybe_fail()
        return [{'id': 'e1', 'title': 'Standup', 'startDate': '2024-03-04'}]


def _types(effects):
    return [e.type for e in effects]


def test_tick_starts_a_full_refresh():
    state, effects = reduce_sync(SyncState(), Action(TICK))
    assert state.in_flight
    assert _types(effects) == [CAPTURE_POSITION, FETCH_ALL]


def test_tick_is_ignored_while_in_flight_or_hidden():
    busy = SyncState(in_flight=True)
    assert reduce_sync(busy, Action(TICK)) == (busy, [])
    hidden = SyncState(hidden=True)
    assert reduce_sync(hidden, Action(TICK)) == (hidden, [])


def test_becoming_visible_refreshes_immediately():
    state, effects = reduce_sync(SyncState(), Action(VISIBILITY, hidden=True))
    assert state.hidden and effects == []
    state, effects = reduce_sync(state, Action(VISIBILITY, hidden=False))
    assert not state.hidden
    assert _types(effects) == [CAPTURE_POSITION, FETCH_ALL]


def test_manual_sync_bypasses_hidden():
    state, effects = reduce_sync(SyncState(hidden=True), Action(MANUAL))
    assert _types(effects) == [CAPTURE_POSITION, FETCH_ALL]


def test_failures_back_off_linearly_then_give_up():
    state = SyncState(in_flight=True)
    delays = []
    for _ in range(3):
        state, effects = reduce_sync(state, Action(REFRESH_FAILED))
        assert state.phase == PHASE_RETRYING
        assert not state.in_flight
        assert _types(effects) == [SCHEDULE_RETRY]
        delays.append(effects[0].delay)
    assert delays == [2, 4, 6]

    state, effects = reduce_sync(state, Action(REFRESH_FAILED))
    assert state.phase == PHASE_FAILED
    assert state.retry_count == 0
    assert effects[0].type == NOTIFY
    assert effects[0].message == SYNC_ERROR_MESSAGE
    assert effects[0].level == 'error'


def test_success_resets_retries():
    state, effects = reduce_sync(SyncState(in_flight=True, retry_count=2), Action(REFRESH_SUCCEEDED, at='now'))
    assert state == SyncState(phase=PHASE_IDLE, last_sync_time='now')
    assert _types(effects) == [RESTORE_POSITION, RENDER]


def test_data_change_notifies_and_refreshes_one_collection():
    state, effects = reduce_sync(SyncState(), Action(DATA_CHANGED, entity='event', verb='create'))
    assert not state.in_flight
    assert effects[0].message == 'Event created'
    assert effects[0].level == 'success'
    assert _types(effects) == [NOTIFY, CAPTURE_POSITION, FETCH_ENTITY]
    assert effects[2].entity == 'events'


def test_unknown_action_raises():
    with pytest.raises(ValueError):
        reduce_sync(SyncState(), Action('bogus'))


def test_poll_interval_profiles():
    assert poll_interval_for() == 30
    assert poll_interval_for('mobile') == 60
    assert poll_interval_for(user_agent='Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)') == 60
    assert poll_interval_for('desktop', 'Android') == 30


def _engine(client, notices=None):
    controller = CalendarController(AppState(year=2024, month=3), today=date(2024, 3, 1))
    notify = (lambda message, level='info': notices.append((message, level))) if notices is not None else None
    return SyncEngine(client, controller, notify=notify, scheduler=FakeScheduler())


def test_initialize_schedules_polling_once():
    engine = _engine(FakeClient())
    engine.initialize()
    engine.initialize()
    func, trigger, kwargs = engine.scheduler.jobs[POLL_JOB_ID]
    assert trigger == 'interval'
    assert kwargs['seconds'] == 30
    assert engine.scheduler.running

    engine.shutdown()
    assert engine.scheduler.jobs == {}
    # injected schedulers belong to the caller
    assert engine.scheduler.running


def test_repeated_initialize_registers_one_exit_hook(monkeypatch):
    hooks = []
    monkeypatch.setattr(sync_engine.atexit, 'register', hooks.append)
    engine = _engine(FakeClient())
    for _ in range(3):
        engine.initialize()
        engine.shutdown()
    assert hooks == [engine.shutdown]
    assert engine.scheduler.running


def test_owned_scheduler_is_stopped_on_shutdown(monkeypatch):
    monkeypatch.setattr(sync_engine.atexit, 'register', lambda func: None)
    controller = CalendarController(AppState(year=2024, month=3), today=date(2024, 3, 1))
    engine = SyncEngine(FakeClient(), controller)
    engine.initialize()
    try:
        assert engine.scheduler.running
        assert engine.scheduler.get_job(POLL_JOB_ID) is not None
    finally:
        engine.shutdown()
    assert not engine.scheduler.running


def test_tick_refreshes_cache_and_keeps_position():
    engine = _engine(FakeClient())
    engine.controller.state.month = 4
    engine.tick()
    assert engine.controller.state.position == (2024, 4)
    assert engine.controller.state.tasks[0]['title'] == 'Pay rent'
    assert len(engine.controller.state.grid) == 42
    assert engine.last_sync_time is not None
    assert not engine.is_sync_running


def test_failed_tick_schedules_a_retry():
    engine = _engine(FakeClient(failures=1))
    engine.tick()
    assert engine.state.phase == PHASE_RETRYING
    func, trigger, kwargs = engine.scheduler.jobs[RETRY_JOB_ID]
    assert trigger == 'date'

    func()
    assert engine.state.phase == PHASE_IDLE
    assert engine.state.retry_count == 0
    assert engine.controller.state.tasks


def test_exhausted_retries_notify_user():
    notices = []
    engine = _engine(FakeClient(failures=10), notices)
    engine.tick()
    for _ in range(3):
        engine.scheduler.jobs[RETRY_JOB_ID][0]()
    assert engine.state.phase == PHASE_FAILED
    assert notices == [(SYNC_ERROR_MESSAGE, 'error')]


def test_data_change_refreshes_only_that_collection():
    notices = []
    client = FakeClient()
    engine = _engine(client, notices)
    engine.on_data_changed('event', 'update')
    assert client.calls == ['events']
    assert notices == [('Event updated', 'success')]
    assert engine.controller.state.events[0]['id'] == 'e1'


def test_data_change_rejects_unknown_entity():
    with pytest.raises(ValueError):
        _engine(FakeClient()).on_data_changed('note', 'create')


def test_manual_sync_notifies():
    notices = []
    engine = _engine(FakeClient(), notices)
    engine.manual_sync()
    assert notices == [('Data refreshed', 'info')]
