"""Background polling that keeps the cached calendar collections in step with the server.

State changes go through ``reduce_sync``: it takes the current ``SyncState`` and one
action (tick, visibility change, data change, retry, refresh result) and returns
the next state plus the effects to run. ``SyncEngine`` owns the scheduler and
runs those effects. The ``in_flight`` flag is the only mutual exclusion: a full
refresh never starts while another one is running.
"""

import atexit
import logging
import os
import re
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from services.api_client import ApiClient, SyncError
from services.calendar_controller import (
    ENTITY_EVENTS,
    ENTITY_TASKS,
    ENTITY_TIMEBLOCKS,
    CalendarController,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 30
MOBILE_POLL_INTERVAL_SECONDS = 60
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 2

POLL_JOB_ID = 'calendar-sync-poll'
RETRY_JOB_ID = 'calendar-sync-retry'

MOBILE_USER_AGENT = re.compile(r'Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini', re.IGNORECASE)

SYNC_ERROR_MESSAGE = 'Sync error. Please refresh the page.'

PHASE_IDLE = 'idle'
PHASE_POLLING = 'polling'
PHASE_RETRYING = 'retrying'
PHASE_FAILED = 'failed'

# actions
TICK = 'tick'
RETRY = 'retry'
MANUAL = 'manual'
VISIBILITY = 'visibility'
DATA_CHANGED = 'data_changed'
REFRESH_SUCCEEDED = 'refresh_succeeded'
REFRESH_FAILED = 'refresh_failed'

# effects
CAPTURE_POSITION = 'capture_position'
FETCH_ALL = 'fetch_all'
FETCH_ENTITY = 'fetch_entity'
SCHEDULE_RETRY = 'schedule_retry'
NOTIFY = 'notify'
RESTORE_POSITION = 'restore_position'
RENDER = 'render'

ENTITY_COLLECTIONS = {
    'task': ENTITY_TASKS,
    'event': ENTITY_EVENTS,
    'timeblock': ENTITY_TIMEBLOCKS,
}

PAST_TENSE = {'create': 'created', 'update': 'updated', 'delete': 'deleted'}


@dataclass(frozen=True)
class SyncState:
    phase: str = PHASE_IDLE
    in_flight: bool = False
    retry_count: int = 0
    hidden: bool = False
    last_sync_time: Optional[datetime] = None


@dataclass(frozen=True)
class Action:
    type: str
    entity: Optional[str] = None
    verb: Optional[str] = None
    hidden: bool = False
    full: bool = True
    at: Optional[datetime] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Effect:
    type: str
    entity: Optional[str] = None
    delay: Optional[float] = None
    message: Optional[str] = None
    level: str = 'info'


def is_mobile_user_agent(user_agent):
    return bool(user_agent) and bool(MOBILE_USER_AGENT.search(user_agent))


def poll_interval_for(profile=None, user_agent=None):
    profile = (profile or '').strip().lower()
    if profile == 'mobile':
        return MOBILE_POLL_INTERVAL_SECONDS
    if profile == 'desktop':
        return POLL_INTERVAL_SECONDS
    return MOBILE_POLL_INTERVAL_SECONDS if is_mobile_user_agent(user_agent) else POLL_INTERVAL_SECONDS


def _start_full_refresh(state):
    if state.in_flight:
        return state, []
    state = replace(state, phase=PHASE_POLLING, in_flight=True)
    return state, [Effect(CAPTURE_POSITION), Effect(FETCH_ALL)]


def reduce_sync(state, action, max_retries=MAX_RETRIES, retry_delay=RETRY_DELAY_SECONDS):
    if action.type == TICK:
        if state.hidden:
            return state, []
        return _start_full_refresh(state)

    if action.type in (RETRY, MANUAL):
        return _start_full_refresh(state)

    if action.type == VISIBILITY:
        state = replace(state, hidden=action.hidden)
        if action.hidden:
            return state, []
        return _start_full_refresh(state)

    if action.type == DATA_CHANGED:
        entity = ENTITY_COLLECTIONS[action.entity]
        verb = PAST_TENSE.get(action.verb, action.verb)
        message = f"{action.entity.capitalize()} {verb}"
        return state, [
            Effect(NOTIFY, message=message, level='success'),
            Effect(CAPTURE_POSITION),
            Effect(FETCH_ENTITY, entity=entity),
        ]

    if action.type == REFRESH_SUCCEEDED:
        if action.full:
            state = replace(state, phase=PHASE_IDLE, in_flight=False, retry_count=0, last_sync_time=action.at)
        else:
            state = replace(state, retry_count=0)
        return state, [Effect(RESTORE_POSITION), Effect(RENDER)]

    if action.type == REFRESH_FAILED:
        if action.full:
            state = replace(state, in_flight=False)
        attempt = state.retry_count + 1
        if attempt <= max_retries:
            state = replace(state, phase=PHASE_RETRYING, retry_count=attempt)
            return state, [Effect(SCHEDULE_RETRY, delay=retry_delay * attempt)]
        state = replace(state, phase=PHASE_FAILED, retry_count=0)
        return state, [Effect(NOTIFY, message=SYNC_ERROR_MESSAGE, level='error')]

    raise ValueError(f"Unknown sync action: {action.type}")


class SyncEngine:
    def __init__(self, client, controller, notify=None, scheduler=None, profile=None,
                 user_agent=None, max_retries=MAX_RETRIES, retry_delay=RETRY_DELAY_SECONDS):
        self.client = client
        self.controller = controller
        self.notify = notify or (lambda message, level='info': logger.info(f"[{level}] {message}"))
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler()
        self.poll_interval = poll_interval_for(profile, user_agent)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.state = SyncState()
        self._lock = threading.Lock()
        self._captured_position = None
        self._initialized = False
        self._atexit_registered = False

    # lifecycle

    def initialize(self):
        if self._initialized:
            return
        self._captured_position = self.controller.capture_position()
        self.scheduler.add_job(
            self.tick,
            'interval',
            seconds=self.poll_interval,
            id=POLL_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        if not self._atexit_registered:
            atexit.register(self.shutdown)
            self._atexit_registered = True
        self._initialized = True
        logger.info(f"Calendar synchronization initialized (every {self.poll_interval}s)")

    def shutdown(self):
        if not self._initialized:
            return
        for job_id in (POLL_JOB_ID, RETRY_JOB_ID):
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._initialized = False

    # triggers

    def tick(self):
        self.dispatch(Action(TICK))

    def retry(self):
        self.dispatch(Action(RETRY))

    def set_hidden(self, hidden):
        self.dispatch(Action(VISIBILITY, hidden=bool(hidden)))

    def on_data_changed(self, entity, verb):
        if entity not in ENTITY_COLLECTIONS:
            raise ValueError(f"Unknown entity type: {entity}")
        self.dispatch(Action(DATA_CHANGED, entity=entity, verb=verb))

    def manual_sync(self):
        logger.info('Manual sync triggered')
        self.dispatch(Action(MANUAL))
        self.notify('Data refreshed', 'info')

    @property
    def is_sync_running(self):
        return self.state.in_flight

    @property
    def last_sync_time(self):
        return self.state.last_sync_time

    # reducer plumbing

    def dispatch(self, action):
        with self._lock:
            self.state, effects = reduce_sync(
                self.state, action, max_retries=self.max_retries, retry_delay=self.retry_delay
            )
        for effect in effects:
            self._run(effect)

    def _run(self, effect):
        if effect.type == CAPTURE_POSITION:
            self._captured_position = self.controller.capture_position()
        elif effect.type == FETCH_ALL:
            self._fetch(full=True)
        elif effect.type == FETCH_ENTITY:
            self._fetch(full=False, entity=effect.entity)
        elif effect.type == SCHEDULE_RETRY:
            logger.info(f"Sync failed, retry {self.state.retry_count}/{self.max_retries} in {effect.delay}s")
            self.scheduler.add_job(
                self.retry,
                'date',
                run_date=datetime.now() + timedelta(seconds=effect.delay),
                id=RETRY_JOB_ID,
                replace_existing=True,
            )
        elif effect.type == NOTIFY:
            if effect.level == 'error':
                logger.error('Max sync retries exceeded')
            self.notify(effect.message, effect.level)
        elif effect.type == RESTORE_POSITION:
            self.controller.restore_position(self._captured_position)
        elif effect.type == RENDER:
            try:
                self.controller.render()
            except Exception as exc:
                logger.error(f"Error updating calendar display: {exc}")

    def _fetch(self, full, entity=None):
        try:
            if full:
                collections = self.client.list_all()
            else:
                collections = {entity: self.client.list_entities(entity)}
        except SyncError as exc:
            logger.error(f"Error refreshing data: {exc}")
            self.dispatch(Action(REFRESH_FAILED, full=full, error=str(exc)))
            return
        for name, records in collections.items():
            self.controller.replace_collection(name, records)
        self.dispatch(Action(REFRESH_SUCCEEDED, full=full, at=datetime.now()))


_engine = None
_engine_lock = threading.Lock()


def get_sync_engine(base_url=None, controller=None, notify=None, user_agent=None, session=None):
    """Process-wide engine; the environment profile is read once on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            client = ApiClient(base_url or os.environ.get('SYNC_BASE_URL', 'http://127.0.0.1:5000'), session=session)
            _engine = SyncEngine(
                client,
                controller or CalendarController(),
                notify=notify,
                profile=os.environ.get('SYNC_CLIENT_PROFILE'),
                user_agent=user_agent or os.environ.get('SYNC_USER_AGENT'),
            )
        return _engine


def reset_sync_engine():
    global _engine
    with _engine_lock:
        if _engine is not None:
            _engine.shutdown()
        _engine = None
