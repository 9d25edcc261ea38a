"""User-scoped repositories over the JSON documents.

Every operation filters on ``userId`` equality. Validation and ownership checks
happen before the document is rewritten, so a call either fully succeeds or
leaves the document untouched.
"""

import logging

from datetime_utils import minutes_between, utc_timestamp
from json_store import (
    EVENTS_DOCUMENT,
    PREFERENCES_DOCUMENT,
    TASKS_DOCUMENT,
    TIMEBLOCKS_DOCUMENT,
    USERS_DOCUMENT,
)
from models import Event, Task, TimeBlock, User, deep_merge, default_preferences, generate_id
from services.errors import NotFoundError, Result, StorageError
from services.validation_service import (
    SCHEDULE_FIELDS,
    check_interval,
    normalize_tags,
    parse_bool,
    validate_event,
    validate_preferences,
    validate_task,
    validate_time_block,
)
from text_helpers import sanitize_input

logger = logging.getLogger(__name__)


class EntityRepository:
    document = None
    label = 'Record'
    validator = None

    text_fields = ()
    value_fields = ()
    nullable_fields = ()
    exact_filters = ()
    range_field = None
    range_filters = ()

    def __init__(self, store):
        self.store = store

    # -- reads -----------------------------------------------------------------

    def _records(self):
        return self.store.read(self.document)

    def _owned(self, user_id):
        return [r for r in self._records() if r.get('userId') == user_id]

    def list(self, user_id, filters=None):
        records = self._owned(user_id)
        filters = filters if isinstance(filters, dict) else {}

        for field in self.exact_filters:
            wanted = filters.get(field)
            if wanted:
                records = [r for r in records if r.get(field) == wanted]

        if self.range_field:
            from_key, to_key = self.range_filters
            lower = filters.get(from_key)
            upper = filters.get(to_key)
            # zero-padded ISO dates compare correctly as strings; other bound types are ignored
            if isinstance(lower, str) and lower:
                records = [r for r in records if r.get(self.range_field) and r[self.range_field] >= lower]
            if isinstance(upper, str) and upper:
                records = [r for r in records if r.get(self.range_field) and r[self.range_field] <= upper]

        return Result.ok(records)

    def get(self, entity_id, user_id):
        for record in self._records():
            if record.get('id') == entity_id and record.get('userId') == user_id:
                return Result.ok(record)
        return Result.fail(NotFoundError(f"{self.label} not found"))

    # -- writes ----------------------------------------------------------------

    def create(self, user_id, payload):
        validation = self.validator(payload)
        if not validation.success:
            return validation

        now = utc_timestamp()
        entity = self.build(user_id, payload, now)
        record = entity.to_dict()

        with self.store.locked(self.document):
            records = self._records()
            records.append(record)
            failure = self._save(records, 'create')
        if failure:
            return failure
        return Result.ok(record, status=201)

    def update(self, entity_id, user_id, payload):
        validation = self.validator(payload, True)
        if not validation.success:
            return validation

        with self.store.locked(self.document):
            records = self._records()
            index = self._index_of(records, entity_id, user_id)
            if index is None:
                return Result.fail(NotFoundError(f"{self.label} not found"))

            current = records[index]
            updated = dict(current)
            for field in self.text_fields:
                if field in payload:
                    value = payload[field]
                    if field == 'title':
                        value = str(value or '').strip()
                        if not value:
                            continue
                    updated[field] = sanitize_input('' if value is None else value)
            for field in self.value_fields:
                if field in payload:
                    value = payload[field]
                    if value is None and field not in self.nullable_fields:
                        continue
                    updated[field] = self.coerce(field, value)

            failure = self.after_merge(current, updated, payload)
            if failure:
                return failure
            updated['updatedAt'] = utc_timestamp()

            records[index] = updated
            failure = self._save(records, 'update')
        if failure:
            return failure
        return Result.ok(updated)

    def delete(self, entity_id, user_id):
        with self.store.locked(self.document):
            records = self._records()
            remaining = [
                r for r in records
                if not (r.get('id') == entity_id and r.get('userId') == user_id)
            ]
            if len(remaining) == len(records):
                return Result.fail(NotFoundError(f"{self.label} not found"))
            failure = self._save(remaining, 'delete')
        if failure:
            return failure
        return Result.ok({'id': entity_id})

    # -- hooks -----------------------------------------------------------------

    def build(self, user_id, payload, now):
        raise NotImplementedError

    def coerce(self, field, value):
        return value

    def after_merge(self, current, updated, payload):
        return None

    # -- helpers ---------------------------------------------------------------

    @staticmethod
    def _index_of(records, entity_id, user_id):
        for index, record in enumerate(records):
            if record.get('id') == entity_id and record.get('userId') == user_id:
                return index
        return None

    def _save(self, records, verb):
        try:
            self.store.write(self.document, records)
        except StorageError:
            return Result.fail(StorageError(f"Failed to {verb} {self.label.lower()}"))
        return None


def _scheduled_duration(record):
    return minutes_between(record.get('startDate'), record.get('startTime'), record.get('endDate'), record.get('endTime'))


class ScheduledRepository(EntityRepository):
    """Events and time blocks: start/end pairs with a derived duration in minutes."""

    range_field = 'startDate'
    range_filters = ('startDateFrom', 'startDateTo')

    def initial_duration(self, payload):
        if payload.get('duration') is not None:
            return int(payload['duration'])
        return _scheduled_duration(payload)

    def coerce(self, field, value):
        if field == 'duration':
            return int(value)
        if field == 'isRecurring':
            return parse_bool(value)
        return value

    def after_merge(self, current, updated, payload):
        failure = check_interval(updated)
        if failure:
            return failure
        if payload.get('duration') is not None:
            return None
        if any(field in payload for field in SCHEDULE_FIELDS):
            duration = _scheduled_duration(updated)
            if duration is not None:
                updated['duration'] = duration
        return None


class TaskRepository(EntityRepository):
    document = TASKS_DOCUMENT
    label = 'Task'
    validator = staticmethod(validate_task)

    text_fields = ('title', 'description', 'notes')
    value_fields = ('dueDate', 'dueTime', 'priority', 'status', 'category', 'tags', 'assignedTo', 'relatedEventId')
    nullable_fields = ('dueDate', 'dueTime', 'assignedTo', 'relatedEventId')
    exact_filters = ('status', 'priority', 'category', 'dueDate')
    range_field = 'dueDate'
    range_filters = ('dueDateFrom', 'dueDateTo')

    def build(self, user_id, payload, now):
        status = payload.get('status') or 'pending'
        return Task(
            id=generate_id(Task.id_prefix),
            user_id=user_id,
            title=sanitize_input(str(payload['title']).strip()),
            description=sanitize_input(payload.get('description') or ''),
            due_date=payload.get('dueDate'),
            due_time=payload.get('dueTime'),
            priority=payload.get('priority') or 'medium',
            status=status,
            category=payload.get('category') or 'other',
            tags=normalize_tags(payload.get('tags')),
            created_at=now,
            updated_at=now,
            completed_at=now if status == 'completed' else None,
            assigned_to=payload.get('assignedTo'),
            related_event_id=payload.get('relatedEventId'),
            notes=sanitize_input(payload.get('notes') or ''),
        )

    def coerce(self, field, value):
        if field == 'tags':
            return normalize_tags(value)
        return value

    def after_merge(self, current, updated, payload):
        if payload.get('status') is None:
            return None
        if updated['status'] == 'completed':
            if current.get('status') != 'completed' or not current.get('completedAt'):
                updated['completedAt'] = utc_timestamp()
        else:
            updated['completedAt'] = None
        return None


class EventRepository(ScheduledRepository):
    document = EVENTS_DOCUMENT
    label = 'Event'
    validator = staticmethod(validate_event)

    text_fields = ('title', 'description', 'location', 'platformLink', 'notes')
    value_fields = (
        'type', 'startDate', 'startTime', 'endDate', 'endTime', 'duration', 'attendees',
        'platform', 'status', 'isRecurring', 'recurringPattern', 'actionItems', 'reminders',
    )
    nullable_fields = ('recurringPattern',)
    exact_filters = ('status', 'type')

    def build(self, user_id, payload, now):
        notes = sanitize_input(payload.get('notes') or '')
        return Event(
            id=generate_id(Event.id_prefix),
            user_id=user_id,
            title=sanitize_input(str(payload['title']).strip()),
            description=sanitize_input(payload.get('description') or ''),
            type=payload.get('type') or 'other',
            start_date=payload['startDate'],
            start_time=payload['startTime'],
            end_date=payload['endDate'],
            end_time=payload['endTime'],
            duration=self.initial_duration(payload),
            location=sanitize_input(payload.get('location') or ''),
            attendees=list(payload.get('attendees') or []),
            platform=payload.get('platform') or 'none',
            platform_link=sanitize_input(payload.get('platformLink') or ''),
            status=payload.get('status') or 'scheduled',
            is_recurring=parse_bool(payload.get('isRecurring')),
            recurring_pattern=payload.get('recurringPattern'),
            notes=notes,
            has_notes=bool(notes),
            action_items=list(payload.get('actionItems') or []),
            created_at=now,
            updated_at=now,
            reminders=list(payload.get('reminders') or []),
        )

    def after_merge(self, current, updated, payload):
        updated['hasNotes'] = bool(updated.get('notes'))
        return super().after_merge(current, updated, payload)


class TimeBlockRepository(ScheduledRepository):
    document = TIMEBLOCKS_DOCUMENT
    label = 'Time block'
    validator = staticmethod(validate_time_block)

    text_fields = ('title', 'description')
    value_fields = (
        'type', 'startDate', 'startTime', 'endDate', 'endTime', 'duration', 'color',
        'isRecurring', 'recurringDays', 'status',
    )
    nullable_fields = ('color',)
    exact_filters = ('status', 'type')

    def build(self, user_id, payload, now):
        return TimeBlock(
            id=generate_id(TimeBlock.id_prefix),
            user_id=user_id,
            title=sanitize_input(str(payload['title']).strip()),
            type=payload.get('type') or 'blocked',
            start_date=payload['startDate'],
            start_time=payload['startTime'],
            end_date=payload['endDate'],
            end_time=payload['endTime'],
            duration=self.initial_duration(payload),
            color=payload.get('color'),
            is_recurring=parse_bool(payload.get('isRecurring')),
            recurring_days=list(payload.get('recurringDays') or []),
            description=sanitize_input(payload.get('description') or ''),
            status=payload.get('status') or 'active',
            created_at=now,
            updated_at=now,
        )


class PreferencesRepository:
    document = PREFERENCES_DOCUMENT

    def __init__(self, store):
        self.store = store

    def get(self, user_id):
        for prefs in self.store.read(self.document):
            if prefs.get('userId') == user_id:
                return Result.ok(prefs)
        defaults = default_preferences()
        defaults['userId'] = user_id
        defaults['updatedAt'] = utc_timestamp()
        return Result.ok(defaults)

    def upsert(self, user_id, payload):
        validation = validate_preferences(payload)
        if not validation.success:
            return validation

        now = utc_timestamp()
        with self.store.locked(self.document):
            records = self.store.read(self.document)
            for index, prefs in enumerate(records):
                if prefs.get('userId') == user_id:
                    merged = deep_merge(prefs, payload)
                    merged.update(userId=user_id, updatedAt=now)
                    records[index] = merged
                    break
            else:
                merged = deep_merge(default_preferences(), payload)
                merged.update(userId=user_id, updatedAt=now)
                records.append(merged)
            try:
                self.store.write(self.document, records)
            except StorageError:
                return Result.fail(StorageError('Failed to update preferences'))
        return Result.ok(merged)


class UserRepository:
    document = USERS_DOCUMENT

    def __init__(self, store):
        self.store = store

    def get(self, user_id):
        for record in self.store.read(self.document):
            if record.get('id') == user_id:
                return User.from_dict(record)
        return None

    def find_by_google_id(self, google_id):
        for record in self.store.read(self.document):
            if record.get('googleId') == google_id:
                return User.from_dict(record)
        return None

    def upsert_google_user(self, profile):
        """Create the user on first login, otherwise bump lastLogin."""
        now = utc_timestamp()
        google_id = str(profile['google_id'])
        with self.store.locked(self.document):
            records = self.store.read(self.document)
            for record in records:
                if record.get('googleId') == google_id:
                    record['lastLogin'] = now
                    user = User.from_dict(record)
                    created = False
                    break
            else:
                user = User(
                    id=generate_id(User.id_prefix),
                    google_id=google_id,
                    email=sanitize_input(profile['email']),
                    name=sanitize_input(profile.get('name') or profile['email']),
                    picture=sanitize_input(profile.get('picture')),
                    created_at=now,
                    last_login=now,
                )
                records.append(user.to_dict())
                created = True
            self.store.write(self.document, records)
        if created:
            logger.info(f"New user created: {user.email}")
        else:
            logger.info(f"Updated last login for Google ID: {google_id}")
        return user
