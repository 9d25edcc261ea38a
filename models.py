import copy
import uuid
from dataclasses import dataclass, field, fields
from typing import ClassVar, List, Optional

from flask_login import UserMixin


def _camel(name):
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def generate_id(prefix):
    return f"{prefix}_{uuid.uuid4().hex}"


class Record:
    """Shared (de)serialization for the stored JSON records (camelCase on disk)."""

    id_prefix: ClassVar[str] = 'id'

    def to_dict(self):
        return {_camel(f.name): copy.deepcopy(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data):
        values = {}
        for f in fields(cls):
            key = _camel(f.name)
            if key in data:
                values[f.name] = data[key]
        return cls(**values)


@dataclass
class Task(Record):
    kind: ClassVar[str] = 'task'
    id_prefix: ClassVar[str] = 'task'

    id: str = ''
    user_id: str = ''
    title: str = ''
    description: str = ''
    due_date: Optional[str] = None
    due_time: Optional[str] = None
    priority: str = 'medium'
    status: str = 'pending'
    category: str = 'other'
    tags: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None
    assigned_to: Optional[str] = None
    related_event_id: Optional[str] = None
    notes: str = ''


@dataclass
class Event(Record):
    kind: ClassVar[str] = 'event'
    id_prefix: ClassVar[str] = 'event'

    id: str = ''
    user_id: str = ''
    title: str = ''
    description: str = ''
    type: str = 'other'
    start_date: Optional[str] = None
    start_time: Optional[str] = None
    end_date: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[int] = None
    location: str = ''
    attendees: list = field(default_factory=list)
    platform: str = 'none'
    platform_link: str = ''
    status: str = 'scheduled'
    is_recurring: bool = False
    recurring_pattern: Optional[str] = None
    notes: str = ''
    has_notes: bool = False
    action_items: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    reminders: list = field(default_factory=list)


@dataclass
class TimeBlock(Record):
    kind: ClassVar[str] = 'timeblock'
    id_prefix: ClassVar[str] = 'timeblock'

    id: str = ''
    user_id: str = ''
    title: str = ''
    type: str = 'blocked'
    start_date: Optional[str] = None
    start_time: Optional[str] = None
    end_date: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[int] = None
    color: Optional[str] = None
    is_recurring: bool = False
    recurring_days: list = field(default_factory=list)
    description: str = ''
    status: str = 'active'
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class User(UserMixin, Record):
    id_prefix: ClassVar[str] = 'user'

    id: str = ''
    google_id: str = ''
    email: str = ''
    name: str = ''
    picture: Optional[str] = None
    created_at: Optional[str] = None
    last_login: Optional[str] = None


DEFAULT_PREFERENCES = {
    'timezone': 'UTC',
    'language': 'en',
    'defaultView': 'month',
    'workingHoursStart': '09:00',
    'workingHoursEnd': '18:00',
    'workingDays': ['monday', 'tuesday', 'wednesday', 'thursday', 'friday'],
    'notificationsEnabled': True,
    'notificationTypes': {
        'emailReminders': True,
        'pushNotifications': True,
        'taskReminders': True,
        'meetingReminders': True,
    },
    'focusTimePreferences': {
        'automaticFocusBlocks': True,
        'focusBlockDuration': 90,
        'breakDuration': 15,
        'breakFrequency': 4,
    },
    'aiPreferences': {
        'autoSchedule': True,
        'conflictResolution': 'auto',
        'suggestFocusTime': True,
        'extractActionItems': True,
    },
}


def default_preferences():
    return copy.deepcopy(DEFAULT_PREFERENCES)


def deep_merge(base, overrides):
    """Merge overrides into a copy of base; nested dicts merge, everything else replaces."""
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
