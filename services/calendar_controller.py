"""Client-side view state: visible month plus the cached entity collections."""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from services.calendar_render import format_day_detail, render_month

ENTITY_TASKS = 'tasks'
ENTITY_EVENTS = 'events'
ENTITY_TIMEBLOCKS = 'timeBlocks'


@dataclass
class AppState:
    year: int
    month: int
    tasks: List[dict] = field(default_factory=list)
    events: List[dict] = field(default_factory=list)
    time_blocks: List[dict] = field(default_factory=list)
    grid: List[dict] = field(default_factory=list)
    open_day: Optional[str] = None

    @classmethod
    def for_today(cls, today=None):
        today = today or date.today()
        return cls(year=today.year, month=today.month)

    @property
    def position(self):
        return (self.year, self.month)


class CalendarController:
    """Owns the single AppState; the sync engine and the render model go through it."""

    def __init__(self, state=None, today=None):
        self._today = today
        self.state = state or AppState.for_today(today)
        self.day_detail = None

    def _current_day(self):
        return self._today or date.today()

    # navigation

    def previous_month(self):
        if self.state.month == 1:
            self.state.year, self.state.month = self.state.year - 1, 12
        else:
            self.state.month -= 1
        return self.render()

    def next_month(self):
        if self.state.month == 12:
            self.state.year, self.state.month = self.state.year + 1, 1
        else:
            self.state.month += 1
        return self.render()

    def go_to_today(self):
        today = self._current_day()
        self.state.year, self.state.month = today.year, today.month
        return self.render()

    def capture_position(self):
        return self.state.position

    def restore_position(self, position):
        if position:
            self.state.year, self.state.month = position

    # cache

    def replace_collection(self, entity, records):
        records = list(records or [])
        if entity == ENTITY_TASKS:
            self.state.tasks = records
        elif entity == ENTITY_EVENTS:
            self.state.events = records
        elif entity == ENTITY_TIMEBLOCKS:
            self.state.time_blocks = records
        else:
            raise ValueError(f"Unknown entity collection: {entity}")

    # rendering

    def render(self):
        self.state.grid = render_month(
            self.state.year,
            self.state.month,
            self.state.tasks,
            self.state.events,
            self.state.time_blocks,
            today=self._current_day(),
        )
        if self.state.open_day:
            self.open_day(self.state.open_day)
        return self.state.grid

    def open_day(self, day):
        self.day_detail = format_day_detail(day, self.state.tasks, self.state.events, self.state.time_blocks)
        self.state.open_day = self.day_detail['date'] if self.day_detail else None
        return self.day_detail

    def close_day(self):
        self.state.open_day = None
        self.day_detail = None
