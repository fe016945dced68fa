import logging
import math
import os
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Iterator, List, Optional, Union

from dateutil import parser, tz

log = logging.getLogger(__name__)

UNPLACED_NOTE = "time insufficient, not placed"


class TaskType(Enum):
    SCHEDULE = "schedule"
    EMAIL = "email"
    MESSAGE = "message"
    DOC = "doc"
    STUDY = "study"
    PLAN_VENUE = "plan_venue"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw) -> "TaskType":
        for member in cls:
            if member is not cls.UNKNOWN and member.value == raw:
                return member
        return cls.UNKNOWN


# lower runs first; must cover every TaskType member
PRIORITY = {
    TaskType.EMAIL: 1,
    TaskType.MESSAGE: 1,
    TaskType.SCHEDULE: 2,
    TaskType.DOC: 3,
    TaskType.STUDY: 4,
    TaskType.PLAN_VENUE: 5,
    TaskType.UNKNOWN: 9,
}


def priority_for(raw_type) -> int:
    return PRIORITY[TaskType.parse(raw_type)]


@dataclass
class Task:
    title: str
    type: str
    duration_min: Optional[int] = None
    start_at: Optional[datetime] = None
    notes: Optional[str] = None
    subtasks: List[str] = field(default_factory=list)
    original: Optional[str] = None

    @property
    def kind(self) -> TaskType:
        return TaskType.parse(self.type)

    @property
    def is_fixed(self) -> bool:
        return self.start_at is not None

    def effective_duration(self, default: int = 30) -> int:
        d = self.duration_min
        if isinstance(d, bool) or not isinstance(d, (int, float)):
            return default
        d = int(d)
        return d if d > 0 else default

    @classmethod
    def from_dict(cls, d: dict, default_tz: Optional[tzinfo] = None) -> "Task":
        start_at = d.get("start_at")
        if isinstance(start_at, str):
            start_at = parser.isoparse(start_at) if start_at.strip() else None
        if start_at is not None and start_at.tzinfo is None:
            start_at = start_at.replace(tzinfo=default_tz or JST)
        return cls(
            title=str(d.get("title") or d.get("original") or ""),
            type=str(d.get("type") or TaskType.UNKNOWN.value),
            duration_min=d.get("duration_min"),
            start_at=start_at,
            notes=d.get("notes"),
            subtasks=list(d.get("subtasks") or []),
            original=d.get("original"),
        )

    def to_dict(self) -> dict:
        return {
            "original": self.original,
            "title": self.title,
            "type": self.type,
            "duration_min": self.duration_min,
            "start_at": self.start_at.isoformat() if self.start_at else None,
            "notes": self.notes,
            "subtasks": list(self.subtasks),
        }


@dataclass
class Placed:
    task: Task
    start: datetime
    end: datetime

    @property
    def minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    def to_dict(self) -> dict:
        d = self.task.to_dict()
        d.update(start=self.start.isoformat(), end=self.end.isoformat())
        return d


@dataclass
class Unplaced:
    task: Task
    note: str = UNPLACED_NOTE
    start = None
    end = None

    def to_dict(self) -> dict:
        d = self.task.to_dict()
        d.update(start=None, end=None, note=self.note)
        return d


PlanItem = Union[Placed, Unplaced]


# ---------- free time ----------

@dataclass
class Interval:
    start: datetime
    end: datetime

    @property
    def minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60


def subtract_block(free: List[Interval], start: datetime, end: datetime) -> List[Interval]:
    """Remove [start, end) from every interval, keeping left-then-right order."""
    out = []
    for f in free:
        if end <= f.start or start >= f.end:
            out.append(f)
            continue
        if start > f.start:
            out.append(Interval(f.start, start))
        if end < f.end:
            out.append(Interval(end, f.end))
    return out


class FreeTime:
    """Free time of one working day, split around lunch.

    Zero-length intervals are kept; they never satisfy a request.
    """

    def __init__(self, day_start, day_end, lunch_start, lunch_end):
        self.intervals = [
            Interval(day_start, lunch_start),
            Interval(lunch_end, day_end),
        ]

    def __iter__(self) -> Iterator[Interval]:
        return iter(self.intervals)

    def __len__(self):
        return len(self.intervals)

    def subtract(self, start: datetime, end: datetime) -> None:
        self.intervals = subtract_block(self.intervals, start, end)

    def take(self, minutes: int) -> Optional[Interval]:
        """Claim `minutes` from the first interval long enough, or None."""
        for i, slot in enumerate(self.intervals):
            if slot.minutes >= minutes:
                claimed = Interval(slot.start, slot.start + timedelta(minutes=minutes))
                self.intervals[i].start = claimed.end
                return claimed
        return None


# ---------- config ----------

JST = tz.tzoffset("JST", 9 * 3600)


def _clock(raw: Optional[str], default: time) -> time:
    return parser.parse(raw).time() if raw else default


def _minutes(raw: Optional[str], default: int) -> int:
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value <= 0:
        log.warning("bad PLANNER_DEFAULT_DURATION %r, keeping %d", raw, default)
        return default
    return value


@dataclass
class PlannerConfig:
    day_start: time = time(9, 0)
    day_end: time = time(18, 0)
    lunch_start: time = time(12, 0)
    lunch_end: time = time(13, 0)
    tz: tzinfo = field(default_factory=lambda: JST)
    default_duration: int = 30

    @classmethod
    def from_env(cls) -> "PlannerConfig":
        base = cls()
        zone = os.getenv("PLANNER_TZ")
        resolved = tz.gettz(zone) if zone else None
        if zone and resolved is None:
            log.warning("unknown PLANNER_TZ %r, keeping +09:00", zone)
        return cls(
            day_start=_clock(os.getenv("PLANNER_DAY_START"), base.day_start),
            day_end=_clock(os.getenv("PLANNER_DAY_END"), base.day_end),
            lunch_start=_clock(os.getenv("PLANNER_LUNCH_START"), base.lunch_start),
            lunch_end=_clock(os.getenv("PLANNER_LUNCH_END"), base.lunch_end),
            tz=resolved or base.tz,
            default_duration=_minutes(os.getenv("PLANNER_DEFAULT_DURATION"), base.default_duration),
        )

    def window(self, day: date):
        at = lambda t: datetime.combine(day, t, tzinfo=self.tz)
        return at(self.day_start), at(self.day_end), at(self.lunch_start), at(self.lunch_end)

    def today(self) -> date:
        return datetime.now(self.tz).date()


# ---------- planning ----------

def _as_date(day) -> date:
    if isinstance(day, datetime):
        return day.date()
    if isinstance(day, date):
        return day
    return parser.isoparse(day).date()


def build_plan(day, tasks, config: Optional[PlannerConfig] = None) -> List[PlanItem]:
    """Place fixed-time tasks verbatim, then fill the gaps with the rest by priority."""
    config = config or PlannerConfig()
    day = _as_date(day)
    tasks = [t if isinstance(t, Task) else Task.from_dict(t, config.tz) for t in tasks]

    fixed, flex = [], []
    for t in tasks:
        dur = t.effective_duration(config.default_duration)
        t = replace(t, duration_min=dur)
        if t.is_fixed:
            start = t.start_at
            if start.tzinfo is None:
                start = start.replace(tzinfo=config.tz)
            start = start.astimezone(config.tz)
            fixed.append(Placed(t, start, start + timedelta(minutes=dur)))
        else:
            flex.append((t, dur))
    fixed.sort(key=lambda p: p.start)

    free = FreeTime(*config.window(day))
    for p in fixed:
        free.subtract(p.start, p.end)
    log.debug("free after fixed tasks: %s", [(f.start.isoformat(), f.end.isoformat()) for f in free])

    flex.sort(key=lambda pair: priority_for(pair[0].type))

    plan: List[PlanItem] = list(fixed)
    for t, dur in flex:
        slot = free.take(dur)
        if slot is None:
            log.info("no room for %r (%d min)", t.title, dur)
            plan.append(Unplaced(t))
        else:
            plan.append(Placed(t, slot.start, slot.end))

    # placed by start time, unplaced last in input order
    plan.sort(key=lambda p: (p.start is None, p.start))
    return plan


def format_plan(plan: List[PlanItem]) -> str:
    lines = []
    total = 0.0
    for p in plan:
        if p.start is None or p.end is None:
            lines.append(f"[unplaced] {p.task.title} ({p.task.type})")
            continue
        lines.append(f"{p.start.strftime('%H:%M')} - {p.end.strftime('%H:%M')}: {p.task.title} ({p.task.type})")
        total += p.minutes
    return "Plan summary\n" + "\n".join(lines) + f"\n\nTotal required time: {math.floor(total + 0.5)} min"
