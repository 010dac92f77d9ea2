"""限制规则的时间表模型。"""

from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

MINUTES_PER_DAY = 24 * 60

ALL_DAYS = frozenset(range(1, 8))


class ScheduleType(str, Enum):
    ALWAYS = "always"
    TIME_BASED = "timeBased"
    CONDITIONAL = "conditional"
    ADAPTIVE = "adaptive"


class RepeatPattern(str, Enum):
    """重复方式，仅用于给星期选择提供默认值。"""

    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"

    @property
    def default_days(self) -> frozenset[int]:
        """ISO 星期编号：1 为周一，7 为周日。"""

        if self is RepeatPattern.DAILY:
            return ALL_DAYS
        if self is RepeatPattern.WEEKDAYS:
            return frozenset({1, 2, 3, 4, 5})
        if self is RepeatPattern.WEEKENDS:
            return frozenset({6, 7})
        return frozenset()


class ExceptionKind(str, Enum):
    SKIP = "skip"
    MODIFY = "modify"
    EXTEND = "extend"


class TimeRange(BaseModel):
    """一天内的时间区间，`start > end` 表示跨越午夜。"""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    start: dt.time
    end: dt.time
    name: str = ""

    @classmethod
    def from_hm(cls, start_hour: int, start_minute: int, end_hour: int, end_minute: int, name: str = "") -> "TimeRange":
        start = dt.time(start_hour, start_minute)
        end = dt.time(end_hour, end_minute)
        return cls(start=start, end=end, name=name or f"{start:%H:%M} - {end:%H:%M}")

    @property
    def start_minutes(self) -> int:
        return self.start.hour * 60 + self.start.minute

    @property
    def end_minutes(self) -> int:
        return self.end.hour * 60 + self.end.minute

    @property
    def is_overnight(self) -> bool:
        return self.start_minutes > self.end_minutes

    @property
    def duration_minutes(self) -> int:
        return (self.end_minutes - self.start_minutes) % MINUTES_PER_DAY

    def contains(self, minute_of_day: int) -> bool:
        """边界包含在内。"""

        start, end = self.start_minutes, self.end_minutes
        if start <= end:
            return start <= minute_of_day <= end
        return minute_of_day >= start or minute_of_day <= end


def _preset(start_hour: int, end_hour: int, name: str) -> TimeRange:
    return TimeRange(id=f"preset-{name.lower().replace(' ', '-')}", start=dt.time(start_hour), end=dt.time(end_hour), name=name)


WORK_HOURS = _preset(9, 17, "Work Hours")
EVENING = _preset(18, 22, "Evening")
NIGHT = _preset(22, 6, "Night")
MORNING = _preset(6, 9, "Morning")
LUNCH = _preset(12, 13, "Lunch Time")


class ScheduleException(BaseModel):
    """某个日期暂停规则。"""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    date: dt.date
    reason: str = ""
    kind: ExceptionKind = ExceptionKind.SKIP


class RestrictionSchedule(BaseModel):
    """单条限制规则的时间规则。

    没有任何时间区间的规则永远不会生效。
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    schedule_type: ScheduleType = ScheduleType.TIME_BASED
    enabled: bool = True
    time_ranges: list[TimeRange] = Field(default_factory=list)
    days_of_week: set[int] = Field(default_factory=lambda: set(ALL_DAYS))
    start_date: Optional[dt.datetime] = None
    end_date: Optional[dt.datetime] = None
    exceptions: list[ScheduleException] = Field(default_factory=list)
    repeat_pattern: RepeatPattern = RepeatPattern.DAILY
    timezone: Optional[str] = None

    def add_time_range(self, time_range: TimeRange) -> "RestrictionSchedule":
        ranges = sorted([*self.time_ranges, time_range], key=lambda r: r.start_minutes)
        return self.model_copy(update={"time_ranges": ranges})

    def remove_time_range(self, range_id: str) -> "RestrictionSchedule":
        return self.model_copy(update={"time_ranges": [r for r in self.time_ranges if r.id != range_id]})

    def add_exception(self, exception: ScheduleException) -> "RestrictionSchedule":
        return self.model_copy(update={"exceptions": [*self.exceptions, exception]})

    def remove_exception(self, exception_id: str) -> "RestrictionSchedule":
        return self.model_copy(update={"exceptions": [e for e in self.exceptions if e.id != exception_id]})

    def toggle_enabled(self) -> "RestrictionSchedule":
        return self.model_copy(update={"enabled": not self.enabled})

    def with_repeat_pattern(self, pattern: RepeatPattern) -> "RestrictionSchedule":
        update: dict = {"repeat_pattern": pattern}
        if pattern.default_days:
            update["days_of_week"] = set(pattern.default_days)
        return self.model_copy(update=update)


def work_schedule() -> RestrictionSchedule:
    return RestrictionSchedule(
        name="Work Hours",
        time_ranges=[WORK_HOURS, LUNCH],
        days_of_week=set(RepeatPattern.WEEKDAYS.default_days),
        repeat_pattern=RepeatPattern.WEEKDAYS,
    )


def evening_schedule() -> RestrictionSchedule:
    return RestrictionSchedule(name="Evening Wind Down", time_ranges=[EVENING])


def night_schedule() -> RestrictionSchedule:
    return RestrictionSchedule(name="Night Time", time_ranges=[NIGHT])


def default_schedules() -> list[RestrictionSchedule]:
    return [work_schedule(), evening_schedule(), night_schedule()]
