"""时间表求值：判断规则是否生效以及下一次切换时间。

所有函数均为纯函数。格式异常的时间表一律按“未生效”处理并记录日志，
不会向调用方抛出异常。
"""

from __future__ import annotations

import collections
import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from screengate.core.schedule import MINUTES_PER_DAY, RestrictionSchedule, ScheduleType, TimeRange


logger = logging.getLogger(__name__)

_MALFORMED = (TypeError, ValueError, AttributeError, KeyError)


def is_active(schedule: RestrictionSchedule, instant: dt.datetime) -> bool:
    try:
        return _is_active(schedule, instant)
    except _MALFORMED as exc:
        logger.warning("时间表 %s 格式异常，视为未生效: %s", _label(schedule), exc)
        return False


def next_start(
    schedule: RestrictionSchedule, from_instant: dt.datetime, horizon_days: int = 7
) -> Optional[dt.datetime]:
    """返回下一次生效的起点；在搜索范围内找不到时返回 None。"""

    try:
        return _next_start(schedule, from_instant, horizon_days)
    except _MALFORMED as exc:
        logger.warning("时间表 %s 格式异常，无法计算下次开始时间: %s", _label(schedule), exc)
        return None


def next_end(schedule: RestrictionSchedule, from_instant: dt.datetime) -> Optional[dt.datetime]:
    """仅在当前生效时有意义，返回最近一个包含当前时刻的区间的结束时间。"""

    if not is_active(schedule, from_instant):
        return None
    try:
        local = _localize(schedule, from_instant)
        minute = _minute_of_day(local)
        ends: List[dt.datetime] = []
        for time_range in schedule.time_ranges:
            _check_range(time_range)
            if not time_range.contains(minute):
                continue
            day = local.date()
            if time_range.is_overnight and minute >= time_range.start_minutes:
                day += dt.timedelta(days=1)
            ends.append(_at_minute(day, time_range.end_minutes, local.tzinfo))
        return min(ends) if ends else None
    except _MALFORMED as exc:
        logger.warning("时间表 %s 格式异常，无法计算结束时间: %s", _label(schedule), exc)
        return None


def total_active_minutes(schedule: RestrictionSchedule) -> int:
    return sum(r.duration_minutes for r in schedule.time_ranges)


def active_schedules(
    schedules: Iterable[RestrictionSchedule], instant: dt.datetime
) -> List[RestrictionSchedule]:
    return [s for s in schedules if is_active(s, instant)]


@dataclass
class ScheduleAnalytics:
    total: int
    enabled: int
    active: int
    type_breakdown: Dict[ScheduleType, int] = field(default_factory=dict)

    @property
    def most_common_type(self) -> Optional[ScheduleType]:
        if not self.type_breakdown:
            return None
        return max(self.type_breakdown.items(), key=lambda item: item[1])[0]

    @property
    def activation_rate(self) -> float:
        if self.enabled == 0:
            return 0.0
        return self.active / self.enabled


def schedule_analytics(
    schedules: Iterable[RestrictionSchedule], instant: dt.datetime
) -> ScheduleAnalytics:
    schedules = list(schedules)
    return ScheduleAnalytics(
        total=len(schedules),
        enabled=sum(1 for s in schedules if s.enabled),
        active=len(active_schedules(schedules, instant)),
        type_breakdown=dict(collections.Counter(s.schedule_type for s in schedules)),
    )


def _is_active(schedule: RestrictionSchedule, instant: dt.datetime) -> bool:
    if not schedule.enabled:
        return False
    local = _localize(schedule, instant)
    if not _in_date_range(schedule, local):
        return False
    if local.isoweekday() not in schedule.days_of_week:
        return False
    if _has_exception(schedule, local.date()):
        return False
    minute = _minute_of_day(local)
    for time_range in schedule.time_ranges:
        _check_range(time_range)
        if time_range.contains(minute):
            return True
    return False


def _next_start(
    schedule: RestrictionSchedule, from_instant: dt.datetime, horizon_days: int
) -> Optional[dt.datetime]:
    if not schedule.enabled or not schedule.time_ranges:
        return None
    for time_range in schedule.time_ranges:
        _check_range(time_range)
    local = _localize(schedule, from_instant)
    starts = sorted(r.start_minutes for r in schedule.time_ranges)
    opening = _start_bound(schedule, local)

    for offset in range(horizon_days + 1):
        day = local.date() + dt.timedelta(days=offset)
        candidates = [_at_minute(day, minute, local.tzinfo) for minute in starts]
        # start_date 落在某个区间内部时，生效起点就是 start_date 本身
        if opening is not None and opening.date() == day:
            minute = _minute_of_day(opening)
            if any(r.contains(minute) for r in schedule.time_ranges):
                candidates.append(opening)
        eligible = [c for c in candidates if c > local and _day_eligible(schedule, c)]
        if eligible:
            return min(eligible)
    return None


def _start_bound(schedule: RestrictionSchedule, local: dt.datetime) -> Optional[dt.datetime]:
    if schedule.start_date is None:
        return None
    bound = _comparable(schedule.start_date, local)
    if bound.tzinfo is not None and local.tzinfo is not None:
        bound = bound.astimezone(local.tzinfo)
    return bound


def _day_eligible(schedule: RestrictionSchedule, instant: dt.datetime) -> bool:
    return (
        instant.isoweekday() in schedule.days_of_week
        and _in_date_range(schedule, instant)
        and not _has_exception(schedule, instant.date())
    )


def _in_date_range(schedule: RestrictionSchedule, instant: dt.datetime) -> bool:
    if schedule.start_date is not None and instant < _comparable(schedule.start_date, instant):
        return False
    if schedule.end_date is not None and instant > _comparable(schedule.end_date, instant):
        return False
    return True


def _has_exception(schedule: RestrictionSchedule, day: dt.date) -> bool:
    return any(exception.date == day for exception in schedule.exceptions)


def _localize(schedule: RestrictionSchedule, instant: dt.datetime) -> dt.datetime:
    if schedule.timezone and instant.tzinfo is not None:
        return instant.astimezone(ZoneInfo(schedule.timezone))
    return instant


def _comparable(bound: dt.datetime, instant: dt.datetime) -> dt.datetime:
    """让日期边界与待比较时刻的时区感知性一致。"""

    if (bound.tzinfo is None) == (instant.tzinfo is None):
        return bound
    if bound.tzinfo is None:
        return bound.replace(tzinfo=instant.tzinfo)
    return bound.replace(tzinfo=None)


def _minute_of_day(instant: dt.datetime) -> int:
    return instant.hour * 60 + instant.minute


def _check_range(time_range: TimeRange) -> None:
    for minutes in (time_range.start_minutes, time_range.end_minutes):
        if not 0 <= minutes < MINUTES_PER_DAY:
            raise ValueError(f"区间分钟数越界: {minutes}")


def _at_minute(day: dt.date, minute: int, tzinfo: Optional[dt.tzinfo]) -> dt.datetime:
    hour, minute = divmod(minute, 60)
    return dt.datetime.combine(day, dt.time(hour, minute), tzinfo=tzinfo)


def _label(schedule: RestrictionSchedule) -> str:
    return getattr(schedule, "name", None) or getattr(schedule, "id", "?")
