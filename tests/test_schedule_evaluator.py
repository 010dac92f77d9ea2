import datetime as dt
import logging

import pytest

from screengate.core.schedule import (
    RepeatPattern,
    RestrictionSchedule,
    ScheduleException,
    ScheduleType,
    TimeRange,
    default_schedules,
)
from screengate.core.schedule_evaluator import (
    active_schedules,
    is_active,
    next_end,
    next_start,
    schedule_analytics,
    total_active_minutes,
)

# 2024-01-01 是周一
MONDAY = dt.date(2024, 1, 1)
FRIDAY = dt.date(2024, 1, 5)
SATURDAY = dt.date(2024, 1, 6)


def _at(day: dt.date, hour: int, minute: int = 0) -> dt.datetime:
    return dt.datetime.combine(day, dt.time(hour, minute))


def _weekday_work() -> RestrictionSchedule:
    return RestrictionSchedule(
        name="work",
        time_ranges=[TimeRange.from_hm(9, 0, 17, 0)],
        days_of_week=set(RepeatPattern.WEEKDAYS.default_days),
    )


def _overnight() -> RestrictionSchedule:
    return RestrictionSchedule(name="night", time_ranges=[TimeRange.from_hm(22, 0, 6, 0)])


def test_empty_time_ranges_never_active() -> None:
    schedule = RestrictionSchedule(name="empty")
    for hour in range(24):
        assert is_active(schedule, _at(MONDAY, hour)) is False
        assert is_active(schedule, _at(SATURDAY, hour, 30)) is False


def test_weekday_schedule_scenario() -> None:
    schedule = _weekday_work()

    assert is_active(schedule, _at(SATURDAY, 10)) is False
    assert is_active(schedule, _at(MONDAY, 10)) is True
    assert is_active(schedule, _at(MONDAY, 18)) is False


def test_normal_range_boundaries_are_inclusive() -> None:
    schedule = _weekday_work()

    assert is_active(schedule, _at(MONDAY, 9, 0)) is True
    assert is_active(schedule, _at(MONDAY, 17, 0)) is True
    assert is_active(schedule, _at(MONDAY, 8, 59)) is False
    assert is_active(schedule, _at(MONDAY, 17, 1)) is False


def test_overnight_range_scenario() -> None:
    schedule = _overnight()

    assert is_active(schedule, _at(MONDAY, 23, 30)) is True
    assert is_active(schedule, _at(MONDAY, 7, 0)) is False


def test_overnight_range_boundaries() -> None:
    schedule = _overnight()

    assert is_active(schedule, _at(MONDAY, 22, 0)) is True
    assert is_active(schedule, _at(MONDAY, 6, 0)) is True
    assert is_active(schedule, _at(MONDAY, 6, 1)) is False
    assert is_active(schedule, _at(MONDAY, 12, 0)) is False
    assert is_active(schedule, _at(MONDAY, 21, 59)) is False


def test_disabled_schedule_is_inactive() -> None:
    schedule = _weekday_work().toggle_enabled()

    assert is_active(schedule, _at(MONDAY, 10)) is False


def test_date_bounds_limit_activation() -> None:
    schedule = _weekday_work().model_copy(
        update={"start_date": _at(dt.date(2024, 1, 2), 0), "end_date": _at(dt.date(2024, 1, 3), 23, 59)}
    )

    assert is_active(schedule, _at(MONDAY, 10)) is False
    assert is_active(schedule, _at(dt.date(2024, 1, 2), 10)) is True
    assert is_active(schedule, _at(dt.date(2024, 1, 4), 10)) is False


def test_next_start_clamps_to_start_date_inside_range() -> None:
    wednesday = dt.date(2024, 1, 3)
    schedule = _weekday_work().model_copy(update={"start_date": _at(wednesday, 10)})

    assert is_active(schedule, _at(wednesday, 10, 30)) is True
    assert next_start(schedule, _at(MONDAY, 12)) == _at(wednesday, 10)
    assert next_start(schedule, _at(wednesday, 8)) == _at(wednesday, 10)
    assert next_start(schedule, _at(wednesday, 12)) == _at(dt.date(2024, 1, 4), 9)


def test_exception_date_suppresses_schedule() -> None:
    schedule = _weekday_work().add_exception(ScheduleException(date=MONDAY, reason="holiday"))

    assert is_active(schedule, _at(MONDAY, 10)) is False
    assert is_active(schedule, _at(dt.date(2024, 1, 2), 10)) is True


def test_malformed_time_range_is_inactive_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    broken = TimeRange.model_construct(id="broken", start=None, end=None, name="broken")
    schedule = RestrictionSchedule(name="broken", time_ranges=[broken])

    with caplog.at_level(logging.WARNING):
        assert is_active(schedule, _at(MONDAY, 10)) is False
        assert next_start(schedule, _at(MONDAY, 10)) is None

    assert "broken" in caplog.text


def test_next_start_later_today() -> None:
    schedule = _weekday_work()

    assert next_start(schedule, _at(MONDAY, 7, 15)) == _at(MONDAY, 9)


def test_next_start_skips_to_next_active_weekday() -> None:
    schedule = _weekday_work()

    assert next_start(schedule, _at(FRIDAY, 18)) == _at(dt.date(2024, 1, 8), 9)


def test_next_start_uses_earliest_range_on_following_day() -> None:
    schedule = RestrictionSchedule(
        name="split",
        time_ranges=[TimeRange.from_hm(18, 0, 20, 0), TimeRange.from_hm(8, 0, 9, 0)],
    )

    assert next_start(schedule, _at(MONDAY, 12)) == _at(MONDAY, 18)
    assert next_start(schedule, _at(MONDAY, 21)) == _at(dt.date(2024, 1, 2), 8)


def test_next_start_skips_exception_day() -> None:
    schedule = _overnight().add_exception(ScheduleException(date=dt.date(2024, 1, 2)))

    assert next_start(schedule, _at(MONDAY, 23)) == _at(dt.date(2024, 1, 3), 22)


def test_next_start_none_without_eligible_day() -> None:
    no_days = _weekday_work().model_copy(update={"days_of_week": set()})
    empty = RestrictionSchedule(name="empty")

    assert next_start(no_days, _at(MONDAY, 7)) is None
    assert next_start(empty, _at(MONDAY, 7)) is None


def test_next_end_for_normal_and_overnight_ranges() -> None:
    assert next_end(_weekday_work(), _at(MONDAY, 10)) == _at(MONDAY, 17)
    assert next_end(_overnight(), _at(MONDAY, 23)) == _at(dt.date(2024, 1, 2), 6)
    assert next_end(_overnight(), _at(MONDAY, 5)) == _at(MONDAY, 6)


def test_next_end_none_when_inactive() -> None:
    assert next_end(_weekday_work(), _at(SATURDAY, 10)) is None


def test_timezone_conversion_for_aware_instants() -> None:
    from zoneinfo import ZoneInfo

    try:
        ZoneInfo("Asia/Shanghai")
    except Exception:
        pytest.skip("tzdata 不可用")

    schedule = _weekday_work().model_copy(update={"timezone": "Asia/Shanghai"})
    instant = dt.datetime(2024, 1, 1, 2, 0, tzinfo=dt.timezone.utc)

    assert is_active(schedule, instant) is True


def test_repeat_pattern_default_days() -> None:
    schedule = RestrictionSchedule(name="x").with_repeat_pattern(RepeatPattern.WEEKENDS)

    assert schedule.days_of_week == {6, 7}
    assert RepeatPattern.CUSTOM.default_days == frozenset()
    unchanged = schedule.with_repeat_pattern(RepeatPattern.CUSTOM)
    assert unchanged.days_of_week == {6, 7}


def test_add_time_range_keeps_ranges_sorted() -> None:
    schedule = RestrictionSchedule(name="x", time_ranges=[TimeRange.from_hm(18, 0, 20, 0)])
    schedule = schedule.add_time_range(TimeRange.from_hm(8, 0, 9, 0))

    assert [r.start_minutes for r in schedule.time_ranges] == [480, 1080]
    assert total_active_minutes(schedule) == 180


def test_overnight_duration_wraps_midnight() -> None:
    assert TimeRange.from_hm(22, 0, 6, 0).duration_minutes == 480


def test_schedule_analytics() -> None:
    schedules = default_schedules()
    schedules[1] = schedules[1].toggle_enabled()

    analytics = schedule_analytics(schedules, _at(MONDAY, 10))

    assert analytics.total == 3
    assert analytics.enabled == 2
    assert analytics.active == 1
    assert analytics.most_common_type is ScheduleType.TIME_BASED
    assert analytics.activation_rate == 0.5
    assert [s.name for s in active_schedules(schedules, _at(MONDAY, 10))] == ["Work Hours"]
