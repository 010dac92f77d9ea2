import datetime as dt
import random
import threading

from screengate.config import AppConfig, TimeWindow
from screengate.core.activities import ActivityCatalog, ActivityCategory
from screengate.core.preferences import HourRangeOverride, PreferenceConfig
from screengate.core.selection_engine import AppCategorizer, SelectionEngine
from screengate.core.usage_history import UsageHistory, UsageRecord


def _fixed_now(hour: int = 12, minute: int = 0) -> dt.datetime:
    return dt.datetime(2024, 1, 1, hour, minute, 0)


def _engine(max_records: int = 1000, seed: int = 7) -> SelectionEngine:
    config = AppConfig(max_usage_records=max_records)
    history = UsageHistory(max_records=config.max_usage_records, recent_capacity=config.recent_capacity)
    return SelectionEngine(ActivityCatalog(), history, config=config, rng=random.Random(seed))


def _breathing_only(**kwargs) -> PreferenceConfig:
    return PreferenceConfig(preferred_categories=[ActivityCategory.BREATHING], **kwargs)


def test_app_override_short_circuits_scoring_at_any_hour() -> None:
    engine = _engine()
    prefs = PreferenceConfig(app_overrides={"com.example.app": ["breathing-box"]})

    for hour in range(24):
        chosen = engine.select("com.example.app", prefs, _fixed_now(hour))
        assert chosen.id == "breathing-box"


def test_multi_item_app_override_always_returns_first_entry() -> None:
    engine = _engine()
    prefs = PreferenceConfig(app_overrides={"com.example.app": ["breathing-box", "reflection-gratitude"]})

    picks = [engine.select("com.example.app", prefs, _fixed_now(10)).id for _ in range(4)]

    assert picks == ["breathing-box"] * 4
    assert len(engine.history) == 4
    assert engine.recommend("com.example.app", prefs, _fixed_now(10), count=5) == engine.catalog.resolve(
        ["breathing-box", "reflection-gratitude"]
    )


def test_select_without_history_appends_one_record() -> None:
    engine = _engine()

    chosen = engine.select("com.unmapped.app", PreferenceConfig(), _fixed_now(10))

    assert chosen.id in engine.catalog
    records = engine.history.snapshot()
    assert len(records) == 1
    assert records[0].activity_id == chosen.id
    assert records[0].context_id == "com.unmapped.app"
    assert records[0].completed is False


def test_select_never_leaves_catalog() -> None:
    engine = _engine()
    catalog_ids = {a.id for a in engine.catalog.all()}
    preference_sets = [
        PreferenceConfig(),
        PreferenceConfig(preferred_categories=[]),
        PreferenceConfig(preferred_categories=[ActivityCategory.MOVEMENT]),
        PreferenceConfig(app_overrides={"ctx": ["missing-id"]}),
    ]

    for hour in range(24):
        for prefs in preference_sets:
            assert engine.select("ctx", prefs, _fixed_now(hour)).id in catalog_ids


def test_variety_filter_avoids_recent_then_falls_back() -> None:
    engine = _engine()
    prefs = _breathing_only()

    first = engine.select("ctx", prefs, _fixed_now(12))
    second = engine.select("ctx", prefs, _fixed_now(12, 5))
    third = engine.select("ctx", prefs, _fixed_now(12, 10))

    assert first.id == "breathing-box"
    assert second.id == "breathing-4-7-8"
    # 两个候选都在最近列表中，放弃多样性过滤而不是返回空
    assert third.category is ActivityCategory.BREATHING


def test_variety_disabled_repeats_best_candidate() -> None:
    engine = _engine()
    prefs = PreferenceConfig(app_overrides={"ctx": ["breathing-box"]}, enable_variety=False)

    ids = {engine.select("ctx", prefs, _fixed_now(12)).id for _ in range(3)}

    assert ids == {"breathing-box"}


def test_time_of_day_window_filters_categories() -> None:
    engine = _engine()

    morning = engine.select("ctx", PreferenceConfig(), _fixed_now(9))
    night = engine.select("ctx2", PreferenceConfig(), _fixed_now(2))

    assert morning.category is ActivityCategory.MINDFULNESS
    assert night.category is ActivityCategory.BREATHING


def test_empty_after_filtering_falls_back_to_random_catalog_pick() -> None:
    engine = _engine()
    prefs = PreferenceConfig(preferred_categories=[ActivityCategory.MOVEMENT])

    chosen = engine.select("ctx", prefs, _fixed_now(12))

    assert chosen.id in engine.catalog
    assert len(engine.history) == 1


def test_hour_override_takes_precedence_over_windows() -> None:
    engine = _engine()
    prefs = PreferenceConfig(
        hour_overrides=[HourRangeOverride(start_hour=12, end_hour=13, activity_ids=["quick-look-away"])]
    )

    assert engine.select("ctx", prefs, _fixed_now(12, 30)).id == "quick-look-away"


def test_hour_override_without_matching_candidate_uses_windows() -> None:
    engine = _engine()
    prefs = PreferenceConfig(
        hour_overrides=[HourRangeOverride(start_hour=9, end_hour=10, activity_ids=["movement-desk-stretches"])]
    )

    chosen = engine.select("ctx", prefs, _fixed_now(9))

    assert chosen.category is ActivityCategory.MINDFULNESS


def test_scoring_prefers_activities_that_get_completed() -> None:
    engine = _engine()
    earlier = _fixed_now(12) - dt.timedelta(days=1)
    history = engine.history
    history.append(UsageRecord(activity_id="breathing-box", context_id="ctx", timestamp=earlier))
    history.append(UsageRecord(activity_id="breathing-box", context_id="ctx", timestamp=earlier))
    history.append(
        UsageRecord(activity_id="breathing-4-7-8", context_id="ctx", timestamp=earlier, completed=True)
    )

    chosen = engine.select("ctx", _breathing_only(enable_variety=False), _fixed_now(12))

    assert chosen.id == "breathing-4-7-8"


def test_record_completion_is_idempotent_per_open_record() -> None:
    engine = _engine()
    prefs = PreferenceConfig(app_overrides={"ctx": ["breathing-box"]})
    engine.select("ctx", prefs, _fixed_now(12))

    assert engine.record_completion("breathing-box", "ctx", _fixed_now(12, 3)) is True
    assert engine.record_completion("breathing-box", "ctx", _fixed_now(12, 4)) is False

    records = engine.history.snapshot()
    assert records[0].completed is True
    assert records[0].completed_at == _fixed_now(12, 3)


def test_record_completion_targets_most_recent_open_record() -> None:
    engine = _engine()
    prefs = PreferenceConfig(app_overrides={"ctx": ["breathing-box"]})
    engine.select("ctx", prefs, _fixed_now(12))
    engine.select("ctx", prefs, _fixed_now(12, 30))

    engine.record_completion("breathing-box", "ctx")

    first, second = engine.history.snapshot()
    assert first.completed is False
    assert second.completed is True


def test_record_completion_without_match_is_noop() -> None:
    engine = _engine()

    assert engine.record_completion("breathing-box", "nowhere") is False
    assert len(engine.history) == 0


def test_usage_log_respects_cap() -> None:
    engine = _engine(max_records=5)

    for minute in range(20):
        engine.select("ctx", PreferenceConfig(), _fixed_now(12, minute))

    assert len(engine.history) == 5
    assert engine.history.snapshot()[-1].timestamp == _fixed_now(12, 19)


def test_recommend_is_side_effect_free_and_ranked() -> None:
    engine = _engine()
    earlier = _fixed_now(12) - dt.timedelta(days=1)
    engine.history.append(
        UsageRecord(activity_id="quick-look-away", context_id="ctx", timestamp=earlier, completed=True)
    )
    before = len(engine.history)

    ranked = engine.recommend("ctx", PreferenceConfig(enable_variety=False), _fixed_now(12), count=2)

    assert len(engine.history) == before
    assert len(ranked) == 2
    assert ranked[0].id == "quick-look-away"


def test_recommend_count_zero_returns_empty() -> None:
    assert _engine().recommend("ctx", PreferenceConfig(), _fixed_now(12), count=0) == []


def test_smart_selection_disabled_picks_among_filtered_candidates() -> None:
    engine = _engine(seed=3)
    prefs = _breathing_only(enable_smart_selection=False, enable_variety=False)

    for minute in range(10):
        chosen = engine.select("ctx", prefs, _fixed_now(12, minute))
        assert chosen.category is ActivityCategory.BREATHING


def test_category_override_applies_to_mapped_apps() -> None:
    engine = _engine()
    prefs = PreferenceConfig(category_overrides={"social": ["reflection-gratitude"]})

    chosen = engine.select("com.instagram.instagram", prefs, _fixed_now(12))

    assert chosen.id == "reflection-gratitude"


def test_categorizer_maps_known_apps_and_category_names() -> None:
    categorizer = AppCategorizer.from_config(AppConfig())

    assert categorizer.categorize("com.netflix.Netflix") == "entertainment"
    assert categorizer.categorize("social") == "social"
    assert categorizer.categorize("org.unknown") == "other"


def test_concurrent_selections_are_all_recorded() -> None:
    engine = _engine()

    def worker() -> None:
        for minute in range(25):
            engine.select("ctx", PreferenceConfig(), _fixed_now(12, minute))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(engine.history) == 200
    assert len(engine.history.recent_ids()) == 10


def test_remaining_today_counts_same_day_selections() -> None:
    engine = _engine()
    prefs = PreferenceConfig(max_daily_activities=3)
    for minute in range(2):
        engine.select("ctx", prefs, _fixed_now(12, minute))

    assert engine.remaining_today(prefs, _fixed_now(20)) == 1
    assert engine.remaining_today(prefs, _fixed_now(20) + dt.timedelta(days=1)) == 3


def test_most_effective_orders_by_hourly_completion() -> None:
    engine = _engine()
    engine.history.append(
        UsageRecord(activity_id="quick-water-break", context_id="a", timestamp=_fixed_now(8), completed=True)
    )
    engine.history.append(UsageRecord(activity_id="breathing-box", context_id="a", timestamp=_fixed_now(8)))

    ranked = engine.most_effective(8)

    assert ranked[0].id == "quick-water-break"
    assert ranked[-1].id == "breathing-box"


def test_update_config_swaps_time_windows() -> None:
    engine = _engine()
    assert engine.select("ctx", PreferenceConfig(), _fixed_now(9)).category is ActivityCategory.MINDFULNESS

    engine.update_config(
        AppConfig(time_windows=[TimeWindow(name="morning", start_hour=6, end_hour=11, categories=["quickBreak"])])
    )

    assert engine.select("ctx", PreferenceConfig(), _fixed_now(9)).category is ActivityCategory.QUICK_BREAK
