"""正念活动选择引擎：候选筛选、打分与使用记录。"""

from __future__ import annotations

import datetime as dt
import logging
import random
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple

from screengate.config import AppConfig
from screengate.core.activities import BUILTIN_ACTIVITIES, Activity, ActivityCatalog
from screengate.core.preferences import PreferenceConfig
from screengate.core.usage_history import UsageHistory, UsageRecord


logger = logging.getLogger(__name__)


class CandidateSource(Enum):
    """候选集合的来源，按优先级排列。"""

    APP_OVERRIDE = auto()
    CATEGORY_OVERRIDE = auto()
    PREFERRED_CATEGORIES = auto()
    FULL_CATALOG = auto()

    @property
    def is_override(self) -> bool:
        return self in (CandidateSource.APP_OVERRIDE, CandidateSource.CATEGORY_OVERRIDE)


@dataclass
class ScoredActivity:
    activity: Activity
    score: float


class AppCategorizer:
    """把应用标识映射为应用类别；传入的若本身就是类别名则原样返回。"""

    def __init__(self, table: Dict[str, List[str]], default: str = "other") -> None:
        self._categories = set(table)
        self._default = default
        self._index: Dict[str, str] = {}
        for category, context_ids in table.items():
            for context_id in context_ids:
                self._index[context_id] = category

    @classmethod
    def from_config(cls, config: AppConfig) -> "AppCategorizer":
        return cls(config.app_categories, default=config.default_app_category)

    def categorize(self, context_id: str) -> str:
        if context_id in self._categories:
            return context_id
        return self._index.get(context_id, self._default)


class SelectionEngine:
    """根据上下文、偏好与历史挑选一个活动。

    `select` 的“读取-打分-写入”整体在历史记录的锁内执行，
    并发触发时每次选择都能看到前一次选择对过度使用惩罚的影响。
    """

    def __init__(
        self,
        catalog: ActivityCatalog,
        history: UsageHistory,
        config: Optional[AppConfig] = None,
        categorizer: Optional[AppCategorizer] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._catalog = catalog
        self._history = history
        self._config = config or AppConfig.load_default()
        self._categorizer = categorizer or AppCategorizer.from_config(self._config)
        self._rng = rng or random.Random()

    @property
    def catalog(self) -> ActivityCatalog:
        return self._catalog

    @property
    def history(self) -> UsageHistory:
        return self._history

    def select(
        self,
        context_id: str,
        preferences: Optional[PreferenceConfig] = None,
        now: Optional[dt.datetime] = None,
    ) -> Activity:
        now = now or self._now()
        preferences = preferences or PreferenceConfig.default()

        with self._history.lock:
            candidates, source = self._filtered_candidates(context_id, preferences, now)
            if not candidates:
                chosen = self._random_fallback()
                reason = "fallback"
            elif source is CandidateSource.APP_OVERRIDE:
                # 应用级覆盖直接取列表首项，不参与多样性过滤与打分
                chosen = candidates[0]
                reason = source.name.lower()
            elif not preferences.enable_smart_selection:
                chosen = self._rng.choice(candidates)
                reason = "random"
            else:
                scored = self._score(candidates, context_id, now)
                # max 在并列时保留第一个，即候选顺序靠前者
                chosen = max(scored, key=lambda item: item.score).activity
                reason = source.name.lower()

            self._history.append(
                UsageRecord(activity_id=chosen.id, context_id=context_id, timestamp=now)
            )

        logger.info("为 %s 选择活动 %s (%s)", context_id, chosen.id, reason)
        return chosen

    def recommend(
        self,
        context_id: str,
        preferences: Optional[PreferenceConfig] = None,
        now: Optional[dt.datetime] = None,
        count: int = 3,
    ) -> List[Activity]:
        """按分数从高到低返回前 `count` 个活动，不写入历史。"""

        if count <= 0:
            return []
        now = now or self._now()
        preferences = preferences or PreferenceConfig.default()

        with self._history.lock:
            candidates, source = self._filtered_candidates(context_id, preferences, now)
            if source is CandidateSource.APP_OVERRIDE:
                return candidates[:count]
            if not candidates:
                candidates, _ = self._source_candidates(context_id, preferences)
            scored = self._score(candidates, context_id, now)

        ranked = sorted(scored, key=lambda item: item.score, reverse=True)
        return [item.activity for item in ranked[:count]]

    def record_completion(
        self, activity_id: str, context_id: str, at: Optional[dt.datetime] = None
    ) -> bool:
        """标记完成；没有未结束的匹配记录时静默忽略。"""

        marked = self._history.mark_completed(activity_id, context_id, at or self._now())
        if marked:
            logger.info("活动 %s 在 %s 下完成", activity_id, context_id)
        else:
            logger.debug("没有可标记完成的记录: %s / %s", activity_id, context_id)
        return marked

    def record_skip(
        self, activity_id: str, context_id: str, at: Optional[dt.datetime] = None
    ) -> bool:
        marked = self._history.mark_skipped(activity_id, context_id, at or self._now())
        if marked:
            logger.info("活动 %s 在 %s 下被跳过", activity_id, context_id)
        return marked

    def most_effective(self, hour: int) -> List[Activity]:
        prior = self._config.scoring.cold_start_rate
        activities = self._catalog.all()
        return sorted(
            activities,
            key=lambda a: self._history.hourly_completion_rate(a.id, hour, prior),
            reverse=True,
        )

    def remaining_today(
        self, preferences: Optional[PreferenceConfig] = None, now: Optional[dt.datetime] = None
    ) -> int:
        """当天剩余的活动额度，仅供展示，不会阻止 `select`。"""

        now = now or self._now()
        preferences = preferences or PreferenceConfig.default()
        used = self._history.count_on(now.date())
        return max(0, preferences.max_daily_activities - used)

    def update_config(self, config: AppConfig) -> None:
        self._config = config
        self._categorizer = AppCategorizer.from_config(config)

    def _filtered_candidates(
        self, context_id: str, preferences: PreferenceConfig, now: dt.datetime
    ) -> Tuple[List[Activity], CandidateSource]:
        candidates, source = self._source_candidates(context_id, preferences)
        if source is CandidateSource.APP_OVERRIDE:
            return candidates, source
        candidates = self._filter_variety(candidates, preferences)
        # 用户显式指定的覆盖列表不再受固定时段约束
        if not source.is_override:
            candidates = self._filter_time_of_day(candidates, now, preferences)
        return candidates, source

    def _source_candidates(
        self, context_id: str, preferences: PreferenceConfig
    ) -> Tuple[List[Activity], CandidateSource]:
        app_ids = preferences.app_overrides.get(context_id)
        if app_ids:
            resolved = self._catalog.resolve(app_ids)
            if resolved:
                return resolved, CandidateSource.APP_OVERRIDE

        app_category = self._categorizer.categorize(context_id)
        category_ids = preferences.category_overrides.get(app_category)
        if category_ids:
            resolved = self._catalog.resolve(category_ids)
            if resolved:
                return resolved, CandidateSource.CATEGORY_OVERRIDE

        if preferences.preferred_categories:
            preferred = self._catalog.by_categories(preferences.preferred_categories)
            if preferred:
                return preferred, CandidateSource.PREFERRED_CATEGORIES

        return self._catalog.all(), CandidateSource.FULL_CATALOG

    def _filter_variety(
        self, candidates: List[Activity], preferences: PreferenceConfig
    ) -> List[Activity]:
        if not preferences.enable_variety:
            return candidates
        recent = set(self._history.recent_ids(self._config.variety_window))
        filtered = [c for c in candidates if c.id not in recent]
        return filtered or candidates

    def _filter_time_of_day(
        self, candidates: List[Activity], now: dt.datetime, preferences: PreferenceConfig
    ) -> List[Activity]:
        hour = now.hour
        for override in preferences.hour_overrides_for(hour):
            wanted = set(override.activity_ids)
            matched = [c for c in candidates if c.id in wanted]
            if matched:
                return matched

        allowed = set(self._config.categories_for_hour(hour))
        return [c for c in candidates if c.category.value in allowed]

    def _score(
        self, candidates: List[Activity], context_id: str, now: dt.datetime
    ) -> List[ScoredActivity]:
        weights = self._config.scoring
        prior = weights.cold_start_rate
        hour = now.hour
        recent = self._history.recent_ids(self._config.overuse_window)

        scored: List[ScoredActivity] = []
        for activity in candidates:
            score = weights.base
            score += self._history.completion_rate(activity.id, context_id, prior) * weights.context_completion
            score += self._history.hourly_completion_rate(activity.id, hour, prior) * weights.hour_completion
            score -= recent.count(activity.id) * weights.overuse_penalty
            score += self._config.category_weights.get(activity.category.value, 0) * weights.category_preference
            scored.append(ScoredActivity(activity=activity, score=score))
        return scored

    def _random_fallback(self) -> Activity:
        activities = self._catalog.all()
        if not activities:
            logger.warning("活动库为空，使用内置呼吸练习")
            return BUILTIN_ACTIVITIES[0]
        return self._rng.choice(activities)

    def _now(self) -> dt.datetime:
        return dt.datetime.now()
