"""触发入口：时间表确认生效后交给选择引擎，并负责持久化。"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from typing import Dict, List, Optional, Protocol

from screengate.config import AppConfig
from screengate.config_store import (
    CUSTOM_ACTIVITIES_FILE,
    HISTORY_FILE,
    PREFERENCES_FILE,
    SCHEDULES_FILE,
    JsonHistoryStore,
    JsonPreferenceStore,
    load_custom_activities,
    load_schedules,
    save_schedules,
)
from screengate.core.activities import Activity, ActivityCatalog
from screengate.core.preferences import PreferenceConfig
from screengate.core.schedule import RestrictionSchedule, default_schedules
from screengate.core.schedule_evaluator import active_schedules, next_end, next_start
from screengate.core.selection_engine import SelectionEngine
from screengate.core.session import ActivitySession
from screengate.core.usage_history import UsageHistory


logger = logging.getLogger(__name__)


class PreferenceStore(Protocol):
    def load(self) -> PreferenceConfig:
        ...

    def save(self, preferences: PreferenceConfig) -> None:
        ...


class MemoryPreferenceStore:
    """不落盘的偏好存储，用于测试或临时会话。"""

    def __init__(self, preferences: Optional[PreferenceConfig] = None) -> None:
        self._preferences = preferences or PreferenceConfig.default()

    def load(self) -> PreferenceConfig:
        return self._preferences

    def save(self, preferences: PreferenceConfig) -> None:
        self._preferences = preferences


class GateService:
    """把外部触发（应用被拦截）转成一次活动选择。"""

    def __init__(
        self,
        engine: SelectionEngine,
        schedules: Optional[List[RestrictionSchedule]] = None,
        preference_store: Optional[PreferenceStore] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        self._engine = engine
        self._schedules: List[RestrictionSchedule] = list(schedules or [])
        self._preference_store = preference_store or MemoryPreferenceStore()
        self._config = config or AppConfig.load_default()
        self._preferences = self._preference_store.load()
        self._sessions: Dict[str, ActivitySession] = {}
        self._lock = threading.Lock()

    @property
    def engine(self) -> SelectionEngine:
        return self._engine

    def get_preferences(self) -> PreferenceConfig:
        with self._lock:
            return self._preferences

    def update_preferences(self, preferences: PreferenceConfig) -> None:
        with self._lock:
            self._preferences = preferences
        try:
            self._preference_store.save(preferences)
        except Exception:
            logger.warning("无法写入偏好设置", exc_info=True)

    def get_schedules(self) -> List[RestrictionSchedule]:
        with self._lock:
            return list(self._schedules)

    def set_schedules(self, schedules: List[RestrictionSchedule]) -> None:
        with self._lock:
            self._schedules = list(schedules)

    def active_schedules(self, now: Optional[dt.datetime] = None) -> List[RestrictionSchedule]:
        return active_schedules(self.get_schedules(), now or self._now())

    def next_transition(self, now: Optional[dt.datetime] = None) -> Optional[dt.datetime]:
        """所有时间表中最近的一次开始或结束时间。"""

        now = now or self._now()
        horizon = self._config.next_start_horizon_days
        candidates: List[dt.datetime] = []
        for schedule in self.get_schedules():
            end = next_end(schedule, now)
            if end is not None:
                candidates.append(end)
                continue
            start = next_start(schedule, now, horizon_days=horizon)
            if start is not None:
                candidates.append(start)
        return min(candidates) if candidates else None

    def handle_trigger(self, context_id: str, now: Optional[dt.datetime] = None) -> Optional[Activity]:
        """没有生效的时间表时返回 None，否则选出一个活动并开始会话。"""

        now = now or self._now()
        active = self.active_schedules(now)
        if not active:
            logger.info("%s 在 %s 没有生效的限制", context_id, now.isoformat(timespec="minutes"))
            return None

        activity = self._engine.select(context_id, self.get_preferences(), now)
        session = ActivitySession(recorder=self._engine)
        session.start(activity, context_id, now)
        with self._lock:
            self._sessions[context_id] = session
        return activity

    def session_for(self, context_id: str) -> Optional[ActivitySession]:
        with self._lock:
            return self._sessions.get(context_id)

    def complete(self, activity_id: str, context_id: str, now: Optional[dt.datetime] = None) -> bool:
        now = now or self._now()
        session = self._pop_session(activity_id, context_id)
        if session is not None:
            return session.complete(now)
        return self._engine.record_completion(activity_id, context_id, now)

    def skip(self, activity_id: str, context_id: str, now: Optional[dt.datetime] = None) -> bool:
        now = now or self._now()
        session = self._pop_session(activity_id, context_id)
        if session is not None:
            return session.skip(now)
        return self._engine.record_skip(activity_id, context_id, now)

    def _pop_session(self, activity_id: str, context_id: str) -> Optional[ActivitySession]:
        with self._lock:
            session = self._sessions.get(context_id)
            if session is None or session.activity is None or session.activity.id != activity_id:
                return None
            if not session.is_active:
                return None
            del self._sessions[context_id]
            return session

    def _now(self) -> dt.datetime:
        return dt.datetime.now()


def build_service(config: Optional[AppConfig] = None) -> GateService:
    """按配置的数据目录组装带 JSON 持久化的服务。"""

    config = config or AppConfig.load()
    data_dir = config.data_path()

    catalog = ActivityCatalog(custom=load_custom_activities(data_dir / CUSTOM_ACTIVITIES_FILE))
    history = UsageHistory(
        max_records=config.max_usage_records,
        recent_capacity=config.recent_capacity,
        store=JsonHistoryStore(data_dir / HISTORY_FILE),
    )
    engine = SelectionEngine(catalog, history, config=config)

    schedules_path = data_dir / SCHEDULES_FILE
    schedules = load_schedules(schedules_path)
    if not schedules:
        schedules = default_schedules()
        try:
            save_schedules(schedules, schedules_path)
        except OSError:
            logger.warning("无法写入默认时间表", exc_info=True)

    logger.info("已加载 %d 个活动、%d 个时间表、%d 条使用记录", len(catalog), len(schedules), len(history))
    return GateService(
        engine,
        schedules=schedules,
        preference_store=JsonPreferenceStore(data_dir / PREFERENCES_FILE),
        config=config,
    )
