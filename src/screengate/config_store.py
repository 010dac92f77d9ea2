"""简易 JSON 存储，负责偏好、使用记录、时间表与自定义活动的加载/保存。"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from screengate.core.activities import Activity
from screengate.core.preferences import PreferenceConfig
from screengate.core.schedule import RestrictionSchedule
from screengate.core.usage_history import HistoryState


logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".screengate"

PREFERENCES_FILE = "preferences.json"
HISTORY_FILE = "usage_history.json"
SCHEDULES_FILE = "schedules.json"
CUSTOM_ACTIVITIES_FILE = "custom_activities.json"


def _read_json(path: Path) -> Optional[Any]:
    try:
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning("无法读取 %s", path, exc_info=True)
        return None


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def load_preferences(path: Optional[Path] = None) -> Optional[PreferenceConfig]:
    data = _read_json(path or DEFAULT_DATA_DIR / PREFERENCES_FILE)
    if data is None:
        return None
    try:
        return PreferenceConfig.model_validate(data)
    except ValidationError:
        logger.warning("偏好文件内容无效，忽略", exc_info=True)
        return None


def save_preferences(preferences: PreferenceConfig, path: Optional[Path] = None) -> None:
    _write_json(path or DEFAULT_DATA_DIR / PREFERENCES_FILE, preferences.model_dump(mode="json"))


def load_schedules(path: Optional[Path] = None) -> list[RestrictionSchedule]:
    data = _read_json(path or DEFAULT_DATA_DIR / SCHEDULES_FILE)
    if not isinstance(data, list):
        return []
    schedules: list[RestrictionSchedule] = []
    for item in data:
        try:
            schedules.append(RestrictionSchedule.model_validate(item))
        except ValidationError:
            logger.warning("跳过无效的时间表: %s", item.get("name") if isinstance(item, dict) else item)
    return schedules


def save_schedules(schedules: list[RestrictionSchedule], path: Optional[Path] = None) -> None:
    payload = [schedule.model_dump(mode="json") for schedule in schedules]
    _write_json(path or DEFAULT_DATA_DIR / SCHEDULES_FILE, payload)


def load_custom_activities(path: Optional[Path] = None) -> list[Activity]:
    data = _read_json(path or DEFAULT_DATA_DIR / CUSTOM_ACTIVITIES_FILE)
    if not isinstance(data, list):
        return []
    activities: list[Activity] = []
    for item in data:
        try:
            activities.append(Activity.model_validate(item))
        except ValidationError:
            logger.warning("跳过无效的自定义活动", exc_info=True)
    return activities


def save_custom_activities(activities: list[Activity], path: Optional[Path] = None) -> None:
    payload = [activity.model_dump(mode="json") for activity in activities]
    _write_json(path or DEFAULT_DATA_DIR / CUSTOM_ACTIVITIES_FILE, payload)


class JsonHistoryStore:
    """`HistoryStore` 的 JSON 文件实现，后写覆盖先写。"""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path or DEFAULT_DATA_DIR / HISTORY_FILE

    def load(self) -> Optional[HistoryState]:
        data = _read_json(self.path)
        if data is None:
            return None
        try:
            return HistoryState.model_validate(data)
        except ValidationError:
            logger.warning("使用记录文件内容无效，忽略", exc_info=True)
            return None

    def save(self, state: HistoryState) -> None:
        _write_json(self.path, state.model_dump(mode="json"))


class JsonPreferenceStore:
    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path or DEFAULT_DATA_DIR / PREFERENCES_FILE

    def load(self) -> PreferenceConfig:
        return load_preferences(self.path) or PreferenceConfig.default()

    def save(self, preferences: PreferenceConfig) -> None:
        save_preferences(preferences, self.path)
