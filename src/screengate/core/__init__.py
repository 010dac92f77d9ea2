"""核心业务逻辑：时间表求值、活动选择与使用记录。"""

from .activities import Activity, ActivityCatalog, ActivityCategory
from .preferences import PreferenceConfig, validate_preferences
from .schedule import RestrictionSchedule, TimeRange
from .schedule_evaluator import is_active, next_end, next_start
from .selection_engine import SelectionEngine
from .session import ActivitySession
from .usage_history import UsageHistory, UsageRecord

__all__ = [
    "Activity",
    "ActivityCatalog",
    "ActivityCategory",
    "ActivitySession",
    "PreferenceConfig",
    "RestrictionSchedule",
    "SelectionEngine",
    "TimeRange",
    "UsageHistory",
    "UsageRecord",
    "is_active",
    "next_end",
    "next_start",
    "validate_preferences",
]
