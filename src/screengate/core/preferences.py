"""用户活动偏好配置与校验。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from screengate.core.activities import ActivityCategory


MAX_DAILY_RANGE = (1, 100)
DURATION_RANGE = (30.0, 1800.0)


class HourRangeOverride(BaseModel):
    """按小时区间（闭区间）指定的活动列表。"""

    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=0, le=23)
    activity_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_order(self) -> "HourRangeOverride":
        if self.start_hour > self.end_hour:
            raise ValueError("start_hour 不能大于 end_hour")
        return self

    def contains(self, hour: int) -> bool:
        return self.start_hour <= hour <= self.end_hour


class PreferenceConfig(BaseModel):
    """每个用户的选择偏好。

    覆盖映射优先于类别偏好，类别偏好优先于整个活动库兜底。
    """

    preferred_categories: list[ActivityCategory] = Field(
        default_factory=lambda: [
            ActivityCategory.BREATHING,
            ActivityCategory.QUICK_BREAK,
            ActivityCategory.MINDFULNESS,
        ]
    )
    enable_variety: bool = True
    max_daily_activities: int = 20
    default_duration: float = 180.0
    enable_smart_selection: bool = True
    app_overrides: dict[str, list[str]] = Field(default_factory=dict)
    category_overrides: dict[str, list[str]] = Field(default_factory=dict)
    hour_overrides: list[HourRangeOverride] = Field(default_factory=list)

    @classmethod
    def default(cls) -> "PreferenceConfig":
        return cls()

    @property
    def is_customized(self) -> bool:
        default = PreferenceConfig.default()
        return (
            self.preferred_categories != default.preferred_categories
            or self.enable_variety != default.enable_variety
            or self.max_daily_activities != default.max_daily_activities
        )

    def hour_overrides_for(self, hour: int) -> list[HourRangeOverride]:
        """按配置顺序返回覆盖该小时的所有区间。"""

        return [override for override in self.hour_overrides if override.contains(hour)]

    def with_max_daily(self, count: int) -> "PreferenceConfig":
        low, high = MAX_DAILY_RANGE
        return self.model_copy(update={"max_daily_activities": max(low, min(high, int(count)))})

    def with_default_duration(self, seconds: float) -> "PreferenceConfig":
        low, high = DURATION_RANGE
        return self.model_copy(update={"default_duration": max(low, min(high, float(seconds)))})

    def with_app_override(self, context_id: str, activity_ids: list[str]) -> "PreferenceConfig":
        overrides = dict(self.app_overrides)
        if activity_ids:
            overrides[context_id] = list(activity_ids)
        else:
            overrides.pop(context_id, None)
        return self.model_copy(update={"app_overrides": overrides})

    def reset_learned(self) -> "PreferenceConfig":
        """清空所有覆盖映射。"""

        return self.model_copy(
            update={"app_overrides": {}, "category_overrides": {}, "hour_overrides": []}
        )


class ValidationErrorKind(str, Enum):
    NO_PREFERRED_TYPES = "no-preferred-types"
    INVALID_MAX_DAILY = "invalid-max-daily"
    INVALID_DURATION = "invalid-duration"


_MESSAGES = {
    ValidationErrorKind.NO_PREFERRED_TYPES: "At least one activity category must be preferred",
    ValidationErrorKind.INVALID_MAX_DAILY: "Maximum daily activities must be between 1 and 100",
    ValidationErrorKind.INVALID_DURATION: "Default duration must be between 30 seconds and 30 minutes",
}


@dataclass(frozen=True)
class PreferenceValidationError:
    """偏好校验结果，作为值返回而非异常抛出。"""

    kind: ValidationErrorKind

    @property
    def message(self) -> str:
        return _MESSAGES[self.kind]


def validate_preferences(preferences: PreferenceConfig) -> list[PreferenceValidationError]:
    errors: list[PreferenceValidationError] = []

    if not preferences.preferred_categories:
        errors.append(PreferenceValidationError(ValidationErrorKind.NO_PREFERRED_TYPES))

    low, high = MAX_DAILY_RANGE
    if not low <= preferences.max_daily_activities <= high:
        errors.append(PreferenceValidationError(ValidationErrorKind.INVALID_MAX_DAILY))

    low_d, high_d = DURATION_RANGE
    if not low_d <= preferences.default_duration <= high_d:
        errors.append(PreferenceValidationError(ValidationErrorKind.INVALID_DURATION))

    return errors
