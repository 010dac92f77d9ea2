"""应用配置模型。"""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class TimeWindow(BaseModel):
    """一天中的时段及其推荐的活动类别。"""

    name: str
    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=0, le=23)
    categories: list[str] = Field(default_factory=list)

    def contains(self, hour: int) -> bool:
        return self.start_hour <= hour <= self.end_hour


class ScoringWeights(BaseModel):
    """候选活动打分权重。"""

    base: float = 50.0
    context_completion: float = 30.0
    hour_completion: float = 20.0
    overuse_penalty: float = Field(5.0, ge=0.0)
    category_preference: float = 10.0
    cold_start_rate: float = Field(0.5, ge=0.0, le=1.0)


def _default_time_windows() -> list[TimeWindow]:
    return [
        TimeWindow(name="morning", start_hour=6, end_hour=11, categories=["movement", "mindfulness"]),
        TimeWindow(name="midday", start_hour=12, end_hour=14, categories=["breathing", "quickBreak"]),
        TimeWindow(name="afternoon", start_hour=15, end_hour=17, categories=["movement", "breathing"]),
        TimeWindow(name="evening", start_hour=18, end_hour=22, categories=["reflection", "mindfulness"]),
    ]


def _default_category_weights() -> dict[str, int]:
    return {
        "breathing": 5,
        "mindfulness": 4,
        "reflection": 3,
        "movement": 4,
        "quickBreak": 5,
    }


def _default_app_categories() -> dict[str, list[str]]:
    return {
        "social": ["com.facebook.Facebook", "com.instagram.instagram", "com.twitter.twitter"],
        "entertainment": ["com.netflix.Netflix", "com.youtube.youtube"],
        "productivity": ["com.microsoft.Word", "com.apple.Pages"],
    }


class AppConfig(BaseModel):
    """总配置，可通过 `config.local.py` 覆盖。"""

    max_usage_records: int = Field(1000, ge=1)
    recent_capacity: int = Field(10, ge=1)
    variety_window: int = Field(5, ge=0)
    overuse_window: int = Field(10, ge=0)
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    time_windows: list[TimeWindow] = Field(default_factory=_default_time_windows)
    night_categories: list[str] = Field(default_factory=lambda: ["breathing", "reflection"])
    category_weights: dict[str, int] = Field(default_factory=_default_category_weights)
    app_categories: dict[str, list[str]] = Field(default_factory=_default_app_categories)
    default_app_category: str = "other"
    next_start_horizon_days: int = Field(7, ge=1)
    data_dir: str | None = None

    @classmethod
    def load_default(cls) -> "AppConfig":
        return cls()

    @classmethod
    def load(cls) -> "AppConfig":
        """优先尝试加载项目根目录的 `config.local.py`，否则返回默认配置。"""

        root_dir = Path(__file__).resolve().parents[2]
        local_path = root_dir / "config.local.py"
        if not local_path.exists():
            return cls.load_default()

        spec = importlib.util.spec_from_file_location("config_local", local_path)
        if spec is None or spec.loader is None:
            return cls.load_default()

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)  # type: ignore[arg-type]
        except Exception:
            logger.warning("config.local.py 加载失败，使用默认配置", exc_info=True)
            return cls.load_default()

        load_fn = getattr(module, "load_config", None)
        if callable(load_fn):
            try:
                return load_fn()
            except Exception:
                logger.warning("load_config() 执行失败，使用默认配置", exc_info=True)
                return cls.load_default()
        return cls.load_default()

    def window_for_hour(self, hour: int) -> TimeWindow | None:
        for window in self.time_windows:
            if window.contains(hour):
                return window
        return None

    def categories_for_hour(self, hour: int) -> list[str]:
        """返回该小时推荐的类别，未命中任何时段时视为夜间。"""

        window = self.window_for_hour(hour)
        if window is None:
            return list(self.night_categories)
        return list(window.categories)

    def data_path(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return Path.home() / ".screengate"
