"""本地配置覆盖示例，`AppConfig.load()` 会自动调用其中的 `load_config()`。"""

from screengate.config import AppConfig, ScoringWeights, TimeWindow


def load_config() -> AppConfig:
    return AppConfig(
        max_usage_records=1000,
        recent_capacity=10,
        variety_window=5,
        overuse_window=10,
        scoring=ScoringWeights(
            base=50.0,
            context_completion=30.0,
            hour_completion=20.0,
            overuse_penalty=5.0,
            category_preference=10.0,
        ),
        time_windows=[
            TimeWindow(name="morning", start_hour=6, end_hour=11, categories=["movement", "mindfulness"]),
            TimeWindow(name="midday", start_hour=12, end_hour=14, categories=["breathing", "quickBreak"]),
            TimeWindow(name="afternoon", start_hour=15, end_hour=17, categories=["movement", "breathing"]),
            TimeWindow(name="evening", start_hour=18, end_hour=22, categories=["reflection", "mindfulness"]),
        ],
        # data_dir="~/.screengate",
    )
