"""正念活动模型与活动库。"""

from __future__ import annotations

import datetime as dt
import logging
import threading
import uuid
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class ActivityCategory(str, Enum):
    """活动类别枚举。"""

    BREATHING = "breathing"
    MINDFULNESS = "mindfulness"
    REFLECTION = "reflection"
    MOVEMENT = "movement"
    QUICK_BREAK = "quickBreak"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def default_duration(self) -> float:
        return CATEGORY_DEFAULT_DURATIONS[self]


_DISPLAY_NAMES = {
    ActivityCategory.BREATHING: "Breathing Exercises",
    ActivityCategory.MINDFULNESS: "Mindfulness",
    ActivityCategory.REFLECTION: "Reflection",
    ActivityCategory.MOVEMENT: "Movement",
    ActivityCategory.QUICK_BREAK: "Quick Breaks",
}

# 秒
CATEGORY_DEFAULT_DURATIONS = {
    ActivityCategory.BREATHING: 120.0,
    ActivityCategory.MINDFULNESS: 300.0,
    ActivityCategory.REFLECTION: 180.0,
    ActivityCategory.MOVEMENT: 240.0,
    ActivityCategory.QUICK_BREAK: 60.0,
}


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Activity(BaseModel):
    """单个正念干预活动。`content` 的结构随类别而定，引擎不解析。"""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    description: str = ""
    category: ActivityCategory
    duration: float = Field(..., gt=0)
    content: dict[str, Any] = Field(default_factory=dict)
    difficulty: DifficultyLevel = DifficultyLevel.BEGINNER
    tags: list[str] = Field(default_factory=list)
    is_custom: bool = False
    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)
    updated_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)

    @property
    def is_quick(self) -> bool:
        return self.duration <= 120

    @property
    def is_extended(self) -> bool:
        return self.duration > 600

    @property
    def formatted_duration(self) -> str:
        minutes, seconds = divmod(int(self.duration), 60)
        if minutes > 0:
            return f"{minutes}m {seconds}s"
        return f"{seconds}s"


def _builtin(**kwargs: Any) -> Activity:
    epoch = dt.datetime(2025, 1, 1)
    return Activity(created_at=epoch, updated_at=epoch, **kwargs)


BUILTIN_ACTIVITIES: tuple[Activity, ...] = (
    _builtin(
        id="breathing-box",
        title="Box Breathing",
        description="A simple breathing technique to calm your mind and reduce stress",
        category=ActivityCategory.BREATHING,
        duration=120,
        content={
            "pattern": "box",
            "inhale": 4,
            "hold": 4,
            "exhale": 4,
            "pause": 4,
            "cycles": 8,
            "instructions": [
                "Inhale slowly for 4 counts",
                "Hold your breath for 4 counts",
                "Exhale slowly for 4 counts",
                "Pause for 4 counts before the next cycle",
            ],
        },
        tags=["stress", "anxiety", "focus", "quick"],
    ),
    _builtin(
        id="breathing-4-7-8",
        title="4-7-8 Breathing",
        description="A calming breathing technique to reduce anxiety and promote sleep",
        category=ActivityCategory.BREATHING,
        duration=180,
        content={
            "pattern": "4-7-8",
            "inhale": 4,
            "hold": 7,
            "exhale": 8,
            "pause": 0,
            "cycles": 6,
            "instructions": [
                "Inhale through your nose for 4 counts",
                "Hold your breath for 7 counts",
                "Exhale through your mouth for 8 counts",
                "Repeat for 6 cycles",
            ],
        },
        difficulty=DifficultyLevel.INTERMEDIATE,
        tags=["anxiety", "sleep", "relaxation", "stress"],
    ),
    _builtin(
        id="mindfulness-body-scan",
        title="Body Scan Meditation",
        description="Bring awareness to different parts of your body and release tension",
        category=ActivityCategory.MINDFULNESS,
        duration=300,
        content={
            "type": "bodyScan",
            "background_sound": "gentleAmbient",
            "script": [
                "Begin by finding a comfortable position",
                "Bring your awareness to your toes",
                "Slowly scan up through your feet and ankles",
                "Notice any sensations without judgment",
                "Continue scanning up through your legs",
                "Bring awareness to your torso and chest",
                "Scan your arms and hands",
                "Finally, bring awareness to your neck and head",
            ],
        },
        tags=["relaxation", "awareness", "body", "stress"],
    ),
    _builtin(
        id="mindfulness-five-senses",
        title="Five Senses Grounding",
        description="Ground yourself by noticing five things you can see, hear, feel, smell, and taste",
        category=ActivityCategory.MINDFULNESS,
        duration=240,
        content={
            "type": "fiveSenses",
            "background_sound": "none",
            "script": [
                "Notice 5 things you can see around you",
                "Notice 4 things you can hear",
                "Notice 3 things you can feel (touch)",
                "Notice 2 things you can smell",
                "Notice 1 thing you can taste",
            ],
        },
        tags=["grounding", "anxiety", "awareness", "panic"],
    ),
    _builtin(
        id="reflection-gratitude",
        title="Gratitude Practice",
        description="Take a moment to reflect on what you're grateful for",
        category=ActivityCategory.REFLECTION,
        duration=180,
        content={
            "type": "gratitude",
            "journaling": True,
            "prompts": [
                "What are three things you're grateful for right now?",
                "Who in your life brings you joy and why?",
                "What simple pleasure did you experience today?",
                "What's something you often take for granted?",
                "How can you express gratitude today?",
            ],
        },
        tags=["gratitude", "positivity", "reflection", "mood"],
    ),
    _builtin(
        id="reflection-goal-check",
        title="Goal Check-in",
        description="Take a moment to review your goals and progress",
        category=ActivityCategory.REFLECTION,
        duration=300,
        content={
            "type": "goalCheckIn",
            "journaling": True,
            "prompts": [
                "What progress have you made on your goals today?",
                "What obstacles did you encounter?",
                "What are you proud of accomplishing?",
                "What will you focus on tomorrow?",
                "How can you better support your goals?",
            ],
        },
        difficulty=DifficultyLevel.INTERMEDIATE,
        tags=["goals", "productivity", "planning", "motivation"],
    ),
    _builtin(
        id="movement-desk-stretches",
        title="Desk Stretches",
        description="Simple stretches to relieve tension from sitting at your desk",
        category=ActivityCategory.MOVEMENT,
        duration=240,
        content={
            "type": "stretching",
            "exercises": [
                {"name": "Neck Rolls", "duration": 30, "repetitions": 5},
                {"name": "Shoulder Shrugs", "duration": 20, "repetitions": 10},
                {"name": "Wrist Rotations", "duration": 20, "repetitions": 8},
            ],
        },
        tags=["desk", "stretching", "movement", "tension"],
    ),
    _builtin(
        id="movement-eye-exercises",
        title="Eye Exercises",
        description="Relieve eye strain from screen time with simple eye movements",
        category=ActivityCategory.MOVEMENT,
        duration=120,
        content={
            "type": "eyeExercises",
            "exercises": [
                {"name": "Eye Rolls", "duration": 20, "repetitions": 4},
                {"name": "Focus Shift", "duration": 30, "repetitions": 5},
                {"name": "Palming", "duration": 30, "repetitions": 1},
            ],
        },
        tags=["eyes", "strain", "screen", "relaxation"],
    ),
    _builtin(
        id="quick-water-break",
        title="Hydration Break",
        description="Take a moment to drink water and hydrate your body",
        category=ActivityCategory.QUICK_BREAK,
        duration=60,
        content={
            "type": "hydration",
            "message": "Your body needs water to function optimally. Take a few sips now.",
            "action": "Drink a glass of water",
        },
        tags=["hydration", "health", "quick", "energy"],
    ),
    _builtin(
        id="quick-look-away",
        title="20-20-20 Rule",
        description="Look at something 20 feet away for 20 seconds",
        category=ActivityCategory.QUICK_BREAK,
        duration=30,
        content={
            "type": "eyeRest",
            "message": "Give your eyes a break from the screen",
            "action": "Look at something 20 feet away for 20 seconds",
        },
        tags=["eyes", "screen", "health", "quick"],
    ),
)


class DuplicateActivityError(ValueError):
    """活动 ID 与活动库中已有条目冲突。"""


class ActivityCatalog:
    """内置活动与自定义活动的合集，ID 在两者之间唯一。

    内置活动在构造时固定；自定义活动由外部的活动库管理界面增删改，
    选择引擎只读取，不修改。
    """

    def __init__(
        self,
        builtins: Optional[Iterable[Activity]] = None,
        custom: Optional[Iterable[Activity]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._builtins: tuple[Activity, ...] = tuple(BUILTIN_ACTIVITIES if builtins is None else builtins)
        self._custom: list[Activity] = []
        seen: set[str] = set()
        for activity in self._builtins:
            if activity.id in seen:
                raise DuplicateActivityError(activity.id)
            seen.add(activity.id)
        for activity in custom or ():
            self.add_custom(activity)

    def all(self) -> list[Activity]:
        with self._lock:
            return list(self._builtins) + list(self._custom)

    def custom(self) -> list[Activity]:
        with self._lock:
            return list(self._custom)

    def __len__(self) -> int:
        with self._lock:
            return len(self._builtins) + len(self._custom)

    def __contains__(self, activity_id: object) -> bool:
        return self.get(str(activity_id)) is not None

    def get(self, activity_id: str) -> Optional[Activity]:
        for activity in self.all():
            if activity.id == activity_id:
                return activity
        return None

    def resolve(self, activity_ids: Iterable[str]) -> list[Activity]:
        """按顺序把 ID 映射为活动，丢弃库中不存在的 ID。"""

        index = {activity.id: activity for activity in self.all()}
        resolved: list[Activity] = []
        for activity_id in activity_ids:
            activity = index.get(activity_id)
            if activity is None:
                logger.debug("活动库中不存在 %s，已忽略", activity_id)
                continue
            resolved.append(activity)
        return resolved

    def by_category(self, category: ActivityCategory) -> list[Activity]:
        return [a for a in self.all() if a.category is category]

    def by_categories(self, categories: Iterable[ActivityCategory]) -> list[Activity]:
        wanted = set(categories)
        return [a for a in self.all() if a.category in wanted]

    def by_tag(self, tag: str) -> list[Activity]:
        return [a for a in self.all() if tag in a.tags]

    def by_difficulty(self, difficulty: DifficultyLevel) -> list[Activity]:
        return [a for a in self.all() if a.difficulty is difficulty]

    def quick(self, max_duration: float = 120) -> list[Activity]:
        return [a for a in self.all() if a.is_quick and a.duration <= max_duration]

    def search(self, query: str) -> list[Activity]:
        needle = query.lower()
        return [
            a
            for a in self.all()
            if needle in a.title.lower()
            or needle in a.description.lower()
            or any(needle in tag.lower() for tag in a.tags)
        ]

    def add_custom(self, activity: Activity) -> Activity:
        """加入自定义活动，ID 冲突时抛出 `DuplicateActivityError`。"""

        custom = activity.model_copy(update={"is_custom": True})
        with self._lock:
            taken = {a.id for a in self._builtins} | {a.id for a in self._custom}
            if custom.id in taken:
                raise DuplicateActivityError(custom.id)
            self._custom.append(custom)
        return custom

    def update_custom(self, activity: Activity) -> bool:
        with self._lock:
            for index, existing in enumerate(self._custom):
                if existing.id == activity.id:
                    self._custom[index] = activity.model_copy(
                        update={"is_custom": True, "updated_at": dt.datetime.utcnow()}
                    )
                    return True
        return False

    def remove_custom(self, activity_id: str) -> bool:
        with self._lock:
            before = len(self._custom)
            self._custom = [a for a in self._custom if a.id != activity_id]
            return len(self._custom) != before
