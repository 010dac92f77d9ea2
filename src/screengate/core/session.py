"""单次活动的进行状态与事件记录。"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional, Protocol

from screengate.core.activities import Activity


logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = auto()
    RUNNING = auto()
    PAUSED = auto()
    COMPLETED = auto()
    SKIPPED = auto()


class EventKind(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    COMPLETE = "complete"
    SKIP = "skip"


@dataclass
class ActivityEvent:
    kind: EventKind
    activity_id: str
    context_id: str
    timestamp: dt.datetime
    progress: float


class OutcomeRecorder(Protocol):
    """接收完成/跳过结果，通常由 `SelectionEngine` 实现。"""

    def record_completion(self, activity_id: str, context_id: str, at: Optional[dt.datetime] = None) -> bool:
        ...

    def record_skip(self, activity_id: str, context_id: str, at: Optional[dt.datetime] = None) -> bool:
        ...


class ActivitySession:
    """跟踪一次展示中的活动：开始、暂停、继续、完成或跳过。

    非法的状态切换会被忽略。完成和跳过会回写到选择引擎的历史中。
    """

    def __init__(self, recorder: Optional[OutcomeRecorder] = None) -> None:
        self._recorder = recorder
        self.state = SessionState.IDLE
        self.activity: Optional[Activity] = None
        self.context_id: str = ""
        self.events: List[ActivityEvent] = []
        self._segment_started_at: Optional[dt.datetime] = None
        self._elapsed_before_segment = 0.0
        self._final_progress = 0.0

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.RUNNING, SessionState.PAUSED)

    def start(self, activity: Activity, context_id: str, now: Optional[dt.datetime] = None) -> None:
        now = now or self._now()
        self.activity = activity
        self.context_id = context_id
        self.state = SessionState.RUNNING
        self._segment_started_at = now
        self._elapsed_before_segment = 0.0
        self._final_progress = 0.0
        self._emit(EventKind.START, now)

    def pause(self, now: Optional[dt.datetime] = None) -> bool:
        now = now or self._now()
        if self.state is not SessionState.RUNNING:
            logger.debug("当前状态 %s 无法暂停", self.state.name)
            return False
        self._elapsed_before_segment = self.elapsed(now)
        self._segment_started_at = None
        self.state = SessionState.PAUSED
        self._emit(EventKind.PAUSE, now)
        return True

    def resume(self, now: Optional[dt.datetime] = None) -> bool:
        now = now or self._now()
        if self.state is not SessionState.PAUSED:
            logger.debug("当前状态 %s 无法继续", self.state.name)
            return False
        self._segment_started_at = now
        self.state = SessionState.RUNNING
        self._emit(EventKind.RESUME, now)
        return True

    def complete(self, now: Optional[dt.datetime] = None) -> bool:
        now = now or self._now()
        if not self.is_active:
            logger.debug("当前状态 %s 无法完成", self.state.name)
            return False
        assert self.activity is not None
        self._freeze(now, progress=1.0)
        self.state = SessionState.COMPLETED
        self._emit(EventKind.COMPLETE, now)
        if self._recorder is not None:
            self._recorder.record_completion(self.activity.id, self.context_id, now)
        return True

    def skip(self, now: Optional[dt.datetime] = None) -> bool:
        now = now or self._now()
        if not self.is_active:
            logger.debug("当前状态 %s 无法跳过", self.state.name)
            return False
        assert self.activity is not None
        self._freeze(now, progress=0.0)
        self.state = SessionState.SKIPPED
        self._emit(EventKind.SKIP, now)
        if self._recorder is not None:
            self._recorder.record_skip(self.activity.id, self.context_id, now)
        return True

    def tick(self, now: Optional[dt.datetime] = None) -> float:
        """刷新进度，达到 100% 时自动完成。"""

        now = now or self._now()
        progress = self.progress(now)
        if self.state is SessionState.RUNNING and progress >= 1.0:
            self.complete(now)
        return progress

    def elapsed(self, now: Optional[dt.datetime] = None) -> float:
        """已进行的秒数，不含暂停时间。"""

        if self._segment_started_at is None:
            return self._elapsed_before_segment
        now = now or self._now()
        segment = max(0.0, (now - self._segment_started_at).total_seconds())
        return self._elapsed_before_segment + segment

    def progress(self, now: Optional[dt.datetime] = None) -> float:
        if self.activity is None:
            return 0.0
        if not self.is_active:
            return self._final_progress
        return max(0.0, min(self.elapsed(now) / self.activity.duration, 1.0))

    def remaining(self, now: Optional[dt.datetime] = None) -> float:
        if self.activity is None or not self.is_active:
            return 0.0
        return max(self.activity.duration - self.elapsed(now), 0.0)

    def reset(self) -> None:
        self.state = SessionState.IDLE
        self.activity = None
        self.context_id = ""
        self._segment_started_at = None
        self._elapsed_before_segment = 0.0
        self._final_progress = 0.0

    def _freeze(self, now: dt.datetime, progress: float) -> None:
        self._elapsed_before_segment = self.elapsed(now)
        self._segment_started_at = None
        self._final_progress = progress

    def _emit(self, kind: EventKind, now: dt.datetime) -> None:
        assert self.activity is not None
        event = ActivityEvent(
            kind=kind,
            activity_id=self.activity.id,
            context_id=self.context_id,
            timestamp=now,
            progress=self.progress(now),
        )
        self.events.append(event)
        logger.info("活动 %s: %s (%.0f%%)", self.activity.id, kind.value, event.progress * 100)

    def _now(self) -> dt.datetime:
        return dt.datetime.now()
