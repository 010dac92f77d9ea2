"""活动使用记录的有界日志。"""

from __future__ import annotations

import collections
import datetime as dt
import logging
import threading
from typing import Deque, Iterable, List, Optional, Protocol

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class UsageRecord(BaseModel):
    """一次选择对应的一条记录。

    `completed` 与 `skipped` 互斥，且各自只会从 False 变为 True 一次；
    两者皆为 False 的记录在统计完成率时视为未完成。
    """

    activity_id: str
    context_id: str
    timestamp: dt.datetime
    completed: bool = False
    completed_at: Optional[dt.datetime] = None
    skipped: bool = False
    skipped_at: Optional[dt.datetime] = None

    @property
    def is_open(self) -> bool:
        return not self.completed and not self.skipped


class HistoryState(BaseModel):
    """持久化用的历史快照。"""

    records: list[UsageRecord] = Field(default_factory=list)
    recent_ids: list[str] = Field(default_factory=list)


class HistoryStore(Protocol):
    """外部存储接口：先加载后使用，变更后保存。"""

    def load(self) -> Optional[HistoryState]:
        """返回已保存的历史，不存在时返回 None。"""

    def save(self, state: HistoryState) -> None:
        """写入历史快照。"""


class UsageHistory:
    """只追加的使用日志（超出上限时淘汰最旧条目）与最近选择列表。

    所有读写都在同一把可重入锁内完成，选择引擎可以持有 `lock`
    把“读取-打分-写入”作为一个整体临界区。
    """

    def __init__(
        self,
        max_records: int = 1000,
        recent_capacity: int = 10,
        store: Optional[HistoryStore] = None,
    ) -> None:
        self._records: Deque[UsageRecord] = collections.deque(maxlen=max_records)
        self._recent: Deque[str] = collections.deque(maxlen=recent_capacity)
        self._store = store
        self.lock = threading.RLock()
        if store is not None:
            self._load_from(store)

    @property
    def max_records(self) -> int:
        return self._records.maxlen or 0

    def __len__(self) -> int:
        with self.lock:
            return len(self._records)

    def snapshot(self) -> List[UsageRecord]:
        """返回当前记录的浅拷贝，按时间先后排列。"""

        with self.lock:
            return list(self._records)

    def recent_ids(self, limit: Optional[int] = None) -> List[str]:
        """最近选择的活动 ID，最新在前。"""

        with self.lock:
            ids = list(self._recent)
        return ids if limit is None else ids[:limit]

    def append(self, record: UsageRecord) -> None:
        with self.lock:
            self._records.append(record)
            self._recent.appendleft(record.activity_id)
            self._persist()

    def mark_completed(
        self, activity_id: str, context_id: str, at: Optional[dt.datetime] = None
    ) -> bool:
        """把最近一条匹配且未结束的记录标记为完成，没有匹配时返回 False。"""

        with self.lock:
            record = self._latest_open(activity_id, context_id)
            if record is None:
                return False
            record.completed = True
            record.completed_at = at or dt.datetime.now()
            self._persist()
            return True

    def mark_skipped(
        self, activity_id: str, context_id: str, at: Optional[dt.datetime] = None
    ) -> bool:
        with self.lock:
            record = self._latest_open(activity_id, context_id)
            if record is None:
                return False
            record.skipped = True
            record.skipped_at = at or dt.datetime.now()
            self._persist()
            return True

    def completion_rate(self, activity_id: str, context_id: str, default: float = 0.5) -> float:
        with self.lock:
            relevant = [
                r for r in self._records if r.activity_id == activity_id and r.context_id == context_id
            ]
        return _rate(relevant, default)

    def hourly_completion_rate(self, activity_id: str, hour: int, default: float = 0.5) -> float:
        with self.lock:
            relevant = [
                r for r in self._records if r.activity_id == activity_id and r.timestamp.hour == hour
            ]
        return _rate(relevant, default)

    def count_on(self, day: dt.date) -> int:
        with self.lock:
            return sum(1 for r in self._records if r.timestamp.date() == day)

    def clear(self) -> None:
        with self.lock:
            self._records.clear()
            self._recent.clear()
            self._persist()

    def export(self) -> HistoryState:
        with self.lock:
            return HistoryState(
                records=[r.model_copy() for r in self._records],
                recent_ids=list(self._recent),
            )

    def _latest_open(self, activity_id: str, context_id: str) -> Optional[UsageRecord]:
        for record in reversed(self._records):
            if record.activity_id == activity_id and record.context_id == context_id and record.is_open:
                return record
        return None

    def _load_from(self, store: HistoryStore) -> None:
        try:
            state = store.load()
        except Exception:
            logger.warning("无法读取使用记录，按空历史处理", exc_info=True)
            return
        if state is None:
            return
        self._records.extend(state.records)
        # deque(maxlen) 从右侧追加会挤掉左侧，这里保持最新在前
        self._recent.extend(state.recent_ids[: self._recent.maxlen])

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save(self.export())
        except Exception:
            logger.warning("无法写入使用记录", exc_info=True)


def _rate(records: Iterable[UsageRecord], default: float) -> float:
    records = list(records)
    if not records:
        return default
    completed = sum(1 for r in records if r.completed)
    return completed / len(records)
