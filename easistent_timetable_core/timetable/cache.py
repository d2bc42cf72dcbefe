from typing import Dict, NamedTuple, Optional, TypeVar
import asyncio

from easistent_timetable_core.abc.cache_abc import BaseCacheABC
from easistent_timetable_core.timetable.crawler import TimetableCrawler
from easistent_timetable_core.timetable.models import TimetableWeek
from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")


class ClassWeekKey(NamedTuple):
    school_id: int
    class_id: int
    week_id: int


class ChildWeekKey(NamedTuple):
    school_id: int
    student_id: int
    week_id: int


K = TypeVar("K", ClassWeekKey, ChildWeekKey)


class _WeekCache(BaseCacheABC[K, TimetableWeek]):
    """週課表的記憶體快取

    - 每個實例擁有自己的 dict，不使用模組層級的全域變數
    - 同一個 key 以 asyncio.Lock 串行化，同時間最多一次網路請求
    - 請求被取消或失敗時不寫入，下次呼叫會重新抓取
    """

    def __init__(self, crawler: Optional[TimetableCrawler] = None):
        self._crawler = crawler or TimetableCrawler()
        self._memory_cache: Dict[K, TimetableWeek] = {}
        self._locks: Dict[K, asyncio.Lock] = {}
        self._lock_users: Dict[K, int] = {}

    def __len__(self) -> int:
        return len(self._memory_cache)

    def __contains__(self, key: object) -> bool:
        return key in self._memory_cache

    async def fetch_from_memory(self, key: K) -> Optional[TimetableWeek]:
        week = self._memory_cache.get(key)
        if week is not None:
            logger.debug(f"✨ 從記憶體快取取得課表：{key}")
        return week

    async def save_to_memory(self, key: K, data: TimetableWeek) -> None:
        self._memory_cache[key] = data
        logger.debug(f"✨ 已更新記憶體快取：{key}")

    async def fetch(self, key: K, *args, refresh: bool = False, **kwargs) -> TimetableWeek:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                return await super().fetch(key, *args, refresh=refresh, **kwargs)
        finally:
            # 沒有其他等待者時移除 lock
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    def discard(self, key: K) -> None:
        self._memory_cache.pop(key, None)

    def clear(self) -> None:
        self._memory_cache.clear()
        logger.debug(f"🧹 已清除 {type(self).__name__}")


class ClassWeekCache(_WeekCache[ClassWeekKey]):
    """公開班級課表，key = (school_id, class_id, week_id)"""

    async def fetch_from_source(self, key: ClassWeekKey, *args, **kwargs) -> TimetableWeek:
        logger.info(f"🌐 從網路抓取課表：{key}")
        return await self._crawler.fetch(key.school_id, key.class_id, key.week_id)


class ChildWeekCache(_WeekCache[ChildWeekKey]):
    """登入後的學生課表，key = (school_id, student_id, week_id)

    401/403 直接以 UnauthorizedError 往上拋，刷新與重試由呼叫端負責。
    """

    async def fetch_from_source(
        self,
        key: ChildWeekKey,
        *args,
        access_token: str,
        class_id: int = 0,
        **kwargs
    ) -> TimetableWeek:
        logger.info(f"🌐 從網路抓取學生課表：{key}")
        return await self._crawler.fetch(
            key.school_id,
            class_id,
            key.week_id,
            student_id=key.student_id,
            access_token=access_token,
        )
