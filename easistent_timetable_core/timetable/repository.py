from typing import Dict, Iterable, List, Optional, Tuple
import asyncio

from easistent_timetable_core.school.crawler import SchoolPageCrawler
from easistent_timetable_core.school.models import ClassInfo, SchoolMeta
from easistent_timetable_core.teacher.aggregate import build_teacher_timetable
from easistent_timetable_core.timetable.cache import (
    ChildWeekCache,
    ChildWeekKey,
    ClassWeekCache,
    ClassWeekKey,
)
from easistent_timetable_core.timetable.crawler import TimetableCrawler, validate_week_id
from easistent_timetable_core.timetable.models import TimetableWeek
from easistent_timetable_core.utils import settings
from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")


class TimetableRepository:
    """課表資料的存取入口

    持有四份快取，皆為實例自有的 dict，生命週期與 repository 相同：
    - 班級週課表 (school_id, class_id, week_id)
    - 學生週課表 (school_id, student_id, week_id)
    - 全校週課表 (school_id, week_id)，批次抓取的結果
    - 教師週課表 (school_id, week_id, teacher_full_name)，由全校週課表彙整

    快取不會自動淘汰；登出時呼叫 clear_child_cache()，切換學校時呼叫 clear()。
    """

    def __init__(
        self,
        crawler: Optional[TimetableCrawler] = None,
        school_crawler: Optional[SchoolPageCrawler] = None,
    ):
        self._crawler = crawler or TimetableCrawler()
        self._school_crawler = school_crawler or SchoolPageCrawler()
        self._week_cache = ClassWeekCache(self._crawler)
        self._child_cache = ChildWeekCache(self._crawler)
        self._all_weeks_cache: Dict[Tuple[int, int], List[TimetableWeek]] = {}
        self._teacher_cache: Dict[Tuple[int, int, str], Optional[TimetableWeek]] = {}

    async def load_school_meta(self, school_key: str) -> SchoolMeta:
        """抓取學校首頁，取得 school_id 與班級清單"""
        return await self._school_crawler.fetch(school_key)

    async def load_timetable_week(
        self,
        school_id: int,
        class_id: int,
        week_id: int,
        *,
        refresh: bool = False
    ) -> TimetableWeek:
        """取得班級週課表，已快取時不發送請求

        Raises:
            RangeError: week_id 不在 0-52（在任何網路請求之前）
        """
        validate_week_id(week_id)
        key = ClassWeekKey(school_id, class_id, week_id)
        return await self._week_cache.fetch(key, refresh=refresh)

    async def load_child_timetable_week(
        self,
        access_token: str,
        school_id: int,
        student_id: int,
        week_id: int,
        class_id: int = 0,
        *,
        refresh: bool = False
    ) -> TimetableWeek:
        """取得學生本人的週課表（需要 Bearer token）

        這裡不處理 401/403，UnauthorizedError 直接拋給呼叫端，
        由 RefreshRetryPolicy 負責刷新與重試。
        """
        validate_week_id(week_id)
        key = ChildWeekKey(school_id, student_id, week_id)
        return await self._child_cache.fetch(
            key,
            refresh=refresh,
            access_token=access_token,
            class_id=class_id,
        )

    async def load_all_timetables_for_week(
        self,
        school_id: int,
        classes: List[ClassInfo],
        week_id: int,
        parallelism: int = settings.DEFAULT_PARALLELISM,
    ) -> List[TimetableWeek]:
        """並行抓取所有班級的週課表

        - 同時最多 parallelism 個請求
        - 每堂課標註來源班級（已有標註者不覆寫）
        - 個別班級失敗只記錄警告並略過，整體不會失敗
        - 回傳順序與 classes 相同

        Raises:
            RangeError: week_id 不在 0-52
        """
        validate_week_id(week_id)
        semaphore = asyncio.Semaphore(max(1, parallelism))
        logger.info(f"🔄 開始抓取 {len(classes)} 個班級的課表，週次：{week_id}，併發上限：{parallelism}")

        async def process(info: ClassInfo) -> Optional[TimetableWeek]:
            async with semaphore:
                try:
                    week = await self.load_timetable_week(school_id, info.id, week_id)
                except Exception as e:
                    logger.warning(f"⚠️ 班級 {info.label}({info.id}) 課表抓取失敗，略過：{e}")
                    return None
            return week.with_class_label(info.label)

        results = await asyncio.gather(*(process(info) for info in classes))
        weeks = [week for week in results if week is not None]
        logger.info(f"✅ 班級課表抓取完成：{len(weeks)}/{len(classes)}")
        return weeks

    @staticmethod
    def collect_teachers_from_timetables(weeks: Iterable[TimetableWeek]) -> List[str]:
        """列出所有課程中出現過的教師全名（去除空白、去重、排序）"""
        names = {
            lesson.teacher_full_name.strip()
            for week in weeks
            for lesson in week.iter_lessons()
            if lesson.teacher_full_name and lesson.teacher_full_name.strip()
        }
        return sorted(names)

    async def _load_week_for_school(
        self,
        school_id: int,
        classes: List[ClassInfo],
        week_id: int,
        refresh: bool,
    ) -> List[TimetableWeek]:
        key = (school_id, week_id)
        if not refresh and key in self._all_weeks_cache:
            logger.debug(f"✨ 從記憶體快取取得全校課表：{key}")
            return self._all_weeks_cache[key]
        if refresh:
            self.clear_week_aggregates(school_id, week_id)
            for info in classes:
                self._week_cache.discard(ClassWeekKey(school_id, info.id, week_id))
        weeks = await self.load_all_timetables_for_week(school_id, classes, week_id)
        self._all_weeks_cache[key] = weeks
        return weeks

    async def load_teachers_for_week(
        self,
        school_id: int,
        classes: List[ClassInfo],
        week_id: int,
        *,
        refresh: bool = False
    ) -> List[str]:
        weeks = await self._load_week_for_school(school_id, classes, week_id, refresh)
        return self.collect_teachers_from_timetables(weeks)

    async def load_teacher_timetable(
        self,
        school_id: int,
        classes: List[ClassInfo],
        week_id: int,
        teacher_full_name: str,
        *,
        refresh: bool = False
    ) -> Optional[TimetableWeek]:
        """取得教師的合成週課表

        refresh=True 會重新抓取該週所有班級，並使該週的教師課表快取失效。
        """
        weeks = await self._load_week_for_school(school_id, classes, week_id, refresh)
        key = (school_id, week_id, teacher_full_name)
        if key in self._teacher_cache:
            logger.debug(f"✨ 從記憶體快取取得教師課表：{key}")
            return self._teacher_cache[key]
        result = build_teacher_timetable(weeks, teacher_full_name)
        self._teacher_cache[key] = result
        return result

    def clear_week_aggregates(self, school_id: int, week_id: int) -> None:
        """清除某一週的全校課表與教師課表快取"""
        self._all_weeks_cache.pop((school_id, week_id), None)
        for key in [k for k in self._teacher_cache if k[0] == school_id and k[1] == week_id]:
            del self._teacher_cache[key]

    def clear_child_cache(self) -> None:
        """登出時清除學生課表"""
        self._child_cache.clear()

    def clear(self) -> None:
        """切換學校時清除所有快取"""
        self._week_cache.clear()
        self._child_cache.clear()
        self._all_weeks_cache.clear()
        self._teacher_cache.clear()
        logger.debug("🧹 已清除所有課表快取")
