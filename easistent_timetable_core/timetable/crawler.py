from __future__ import annotations
from typing import List, Optional
from datetime import date

from bs4 import BeautifulSoup, Tag

from easistent_timetable_core.abc.crawler_abc import BaseCrawlerABC
from easistent_timetable_core.errors import (
    EmptyResponseError,
    FetchError,
    ParseError,
    RangeError,
    UnauthorizedError,
)
from easistent_timetable_core.timetable.models import (
    EMPTY_CELL,
    MAX_DAYS,
    Lesson,
    LessonsCell,
    PeriodCell,
    TimetableDay,
    TimetableWeek,
)
from easistent_timetable_core.utils import settings
from easistent_timetable_core.utils.http import send_request
from easistent_timetable_core.utils.logger import get_logger
from easistent_timetable_core.utils.time_utils import (
    infer_year,
    parse_day_month,
    parse_full_date,
    parse_time_range,
)

logger = get_logger(logger_level="INFO")

# payload 欄位以 ASCII Unit Separator 分隔
UNIT_SEPARATOR = "\u001f"
MIN_WEEK_ID = 0
MAX_WEEK_ID = 52


def validate_week_id(week_id: int) -> None:
    """週次必須在 0-52，否則在任何網路請求前拋出 RangeError"""
    if not MIN_WEEK_ID <= week_id <= MAX_WEEK_ID:
        raise RangeError(f"週次超出範圍：{week_id}（應為 {MIN_WEEK_ID}-{MAX_WEEK_ID}）")


def _clean_text(element: Optional[Tag]) -> str:
    """取出元素文字並壓縮空白"""
    if element is None:
        return ""
    return " ".join(element.get_text(" ").split())


def _none_if_blank(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None


class TimetableCrawler(BaseCrawlerABC[TimetableWeek]):
    """ajax 課表爬蟲

    payload 格式（以 \\x1f 分隔）：
    - [1] 週起日 "d. M. yyyy"
    - [2] 週迄日 "d. M. yyyy"
    - [3] 課表 table 的 HTML 片段

    解析後得到 TimetableWeek：每一天都有與節次列數相同的 PeriodCell，
    沒課的節次以 EmptyCell 佔位，確保各天與各班節次對齊。
    """

    DEFAULT_BASE_URL = settings.TIMETABLE_BASE_URL

    TABLE_SELECTOR = "table.ednevnik-seznam_ur_teden"
    CANCELLED_CELL_CLASS = "ednevnik-seznam_ur_teden-td-odpadla-ura"
    BLOCK_SELECTOR = "div.ednevnik-seznam_ur_teden-blok-wrap"

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")

    def build_url(
        self,
        school_id: int,
        class_id: int,
        week_id: int,
        *,
        professor_id: int = 0,
        student_id: int = 0,
        classroom_id: int = 0,
        extracurriculars: int = 0
    ) -> str:
        return (
            f"{self.base_url}/urniki/ajax_urnik/"
            f"{school_id}/{class_id}/{professor_id}/{student_id}/{classroom_id}/{week_id}/{extracurriculars}"
        )

    async def fetch_raw(
        self,
        school_id: int,
        class_id: int,
        week_id: int,
        *,
        student_id: int = 0,
        access_token: Optional[str] = None
    ) -> str:
        """抓取原始 payload

        Raises:
            UnauthorizedError: 401/403（僅在帶 token 的學生課表會發生）
            FetchError: 其他非成功狀態碼
            EmptyResponseError: 成功但沒有內容
        """
        url = self.build_url(school_id, class_id, week_id, student_id=student_id)
        headers = self.get_headers()
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        logger.debug(f"📡 發送請求：{url}")
        response = await send_request("GET", url, headers=headers)
        if response.is_unauthorized:
            logger.warning(f"⚠️ 未授權 {response.status}: {url}")
            raise UnauthorizedError(status=response.status)
        if not response.ok:
            error_msg = f"HTTP 狀態碼錯誤 {response.status}: {url}"
            logger.error(f"❌ {error_msg}")
            raise FetchError(error_msg)
        if not response.text:
            raise EmptyResponseError(f"課表沒有內容：{url}")
        return response.text

    # ====================================
    # 📝 內容解析
    # ====================================

    def parse(self, raw: str, class_id: int) -> TimetableWeek:
        """解析 payload 為 TimetableWeek

        Args:
            raw: 以 \\x1f 分隔的 payload
            class_id: 課表所屬班級（寫入結果）

        Returns:
            TimetableWeek: 結構化的一週課表；找不到課表 table 時 days 為空

        Raises:
            ParseError: 欄位不足、日期無法解析或 HTML 結構異常
        """
        parts = raw.split(UNIT_SEPARATOR)
        if len(parts) < 4:
            raise ParseError(f"payload 格式錯誤：只有 {len(parts)} 個欄位")

        try:
            week_start = parse_full_date(parts[1])
            week_end = parse_full_date(parts[2])
            if week_start > week_end:
                raise ParseError(f"週起日 {week_start} 晚於週迄日 {week_end}")

            soup = BeautifulSoup(parts[3], "html.parser")
            table = soup.select_one(self.TABLE_SELECTOR)
            if table is None:
                logger.debug(f"📭 班級 {class_id} 本週沒有課表")
                days: List[TimetableDay] = []
            else:
                days = self._parse_table(table, week_start, week_end)
        except ParseError:
            raise
        except Exception as e:
            error_msg = f"解析錯誤：{str(e)}"
            logger.error(f"❌ {error_msg}")
            raise ParseError(error_msg)
        # return 拿到 try 區塊外，避免 except 攔截 model 驗證錯誤
        return TimetableWeek(
            class_id=class_id,
            week_start=week_start,
            week_end=week_end,
            days=days,
        )

    def _parse_table(self, table: Tag, week_start: date, week_end: date) -> List[TimetableDay]:
        # 欄位標題：第一欄是節次，其餘每欄一天
        day_dates: List[date] = []
        for th in table.select("thead th")[1:]:
            d, m = parse_day_month(_clean_text(th.select_one(".date")))
            year = infer_year(week_start, week_end, d, m)
            day_dates.append(date(
                year,
                m if m is not None else week_start.month,
                d if d is not None else week_start.day,
            ))

        # 節次 x 天 的矩陣
        grid: List[List[PeriodCell]] = []
        for row_index, row in enumerate(self._iter_body_rows(table)):
            tds = row.find_all("td", recursive=False)
            if not tds:
                continue
            grid.append(self._parse_row(tds, row_index))

        # 行列互換
        day_count = min(len(day_dates), MAX_DAYS)
        return [
            TimetableDay(
                date=day_dates[d],
                lessons_by_period=[
                    per_day[d] if d < len(per_day) else EMPTY_CELL
                    for per_day in grid
                ]
            )
            for d in range(day_count)
        ]

    @staticmethod
    def _iter_body_rows(table: Tag) -> List[Tag]:
        """table 直屬的 tr 與 tbody > tr，依文件順序"""
        rows: List[Tag] = []
        for child in table.find_all(["tr", "tbody"], recursive=False):
            if child.name == "tr":
                rows.append(child)
            else:
                rows.extend(child.find_all("tr", recursive=False))
        return rows

    def _parse_row(self, tds: List[Tag], row_index: int) -> List[PeriodCell]:
        """解析一列：第一格是節次與時間，後面最多五格是週一到週五"""
        left = tds[0]
        period_text = _clean_text(left.select_one(".naziv-ure")).split(".", 1)[0].strip()
        try:
            period_number = int(period_text)
        except ValueError:
            period_number = row_index + 1
        time_range = parse_time_range(_clean_text(left.select_one(".potek-ure")))

        per_day: List[PeriodCell] = []
        for day_index in range(1, MAX_DAYS + 1):
            if day_index >= len(tds):
                per_day.append(EMPTY_CELL)
                continue
            cell = tds[day_index]
            cell_cancelled = self.CANCELLED_CELL_CLASS in (cell.get("class") or [])
            # select 是後代查詢，已包含 div.hidden.teden-blok-wrapper 內收合的分組課程
            lessons = [
                lesson
                for block in cell.select(self.BLOCK_SELECTOR)
                if (lesson := self._parse_lesson(block, cell_cancelled)) is not None
            ]
            if lessons:
                per_day.append(LessonsCell(
                    period_number=period_number,
                    time_range=time_range,
                    lessons=lessons,
                ))
            else:
                per_day.append(EMPTY_CELL)
        return per_day

    @staticmethod
    def _parse_lesson(block: Tag, cell_cancelled: bool) -> Optional[Lesson]:
        """分析課程區塊為 Lesson，沒有任何可用文字的區塊回傳 None"""
        title_span = block.select_one(".ednevnik-title span")
        subject_code = _none_if_blank(_clean_text(title_span)) if title_span else None
        subject_title = _none_if_blank(title_span.get("title")) if title_span else None

        subtitles = block.select(".ednevnik-subtitle")
        teacher = room = teacher_full_name = None
        if subtitles:
            teacher_room = _clean_text(subtitles[0])
            teacher_part, sep, room_part = teacher_room.partition(",")
            teacher = _none_if_blank(teacher_part)
            room = _none_if_blank(room_part) if sep else None
            teacher_full_name = _none_if_blank(subtitles[0].get("title"))
        group_label = _none_if_blank(" | ".join(_clean_text(s) for s in subtitles[1:]))

        if not any((subject_code, subject_title, teacher, room, group_label)):
            return None

        return Lesson(
            subject_code=subject_code,
            subject_title=subject_title,
            teacher=teacher,
            room=room,
            group_label=group_label,
            is_cancelled=cell_cancelled or block.select_one(".wl-tag-cancelled") is not None,
            teacher_full_name=teacher_full_name,
        )

    async def fetch(
        self,
        school_id: int,
        class_id: int,
        week_id: int,
        *,
        student_id: int = 0,
        access_token: Optional[str] = None
    ) -> TimetableWeek:
        """完整的課表抓取流程"""
        validate_week_id(week_id)
        raw = await self.fetch_raw(
            school_id, class_id, week_id,
            student_id=student_id,
            access_token=access_token,
        )
        result = self.parse(raw, class_id=class_id)
        logger.info(f"✅ 課表 {school_id}/{class_id}/w{week_id}[抓取]完成")
        return result
