"""日期與時間的解析工具

課表網站使用斯洛維尼亞格式：完整日期為 "d. M. yyyy"，欄位標題只有 "d. m."，
節次時間為 "H:mm - H:mm"。
"""
from typing import Optional, Tuple
from datetime import date, datetime, time
import re

from easistent_timetable_core.errors import ParseError
from easistent_timetable_core.timetable.models import TimeRange, UNKNOWN_TIME_RANGE

_FULL_DATE_RE = re.compile(r"^\s*(\d{1,2})\.\s*(\d{1,2})\.\s*(\d{4})\s*$")
_TIME_RANGE_RE = re.compile(r"(\d{1,2}:\d{2})\s*-\s*(\d{1,2}:\d{2})")


def parse_full_date(text: str) -> date:
    """解析 "d. M. yyyy"，例如 "1. 9. 2025"

    Raises:
        ParseError: 格式不符或日期不存在
    """
    match = _FULL_DATE_RE.match(text)
    if not match:
        raise ParseError(f"無法解析日期：{text!r}")
    day, month, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ParseError(f"無效日期：{text!r} ({e})")


def parse_day_month(text: str) -> Tuple[Optional[int], Optional[int]]:
    """解析欄位標題的 "d. m."，無法解析的部分回傳 None"""
    clean = text.strip().removesuffix(".").strip()
    parts = [p for p in clean.split(". ") if p.strip()]

    def to_int(idx: int) -> Optional[int]:
        if idx >= len(parts):
            return None
        try:
            return int(parts[idx].strip())
        except ValueError:
            return None

    return to_int(0), to_int(1)


def infer_year(week_start: date, week_end: date, day: Optional[int], month: Optional[int]) -> int:
    """標題沒有年份，選擇與 (月, 日) 最接近的週起訖日的年份

    跨年週（如 12/29-1/2）才會有差別；距離相同時取 week_start。
    """
    if day is None or month is None:
        return week_start.year
    return min(
        (week_start, week_end),
        key=lambda d: abs(d.month - month) * 31 + abs(d.day - day)
    ).year


def parse_time(text: str) -> Optional[time]:
    """解析 "H:mm"，失敗回傳 None"""
    try:
        return datetime.strptime(text.strip(), "%H:%M").time()
    except ValueError:
        return None


def parse_time_range(text: str) -> TimeRange:
    """解析 "H:mm - H:mm"；任何失敗都回傳 UNKNOWN_TIME_RANGE 而不是拋出例外"""
    match = _TIME_RANGE_RE.search(text or "")
    if not match:
        return UNKNOWN_TIME_RANGE
    start = parse_time(match.group(1))
    end = parse_time(match.group(2))
    if start is None or end is None:
        return UNKNOWN_TIME_RANGE
    return TimeRange(start=start, end=end)


def school_year_start(today: Optional[date] = None) -> date:
    """學年從 9 月 1 日開始；9 月前則取前一年的 9 月 1 日"""
    today = today or date.today()
    sept_first = date(today.year, 9, 1)
    if today < sept_first:
        return date(today.year - 1, 9, 1)
    return sept_first
