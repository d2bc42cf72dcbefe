from typing import Dict, Iterable, List, Optional, Tuple, Union
from collections import Counter
from datetime import time
import math

from pydantic import BaseModel, Field

from easistent_timetable_core.timetable.models import (
    MAX_DAYS,
    SYNTHETIC_CLASS_ID,
    Lesson,
    LessonsCell,
    PeriodCell,
    TimeRange,
    TimetableDay,
    TimetableWeek,
)
from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")

# 有真實時間時 key 為 (開始, 結束)，否則只有節次
SlotKey = Union[Tuple[time, time], int]


class _Slot(BaseModel):
    """一個彙整時段，收集所有來源班級中同一時段的課程"""
    key: SlotKey
    lessons: List[Lesson] = Field(default_factory=list)
    period_numbers: List[int] = Field(default_factory=list)
    time_ranges: List[TimeRange] = Field(default_factory=list)

    @property
    def key_start(self) -> Optional[time]:
        return self.key[0] if isinstance(self.key, tuple) else None

    @property
    def key_end(self) -> Optional[time]:
        return self.key[1] if isinstance(self.key, tuple) else None

    @property
    def fallback_period(self) -> Optional[int]:
        return self.key if isinstance(self.key, int) else None

    def sort_key(self) -> Tuple[bool, time, time, float]:
        """有時間的時段在前（依開始、結束），只有節次的在後（依節次）"""
        fallback = self.fallback_period
        return (
            self.key_start is None,
            self.key_start or time.min,
            self.key_end or time.min,
            fallback if fallback is not None else math.inf,
        )


def _slot_key(cell: LessonsCell) -> SlotKey:
    if cell.time_range.is_unknown:
        return cell.period_number
    return (cell.time_range.start, cell.time_range.end)


def _majority_period(period_numbers: List[int], ordinal: int) -> int:
    """出現最多次的節次，同票取最小；沒有任何節次時使用排序位置"""
    if not period_numbers:
        return ordinal
    counts = Counter(period_numbers)
    return min(counts, key=lambda n: (-counts[n], n))


def _build_day_cells(class_weeks: Iterable[TimetableWeek], day_index: int, teacher_full_name: str) -> List[PeriodCell]:
    slots: Dict[SlotKey, _Slot] = {}
    for week in class_weeks:
        if day_index >= len(week.days):
            continue
        for cell in week.days[day_index].lessons_by_period:
            if not isinstance(cell, LessonsCell):
                continue
            matched = [l for l in cell.lessons if l.teacher_full_name == teacher_full_name]
            if not matched:
                continue
            key = _slot_key(cell)
            slot = slots.setdefault(key, _Slot(key=key))
            # 不去重：同一位老師可能同時有多堂不同的課
            slot.lessons.extend(matched)
            slot.period_numbers.append(cell.period_number)
            slot.time_ranges.append(cell.time_range)

    cells: List[PeriodCell] = []
    for idx, slot in enumerate(sorted(slots.values(), key=_Slot.sort_key)):
        if not slot.lessons:
            continue
        if isinstance(slot.key, tuple):
            time_range = TimeRange(start=slot.key[0], end=slot.key[1])
        else:
            time_range = slot.time_ranges[0]
        cells.append(LessonsCell(
            period_number=_majority_period(slot.period_numbers, idx + 1),
            time_range=time_range,
            lessons=slot.lessons,
        ))
    return cells


def build_teacher_timetable(
    all_class_weeks: List[TimetableWeek],
    teacher_full_name: str
) -> Optional[TimetableWeek]:
    """由所有班級的同一週課表彙整出單一教師的合成課表

    時段的識別方式：
    - 時間可解析時以 (開始, 結束) 為 key，不同班級同時段的課合併為一格，
      即使各班對節次的編號不同
    - 時間為未知的哨兵值時，退回以節次為 key

    節次取各來源中出現最多次者（同票取最小），時間取 key 本身，
    沒有真實時間時取第一個來源的時間（可能仍為哨兵值）。

    Args:
        all_class_weeks: 各班級的週課表，第一筆決定週起訖日與天數
        teacher_full_name: 教師全名，需與 Lesson.teacher_full_name 完全相同

    Returns:
        Optional[TimetableWeek]: class_id 為 -1 的合成課表；沒有輸入時回傳 None
    """
    if not all_class_weeks:
        return None

    base = all_class_weeks[0]
    day_count = min(len(base.days), MAX_DAYS)
    days = [
        TimetableDay(
            date=base.days[day_index].date,
            lessons_by_period=_build_day_cells(all_class_weeks, day_index, teacher_full_name),
        )
        for day_index in range(day_count)
    ]

    logger.debug(f"👨‍🏫 {teacher_full_name}：彙整 {len(all_class_weeks)} 個班級的課表")
    return TimetableWeek(
        class_id=SYNTHETIC_CLASS_ID,
        week_start=base.week_start,
        week_end=base.week_end,
        days=days,
    )
