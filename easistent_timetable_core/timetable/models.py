from typing import Annotated, Iterator, List, Literal, Optional, Union
from datetime import date, datetime, time
from pydantic import BaseModel, ConfigDict, Field, model_validator

# 合成課表（教師視角）沒有真正的班級 id
SYNTHETIC_CLASS_ID = -1
# 一週最多五天（週一到週五）
MAX_DAYS = 5


class TimeRange(BaseModel):
    """節次時間 (開始, 結束)

    00:00-00:00 代表「無法解析時間」，使用前必須先檢查 is_unknown，
    不可當成真正的午夜時段。
    """
    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @property
    def is_unknown(self) -> bool:
        return self.start == time(0, 0) and self.end == time(0, 0)

    def __str__(self) -> str:
        if self.is_unknown:
            return "?"
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


UNKNOWN_TIME_RANGE = TimeRange(start=time(0, 0), end=time(0, 0))


class Lesson(BaseModel):
    """單一課程

    teacher 為畫面上的簡寫，teacher_full_name 來自 title 屬性，
    是教師課表彙整時使用的鍵值。source_class_label 只有在批次抓取時才會填入。
    """
    model_config = ConfigDict(frozen=True)

    subject_code: Optional[str] = None
    subject_title: Optional[str] = None
    teacher: Optional[str] = None
    room: Optional[str] = None
    group_label: Optional[str] = None
    is_cancelled: bool = False
    teacher_full_name: Optional[str] = None
    source_class_label: Optional[str] = None


class EmptyCell(BaseModel):
    """沒有課的節次（仍佔一個位置，維持各天節次對齊）"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["empty"] = "empty"


class LessonsCell(BaseModel):
    """有課的節次，可能同時有多堂課（分組）"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["lessons"] = "lessons"
    period_number: int
    time_range: TimeRange
    lessons: List[Lesson]


PeriodCell = Annotated[Union[EmptyCell, LessonsCell], Field(discriminator="kind")]
EMPTY_CELL = EmptyCell()


class TimetableDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    lessons_by_period: List[PeriodCell]


class UpcomingLesson(BaseModel):
    """下一堂課的摘要，供提醒使用"""
    start: datetime
    subjects: List[str]
    rooms: List[str]


class TimetableWeek(BaseModel):
    """一個班級（或合成教師）的一週課表

    - days 依日期遞增排列，最多 5 天
    - class_id 為 -1 時代表教師彙整出來的合成課表
    """
    model_config = ConfigDict(frozen=True)

    class_id: int
    week_start: date
    week_end: date
    days: List[TimetableDay]

    @model_validator(mode="after")
    def _check_bounds(self) -> "TimetableWeek":
        if self.week_start > self.week_end:
            raise ValueError(f"week_start {self.week_start} 晚於 week_end {self.week_end}")
        if len(self.days) > MAX_DAYS:
            raise ValueError(f"一週最多 {MAX_DAYS} 天，收到 {len(self.days)} 天")
        return self

    @property
    def is_synthetic(self) -> bool:
        return self.class_id == SYNTHETIC_CLASS_ID

    def iter_lesson_cells(self) -> Iterator[LessonsCell]:
        for day in self.days:
            for cell in day.lessons_by_period:
                if isinstance(cell, LessonsCell):
                    yield cell

    def iter_lessons(self) -> Iterator[Lesson]:
        for cell in self.iter_lesson_cells():
            yield from cell.lessons

    def with_class_label(self, label: str) -> "TimetableWeek":
        """回傳標註來源班級的副本；已有標註的課程維持原值"""
        def annotate(cell: PeriodCell) -> PeriodCell:
            if isinstance(cell, EmptyCell):
                return cell
            return cell.model_copy(update={
                "lessons": [
                    lesson if lesson.source_class_label is not None
                    else lesson.model_copy(update={"source_class_label": label})
                    for lesson in cell.lessons
                ]
            })

        days = [
            day.model_copy(update={"lessons_by_period": [annotate(c) for c in day.lessons_by_period]})
            for day in self.days
        ]
        return self.model_copy(update={"days": days})

    def default_day_index(self, today: date) -> Optional[int]:
        """今天在 days 中的位置；週末或不在本週時回傳 None（顯示全部）"""
        if today.weekday() >= 5:
            return None
        for idx, day in enumerate(self.days):
            if day.date == today:
                return idx
        return None

    def next_lesson_after(self, now: datetime) -> Optional[UpcomingLesson]:
        """找出開始時間嚴格晚於 now 的下一堂課，時間未知的節次不列入"""
        upcoming: List[UpcomingLesson] = []
        for day in self.days:
            for cell in day.lessons_by_period:
                if not isinstance(cell, LessonsCell) or cell.time_range.is_unknown:
                    continue
                start = datetime.combine(day.date, cell.time_range.start)
                if start <= now:
                    continue
                subjects = [
                    s for s in (lesson.subject_code or lesson.subject_title for lesson in cell.lessons)
                    if s and s.strip()
                ]
                rooms = [lesson.room for lesson in cell.lessons if lesson.room and lesson.room.strip()]
                upcoming.append(UpcomingLesson(start=start, subjects=subjects or ["Ura"], rooms=rooms))
        if not upcoming:
            return None
        return min(upcoming, key=lambda u: u.start)
