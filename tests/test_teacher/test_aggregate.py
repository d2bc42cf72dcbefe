from datetime import date, time
from typing import List, Optional

import pytest

from easistent_timetable_core.teacher.aggregate import build_teacher_timetable
from easistent_timetable_core.timetable.models import (
    EMPTY_CELL,
    UNKNOWN_TIME_RANGE,
    EmptyCell,
    Lesson,
    LessonsCell,
    PeriodCell,
    TimeRange,
    TimetableDay,
    TimetableWeek,
)

TARGET = "Jane Doe"
MONDAY = date(2025, 9, 1)


def lesson(teacher: Optional[str] = TARGET, subject: str = "MAT", label: Optional[str] = None) -> Lesson:
    return Lesson(subject_code=subject, teacher_full_name=teacher, source_class_label=label)


def lessons_cell(period: int, start: Optional[time], end: Optional[time], *lessons: Lesson) -> LessonsCell:
    time_range = TimeRange(start=start, end=end) if start is not None else UNKNOWN_TIME_RANGE
    return LessonsCell(period_number=period, time_range=time_range, lessons=list(lessons))


def week(class_id: int, *days: List[PeriodCell], week_start: date = MONDAY) -> TimetableWeek:
    return TimetableWeek(
        class_id=class_id,
        week_start=week_start,
        week_end=date(week_start.year, week_start.month, week_start.day + 4),
        days=[
            TimetableDay(date=date(week_start.year, week_start.month, week_start.day + i), lessons_by_period=cells)
            for i, cells in enumerate(days)
        ],
    )


class TestBuildTeacherTimetable:
    def test_empty_input(self):
        assert build_teacher_timetable([], TARGET) is None

    def test_result_is_synthetic_with_first_week_bounds(self):
        first = week(10, [lessons_cell(1, time(8, 0), time(8, 45), lesson())])
        second = week(11, [EMPTY_CELL], week_start=date(2025, 9, 8))
        result = build_teacher_timetable([first, second], TARGET)
        assert result.class_id == -1
        assert result.is_synthetic
        assert result.week_start == first.week_start
        assert result.week_end == first.week_end
        assert [d.date for d in result.days] == [MONDAY]

    def test_same_time_different_periods_merge(self):
        """同一時間不同節次編號的兩個班級合併為一格"""
        a = week(10, [lessons_cell(3, time(10, 0), time(10, 45), lesson(label="7.a"))])
        b = week(11, [lessons_cell(4, time(10, 0), time(10, 45), lesson(label="7.b"))])
        result = build_teacher_timetable([a, b], TARGET)

        cells = result.days[0].lessons_by_period
        assert len(cells) == 1
        assert [l.source_class_label for l in cells[0].lessons] == ["7.a", "7.b"]
        # 同票時取較小的節次
        assert cells[0].period_number == 3
        assert cells[0].time_range == TimeRange(start=time(10, 0), end=time(10, 45))

    def test_majority_period_wins(self):
        a = week(10, [lessons_cell(3, time(10, 0), time(10, 45), lesson())])
        b = week(11, [lessons_cell(4, time(10, 0), time(10, 45), lesson())])
        c = week(12, [lessons_cell(4, time(10, 0), time(10, 45), lesson())])
        result = build_teacher_timetable([a, b, c], TARGET)
        assert result.days[0].lessons_by_period[0].period_number == 4

    def test_deterministic_across_runs(self):
        a = week(10, [lessons_cell(4, time(10, 0), time(10, 45), lesson())])
        b = week(11, [lessons_cell(3, time(10, 0), time(10, 45), lesson())])
        results = {build_teacher_timetable([a, b], TARGET).days[0].lessons_by_period[0].period_number for _ in range(5)}
        assert results == {3}

    def test_timed_slot_before_period_only_slot(self):
        """有時間的時段永遠排在只有節次的時段之前"""
        a = week(10, [
            lessons_cell(2, None, None, lesson(subject="FIZ")),
            lessons_cell(5, time(10, 0), time(10, 45), lesson(subject="MAT")),
        ])
        result = build_teacher_timetable([a], TARGET)
        cells = result.days[0].lessons_by_period
        assert [c.lessons[0].subject_code for c in cells] == ["MAT", "FIZ"]
        assert cells[1].period_number == 2
        assert cells[1].time_range.is_unknown

    def test_timed_slots_sorted_by_start_then_end(self):
        a = week(10, [
            lessons_cell(3, time(10, 0), time(11, 30), lesson(subject="B")),
            lessons_cell(1, time(8, 0), time(8, 45), lesson(subject="A")),
            lessons_cell(2, time(10, 0), time(10, 45), lesson(subject="C")),
        ])
        result = build_teacher_timetable([a], TARGET)
        assert [c.lessons[0].subject_code for c in result.days[0].lessons_by_period] == ["A", "C", "B"]

    def test_period_only_slots_merge_by_period(self):
        a = week(10, [lessons_cell(2, None, None, lesson(label="7.a"))])
        b = week(11, [lessons_cell(2, None, None, lesson(label="7.b"))])
        result = build_teacher_timetable([a, b], TARGET)
        cells = result.days[0].lessons_by_period
        assert len(cells) == 1
        assert len(cells[0].lessons) == 2

    def test_other_teachers_filtered_out(self):
        a = week(10, [
            lessons_cell(1, time(8, 0), time(8, 45), lesson(teacher="Someone Else")),
            lessons_cell(2, time(8, 50), time(9, 35), lesson(teacher="Someone Else"), lesson()),
            EMPTY_CELL,
        ])
        result = build_teacher_timetable([a], TARGET)
        cells = result.days[0].lessons_by_period
        assert len(cells) == 1
        assert cells[0].period_number == 2
        assert len(cells[0].lessons) == 1

    def test_simultaneous_lessons_not_deduplicated(self):
        a = week(10, [lessons_cell(1, time(8, 0), time(8, 45), lesson(), lesson())])
        result = build_teacher_timetable([a], TARGET)
        assert len(result.days[0].lessons_by_period[0].lessons) == 2

    def test_day_count_from_first_week(self):
        a = week(10, [EMPTY_CELL], [EMPTY_CELL])
        b = week(11, [EMPTY_CELL], [EMPTY_CELL], [lessons_cell(1, time(8, 0), time(8, 45), lesson())])
        result = build_teacher_timetable([a, b], TARGET)
        assert len(result.days) == 2
        assert all(d.lessons_by_period == [] for d in result.days)

    def test_teacher_without_lessons_gives_empty_days(self):
        a = week(10, [EmptyCell()])
        result = build_teacher_timetable([a], "Nobody")
        assert result is not None
        assert result.days[0].lessons_by_period == []
