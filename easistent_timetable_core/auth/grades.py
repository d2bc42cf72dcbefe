"""由通知訊息推導成績（免費帳號沒有成績 API 可用）

通知內文的格式固定為 `值 - 科目簡稱, 評量類型`，例如 `5 - MAT, pisno`。
伺服器若改變訊息格式或語系，解析會直接略過該筆通知。
"""
from typing import Dict, Iterable, List, Optional, Tuple
from datetime import date
import re
import zlib

from easistent_timetable_core.auth.models import (
    GradeItem,
    NotificationItem,
    SemesterGrades,
    SubjectGrades,
)

GRADE_MESSAGE_RE = re.compile(r"^\s*([^\s]+)\s*-\s*([^,]+)\s*,\s*(.+)")


def is_grade_notification(item: NotificationItem) -> bool:
    if item.type is not None and item.type.lower() == "ocena":
        return True
    return (item.title or "").startswith("Nova ocena")


def notification_date(item: NotificationItem) -> Optional[date]:
    """created_at 的日期部分（yyyy-MM-dd），無法解析時回傳 None"""
    if not item.created_at or len(item.created_at) < 10:
        return None
    try:
        return date.fromisoformat(item.created_at[:10])
    except ValueError:
        return None


def parse_grade_notification(item: NotificationItem) -> Optional[Tuple[str, GradeItem]]:
    """解析單筆成績通知為 (科目簡稱, GradeItem)，格式不符時回傳 None"""
    if not item.message:
        return None
    match = GRADE_MESSAGE_RE.search(item.message)
    if not match:
        return None
    value = match.group(1)
    subject = match.group(2).strip()
    type_name = match.group(3).strip()
    if not subject or not value:
        return None

    grade_id = item.meta_data.grade_id if item.meta_data and item.meta_data.grade_id is not None else item.id
    return subject, GradeItem(
        type_name=type_name,
        id=grade_id,
        type="list",
        value=value,
        date=item.created_at[:10] if item.created_at else None,
        inserted_at=item.created_at,
    )


def build_free_grades(items: Iterable[NotificationItem]) -> List[SubjectGrades]:
    """把成績通知依科目分組

    通知無法區分學期，所以全部放在第 1 學期，第 2 學期留空。
    每科成績由新到舊排列，科目依名稱排序。
    """
    grouped: Dict[str, List[GradeItem]] = {}
    for item in items:
        if not is_grade_notification(item):
            continue
        parsed = parse_grade_notification(item)
        if parsed is None:
            continue
        subject, grade = parsed
        grouped.setdefault(subject, []).append(grade)

    result = []
    for subject, grades in grouped.items():
        grades.sort(key=lambda g: g.inserted_at or "", reverse=True)
        result.append(SubjectGrades(
            name=subject,
            short_name=subject,
            # 穩定的科目 id（跨行程不變）
            id=zlib.crc32(subject.encode("utf-8")),
            grade_type="grade",
            semesters=[
                SemesterGrades(id=1, grades=grades),
                SemesterGrades(id=2, grades=[]),
            ],
        ))
    return sorted(result, key=lambda s: s.name)
