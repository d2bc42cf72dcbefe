import time


async def get_class_or_teacher_timetable(
    school_key: str,
    class_label: str = None,
    teacher_full_name: str = None,
    week_id: int = 0,
):
    """獲取指定班級或老師的週課表

    Args:
        school_key: 課表網址中的學校代碼
        class_label: 班級名稱（如: "7.a"），若未提供則使用第一個班級
        teacher_full_name: 老師全名，提供時改為顯示教師彙整課表
        week_id: 週次 (0-52)
    """

    # 初始化 core
    from easistent_timetable_core import EAsistentTimetableCore
    core = EAsistentTimetableCore()

    school = await core.fetch_school(school_key)
    print(f"🏫 學校 {school.school_key}: id={school.school_id}，共 {len(school.classes)} 個班級")

    if teacher_full_name:
        timetable = await core.fetch_teacher_week(school, week_id, teacher_full_name)
        print(f"👨‍🏫 教師課表: {teacher_full_name}")
    else:
        info = school.find_class(class_label) if class_label else school.classes[0]
        timetable = await core.fetch_class_week(school.school_id, info.id, week_id)
        print(f"🎓 班級課表: {info.label}")

    if timetable is None:
        print("沒有資料")
        return
    print(timetable.model_dump_json(indent=4))


if __name__ == "__main__":
    import asyncio
    start_time = time.time()
    asyncio.run(get_class_or_teacher_timetable("your-school-key", class_label="7.a"))  # 替換成自己學校的代碼
    end_time = time.time()
    print(f"執行時間: {end_time - start_time:.2f} 秒")
