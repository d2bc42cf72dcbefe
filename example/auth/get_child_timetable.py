import os


async def get_child_timetable(week_id: int = 0):
    """登入後列出子女並顯示第一位子女的週課表與成績

    帳號密碼從環境變數 EASISTENT_USERNAME / EASISTENT_PASSWORD 讀取，
    token 存在 ./.easistent_store.json（未加密，僅供測試）。
    """
    from dotenv import load_dotenv
    from easistent_timetable_core import EAsistentTimetableCore
    from easistent_timetable_core.auth.store import JsonFileKeyValueStore

    load_dotenv()
    core = EAsistentTimetableCore(store=JsonFileKeyValueStore(".easistent_store.json"))

    session = core.current_session()
    if session is None:
        session = await core.login(os.environ["EASISTENT_USERNAME"], os.environ["EASISTENT_PASSWORD"])
    print(f"🔑 已登入: {session.user_name} (school_id={session.school_id})")

    children = await core.fetch_children()
    if not children:
        print("沒有子女資料")
        return
    child = children[0]
    print(f"👧 {child.display_name} ({child.class_name})")

    timetable = await core.fetch_child_week(child, week_id)
    for day in timetable.days:
        print(f"📅 {day.date}")
        for cell in day.lessons_by_period:
            if cell.kind == "empty":
                continue
            subjects = ", ".join(l.subject_code or l.subject_title or "?" for l in cell.lessons)
            print(f"  {cell.period_number}. {cell.time_range}  {subjects}")

    for subject in await core.fetch_free_grades(child):
        values = " ".join(g.value or "" for g in subject.semesters[0].grades)
        print(f"📝 {subject.name}: {values}")


if __name__ == "__main__":
    import asyncio
    asyncio.run(get_child_timetable())
