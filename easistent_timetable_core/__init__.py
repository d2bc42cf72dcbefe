"""eAsistent 課表系統核心模組"""
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, TypeVar

if TYPE_CHECKING:
    from easistent_timetable_core.auth.models import ChildProfile, Session, SubjectGrades
    from easistent_timetable_core.auth.session import AuthRepository
    from easistent_timetable_core.auth.store import KeyValueStore, SettingsStore
    from easistent_timetable_core.school.models import SchoolMeta
    from easistent_timetable_core.timetable.models import TimetableWeek
    from easistent_timetable_core.timetable.repository import TimetableRepository

T = TypeVar("T")


class EAsistentTimetableCore:
    """eAsistent 課表核心功能的統一入口點

    此類別提供以下功能：
    1. 公開課表
       - fetch_school(): 學校 id 與班級清單
       - fetch_class_week(): 單一班級的週課表
       - fetch_all_class_weeks(): 全校班級的週課表
       - fetch_teachers() / fetch_teacher_week(): 教師清單與教師彙整課表

    2. 登入狀態
       - login() / logout() / current_session()
       - 登出或強制登出時清除學生課表快取與選擇的子女

    3. 需要登入的資料（401 時自動刷新並重試一次）
       - fetch_children(): 子女清單
       - fetch_child_week(): 學生本人的週課表
       - fetch_grades() / fetch_free_grades(): 成績
    """

    def __init__(
        self,
        timetable_repository: Optional["TimetableRepository"] = None,
        auth_repository: Optional["AuthRepository"] = None,
        store: Optional["KeyValueStore"] = None,
        settings: Optional["SettingsStore"] = None,
    ):
        """
        Args:
            store: token 與偏好共用的鍵值儲存，未提供時使用記憶體
            settings: 使用者偏好，未提供時建立在同一個 store 上
        """
        from easistent_timetable_core.auth.session import AuthRepository
        from easistent_timetable_core.auth.store import MemoryKeyValueStore, SettingsStore, TokenStore
        from easistent_timetable_core.timetable.repository import TimetableRepository

        backend = store or MemoryKeyValueStore()
        self.timetable = timetable_repository or TimetableRepository()
        self.auth = auth_repository or AuthRepository(store=TokenStore(backend))
        self.settings = settings or SettingsStore(backend)

    # ====================================
    # 📅 公開課表
    # ====================================

    async def fetch_school(self, school_key: str) -> "SchoolMeta":
        """取得學校 id 與班級清單

        Args:
            school_key: 課表網址中的學校代碼

        Returns:
            SchoolMeta: 學校資訊
        """
        return await self.timetable.load_school_meta(school_key)

    async def fetch_class_week(self, school_id: int, class_id: int, week_id: int, refresh: bool = False) -> "TimetableWeek":
        """取得單一班級的週課表

        Raises:
            RangeError: week_id 不在 0-52
        """
        return await self.timetable.load_timetable_week(school_id, class_id, week_id, refresh=refresh)

    async def fetch_all_class_weeks(self, school: "SchoolMeta", week_id: int) -> List["TimetableWeek"]:
        """取得全校班級的週課表，失敗的班級會被略過"""
        return await self.timetable.load_all_timetables_for_week(school.school_id, school.classes, week_id)

    async def fetch_teachers(self, school: "SchoolMeta", week_id: int, refresh: bool = False) -> List[str]:
        """列出該週出現過的所有教師全名"""
        return await self.timetable.load_teachers_for_week(
            school.school_id, school.classes, week_id, refresh=refresh
        )

    async def fetch_teacher_week(
        self,
        school: "SchoolMeta",
        week_id: int,
        teacher_full_name: str,
        refresh: bool = False
    ) -> Optional["TimetableWeek"]:
        """取得教師的彙整週課表（class_id 為 -1）

        Returns:
            Optional[TimetableWeek]: 沒有任何班級課表時為 None
        """
        return await self.timetable.load_teacher_timetable(
            school.school_id, school.classes, week_id, teacher_full_name, refresh=refresh
        )

    def change_school(self) -> None:
        """切換學校時清除所有課表快取"""
        self.timetable.clear()

    # ====================================
    # 🔑 登入狀態
    # ====================================

    async def login(self, username: str, password: str) -> "Session":
        return await self.auth.login(username, password)

    async def logout(self) -> bool:
        """登出並清除學生課表快取與選擇的子女"""
        self._clear_child_state()
        return await self.auth.logout()

    def current_session(self) -> Optional["Session"]:
        return self.auth.current_session()

    # ====================================
    # 👨‍👩‍👧 需要登入的資料
    # ====================================

    async def fetch_children(self) -> List["ChildProfile"]:
        return await self._authenticated(self.auth.get_children_profiles)

    async def fetch_child_week(self, child: "ChildProfile", week_id: int, refresh: bool = False) -> "TimetableWeek":
        """取得學生本人的週課表

        Raises:
            SessionExpiredError: 沒有登入，或刷新 token 後仍未授權（已強制登出）
            RangeError: week_id 不在 0-52
        """
        from easistent_timetable_core.errors import AuthError, SessionExpiredError

        session = self.auth.current_session()
        if session is None:
            raise SessionExpiredError()
        if session.school_id is None:
            raise AuthError("登入資訊中沒有 school_id")
        school_id = session.school_id

        async def call(token: str) -> "TimetableWeek":
            return await self.timetable.load_child_timetable_week(
                token, school_id, child.student_id, week_id, child.class_id or 0, refresh=refresh
            )

        return await self._authenticated(lambda: self.auth.retry_policy.run(call))

    async def fetch_grades(self, child: "ChildProfile") -> List["SubjectGrades"]:
        return await self._authenticated(lambda: self.auth.get_grades(child.uuid))

    async def fetch_free_grades(self, child: "ChildProfile") -> List["SubjectGrades"]:
        return await self._authenticated(lambda: self.auth.get_free_grades(child.uuid))

    async def _authenticated(self, call: Callable[[], Awaitable[T]]) -> T:
        """執行需要登入的請求，若因此被強制登出則清除子女相關的本機狀態"""
        from easistent_timetable_core.errors import AuthError

        try:
            return await call()
        except AuthError:
            if self.auth.current_session() is None:
                self._clear_child_state()
            raise

    def _clear_child_state(self) -> None:
        self.timetable.clear_child_cache()
        self.settings.clear_child()
