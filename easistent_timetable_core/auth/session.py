from typing import List, Optional, Type, TypeVar
from datetime import date
import re

from pydantic import BaseModel, ValidationError

from easistent_timetable_core.auth.api import AuthApi
from easistent_timetable_core.auth.grades import build_free_grades, notification_date
from easistent_timetable_core.auth.token_payload import decode_payload
from easistent_timetable_core.auth.models import (
    ChildProfile,
    ChildrenResponse,
    GradesResponse,
    LoginRequest,
    LoginResponse,
    NotificationItem,
    NotificationsResponse,
    RefreshRequest,
    RefreshResponse,
    Session,
    SubjectGrades,
)
from easistent_timetable_core.auth.retry import RefreshRetryPolicy
from easistent_timetable_core.auth.store import TokenStore
from easistent_timetable_core.errors import (
    AuthError,
    EmptyResponseError,
    FetchError,
    ParseError,
    UnauthorizedError,
)
from easistent_timetable_core.utils.http import HttpResponse
from easistent_timetable_core.utils.logger import get_logger
from easistent_timetable_core.utils.time_utils import school_year_start

logger = get_logger(logger_level="INFO")

M = TypeVar("M", bound=BaseModel)

_DEVELOPER_MESSAGE_RE = re.compile(r'"developer_message"\s*:\s*"([^"]+)"')


def extract_developer_message(raw: Optional[str]) -> Optional[str]:
    """從錯誤回應中取出 developer_message"""
    if not raw or not raw.strip():
        return None
    match = _DEVELOPER_MESSAGE_RE.search(raw)
    return match.group(1) if match else None


def _parse_body(response: HttpResponse, model: Type[M]) -> Optional[M]:
    """解析 JSON 回應；沒有內容時回傳 None"""
    if not response.text.strip():
        return None
    try:
        return model.model_validate_json(response.text)
    except ValidationError as e:
        error_msg = f"{model.__name__} 解析錯誤：{e.error_count()} 個欄位不符"
        logger.error(f"❌ {error_msg}")
        raise ParseError(error_msg) from e


def _raise_for_unauthorized(response: HttpResponse) -> None:
    if response.is_unauthorized:
        raise UnauthorizedError(status=response.status)


class AuthRepository:
    """登入狀態的生命週期

    LoggedOut --login--> LoggedIn --logout/刷新失敗--> LoggedOut

    token 與身分欄位都存在 TokenStore，AuthRepository 本身不持有狀態，
    重新建立實例後可由 current_session() 還原。
    """

    def __init__(self, api: Optional[AuthApi] = None, store: Optional[TokenStore] = None):
        self._api = api or AuthApi()
        self._store = store or TokenStore()
        self.retry_policy = RefreshRetryPolicy(self)

    @property
    def access_token(self) -> Optional[str]:
        return self._store.access_token

    @property
    def store(self) -> TokenStore:
        return self._store

    def _persist_tokens(self, access_token: str, expiration: Optional[str], refresh_token: str) -> None:
        self._store.access_token = access_token
        self._store.access_expiration = expiration
        self._store.refresh_token = refresh_token

    async def login(self, username: str, password: str) -> Session:
        """登入並保存 token

        Raises:
            AuthError: 伺服器拒絕（訊息取自 developer_message）
            EmptyResponseError: 成功但沒有內容
            NetworkError: 無法連線
        """
        response = await self._api.login(LoginRequest(username=username, password=password))
        if not response.ok:
            message = extract_developer_message(response.text) or f"Login failed: HTTP {response.status}"
            logger.error(f"❌ 登入失敗：{message}")
            raise AuthError(message)
        body = _parse_body(response, LoginResponse)
        if body is None:
            raise EmptyResponseError("Empty login response")

        access_token = body.access_token.token
        # 只解碼不驗證，school_id/user_id 僅供參考
        payload = decode_payload(access_token)
        school_id = payload.school_id_int if payload else None
        user_id = payload.user_id if payload else None
        user_name = (body.user.name if body.user else None) or username

        self._persist_tokens(access_token, body.access_token.expiration_date, body.refresh_token)
        self._store.user_name = user_name
        self._store.user_id = user_id
        if school_id is not None:
            self._store.school_id = school_id

        logger.info(f"✅ 登入成功：{user_name}")
        return Session(
            access_token=access_token,
            refresh_token=body.refresh_token,
            user_name=user_name,
            user_id=user_id,
            school_id=school_id,
        )

    async def refresh_if_needed(self) -> bool:
        """以 refresh token 換新的 token；任何失敗都回傳 False，不拋出例外"""
        refresh_token = self._store.refresh_token
        if not refresh_token:
            return False
        try:
            response = await self._api.refresh(RefreshRequest(refresh_token=refresh_token))
            if not response.ok:
                logger.warning(f"⚠️ 刷新 token 失敗：HTTP {response.status}")
                return False
            body = _parse_body(response, RefreshResponse)
        except FetchError as e:
            logger.warning(f"⚠️ 刷新 token 失敗：{e.message}")
            return False
        if body is None:
            return False

        access_token = body.access_token.token
        payload = decode_payload(access_token)
        self._persist_tokens(access_token, body.access_token.expiration_date, body.refresh_token)
        if payload and payload.school_id_int is not None:
            self._store.school_id = payload.school_id_int
        logger.info("🔄 token 已刷新")
        return True

    async def logout(self) -> bool:
        """通知伺服器登出（失敗忽略），並一律清除本機資料"""
        try:
            await self._api.logout(self._store.access_token)
        except FetchError as e:
            logger.warning(f"⚠️ 伺服器登出失敗，僅清除本機資料：{e.message}")
        except Exception as e:
            logger.warning(f"⚠️ 伺服器登出發生未預期錯誤，僅清除本機資料：{e!r}")
        finally:
            self._store.clear()
        logger.info("👋 已登出")
        return True

    def current_session(self) -> Optional[Session]:
        access_token = self._store.access_token
        refresh_token = self._store.refresh_token
        if not access_token or not refresh_token:
            return None
        return Session(
            access_token=access_token,
            refresh_token=refresh_token,
            user_name=self._store.user_name,
            user_id=self._store.user_id,
            school_id=self._store.school_id,
        )

    # ====================================
    # 👨‍👩‍👧 需要登入的資料
    # ====================================

    async def get_children_profiles(self) -> List[ChildProfile]:
        """列出帳號底下的子女；uuid 解不出學生 id 的項目略過"""
        if not self.access_token:
            return []

        async def call(token: str) -> List[ChildProfile]:
            response = await self._api.get_children(token)
            _raise_for_unauthorized(response)
            if not response.ok:
                logger.warning(f"⚠️ 取得子女清單失敗：HTTP {response.status}")
                return []
            body = _parse_body(response, ChildrenResponse)
            if body is None:
                return []
            profiles = [ChildProfile.from_item(item) for item in body.items]
            return [p for p in profiles if p is not None]

        return await self.retry_policy.run(call)

    async def get_grades(self, child_uuid: str) -> List[SubjectGrades]:
        """付費帳號的成績；非授權錯誤時回傳空清單"""
        if not self.access_token:
            return []

        async def call(token: str) -> List[SubjectGrades]:
            response = await self._api.get_grades(token, child_uuid)
            _raise_for_unauthorized(response)
            if not response.ok:
                logger.warning(f"⚠️ 取得成績失敗：HTTP {response.status}")
                return []
            body = _parse_body(response, GradesResponse)
            return body.items if body else []

        return await self.retry_policy.run(call)

    async def _fetch_notifications_since(self, token: str, child_uuid: str, cutoff: date) -> List[NotificationItem]:
        """往回翻頁直到某頁最後一筆早於 cutoff"""
        collected: List[NotificationItem] = []
        last_id: Optional[int] = None
        while True:
            response = await self._api.get_notifications(token, child_uuid, last_id)
            _raise_for_unauthorized(response)
            if not response.ok:
                logger.warning(f"⚠️ 取得通知失敗：HTTP {response.status}")
                break
            body = _parse_body(response, NotificationsResponse)
            items = body.items if body else []
            if not items:
                break
            collected.extend(items)
            last = items[-1]
            if last.id == last_id:
                break
            last_id = last.id
            last_date = notification_date(last)
            if last_date is not None and last_date < cutoff:
                break
        logger.debug(f"📥 共取得 {len(collected)} 筆通知")
        return collected

    async def get_free_grades(self, child_uuid: str, today: Optional[date] = None) -> List[SubjectGrades]:
        """由本學年的成績通知推導成績

        頁面途中收到 401 時，刷新後整個清單從頭重抓一次。
        """
        if not self.access_token:
            return []
        cutoff = school_year_start(today)

        async def call(token: str) -> List[NotificationItem]:
            return await self._fetch_notifications_since(token, child_uuid, cutoff)

        items = await self.retry_policy.run(call)
        return build_free_grades(items)
