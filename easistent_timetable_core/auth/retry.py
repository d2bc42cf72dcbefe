from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from easistent_timetable_core.errors import SessionExpiredError, UnauthorizedError
from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")

T = TypeVar("T")


class SessionHandle(Protocol):
    @property
    def access_token(self) -> Optional[str]: ...

    async def refresh_if_needed(self) -> bool: ...

    async def logout(self) -> bool: ...


class RefreshRetryPolicy:
    """所有需要登入的請求共用的「401 時刷新一次再重試一次」規則

    1. 用目前的 access token 呼叫
    2. 收到 UnauthorizedError 時 refresh_if_needed() 一次
    3. 刷新成功就用新 token 再呼叫一次
    4. 刷新失敗或重試仍未授權：完整登出並拋出 SessionExpiredError

    每個請求最多只會刷新一次。
    """

    def __init__(self, session: SessionHandle):
        self._session = session

    async def _expire(self, reason: str) -> SessionExpiredError:
        logger.warning(f"⚠️ {reason}，強制登出")
        await self._session.logout()
        return SessionExpiredError()

    async def run(self, call: Callable[[str], Awaitable[T]]) -> T:
        """以 access token 執行 call，必要時刷新並重試

        Raises:
            SessionExpiredError: 沒有登入、刷新失敗或重試後仍未授權
        """
        token = self._session.access_token
        if not token:
            raise SessionExpiredError()
        try:
            return await call(token)
        except UnauthorizedError:
            logger.info("🔄 收到未授權回應，嘗試刷新 token")

        if not await self._session.refresh_if_needed():
            raise await self._expire("刷新 token 失敗")
        token = self._session.access_token
        if not token:
            raise await self._expire("刷新後沒有 access token")
        try:
            return await call(token)
        except UnauthorizedError:
            raise await self._expire("刷新後仍未授權")
