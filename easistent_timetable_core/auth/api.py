from typing import Dict, Optional

from easistent_timetable_core.auth.models import LoginRequest, RefreshRequest
from easistent_timetable_core.utils import settings
from easistent_timetable_core.utils.http import HttpResponse, send_request
from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")


class AuthApi:
    """行動版 JSON API 的薄包裝

    所有方法都回傳 HttpResponse，不判斷狀態碼；解讀交給 AuthRepository。
    連線失敗時 send_request 會拋出 NetworkError。
    """

    DEFAULT_BASE_URL = settings.AUTH_BASE_URL
    DEVICE_ID = "child_device"
    DEFAULT_HEADERS = {
        "X-App-Name": "child",
        "Accept": "application/json",
        "Content-Type": "application/json; charset=utf-8",
        "X-Device-Id": DEVICE_ID,
        "X-Requested-With": "XMLHttpRequest",
        "X-client-version": "11102",
        "x-client-platform": "android",
        "User-Agent": "easistent-timetable-core/0.1 (Python)",
    }

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def _headers(self, access_token: Optional[str] = None, child_uuid: Optional[str] = None) -> Dict[str, str]:
        headers = self.DEFAULT_HEADERS.copy()
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        if child_uuid:
            headers["X-Child-Id"] = child_uuid
        return headers

    async def login(self, request: LoginRequest) -> HttpResponse:
        logger.debug(f"🔑 登入：{request.username}")
        return await send_request(
            "POST", self._url("m/login"),
            headers=self._headers(),
            json=request.model_dump(),
        )

    async def refresh(self, request: RefreshRequest) -> HttpResponse:
        logger.debug("🔄 刷新 token")
        return await send_request(
            "POST", self._url("m/refresh_token"),
            headers=self._headers(),
            json=request.model_dump(),
        )

    async def logout(self, access_token: Optional[str] = None) -> HttpResponse:
        return await send_request(
            "DELETE", self._url("m/logout"),
            headers=self._headers(access_token),
            params={"device_id": self.DEVICE_ID},
        )

    async def get_children(self, access_token: str) -> HttpResponse:
        return await send_request(
            "GET", self._url("m/v2/children"),
            headers=self._headers(access_token),
        )

    async def get_grades(self, access_token: str, child_uuid: str) -> HttpResponse:
        return await send_request(
            "GET", self._url("m/grades"),
            headers=self._headers(access_token, child_uuid),
        )

    async def get_notifications(
        self,
        access_token: str,
        child_uuid: str,
        last_id: Optional[int] = None
    ) -> HttpResponse:
        params = {"last_id": last_id} if last_id is not None else None
        return await send_request(
            "GET", self._url("m/notifications"),
            headers=self._headers(access_token, child_uuid),
            params=params,
        )
