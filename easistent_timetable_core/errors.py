"""課表核心的錯誤類型

所有錯誤皆繼承自 FetchError，呼叫端可以一次攔截整個系列。
"""
from typing import Optional


class FetchError(Exception):
    """抓取或解析資料時可能發生的錯誤"""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ParseError(FetchError):
    """HTML 或 payload 的結構不符預期"""


class RangeError(FetchError, ValueError):
    """週次超出 0-52 的範圍"""


class NetworkError(FetchError):
    """連線層級的失敗（重試耗盡後）"""


class EmptyResponseError(FetchError):
    """狀態碼成功但沒有內容"""


class UnauthorizedError(FetchError):
    """伺服器回應 401/403，需要刷新 token 後重試"""
    def __init__(self, message: str = "Unauthorized", status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthError(FetchError):
    """登入或刷新被伺服器拒絕"""


class SessionExpiredError(AuthError):
    """刷新後仍未授權，已強制登出"""
    def __init__(self, message: str = "Session expired. Please log in again."):
        super().__init__(message)
