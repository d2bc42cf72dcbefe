from abc import ABC, abstractmethod
from typing import Any, Dict, TypeVar, Generic

T = TypeVar("T")

class BaseCrawlerABC(ABC, Generic[T]):
    """
    Crawler 層的抽象基底類，規範所有爬蟲/資料抓取器的標準介面。

    子類別只需實作 fetch_raw（網路）與 parse（純解析），
    parse 不得有任何 I/O，方便以離線 HTML 測試。
    """
    DEFAULT_HEADERS: Dict[str, str] = {
        "User-Agent": "easistent-timetable-core/0.1",
        "Accept": "text/html,application/xhtml+xml,*/*;q=0.8",
    }

    def get_headers(self) -> Dict[str, str]:
        """回傳請求標頭的副本，子類別可覆寫 DEFAULT_HEADERS"""
        return dict(self.DEFAULT_HEADERS)

    @abstractmethod
    async def fetch_raw(self, *args, **kwargs) -> str:
        """抓取原始文字（HTML 或 payload）"""
        pass

    @abstractmethod
    def parse(self, raw: str, *args, **kwargs) -> T:
        """解析原始文字為結構化資料"""
        pass

    @abstractmethod
    async def fetch(self, *args, **kwargs) -> T:
        """外部統一調用：fetch_raw 後 parse，回傳結構化資料"""
        pass
