from abc import ABC, abstractmethod
from typing import Any, Generic, Hashable, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

class BaseCacheABC(ABC, Generic[K, V]):
    """
    Cache 層的抽象基底類。

    查詢順序：記憶體 → 來源；來源結果寫回記憶體。
    快取在行程存活期間不淘汰，只能透過 clear 明確清除。
    """
    @abstractmethod
    async def fetch_from_memory(self, key: K) -> Optional[V]:
        """從記憶體快取取得資料，不存在時回傳 None"""
        pass

    @abstractmethod
    async def save_to_memory(self, key: K, data: V) -> None:
        """儲存資料到記憶體快取"""
        pass

    @abstractmethod
    async def fetch_from_source(self, key: K, *args: Any, **kwargs: Any) -> V:
        """從網路來源取得最新資料"""
        pass

    @abstractmethod
    def clear(self) -> None:
        """清除所有記憶體快取"""
        pass

    async def fetch(self, key: K, *args: Any, refresh: bool = False, **kwargs: Any) -> V:
        """智能獲取資料，依序嘗試記憶體與來源"""
        if not refresh:
            mem = await self.fetch_from_memory(key)
            if mem is not None:
                return mem
        net = await self.fetch_from_source(key, *args, **kwargs)
        await self.save_to_memory(key, net)
        return net
