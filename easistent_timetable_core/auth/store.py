"""登入狀態與使用者設定的持久化

實際的加密儲存由外部提供，這裡只定義 KeyValueStore 介面，
並在其上提供 TokenStore 與 SettingsStore 兩個具型別的檢視。
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json

from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")


class KeyValueStore(ABC):
    """以欄位名稱存取的鍵值儲存"""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class JsonFileKeyValueStore(KeyValueStore):
    """存成單一 JSON 檔（未加密，開發用）"""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._data: Dict[str, Any] = {}
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    self._data = json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"讀取設定檔時發生錯誤，改用空白設定: {e} [{self._path}]")
                self._data = {}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=4)
        logger.debug(f"💾 已寫入設定檔：{self._path}")

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def clear(self) -> None:
        self._data = {}
        self._flush()


class _Field:
    """把 KeyValueStore 的一個欄位包成屬性；設為 None 等同刪除"""

    def __init__(self, key: str):
        self.key = key

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance._store.get(self.key)

    def __set__(self, instance, value) -> None:
        if value is None:
            instance._store.remove(self.key)
        else:
            instance._store.set(self.key, value)


class TokenStore:
    """access/refresh token 與由 token 推導出的身分欄位"""

    access_token = _Field("access_token")
    access_expiration = _Field("access_exp")
    refresh_token = _Field("refresh_token")
    user_name = _Field("user_name")
    user_id = _Field("user_id")
    school_id = _Field("school_id")

    KEYS = ("access_token", "access_exp", "refresh_token", "user_name", "user_id", "school_id")

    def __init__(self, store: Optional[KeyValueStore] = None):
        self._store = store or MemoryKeyValueStore()

    def clear(self) -> None:
        """只移除登入相關的鍵，同一個 store 中的使用者偏好保留"""
        for key in self.KEYS:
            self._store.remove(key)


class SettingsStore:
    """使用者偏好：提醒開關與目前選擇的子女"""

    selected_child_uuid = _Field("selected_child_uuid")
    selected_child_student_id = _Field("selected_child_student_id")
    selected_child_class_id = _Field("selected_child_class_id")
    last_reminder_start_epoch = _Field("last_reminder_start_epoch")

    def __init__(self, store: Optional[KeyValueStore] = None):
        self._store = store or MemoryKeyValueStore()

    @property
    def reminders_enabled(self) -> bool:
        return bool(self._store.get("reminders_enabled") or False)

    @reminders_enabled.setter
    def reminders_enabled(self, value: bool) -> None:
        self._store.set("reminders_enabled", bool(value))

    def clear_child(self) -> None:
        self.selected_child_uuid = None
        self.selected_child_student_id = None
        self.selected_child_class_id = None
        self.last_reminder_start_epoch = None
