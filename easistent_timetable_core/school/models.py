from __future__ import annotations
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class ClassInfo(BaseModel):
    """班級資訊：id 為課表 API 使用的整數，label 為顯示名稱（如 "7.a"）"""
    model_config = ConfigDict(frozen=True)

    id: int
    label: str


class SchoolMeta(BaseModel):
    """學校首頁解析結果

    包含：
    - school_key: 網址上的學校代碼
    - school_id: 內嵌 script 的 id_sola
    - classes: 班級選單
    """
    model_config = ConfigDict(frozen=True)

    school_key: str
    school_id: int
    classes: List[ClassInfo]

    def find_class(self, label: str) -> Optional[ClassInfo]:
        """以顯示名稱找班級，找不到回傳 None"""
        return next((c for c in self.classes if c.label == label), None)
