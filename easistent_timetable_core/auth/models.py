from __future__ import annotations
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ====================================
# 📤 請求
# ====================================


class LoginRequest(BaseModel):
    username: str
    password: str
    supported_user_types: List[str] = Field(default_factory=lambda: ["parent", "child"])


class RefreshRequest(BaseModel):
    refresh_token: str


# ====================================
# 📥 回應
# ====================================


class AccessToken(BaseModel):
    token: str
    expiration_date: Optional[str] = None


class AuthUser(BaseModel):
    id: int
    language: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    fresh_password: Optional[str] = Field(default=None, alias="freshPassword")
    gender: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class LoginResponse(BaseModel):
    access_token: AccessToken
    refresh_token: str
    user: Optional[AuthUser] = None
    redirect: Optional[str] = None


class RefreshResponse(BaseModel):
    access_token: AccessToken
    refresh_token: str
    redirect: Optional[str] = None


class JwtPayload(BaseModel):
    """access token 中的欄位（未驗證簽章，只供參考）"""
    consumer_key: Optional[str] = Field(default=None, alias="consumerKey")
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_type: Optional[str] = Field(default=None, alias="userType")
    school_id: Optional[str] = Field(default=None, alias="schoolId")
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    issued_at: Optional[str] = Field(default=None, alias="issuedAt")
    app_name: Optional[str] = Field(default=None, alias="appName")
    exp: Optional[str] = None
    ttl: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator(
        "consumer_key", "user_id", "user_type", "school_id",
        "session_id", "issued_at", "app_name", "exp",
        mode="before"
    )
    @classmethod
    def _number_to_str(cls, value):
        # 伺服器有時以數字傳回 id
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def school_id_int(self) -> Optional[int]:
        try:
            return int(self.school_id) if self.school_id is not None else None
        except ValueError:
            return None


# ====================================
# 👨‍👩‍👧 子女
# ====================================


class ChildItem(BaseModel):
    uuid: str
    display_name: Optional[str] = None
    class_name: Optional[str] = None
    school_name: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[int] = None
    short_name: Optional[str] = None
    subscription_status: Optional[str] = None


class ChildrenResponse(BaseModel):
    items: List[ChildItem] = Field(default_factory=list)


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class ChildProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    uuid: str
    student_id: int
    class_id: Optional[int] = None
    display_name: Optional[str] = None
    class_name: Optional[str] = None
    school_name: Optional[str] = None
    subscription_status: Optional[str] = None

    @classmethod
    def from_item(cls, item: ChildItem) -> Optional["ChildProfile"]:
        """由 uuid 解出班級與學生 id

        uuid 格式為 `prefix$<userId>.<year>.<schoolId>.<classId>.<studentId>`；
        沒有 `$` 時整串視為 id 部分。解不出 student id 時回傳 None。
        """
        _, sep, tail = item.uuid.partition("$")
        parts = (tail if sep else item.uuid).split(".")
        student_id = _to_int(parts[4]) if len(parts) > 4 else None
        if student_id is None:
            return None
        return cls(
            uuid=item.uuid,
            student_id=student_id,
            class_id=_to_int(parts[3]) if len(parts) > 3 else None,
            display_name=item.display_name,
            class_name=item.class_name,
            school_name=item.school_name,
            subscription_status=item.subscription_status,
        )


# ====================================
# 📝 成績
# ====================================


class GradeItem(BaseModel):
    type_name: Optional[str] = None
    comment: Optional[str] = None
    id: int
    type: Optional[str] = None
    overrides_ids: Optional[List[int]] = None
    value: Optional[str] = None
    color: Optional[str] = None
    date: Optional[str] = None  # yyyy-MM-dd
    inserted_at: Optional[str] = None


class SemesterGrades(BaseModel):
    id: int
    final_grade: Optional[str] = None
    grades: List[GradeItem] = Field(default_factory=list)


class SubjectGrades(BaseModel):
    name: str
    short_name: Optional[str] = None
    id: int
    grade_type: Optional[str] = None
    is_excused: Optional[bool] = None
    final_grade: Optional[str] = None
    average_grade: Optional[str] = None
    grade_rank: Optional[str] = None
    semesters: List[SemesterGrades] = Field(default_factory=list)


class GradesResponse(BaseModel):
    items: List[SubjectGrades] = Field(default_factory=list)


# ====================================
# 🔔 通知（免費成績來源）
# ====================================


class NotificationMeta(BaseModel):
    channel_id: Optional[str] = Field(default=None, alias="channelId")
    message_id: Optional[int] = Field(default=None, alias="messageId")
    user_id: Optional[int] = Field(default=None, alias="userId")
    channel_type: Optional[str] = Field(default=None, alias="channelType")
    grade_id: Optional[int] = Field(default=None, alias="gradeId")
    subject_id: Optional[int] = Field(default=None, alias="subjectId")
    date: Optional[str] = None
    schedule_id: Optional[int] = None
    event_slug: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class NotificationItem(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    meta_data: Optional[NotificationMeta] = None
    id: int
    created_at: Optional[str] = None  # yyyy-MM-dd HH:mm:ss
    seen: Optional[bool] = None
    type: Optional[str] = None


class NotificationsResponse(BaseModel):
    items: List[NotificationItem] = Field(default_factory=list)


# ====================================
# 🔑 登入狀態
# ====================================


class Session(BaseModel):
    """登入狀態；access 與 refresh token 缺一不可"""
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    user_name: Optional[str] = None
    user_id: Optional[str] = None
    school_id: Optional[int] = None
