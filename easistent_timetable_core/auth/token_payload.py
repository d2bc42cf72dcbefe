"""JWT payload 解碼

只解出 payload 中的欄位供顯示與推導 school_id 使用，不驗證簽章。
token 的有效性由伺服器判斷，這裡取得的值不可作為授權依據。
"""
from typing import Optional

import jwt
from pydantic import ValidationError

from easistent_timetable_core.auth.models import JwtPayload
from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")


def decode_payload(token: str) -> Optional[JwtPayload]:
    """以 PyJWT 解出 payload（不驗證簽章與過期時間），失敗回傳 None"""
    try:
        data = jwt.decode(token, options={"verify_signature": False})
        return JwtPayload.model_validate(data)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.debug(f"⚠️ 無法解碼 JWT payload：{e}")
        return None
