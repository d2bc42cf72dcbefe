"""環境設定

所有設定皆可透過 `.env` 或環境變數覆寫，未設定時使用預設值。
"""
import os
from dotenv import load_dotenv

load_dotenv()

# 公開課表網站（學校首頁與 ajax 課表）
TIMETABLE_BASE_URL = os.getenv("EASISTENT_TIMETABLE_BASE_URL", "https://urniki.easistent.com").rstrip("/")
# 行動版 JSON API（登入、子女、成績）
AUTH_BASE_URL = os.getenv("EASISTENT_AUTH_BASE_URL", "https://www.easistent.com").rstrip("/")
# 單次請求逾時秒數
HTTP_TIMEOUT = float(os.getenv("EASISTENT_HTTP_TIMEOUT", "15"))
# 批次抓取全部班級時的併發上限
DEFAULT_PARALLELISM = int(os.getenv("EASISTENT_PARALLELISM", "6"))
