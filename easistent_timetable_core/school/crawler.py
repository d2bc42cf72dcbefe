from __future__ import annotations
from typing import List, Optional
import re

from bs4 import BeautifulSoup

from easistent_timetable_core.abc.crawler_abc import BaseCrawlerABC
from easistent_timetable_core.errors import EmptyResponseError, FetchError, ParseError
from easistent_timetable_core.school.models import ClassInfo, SchoolMeta
from easistent_timetable_core.utils import settings
from easistent_timetable_core.utils.http import send_request
from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")


class SchoolPageCrawler(BaseCrawlerABC[SchoolMeta]):
    """學校首頁爬蟲：取得 school_id 與班級清單

    資料流程：
    1. GET /urniki/{school_key}/ -> HTML
    2. script 中的 id_sola -> school_id（必須存在）
    3. #id_parameter 下拉選單 -> ClassInfo 清單（非整數 value 略過）
    """

    DEFAULT_BASE_URL = settings.TIMETABLE_BASE_URL

    _ID_SOLA_RE = re.compile(r"(?:var\s+)?id_sola\s*=\s*'(?P<id>\d+)'")
    _CLASS_OPTION_SELECTOR = "#id_parameter > option"

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")

    async def fetch_raw(self, school_key: str) -> str:
        """抓取學校首頁 HTML"""
        url = f"{self.base_url}/urniki/{school_key}/"
        logger.debug(f"🌐 請求學校首頁：{url}")
        response = await send_request("GET", url, headers=self.get_headers())
        if not response.ok:
            error_msg = f"HTTP 狀態碼錯誤 {response.status}: {url}"
            logger.error(f"❌ {error_msg}")
            raise FetchError(error_msg)
        if not response.text:
            raise EmptyResponseError(f"學校首頁沒有內容：{school_key}")
        return response.text

    def parse(self, raw: str, school_key: str) -> SchoolMeta:
        """解析學校首頁

        Args:
            raw: 首頁 HTML
            school_key: 學校代碼

        Returns:
            SchoolMeta: 學校 id 與班級清單

        Raises:
            ParseError: 找不到 id_sola
        """
        soup = BeautifulSoup(raw, "html.parser")
        script_text = "\n".join(script.string or "" for script in soup.find_all("script"))
        match = self._ID_SOLA_RE.search(script_text)
        if not match:
            logger.error(f"❌ 學校首頁找不到 id_sola：{school_key}")
            raise ParseError(f"學校首頁找不到 id_sola：{school_key}")
        school_id = int(match.group("id"))

        classes: List[ClassInfo] = []
        for option in soup.select(self._CLASS_OPTION_SELECTOR):
            value = (option.get("value") or "").strip()
            try:
                class_id = int(value)
            except ValueError:
                logger.debug(f"略過非數字的班級選項：{value!r}")
                continue
            classes.append(ClassInfo(id=class_id, label=option.get_text(strip=True)))

        logger.debug(f"🏫 {school_key}: id_sola={school_id}，共 {len(classes)} 個班級")
        return SchoolMeta(school_key=school_key, school_id=school_id, classes=classes)

    async def fetch(self, school_key: str) -> SchoolMeta:
        raw = await self.fetch_raw(school_key)
        result = self.parse(raw, school_key)
        logger.info(f"✅ 學校 {school_key}({result.school_id})[抓取]完成")
        return result
