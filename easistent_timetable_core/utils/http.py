"""aiohttp 請求的共用工具

每次請求建立短生命週期的 ClientSession，連線錯誤與逾時交由 tenacity 重試，
HTTP 狀態碼則原封不動交回呼叫端判斷。
"""
from __future__ import annotations
from typing import Any, Dict, Optional
import asyncio
import logging

import aiohttp
from aiohttp import client_exceptions
from pydantic import BaseModel
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from easistent_timetable_core.errors import NetworkError
from easistent_timetable_core.utils import settings
from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")


class HttpResponse(BaseModel):
    """HTTP 回應的最小表示：狀態碼與文字內容"""
    status: int
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_unauthorized(self) -> bool:
        return self.status in (401, 403)


@retry(
    retry=retry_if_exception_type((
        client_exceptions.ClientConnectionError,
        client_exceptions.ServerTimeoutError,
        asyncio.TimeoutError
    )),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True
)
async def _send(
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Any] = None,
    timeout: float,
) -> HttpResponse:
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        logger.debug(f"📡 {method} {url}")
        async with session.request(method, url, headers=headers, params=params, json=json) as response:
            text = await response.text()
            logger.debug(f"📥 收到回應：{response.status} ({len(text)} chars)")
            return HttpResponse(status=response.status, text=text)


async def send_request(
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Any] = None,
    timeout: Optional[float] = None,
) -> HttpResponse:
    """發送 HTTP 請求

    Args:
        method: HTTP 方法
        url: 完整網址
        headers: 請求標頭
        params: 查詢參數
        json: JSON 請求主體
        timeout: 逾時秒數，預設為 settings.HTTP_TIMEOUT

    Returns:
        HttpResponse: 狀態碼與文字內容（不論成功與否）

    Raises:
        NetworkError: 重試耗盡後仍無法連線
    """
    try:
        return await _send(
            method,
            url,
            headers=headers,
            params=params,
            json=json,
            timeout=timeout or settings.HTTP_TIMEOUT,
        )
    except (client_exceptions.ClientError, asyncio.TimeoutError) as e:
        error_msg = f"網路請求錯誤：{method} {url}: {e!r}"
        logger.error(f"❌ {error_msg}")
        raise NetworkError(error_msg) from e
